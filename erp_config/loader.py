"""
Policy Loader (``erp_config.loader``).

Responsibility
--------------
Loads a ledger policy YAML file and parses it into the kernel's frozen
``LedgerPolicy`` dataclass.  The single public entry point for runtime
policy is ``erp_config.get_active_policy()``.

Invariants enforced
-------------------
* Unknown keys and wrongly typed values raise ``ValueError``; there are no
  silent fallbacks for a misspelled key.
* Missing keys keep the ``LedgerPolicy`` defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from erp_kernel.domain.policy import LedgerPolicy
from erp_kernel.domain.sign_policy import PRODUCTION_TYPES

# Descriptive keys that do not map to LedgerPolicy fields
METADATA_KEYS = frozenset({"policy_id", "version", "description"})

POLICY_KEYS = frozenset({
    "quantity_places",
    "bom_tolerance",
    "bom_consuming_types",
    "enforce_process_sequence",
    "process_prerequisites",
    "require_fixed_bom_for_production",
    "enforce_closing_preconditions",
    "adjustment_remarks",
})

PROCESSES = frozenset({"PRESS", "WELD", "PAINT"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _require_bool(data: dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value


def _parse_decimal(key: str, value: Any) -> Decimal:
    # Floats would carry binary noise into the tolerance
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"{key} must be a quoted decimal string or integer, got {value!r}")
    try:
        parsed = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{key} is not a decimal: {value!r}") from exc
    if not parsed.is_finite() or parsed < 0:
        raise ValueError(f"{key} must be a finite, non-negative decimal, got {value!r}")
    return parsed


def parse_policy(data: dict[str, Any]) -> LedgerPolicy:
    """
    Parse a ``LedgerPolicy`` from a dict.

    Raises:
        ValueError: on unknown keys or invalid values.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Policy document must be a mapping, got {type(data).__name__}")

    unknown = set(data) - POLICY_KEYS - METADATA_KEYS
    if unknown:
        raise ValueError(f"Unknown policy keys: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}

    if "quantity_places" in data:
        places = data["quantity_places"]
        if isinstance(places, bool) or not isinstance(places, int) or not 0 <= places <= 4:
            raise ValueError(f"quantity_places must be an integer 0..4, got {places!r}")
        kwargs["quantity_places"] = places

    if "bom_tolerance" in data:
        kwargs["bom_tolerance"] = _parse_decimal("bom_tolerance", data["bom_tolerance"])

    if "bom_consuming_types" in data:
        types = data["bom_consuming_types"]
        if not isinstance(types, list) or not all(isinstance(t, str) for t in types):
            raise ValueError("bom_consuming_types must be a list of strings")
        invalid = [t for t in types if t not in PRODUCTION_TYPES]
        if invalid:
            raise ValueError(f"bom_consuming_types must be production types, got {invalid}")
        kwargs["bom_consuming_types"] = frozenset(types)

    if "process_prerequisites" in data:
        prerequisites = data["process_prerequisites"]
        if not isinstance(prerequisites, dict):
            raise ValueError("process_prerequisites must be a mapping")
        for process, required in prerequisites.items():
            if process not in PROCESSES or required not in PROCESSES:
                raise ValueError(
                    f"process_prerequisites entry {process!r}: {required!r} "
                    f"uses an unknown process"
                )
        kwargs["process_prerequisites"] = dict(prerequisites)

    for key in (
        "enforce_process_sequence",
        "require_fixed_bom_for_production",
        "enforce_closing_preconditions",
    ):
        if key in data:
            kwargs[key] = _require_bool(data, key)

    if "adjustment_remarks" in data:
        remarks = data["adjustment_remarks"]
        if not isinstance(remarks, str) or not remarks.strip():
            raise ValueError("adjustment_remarks must be a non-empty string")
        try:
            remarks.format(month="2000-01")
        except (KeyError, IndexError) as exc:
            raise ValueError(
                f"adjustment_remarks may only use the {{month}} placeholder: {remarks!r}"
            ) from exc
        kwargs["adjustment_remarks"] = remarks

    return LedgerPolicy(**kwargs)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
