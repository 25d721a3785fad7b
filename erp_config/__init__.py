"""
erp_config -- single public entrypoint for ledger policy configuration.

Responsibility:
    Provides the ONLY way to obtain the ledger policy at runtime through
    ``get_active_policy()``.  Returns a frozen ``LedgerPolicy`` that callers
    inject into TransactionService and ClosingService.

Architecture position:
    Configuration -- sits above ``erp_kernel``.  The kernel MUST NEVER
    import from ``erp_config``; it only knows the ``LedgerPolicy`` DTO.

Failure modes:
    - ``FileNotFoundError`` -- the policy file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful call emits a ``ledger_policy_loaded`` log entry with
    the file path and a SHA-256 checksum of the parsed document, tying
    every posting back to the exact policy that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from erp_config.loader import compute_checksum, load_yaml_file, parse_policy
from erp_kernel.domain.policy import LedgerPolicy

_logger = logging.getLogger("erp_kernel.config")

# Policy shipped with the package
DEFAULT_POLICY_PATH = Path(__file__).parent / "policy.yaml"


def get_active_policy(path: Path | str | None = None) -> LedgerPolicy:
    """
    Load and validate the ledger policy.

    Args:
        path: YAML file to load.  Defaults to erp_config/policy.yaml.

    Returns:
        LedgerPolicy built from the file; keys it omits keep their defaults.
    """
    policy_path = Path(path) if path is not None else DEFAULT_POLICY_PATH
    data = load_yaml_file(policy_path)
    policy = parse_policy(data)

    _logger.info(
        "ledger_policy_loaded",
        extra={
            "policy_path": str(policy_path),
            "policy_id": data.get("policy_id"),
            "policy_version": data.get("version"),
            "checksum": compute_checksum(data),
        },
    )
    return policy


__all__ = [
    "DEFAULT_POLICY_PATH",
    "get_active_policy",
    "compute_checksum",
    "parse_policy",
]
