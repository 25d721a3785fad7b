"""
Process sequence rule: WELD cannot run before PRESS output exists, PAINT
cannot run before WELD output exists.

The check looks only at BOM materials tagged with the prerequisite process.
A production without a BOM, or whose BOM has no such materials, passes.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from uuid import UUID

from erp_kernel.domain.dtos import BomDefinition
from erp_kernel.exceptions import ProcessSequenceError


def prerequisite_materials(
    bom: BomDefinition | None,
    prerequisite: str,
    material_processes: Mapping[UUID, str],
) -> list[UUID]:
    """BOM materials whose item process equals ``prerequisite``."""
    if bom is None:
        return []
    seen: list[UUID] = []
    for component in bom.components:
        if material_processes.get(component.material_id) == prerequisite:
            if component.material_id not in seen:
                seen.append(component.material_id)
    return seen


def check_process_sequence(
    process: str | None,
    bom: BomDefinition | None,
    material_processes: Mapping[UUID, str],
    stock: Mapping[UUID, Decimal],
    prerequisites: Mapping[str, str],
) -> None:
    """
    Raise ProcessSequenceError when a prerequisite material has no stock.

    Args:
        process: output process of the production (e.g. "WELD").
        bom: the BOM consumed by the production, if any.
        material_processes: item process per BOM material.
        stock: stock on the transaction date per BOM material.
        prerequisites: output process -> required earlier process.
    """
    if process is None:
        return
    required = prerequisites.get(process)
    if required is None:
        return

    missing = [
        material_id
        for material_id in prerequisite_materials(bom, required, material_processes)
        if stock.get(material_id, Decimal("0")) <= 0
    ]
    if missing:
        raise ProcessSequenceError(process, required, [str(m) for m in missing])
