"""
Module: erp_kernel.selectors.bom_selector
Responsibility: Read-only access to monthly BOMs as BomDefinition DTOs, and
    the "BOM set fixed for month?" query the closing checklist depends on.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp_kernel.db.types import to_quantity
from erp_kernel.domain.dtos import BomComponent, BomDefinition
from erp_kernel.models.bom import BomHeader
from erp_kernel.models.item import Item
from erp_kernel.selectors.base import BaseSelector


def bom_to_dto(header: BomHeader) -> BomDefinition:
    return BomDefinition(
        header_id=header.id,
        item_id=header.item_id,
        version=header.version,
        is_fixed=bool(header.is_fixed),
        components=tuple(
            BomComponent(
                material_id=line.material_id,
                quantity=to_quantity(line.quantity),
                process=line.process,
                line_no=line.line_no,
                line_id=line.id,
            )
            for line in header.lines
        ),
    )


class BomSelector(BaseSelector[BomHeader]):
    """Selector for BOM headers and lines."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _header(self, item_id: UUID, month: str) -> BomHeader | None:
        return self.session.execute(
            select(BomHeader).where(
                BomHeader.item_id == item_id,
                BomHeader.version == month,
            )
        ).unique().scalar_one_or_none()

    def get_bom(self, item_id: UUID, month: str) -> BomDefinition | None:
        """BOM of ``item_id`` for ``month``, or None when there is none."""
        header = self._header(item_id, month)
        return bom_to_dto(header) if header is not None else None

    def get_bom_by_id(self, bom_header_id: UUID) -> BomDefinition | None:
        header = self.session.get(BomHeader, bom_header_id)
        return bom_to_dto(header) if header is not None else None

    def list_boms(self, month: str) -> list[BomDefinition]:
        """All BOMs of a month, ordered by produced item code."""
        headers = self.session.execute(
            select(BomHeader)
            .join(Item, BomHeader.item_id == Item.id)
            .where(BomHeader.version == month)
            .order_by(Item.code)
        ).unique().scalars().all()
        return [bom_to_dto(header) for header in headers]

    def is_bom_fixed_for_month(self, month: str) -> bool:
        """
        True when no BOM of the month is still a draft.

        A month without any BOM counts as fixed: there is nothing left to
        freeze.
        """
        unfixed = self.session.execute(
            select(func.count(BomHeader.id)).where(
                BomHeader.version == month,
                BomHeader.is_fixed.is_(False),
            )
        ).scalar_one()
        return unfixed == 0

    def material_processes(self, material_ids: list[UUID]) -> dict[UUID, str]:
        """Item process per material id."""
        if not material_ids:
            return {}
        rows = self.session.execute(
            select(Item.id, Item.process).where(Item.id.in_(material_ids))
        ).all()
        return {item_id: getattr(process, "value", process) for item_id, process in rows}
