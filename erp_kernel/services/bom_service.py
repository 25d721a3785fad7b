"""
BomService -- maintenance and fixing of monthly bills of materials.

Responsibility:
    Create a BOM for (item, month), replace its lines, delete it, and fix
    every BOM of a month.  Fixing is one-way; a fixed BOM rejects every
    further change here (BomFixedError) and at the ORM layer
    (db/immutability.py).

Architecture position:
    Kernel > Services.

Invariants enforced:
    - At most one BOM per (item, month): checked up front and backed by the
      uq_bom_item_version constraint inside a savepoint.
    - Component quantities are finite and >= 0; materials must exist and
      differ from the produced item.
"""

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_kernel.db.types import round_quantity
from erp_kernel.domain.dtos import BomComponent, BomDefinition
from erp_kernel.domain.months import validate_month
from erp_kernel.exceptions import (
    BomFixedError,
    BomNotFoundError,
    DuplicateBomError,
    InvalidLineError,
    ItemNotFoundError,
)
from erp_kernel.logging_config import get_logger
from erp_kernel.models.bom import BomHeader, BomLine
from erp_kernel.models.item import Item
from erp_kernel.selectors.bom_selector import bom_to_dto
from erp_kernel.services.base import BaseService

logger = get_logger("services.bom")


class BomService(BaseService[BomHeader]):
    """Write side of the BOM registry."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _require_item(self, item_id: UUID) -> Item:
        item = self.session.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def _require_header(self, bom_header_id: UUID) -> BomHeader:
        header = self.session.get(BomHeader, bom_header_id)
        if header is None:
            raise BomNotFoundError(str(bom_header_id))
        return header

    def _build_lines(
        self, item_id: UUID, components: Sequence[BomComponent]
    ) -> list[BomLine]:
        lines = []
        for index, component in enumerate(components, start=1):
            quantity = component.quantity
            if not isinstance(quantity, Decimal) or not quantity.is_finite() or quantity < 0:
                raise InvalidLineError(index, f"BOM quantity must be a Decimal >= 0, got {quantity}")
            if component.material_id == item_id:
                raise InvalidLineError(index, "an item cannot consume itself")
            self._require_item(component.material_id)
            lines.append(
                BomLine(
                    material_id=component.material_id,
                    line_no=index,
                    quantity=round_quantity(quantity),
                    process=component.process,
                )
            )
        return lines

    def create_bom(
        self,
        item_id: UUID,
        month: str,
        components: Sequence[BomComponent],
    ) -> BomDefinition:
        """
        Create an unfixed BOM.

        Raises:
            DuplicateBomError: a BOM already exists for (item, month).
            ItemNotFoundError / InvalidLineError: bad input.
        """
        validate_month(month)
        self._require_item(item_id)

        existing = self.session.execute(
            select(BomHeader.id).where(
                BomHeader.item_id == item_id,
                BomHeader.version == month,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateBomError(str(item_id), month)

        header = BomHeader(item_id=item_id, version=month, is_fixed=False)
        header.lines = self._build_lines(item_id, components)

        try:
            with self.session.begin_nested():
                self.session.add(header)
                self.session.flush()
        except IntegrityError as exc:
            raise DuplicateBomError(str(item_id), month) from exc

        logger.info(
            "bom_created",
            extra={
                "bom_header_id": str(header.id),
                "item_id": str(item_id),
                "month": month,
                "line_count": len(header.lines),
            },
        )
        return bom_to_dto(header)

    def replace_lines(
        self,
        bom_header_id: UUID,
        components: Sequence[BomComponent],
    ) -> BomDefinition:
        """Replace every line of an unfixed BOM."""
        header = self._require_header(bom_header_id)
        if header.is_fixed:
            raise BomFixedError(str(bom_header_id), "modify")

        new_lines = self._build_lines(header.item_id, components)
        header.lines.clear()
        self.session.flush()
        header.lines.extend(new_lines)
        self.session.flush()

        logger.info(
            "bom_lines_replaced",
            extra={"bom_header_id": str(bom_header_id), "line_count": len(new_lines)},
        )
        return bom_to_dto(header)

    def delete_bom(self, bom_header_id: UUID) -> None:
        header = self._require_header(bom_header_id)
        if header.is_fixed:
            raise BomFixedError(str(bom_header_id), "delete")

        self.session.delete(header)
        self.session.flush()
        logger.info("bom_deleted", extra={"bom_header_id": str(bom_header_id)})

    def fix_month(self, month: str) -> int:
        """
        Fix every draft BOM of ``month``.

        Returns:
            Number of headers fixed by this call (0 when all were fixed).
        """
        validate_month(month)
        headers = self.session.execute(
            select(BomHeader).where(
                BomHeader.version == month,
                BomHeader.is_fixed.is_(False),
            )
        ).unique().scalars().all()

        for header in headers:
            header.is_fixed = True
        self.session.flush()

        logger.info("bom_month_fixed", extra={"month": month, "fixed_count": len(headers)})
        return len(headers)
