"""
Module: erp_kernel.models.item
Responsibility: ORM persistence for the item master (raw materials, pressed
    and welded sub-assemblies, painted products, scrap, consumables).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is unique (uq_item_code).
    - type, process and source are closed vocabularies.

Non-goals:
    Item CRUD and the "cannot delete while referenced" guard belong to the
    master-data collaborators.  The kernel only reads items.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import TrackedBase


class ItemType(str, Enum):
    """Material classification."""

    RAW = "RAW"
    SUB = "SUB"
    PRODUCT = "PRODUCT"
    SCRAP = "SCRAP"
    CONSUMABLE = "CONSUMABLE"


class ProcessType(str, Enum):
    """The production stage that makes an item."""

    PRESS = "PRESS"
    WELD = "WELD"
    PAINT = "PAINT"
    NONE = "NONE"


class SourceType(str, Enum):
    """Whether an item is made in-house or bought."""

    MAKE = "MAKE"
    BUY = "BUY"


class Item(TrackedBase):
    """A stockable item."""

    __tablename__ = "items"

    __table_args__ = (
        UniqueConstraint("code", name="uq_item_code"),
    )

    # Business code printed on labels (e.g., "R-SPCC-1.2")
    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    spec: Mapped[str | None] = mapped_column(String(200), nullable=True)

    unit: Mapped[str] = mapped_column(String(20), default="EA", nullable=False)

    type: Mapped[ItemType] = mapped_column(String(20), nullable=False)

    process: Mapped[ProcessType] = mapped_column(
        String(20),
        default=ProcessType.NONE,
        nullable=False,
    )

    source: Mapped[SourceType] = mapped_column(
        String(20),
        default=SourceType.BUY,
        nullable=False,
    )

    # Standard cost per unit
    cost: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)

    def __repr__(self) -> str:
        return f"<Item {self.code}: {self.name}>"
