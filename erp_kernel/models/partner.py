"""
Module: erp_kernel.models.partner
Responsibility: ORM persistence for vendors and customers referenced by
    receipts and shipments.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from enum import Enum

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import TrackedBase


class PartnerType(str, Enum):
    """Role a partner plays."""

    VENDOR = "VENDOR"
    CUSTOMER = "CUSTOMER"
    BOTH = "BOTH"


class Partner(TrackedBase):
    """A trading partner."""

    __tablename__ = "partners"

    __table_args__ = (
        # NULLs are distinct, so only present numbers must be unique
        UniqueConstraint("registration_number", name="uq_partner_registration_number"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    type: Mapped[PartnerType] = mapped_column(String(20), nullable=False)

    # Business registration number, optional
    registration_number: Mapped[str | None] = mapped_column(String(20), nullable=True)

    contact: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<Partner {self.name} ({self.type})>"
