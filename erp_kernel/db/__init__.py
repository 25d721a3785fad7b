"""Database layer - engine, base classes, column types, and immutability."""

from erp_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from erp_kernel.db.engine import create_tables, get_engine, get_session
from erp_kernel.db.types import MonthCode, Price, Quantity, ShortCode

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Quantity",
    "Price",
    "MonthCode",
    "ShortCode",
]
