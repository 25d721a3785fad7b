"""Domain models for the ERP kernel."""

from erp_kernel.models.bom import BomHeader, BomLine
from erp_kernel.models.item import Item, ItemType, ProcessType, SourceType
from erp_kernel.models.partner import Partner, PartnerType
from erp_kernel.models.price import MonthlyPrice, MonthlyPriceStatus, PriceType
from erp_kernel.models.sequence import SequenceCounter
from erp_kernel.models.snapshot import InventorySnapshot, SnapshotLine, SnapshotStatus
from erp_kernel.models.transaction import Transaction, TransactionType, TxLine

__all__ = [
    "Item",
    "ItemType",
    "ProcessType",
    "SourceType",
    "Partner",
    "PartnerType",
    "BomHeader",
    "BomLine",
    "Transaction",
    "TransactionType",
    "TxLine",
    "MonthlyPrice",
    "MonthlyPriceStatus",
    "PriceType",
    "InventorySnapshot",
    "SnapshotLine",
    "SnapshotStatus",
    "SequenceCounter",
]
