"""Selectors for the ERP kernel (read side)."""

from erp_kernel.selectors.bom_selector import BomSelector
from erp_kernel.selectors.inventory_selector import InventorySelector
from erp_kernel.selectors.price_selector import PriceSelector
from erp_kernel.selectors.snapshot_selector import SnapshotSelector
from erp_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "InventorySelector",
    "BomSelector",
    "PriceSelector",
    "SnapshotSelector",
    "TransactionSelector",
]
