"""Services for the ERP kernel (write side)."""

from erp_kernel.services.availability_service import AvailabilityService
from erp_kernel.services.bom_service import BomService
from erp_kernel.services.closing_service import ClosingService
from erp_kernel.services.price_service import PriceService
from erp_kernel.services.sequence_service import SequenceService
from erp_kernel.services.transaction_service import TransactionService

__all__ = [
    "AvailabilityService",
    "BomService",
    "ClosingService",
    "PriceService",
    "SequenceService",
    "TransactionService",
]
