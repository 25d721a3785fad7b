"""
Module: erp_kernel.selectors.transaction_selector
Responsibility: Read-only access to logged transactions with their lines.
Architecture position: Kernel > Selectors.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp_kernel.db.types import round_price, to_quantity
from erp_kernel.domain.dtos import TransactionInfo, TxLineInfo
from erp_kernel.domain.sign_policy import type_code
from erp_kernel.models.transaction import Transaction, TxLine
from erp_kernel.selectors.base import BaseSelector


def transaction_to_dto(tx: Transaction) -> TransactionInfo:
    """Build the DTO from an ORM transaction, lines in line_no order."""
    return TransactionInfo(
        id=tx.id,
        seq=tx.seq,
        date=tx.date,
        type=type_code(tx.type),
        partner_id=tx.partner_id,
        remarks=tx.remarks,
        lines=tuple(
            TxLineInfo(
                id=line.id,
                line_no=line.line_no,
                item_id=line.item_id,
                quantity=to_quantity(line.quantity),
                price=round_price(line.price),
                amount=round_price(line.amount),
            )
            for line in sorted(tx.lines, key=lambda l: l.line_no)
        ),
        created_at=tx.created_at,
    )


class TransactionSelector(BaseSelector[Transaction]):
    """Selector for the transaction log."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, transaction_id: UUID) -> TransactionInfo | None:
        tx = self.session.get(Transaction, transaction_id)
        return transaction_to_dto(tx) if tx is not None else None

    def list_transactions(
        self,
        start: date | None = None,
        end: date | None = None,
        transaction_type: str | None = None,
        partner_id: UUID | None = None,
        item_id: UUID | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[TransactionInfo]:
        """
        Transactions ordered by date, then seq.

        item_id keeps transactions with at least one line for that item.
        """
        query = select(Transaction)

        if start is not None:
            query = query.where(Transaction.date >= start)
        if end is not None:
            query = query.where(Transaction.date <= end)
        if transaction_type is not None:
            query = query.where(Transaction.type == type_code(transaction_type))
        if partner_id is not None:
            query = query.where(Transaction.partner_id == partner_id)
        if item_id is not None:
            query = query.where(
                Transaction.id.in_(
                    select(TxLine.transaction_id).where(TxLine.item_id == item_id)
                )
            )

        query = query.order_by(Transaction.date, Transaction.seq)

        if limit is not None:
            query = query.limit(limit)
        if offset is not None:
            query = query.offset(offset)

        return [transaction_to_dto(tx) for tx in self.session.execute(query).scalars()]

    def count(self) -> int:
        return self.session.execute(select(func.count(Transaction.id))).scalar_one()
