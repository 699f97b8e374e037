from typing import Optional

from fastapi import HTTPException
from sqlalchemy import asc, desc, or_
from sqlmodel import Session, select

from storefront.models.order import Order
from storefront.models.transaction import Transaction, TransactionMethod, TransactionStatus, TransactionType
from storefront.services.catalog import paginate

SORTABLE_FIELDS = {"created_at", "amount", "status", "type"}

class TransactionService:
    def __init__(self, session: Session):
        self.session = session

    def record(self, order: Order, amount: float, type: TransactionType, method: TransactionMethod,
               transaction_id: str, description: str,
               status: TransactionStatus = TransactionStatus.COMPLETED) -> Transaction:
        """Append a ledger row for an order; caller commits"""
        transaction = Transaction(
            user_id=order.user_id,
            order_id=order.id,
            amount=amount,
            type=type,
            status=status,
            payment_method=method,
            transaction_id=transaction_id,
            description=description
        )
        self.session.add(transaction)
        return transaction

    def list_transactions(self, page: int, limit: int, search: Optional[str] = None, status: Optional[str] = None,
                          type: Optional[str] = None, sort: Optional[str] = None) -> dict:
        query = select(Transaction)
        if search:
            query = query.where(
                or_(
                    Transaction.transaction_id.ilike(f"%{search}%"),
                    Transaction.description.ilike(f"%{search}%")
                )
            )
        if status:
            query = query.where(Transaction.status == TransactionStatus(status))
        if type:
            query = query.where(Transaction.type == TransactionType(type))

        order_by = desc(Transaction.created_at)
        if sort:
            field, _, direction = sort.partition(":")
            if field in SORTABLE_FIELDS:
                column = getattr(Transaction, field)
                order_by = desc(column) if direction == "desc" else asc(column)

        transactions, meta = paginate(self.session, query, Transaction.id, page, limit, order_by)
        return {"transactions": transactions, **meta}

    def get_transaction(self, transaction_id: int) -> Transaction:
        transaction = self.session.get(Transaction, transaction_id)
        if not transaction:
            raise HTTPException(status_code=404, detail="Transaction not found")
        return transaction
