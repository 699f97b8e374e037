from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel
from enum import Enum

from storefront.models.order import enum_column

class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"

class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

class TransactionMethod(str, Enum):
    ONLINE = "online"
    MANUAL = "manual"
    REFUND = "refund"

class Transaction(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # References
    user_id: int = Field(foreign_key="user.id", index=True)
    order_id: Optional[int] = Field(default=None, foreign_key="order.id", index=True)

    # Money movement
    amount: float
    type: TransactionType = Field(sa_column=enum_column(TransactionType, nullable=False))
    status: TransactionStatus = Field(
        default=TransactionStatus.PENDING,
        sa_column=enum_column(TransactionStatus, nullable=False)
    )
    payment_method: TransactionMethod = Field(
        sa_column=enum_column(TransactionMethod, nullable=False)
    )
    transaction_id: str = Field(unique=True, index=True)  # gateway payment/refund id
    description: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
