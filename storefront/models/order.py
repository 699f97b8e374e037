from typing import List, Optional
from datetime import datetime
from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy import JSON, Enum as SAEnum
from enum import Enum

class PaymentMethod(str, Enum):
    ONLINE = "online"
    WHATSAPP = "whatsapp"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

class OrderStatus(str, Enum):
    PAYMENT_PENDING = "payment_pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

def enum_column(enum_cls, **kwargs) -> Column:
    # Persist enum values ("payment_pending"), not member names
    return Column(SAEnum(enum_cls, values_callable=lambda x: [e.value for e in x]), **kwargs)

class OrderItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: Optional[int] = Field(default=None, foreign_key="order.id", index=True)
    product_id: int = Field(foreign_key="product.id")
    variant_id: Optional[int] = Field(default=None, foreign_key="productvariant.id")

    # Snapshot at purchase time
    product_name: str
    variant_name: Optional[str] = None
    quantity: int
    price: float

class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    # Order number stored in database (e.g., SK000014)
    order_number: str = Field(default="", index=True)

    # Amounts
    total_amount: float
    shipping_fee: float = Field(default=0.0)
    discount_amount: float = Field(default=0.0)
    final_amount: float

    # Coupon
    coupon_id: Optional[int] = Field(default=None, foreign_key="coupon.id", index=True)
    discount_code: Optional[str] = None

    # Shipping
    shipping_address: dict = Field(default_factory=dict, sa_column=Column(JSON))

    # Payment Info
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.ONLINE,
        sa_column=enum_column(PaymentMethod, nullable=False)
    )
    payment_status: PaymentStatus = Field(
        default=PaymentStatus.PENDING,
        sa_column=enum_column(PaymentStatus, nullable=False)
    )
    payment_gateway: Optional[str] = None
    gateway_order_id: Optional[str] = Field(default=None, index=True)
    gateway_payment_id: Optional[str] = None
    gateway_signature: Optional[str] = None
    paid_at: Optional[datetime] = None
    payment_expires_at: Optional[datetime] = None
    manual_payment_details: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    # Order Status
    order_status: OrderStatus = Field(
        default=OrderStatus.PAYMENT_PENDING,
        sa_column=enum_column(OrderStatus, nullable=False, index=True)
    )
    # [{status, timestamp, message, is_critical}]
    status_history: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    cancelled_at: Optional[datetime] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    items: List["OrderItem"] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "OrderItem.id"}
    )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    def add_history(self, status: OrderStatus, message: str, is_critical: bool = False) -> None:
        entry = {
            "status": status.value,
            "timestamp": datetime.utcnow().isoformat(),
            "message": message,
            "is_critical": is_critical,
        }
        # Reassign so the JSON column is flagged dirty
        self.status_history = [*(self.status_history or []), entry]

    def payment_window_elapsed(self, now: Optional[datetime] = None) -> bool:
        if not self.payment_expires_at:
            return False
        return (now or datetime.utcnow()) > self.payment_expires_at
