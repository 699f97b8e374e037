from typing import List, Optional
from datetime import datetime
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON
from enum import Enum

from storefront.models.order import enum_column

class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"

class CouponType(str, Enum):
    ALL = "all"
    NEW_USERS = "new_users"
    SPECIFIC_USERS = "specific_users"
    SPECIFIC_PRODUCTS = "specific_products"
    REGISTERED_AFTER = "registered_after"

class Coupon(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Coupon Details
    code: str = Field(unique=True, index=True)  # e.g., "NEW99"
    description: Optional[str] = None

    # Discount
    discount_type: DiscountType = Field(
        default=DiscountType.PERCENTAGE,
        sa_column=enum_column(DiscountType, nullable=False)
    )
    discount_value: float  # Percentage (0-100) or fixed amount
    max_discount_amount: Optional[float] = None  # cap for percentage coupons
    min_order_amount: float = Field(default=0)

    # Validity
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: datetime

    # Usage Limits
    usage_limit: int = Field(default=0)  # 0 = unlimited
    usage_count: int = Field(default=0)
    user_limit: int = Field(default=1)  # per user

    # Audience
    coupon_type: CouponType = Field(
        default=CouponType.ALL,
        sa_column=enum_column(CouponType, nullable=False)
    )
    specific_users: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    specific_products: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    registered_after: Optional[datetime] = None

    # Status
    is_active: bool = Field(default=True)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit > 0 and self.usage_count >= self.usage_limit


class CouponUsage(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # References
    coupon_id: int = Field(foreign_key="coupon.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    order_id: int = Field(foreign_key="order.id", index=True)

    # Usage Details
    discount_applied: float  # Actual discount amount applied

    # Timestamp
    used_at: datetime = Field(default_factory=datetime.utcnow)
