from typing import List, Optional
from datetime import datetime
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON, UniqueConstraint

class Review(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "product_id", "order_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)

    # References; admin reviews carry no user or order
    product_id: int = Field(foreign_key="product.id", index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    order_id: Optional[int] = Field(default=None, foreign_key="order.id")

    # Review Content
    rating: int = Field(ge=1, le=5)
    comment: str
    images: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    is_verified: bool = Field(default=False)  # backed by a delivered order
    is_admin_review: bool = Field(default=False)
    is_pinned: bool = Field(default=False)

    # Moderation
    is_blocked: bool = Field(default=False)
    blocked_until: Optional[datetime] = None  # None while blocked = permanent
    block_reason: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def is_visible(self, now: datetime) -> bool:
        return not self.is_blocked or (self.blocked_until is not None and self.blocked_until <= now)
