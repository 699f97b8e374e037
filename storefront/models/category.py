from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel

class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str = Field(unique=True, index=True)
    description: str = Field(default="")

    # Shown on admin listings next to the product's own offer
    offer: float = Field(default=0, ge=0, le=99)

    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
