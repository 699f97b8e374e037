from typing import List, Optional
from datetime import datetime
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON

# Both tables hold a single row, created with defaults on first read

class FlashSale(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # [{"product_id": 1, "offer_percentage": 20}]
    products: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=False)

    # The sale restarts every duration_hours from start_time
    duration_hours: int = Field(default=24, ge=1)
    start_time: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class FeaturedProducts(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=datetime.utcnow)
