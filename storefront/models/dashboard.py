from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint

class DashboardTarget(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("month", "year"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    month: int = Field(ge=1, le=12)
    year: int
    monthly_target: float = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
