from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel

# Both tables hold a single row, created with defaults on first read

class DeliverySettings(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    delivery_charge: float = Field(default=49, ge=0)
    free_shipping_threshold: float = Field(default=1000, ge=0)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def shipping_fee_for(self, subtotal: float) -> float:
        return 0 if subtotal > self.free_shipping_threshold else self.delivery_charge

class OrderSettings(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    is_online_payment_enabled: bool = Field(default=True)
    is_whatsapp_ordering_enabled: bool = Field(default=True)
    whatsapp_number: str = Field(default="")
    updated_at: datetime = Field(default_factory=datetime.utcnow)
