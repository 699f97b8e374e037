from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel

class Address(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    # Contact
    name: str
    email: str
    phone_number: str

    # Location
    street: str
    city: str
    state: str
    postal_code: str
    country: str = Field(default="India")

    type: str = Field(default="Home")  # Home, Work, etc.
    is_primary: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def snapshot(self) -> dict:
        """Copy stored on an order so later edits don't rewrite history"""
        return {
            "name": self.name,
            "email": self.email,
            "phone_number": self.phone_number,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "address_type": self.type,
        }
