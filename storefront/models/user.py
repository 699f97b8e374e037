from typing import Optional
from datetime import datetime
from enum import Enum
from sqlmodel import Field, SQLModel

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    VENDOR = "vendor"

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Basic Info
    name: Optional[str] = None
    email: str = Field(unique=True, index=True)
    phone: Optional[str] = Field(default=None, index=True)
    password_hash: str = Field(default="")

    # Access
    role: UserRole = Field(default=UserRole.USER)
    token_version: int = Field(default=0)  # bumped on logout / password reset

    # Account Status
    is_active: bool = Field(default=True)
    is_verified: bool = Field(default=False)

    # OTP
    otp_code: Optional[str] = None
    otp_expires_at: Optional[datetime] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "isVerified": self.is_verified,
            "createdAt": self.created_at,
        }
