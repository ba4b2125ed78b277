"""Customer models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Customer(BaseModel):
    """Customer model."""

    id: Optional[str] = None
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    marketing_consent: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Maria",
                "last_name": "Santos",
                "phone": "+1 671 555 0142",
                "email": "maria@example.com",
            }
        }


class CustomerCreate(BaseModel):
    """Customer creation model."""

    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    marketing_consent: bool = False
    is_active: bool = True

    @classmethod
    def from_full_name(
        cls, name: str, phone: Optional[str] = None, email: Optional[str] = None
    ) -> "CustomerCreate":
        """Split "First Last Names" into first and last name."""
        first_name, _, last_name = name.strip().partition(" ")
        return cls(
            first_name=first_name,
            last_name=last_name.strip() or None,
            phone=phone,
            email=email,
        )
