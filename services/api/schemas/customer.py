"""
Pydantic schemas for customers.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.customer import MAX_NAME_LENGTH, MAX_NOTES_LENGTH, MAX_PHONE_LENGTH, Customer
from models.timestamps import to_epoch_ms


class CustomerCreate(BaseModel):
    """Schema for creating a customer."""
    name: str = Field(..., max_length=MAX_NAME_LENGTH, description="Customer name")
    phone_number: str = Field(..., max_length=MAX_PHONE_LENGTH, description="8-15 digits, separators allowed")
    notes: str = Field("", max_length=MAX_NOTES_LENGTH, description="Free-form notes")


class CustomerUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""
    name: Optional[str] = Field(None, max_length=MAX_NAME_LENGTH)
    phone_number: Optional[str] = Field(None, max_length=MAX_PHONE_LENGTH)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)


class CustomerOut(BaseModel):
    """Schema for customer output."""
    id: str = Field(..., description="Customer ID")
    name: str
    phone_number: str
    notes: str = ""
    initials: str
    created_at: int = Field(..., description="Creation time, epoch milliseconds")
    updated_at: int = Field(..., description="Last update, epoch milliseconds")

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, customer: Customer) -> "CustomerOut":
        return cls(
            id=customer.id,
            name=customer.name,
            phone_number=customer.phone_number,
            notes=customer.notes,
            initials=customer.initials,
            created_at=to_epoch_ms(customer.created_at),
            updated_at=to_epoch_ms(customer.updated_at),
        )
