"""
Pydantic schemas for API request/response validation.
"""
from pydantic import BaseModel

from .customer import CustomerCreate, CustomerOut, CustomerUpdate
from .sheet import CellOut, CellUpdate, SheetCreate, SheetListItem, SheetOut, SheetRename


class HealthCheck(BaseModel):
    """Health check response."""
    ok: bool
    backend: str


__all__ = [
    "CustomerCreate",
    "CustomerUpdate",
    "CustomerOut",
    "SheetCreate",
    "SheetRename",
    "CellUpdate",
    "CellOut",
    "SheetOut",
    "SheetListItem",
    "HealthCheck",
]
