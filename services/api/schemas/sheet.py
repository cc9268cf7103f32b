"""
Pydantic schemas for customer sheets.
"""
from typing import List

from pydantic import BaseModel, Field

from models.sheet import DEFAULT_COLUMNS, DEFAULT_ROWS, CustomerSheet
from models.timestamps import to_epoch_ms


class SheetCreate(BaseModel):
    """Schema for creating a sheet under a customer."""
    title: str = Field(..., description="Sheet title, 1-100 characters once trimmed")
    rows: int = Field(DEFAULT_ROWS, description="Initial row count")
    columns: int = Field(DEFAULT_COLUMNS, description="Initial column count")


class SheetRename(BaseModel):
    title: str = Field(..., description="New title, trimmed before validation")


class CellUpdate(BaseModel):
    """New raw text for one cell. Surrounding whitespace is trimmed."""
    value: str = Field("", description="Raw cell text")


class CellOut(BaseModel):
    value: str
    is_numeric: bool
    display_value: str


class SheetOut(BaseModel):
    """Schema for sheet output: grid in row-major order plus column labels."""
    id: str = Field(..., description="Sheet ID")
    customer_id: str
    title: str
    row_count: int
    column_count: int
    column_labels: List[str]
    cells: List[List[CellOut]]
    summary: str
    created_at: int = Field(..., description="Creation time, epoch milliseconds")
    updated_at: int = Field(..., description="Last update, epoch milliseconds")

    @classmethod
    def from_model(cls, sheet: CustomerSheet) -> "SheetOut":
        return cls(
            id=sheet.id,
            customer_id=sheet.customer_id,
            title=sheet.title,
            row_count=sheet.row_count,
            column_count=sheet.column_count,
            column_labels=sheet.column_labels,
            cells=[
                [
                    CellOut(value=c.value, is_numeric=c.is_numeric, display_value=c.display_value)
                    for c in row
                ]
                for row in sheet.iter_rows()
            ],
            summary=sheet.summary(),
            created_at=to_epoch_ms(sheet.created_at),
            updated_at=to_epoch_ms(sheet.updated_at),
        )


class SheetListItem(BaseModel):
    """Compact sheet entry for list views."""
    id: str
    title: str
    row_count: int
    column_count: int
    summary: str
    created_at: int
    updated_at: int

    @classmethod
    def from_model(cls, sheet: CustomerSheet) -> "SheetListItem":
        return cls(
            id=sheet.id,
            title=sheet.title,
            row_count=sheet.row_count,
            column_count=sheet.column_count,
            summary=sheet.summary(),
            created_at=to_epoch_ms(sheet.created_at),
            updated_at=to_epoch_ms(sheet.updated_at),
        )
