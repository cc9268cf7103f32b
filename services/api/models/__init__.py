from __future__ import annotations

from .cell import CellData
from .customer import Customer
from .sheet import (
    DEFAULT_COLUMNS,
    DEFAULT_ROWS,
    MAX_COLUMNS,
    MAX_ROWS,
    MAX_TITLE_LENGTH,
    CustomerSheet,
    column_index,
    column_letter,
)

__all__ = [
    "CellData",
    "Customer",
    "CustomerSheet",
    "column_index",
    "column_letter",
    "DEFAULT_ROWS",
    "DEFAULT_COLUMNS",
    "MAX_ROWS",
    "MAX_COLUMNS",
    "MAX_TITLE_LENGTH",
]
