# services/api/models/sheet.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterator, List, Optional, Sequence, Tuple

from .cell import CellData
from .timestamps import format_day, is_recent, time_since, utcnow

DEFAULT_ROWS = 10
DEFAULT_COLUMNS = 5
MAX_ROWS = 100
MAX_COLUMNS = 20
MAX_TITLE_LENGTH = 100

Row = Tuple[CellData, ...]
Grid = Tuple[Row, ...]


def column_letter(index: int) -> str:
    """
    0-based column index -> spreadsheet letters (0 -> A, 25 -> Z, 26 -> AA).
    Negative indexes have no letter.
    """
    result = ""
    while index >= 0:
        result = chr(ord("A") + index % 26) + result
        index = index // 26 - 1
    return result


def column_index(letters: str) -> Optional[int]:
    """Inverse of column_letter; None for anything that is not A-Z letters."""
    text = (letters or "").strip().upper()
    if not text or not all("A" <= ch <= "Z" for ch in text):
        return None
    index = 0
    for ch in text:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def empty_grid(rows: int, columns: int) -> Grid:
    empty = CellData.empty()
    return tuple(tuple(empty for _ in range(columns)) for _ in range(rows))


@dataclass(frozen=True)
class CustomerSheet:
    """
    Immutable spreadsheet-like grid owned by a customer.

    The grid is dense and rectangular: every row holds exactly `column_count`
    cells, with 1..MAX_ROWS rows and 1..MAX_COLUMNS columns. Every mutator
    returns a new instance; out-of-range coordinates and shape limits make the
    call a no-op that returns `self`.
    """

    customer_id: str
    title: str
    cells: Grid
    created_at: datetime
    updated_at: datetime
    id: str = ""  # assigned by the store

    def __post_init__(self) -> None:
        grid = tuple(tuple(row) for row in self.cells)
        if not grid or not grid[0]:
            raise ValueError("A sheet needs at least one row and one column")
        width = len(grid[0])
        if any(len(row) != width for row in grid):
            raise ValueError("All rows of a sheet must have the same number of cells")
        if len(grid) > MAX_ROWS or width > MAX_COLUMNS:
            raise ValueError(
                f"A sheet holds at most {MAX_ROWS} rows and {MAX_COLUMNS} columns, got {len(grid)}x{width}"
            )
        object.__setattr__(self, "cells", grid)

    # --------------------
    # Constructors
    # --------------------
    @classmethod
    def create(
        cls,
        *,
        customer_id: str,
        title: str,
        rows: int = DEFAULT_ROWS,
        columns: int = DEFAULT_COLUMNS,
    ) -> "CustomerSheet":
        now = utcnow()
        return cls(
            customer_id=customer_id,
            title=(title or "").strip(),
            cells=empty_grid(_clamp(rows, 1, MAX_ROWS), _clamp(columns, 1, MAX_COLUMNS)),
            created_at=now,
            updated_at=now,
        )

    def with_id(self, sheet_id: str) -> "CustomerSheet":
        return replace(self, id=sheet_id)

    def _with_cells(self, cells: Sequence[Sequence[CellData]]) -> "CustomerSheet":
        return replace(self, cells=cells, updated_at=self._mutation_time())

    def _mutation_time(self) -> datetime:
        return max(utcnow(), self.created_at)

    # --------------------
    # Shape
    # --------------------
    @property
    def row_count(self) -> int:
        return len(self.cells)

    @property
    def column_count(self) -> int:
        return len(self.cells[0])

    @property
    def column_labels(self) -> List[str]:
        return [column_letter(i) for i in range(self.column_count)]

    def _in_bounds(self, row: int, column: int) -> bool:
        return 0 <= row < self.row_count and 0 <= column < self.column_count

    # --------------------
    # Queries
    # --------------------
    def get_cell(self, row: int, column: int) -> Optional[CellData]:
        if not self._in_bounds(row, column):
            return None
        return self.cells[row][column]

    def iter_rows(self) -> Iterator[Row]:
        return iter(self.cells)

    @property
    def is_empty(self) -> bool:
        return all(cell.is_empty for row in self.cells for cell in row)

    @property
    def is_not_empty(self) -> bool:
        return not self.is_empty

    @property
    def non_empty_cell_count(self) -> int:
        return sum(1 for row in self.cells for cell in row if cell.is_not_empty)

    def contains_search_term(self, term: str) -> bool:
        needle = (term or "").strip().lower()
        if not needle:
            return True
        if needle in self.title.lower():
            return True
        return any(needle in cell.value.lower() for row in self.cells for cell in row)

    def summary(self) -> str:
        return f"{self.row_count} rows × {self.column_count} columns ({self.non_empty_cell_count} filled)"

    def is_valid(self) -> bool:
        title = self.title.strip()
        return bool(self.customer_id.strip()) and 1 <= len(title) <= MAX_TITLE_LENGTH

    # --------------------
    # Mutations
    # --------------------
    def set_cell(self, row: int, column: int, cell: CellData) -> "CustomerSheet":
        if not self._in_bounds(row, column):
            return self
        new_row = self.cells[row][:column] + (cell,) + self.cells[row][column + 1:]
        return self._with_cells(self.cells[:row] + (new_row,) + self.cells[row + 1:])

    def add_row(self) -> "CustomerSheet":
        if self.row_count >= MAX_ROWS:
            return self
        return self._with_cells(self.cells + empty_grid(1, self.column_count))

    def add_column(self) -> "CustomerSheet":
        if self.column_count >= MAX_COLUMNS:
            return self
        empty = CellData.empty()
        return self._with_cells(tuple(row + (empty,) for row in self.cells))

    def remove_row(self, index: int) -> "CustomerSheet":
        if not 0 <= index < self.row_count or self.row_count <= 1:
            return self
        return self._with_cells(self.cells[:index] + self.cells[index + 1:])

    def remove_column(self, index: int) -> "CustomerSheet":
        if not 0 <= index < self.column_count or self.column_count <= 1:
            return self
        return self._with_cells(tuple(row[:index] + row[index + 1:] for row in self.cells))

    def rename(self, title: str) -> "CustomerSheet":
        return replace(self, title=(title or "").strip(), updated_at=self._mutation_time())

    def update(self, *, title: Optional[str] = None) -> "CustomerSheet":
        if title is None:
            return replace(self, updated_at=self._mutation_time())
        return self.rename(title)

    # --------------------
    # Display helpers
    # --------------------
    @property
    def formatted_created_date(self) -> str:
        return format_day(self.created_at)

    @property
    def formatted_updated_date(self) -> str:
        return format_day(self.updated_at)

    @property
    def was_recently_updated(self) -> bool:
        return is_recent(self.updated_at)

    @property
    def time_since_created(self) -> str:
        return time_since(self.created_at)

    def __repr__(self) -> str:
        return (
            f'CustomerSheet(id={self.id}, customer_id={self.customer_id}, '
            f'title="{self.title}", {self.row_count}x{self.column_count})'
        )
