from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from .cell import CellData
from .customer import Customer
from .sheet import (
    DEFAULT_COLUMNS,
    DEFAULT_ROWS,
    MAX_COLUMNS,
    MAX_ROWS,
    CustomerSheet,
    empty_grid,
)
from .timestamps import decode_timestamp, to_epoch_ms, utcnow

logger = logging.getLogger(__name__)

_CELL_PREFIX = "cell"


def cell_key(row: int, column: int) -> str:
    return f"{_CELL_PREFIX}_{row}_{column}"


def parse_cell_key(key: str) -> Optional[Tuple[int, int]]:
    """
    Decode "cell_<row>_<col>" into (row, col).
    Returns None for any other shape, including negative or non-integer parts.
    """
    parts = str(key).split("_")
    if len(parts) != 3 or parts[0] != _CELL_PREFIX:
        return None
    if not (parts[1].isdecimal() and parts[2].isdecimal()):
        return None
    return int(parts[1]), int(parts[2])


def _declared_size(value: Any, default: int, limit: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return max(1, min(limit, value))


# ---------- sheets ----------

def sheet_to_record(sheet: CustomerSheet) -> Dict[str, Any]:
    """
    Flatten a sheet into the document-store shape.

    Every cell is written, empty ones included, keyed "cell_<row>_<col>".
    The store assigns identity, so `id` is not part of the body.
    """
    cells: Dict[str, Any] = {}
    for r, row in enumerate(sheet.iter_rows()):
        for c, cell in enumerate(row):
            cells[cell_key(r, c)] = cell.to_map()

    return {
        "customerId": sheet.customer_id,
        "title": sheet.title,
        "rowCount": sheet.row_count,
        "columnCount": sheet.column_count,
        "cells": cells,
        "createdAt": to_epoch_ms(sheet.created_at),
        "updatedAt": to_epoch_ms(sheet.updated_at),
    }


def sheet_from_record(record: Mapping[str, Any], doc_id: str = "") -> CustomerSheet:
    """
    Rebuild a dense sheet from a stored record.

    Missing or malformed shape fields fall back to 10x5, cell keys outside the
    declared shape are dropped, bad timestamps become "now". Never raises for
    malformed data.
    """
    rows = _declared_size(record.get("rowCount"), DEFAULT_ROWS, MAX_ROWS)
    columns = _declared_size(record.get("columnCount"), DEFAULT_COLUMNS, MAX_COLUMNS)

    grid = [list(row) for row in empty_grid(rows, columns)]

    raw_cells = record.get("cells")
    if not isinstance(raw_cells, Mapping):
        raw_cells = {}

    dropped = 0
    for key, payload in raw_cells.items():
        address = parse_cell_key(key)
        if address is None or not isinstance(payload, Mapping):
            dropped += 1
            continue
        r, c = address
        if r >= rows or c >= columns:
            dropped += 1
            continue
        grid[r][c] = CellData.from_map(payload)

    if dropped:
        logger.debug("Dropped %d stray cell entries while loading sheet %s", dropped, doc_id)

    now = utcnow()
    created_at = decode_timestamp(record.get("createdAt"), default=now)
    updated_at = max(decode_timestamp(record.get("updatedAt"), default=now), created_at)

    return CustomerSheet(
        id=doc_id or str(record.get("id") or ""),
        customer_id=str(record.get("customerId") or ""),
        title=str(record.get("title") or ""),
        cells=grid,
        created_at=created_at,
        updated_at=updated_at,
    )


# ---------- customers ----------

def customer_to_record(customer: Customer) -> Dict[str, Any]:
    return {
        "name": customer.name,
        "phoneNumber": customer.phone_number,
        "notes": customer.notes,
        "createdAt": to_epoch_ms(customer.created_at),
        "updatedAt": to_epoch_ms(customer.updated_at),
    }


def customer_from_record(record: Mapping[str, Any], doc_id: str = "") -> Customer:
    now = utcnow()
    created_at = decode_timestamp(record.get("createdAt"), default=now)
    return Customer(
        id=doc_id or str(record.get("id") or ""),
        name=str(record.get("name") or ""),
        phone_number=str(record.get("phoneNumber") or ""),
        notes=str(record.get("notes") or ""),
        created_at=created_at,
        updated_at=max(decode_timestamp(record.get("updatedAt"), default=now), created_at),
    )
