"""
Validation utilities for the seeds admin panel.
The models answer yes/no validity questions; these helpers turn a "no"
into a clear 400 before anything is written.
"""
from fastapi import HTTPException

from models.customer import MAX_NAME_LENGTH, MAX_NOTES_LENGTH, MAX_PHONE_LENGTH, Customer
from models.sheet import MAX_COLUMNS, MAX_ROWS, MAX_TITLE_LENGTH


def validate_customer_fields(name: str, phone_number: str, notes: str = "") -> None:
    """
    Validate customer form fields.

    Rules:
    - name is required, at most MAX_NAME_LENGTH characters after trim
    - phone has 8-15 digits once separators (space - ( ) +) are removed
    - notes are optional, at most MAX_NOTES_LENGTH characters

    Raises:
        HTTPException: 400 if validation fails
    """
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"name must be at most {MAX_NAME_LENGTH} characters, got {len(name)}"
        )

    phone = (phone_number or "").strip()
    if len(phone) > MAX_PHONE_LENGTH or not Customer.is_valid_phone_number(phone):
        raise HTTPException(
            status_code=400,
            detail=f"phone_number must contain 8-15 digits, got {phone!r}"
        )

    if notes and len(notes.strip()) > MAX_NOTES_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"notes must be at most {MAX_NOTES_LENGTH} characters"
        )


def validate_sheet_title(title: str) -> None:
    """
    Validate a sheet title (1..MAX_TITLE_LENGTH characters after trim).

    Raises:
        HTTPException: 400 if validation fails
    """
    title = (title or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"title must be at most {MAX_TITLE_LENGTH} characters, got {len(title)}"
        )


def validate_grid_shape(rows: int, columns: int) -> None:
    """
    Validate the initial shape of a new sheet.

    Raises:
        HTTPException: 400 if rows/columns fall outside 1..MAX
    """
    if not (1 <= rows <= MAX_ROWS):
        raise HTTPException(
            status_code=400,
            detail=f"rows must be in range [1, {MAX_ROWS}], got {rows}"
        )
    if not (1 <= columns <= MAX_COLUMNS):
        raise HTTPException(
            status_code=400,
            detail=f"columns must be in range [1, {MAX_COLUMNS}], got {columns}"
        )


def is_title_taken(title: str, existing_titles, exclude: str | None = None) -> bool:
    """
    Case-insensitive duplicate check for sheet titles of one customer.

    Args:
        title: Candidate title
        existing_titles: Iterable of (sheet_id, title) pairs
        exclude: Sheet id to ignore (the sheet being renamed)
    """
    wanted = (title or "").strip().lower()
    return any(
        existing.strip().lower() == wanted and sheet_id != exclude
        for sheet_id, existing in existing_titles
    )
