# services/api/models/customer.py
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from .timestamps import format_day, is_recent, time_since, utcnow

MAX_NAME_LENGTH = 50
MAX_PHONE_LENGTH = 20
MAX_NOTES_LENGTH = 500

_PHONE_SEPARATORS = re.compile(r"[\s\-()+]")
_PHONE_DIGITS = re.compile(r"\d{8,15}")


@dataclass(frozen=True)
class Customer:
    """
    Domain model for a customer (owner of sheets, context for PDF export).

    Pure data object; edits go through `update()` which returns a copy.
    """

    name: str
    phone_number: str
    created_at: datetime
    updated_at: datetime
    notes: str = ""
    id: str = ""  # assigned by the store

    @classmethod
    def create(cls, *, name: str, phone_number: str, notes: str = "") -> "Customer":
        now = utcnow()
        return cls(
            name=(name or "").strip(),
            phone_number=(phone_number or "").strip(),
            notes=(notes or "").strip(),
            created_at=now,
            updated_at=now,
        )

    def with_id(self, customer_id: str) -> "Customer":
        return replace(self, id=customer_id)

    def update(
        self,
        *,
        name: Optional[str] = None,
        phone_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> "Customer":
        return replace(
            self,
            name=self.name if name is None else name.strip(),
            phone_number=self.phone_number if phone_number is None else phone_number.strip(),
            notes=self.notes if notes is None else notes.strip(),
            updated_at=max(utcnow(), self.created_at),
        )

    # --------------------
    # Validation
    # --------------------
    @staticmethod
    def is_valid_phone_number(phone: str) -> bool:
        """8-15 digits once spaces, dashes, parentheses and '+' are removed."""
        if not phone or not phone.strip():
            return False
        return _PHONE_DIGITS.fullmatch(_PHONE_SEPARATORS.sub("", phone)) is not None

    def is_valid(self) -> bool:
        name = self.name.strip()
        return (
            0 < len(name) <= MAX_NAME_LENGTH
            and self.is_valid_phone_number(self.phone_number)
            and len(self.notes) <= MAX_NOTES_LENGTH
        )

    # --------------------
    # Display helpers
    # --------------------
    @property
    def formatted_phone_number(self) -> str:
        return self.phone_number.strip()

    @property
    def initials(self) -> str:
        parts = self.name.split()
        if not parts:
            return "?"
        if len(parts) == 1:
            return parts[0][0].upper()
        return (parts[0][0] + parts[1][0]).upper()

    @property
    def has_notes(self) -> bool:
        return bool(self.notes.strip())

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

    def matches_search(self, query: str) -> bool:
        needle = (query or "").strip().lower()
        if not needle:
            return True
        return (
            needle in self.name.lower()
            or needle in self.phone_number
            or needle in self.notes.lower()
        )

    def sort_key(self) -> str:
        return self.name.lower()
