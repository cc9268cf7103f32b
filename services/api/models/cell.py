# services/api/models/cell.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

# Max fraction digits shown for non-integral numbers.
DISPLAY_DECIMALS = 2

_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def _parse_number(text: str) -> Optional[float]:
    """
    Parse a trimmed string as a finite decimal number.

    Accepts an optional sign, digits with an optional fraction and an optional
    exponent. Anything else (inf, nan, digit separators, overflow) is text.
    """
    if not text or not _NUMBER_RE.fullmatch(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True)
class CellData:
    """
    Immutable value of one grid cell.

    `is_numeric` is derived from the trimmed value on construction and is never
    accepted from the caller, so stored data cannot break it.
    """

    value: str = ""
    is_numeric: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        text = "" if self.value is None else str(self.value)
        object.__setattr__(self, "value", text)
        object.__setattr__(self, "is_numeric", _parse_number(text.strip()) is not None)

    # --------------------
    # Constructors
    # --------------------
    @classmethod
    def from_value(cls, value: str) -> "CellData":
        """Build a cell from raw user input (trimmed, type auto-detected)."""
        return cls(value=(value or "").strip())

    @classmethod
    def empty(cls) -> "CellData":
        return _EMPTY

    @classmethod
    def from_map(cls, data: Mapping[str, Any] | None) -> "CellData":
        if not data:
            return _EMPTY
        raw = data.get("value")
        return cls(value="" if raw is None else str(raw))

    def to_map(self) -> dict[str, Any]:
        return {"value": self.value, "isNumeric": self.is_numeric}

    # --------------------
    # Derived values
    # --------------------
    @property
    def is_empty(self) -> bool:
        return not self.value.strip()

    @property
    def is_not_empty(self) -> bool:
        return not self.is_empty

    @property
    def numeric_value(self) -> Optional[float]:
        if not self.is_numeric:
            return None
        return _parse_number(self.value.strip())

    @property
    def int_value(self) -> Optional[int]:
        num = self.numeric_value
        if num is None or not num.is_integer():
            return None
        return int(num)

    @property
    def display_value(self) -> str:
        """
        Text for the grid and the PDF export.

        Integral numbers drop the decimal point ("12.00" -> "12"), other numbers
        keep at most DISPLAY_DECIMALS digits with trailing zeros stripped
        ("12.50" -> "12.5"). Text is returned verbatim.
        """
        if self.is_empty:
            return ""
        num = self.numeric_value
        if num is None:
            return self.value
        if num.is_integer():
            return str(int(num))
        text = f"{num:.{DISPLAY_DECIMALS}f}"
        return text.rstrip("0").rstrip(".")

    def sort_key(self) -> Tuple[int, float, str]:
        """Numbers first (numerically), then text (case-insensitive)."""
        num = self.numeric_value
        if num is not None:
            return (0, num, "")
        return (1, 0.0, self.value.lower())

    def __repr__(self) -> str:
        return f'CellData(value="{self.value}", is_numeric={self.is_numeric})'


_EMPTY = CellData()
