"""
Tests for CellData: numeric detection and display formatting.

Run with: pytest tests/test_cell.py -v
"""
import pytest

from models.cell import CellData


class TestNumericDetection:
    """Cells are numeric iff the trimmed value parses as a finite number."""

    @pytest.mark.parametrize("raw", ["42", "12.50", "-3", "+7", "0.5", ".5", "1e3", " 8 "])
    def test_numbers(self, raw):
        assert CellData.from_value(raw).is_numeric

    @pytest.mark.parametrize("raw", ["abc", "", "12kg", "1,000", "inf", "nan", "--1", "1.2.3"])
    def test_text(self, raw):
        assert not CellData.from_value(raw).is_numeric

    def test_from_value_trims(self):
        cell = CellData.from_value("  paddy  ")
        assert cell.value == "paddy"

    def test_is_numeric_not_taken_from_storage(self):
        """A stored isNumeric flag that disagrees with the value is ignored."""
        cell = CellData.from_map({"value": "hello", "isNumeric": True})
        assert not cell.is_numeric
        cell = CellData.from_map({"value": "15", "isNumeric": False})
        assert cell.is_numeric

    def test_from_map_missing_data(self):
        assert CellData.from_map(None) == CellData.empty()
        assert CellData.from_map({}) == CellData.empty()

    def test_to_map(self):
        assert CellData.from_value("3").to_map() == {"value": "3", "isNumeric": True}


class TestDisplayValue:
    """Display formatting used by the grid and the PDF export."""

    def test_trailing_zero_stripped(self):
        cell = CellData.from_value("12.50")
        assert cell.is_numeric
        assert cell.display_value == "12.5"

    def test_integral_drops_decimals(self):
        assert CellData.from_value("12.00").display_value == "12"

    def test_rounds_to_two_decimals(self):
        assert CellData.from_value("3.14159").display_value == "3.14"

    def test_text_verbatim(self):
        assert CellData.from_value("abc").display_value == "abc"

    def test_empty(self):
        assert CellData.empty().display_value == ""
        assert CellData.empty().is_empty

    def test_numeric_accessors(self):
        assert CellData.from_value("7").int_value == 7
        assert CellData.from_value("7.5").int_value is None
        assert CellData.from_value("7.5").numeric_value == 7.5
        assert CellData.from_value("x").numeric_value is None

    def test_sort_key_numbers_before_text(self):
        cells = [CellData.from_value(v) for v in ["b", "10", "A", "2"]]
        ordered = [c.value for c in sorted(cells, key=lambda c: c.sort_key())]
        assert ordered == ["2", "10", "A", "b"]
