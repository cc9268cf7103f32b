# services/api/core/report_pdf.py

from __future__ import annotations
import re
import textwrap
from datetime import datetime
from typing import List, Optional

from fpdf import FPDF
from fpdf.enums import Align, TextEmphasis, XPos, YPos
from fpdf.fonts import FontFace

from models.customer import Customer
from models.sheet import CustomerSheet
from models.timestamps import to_epoch_ms, utcnow

_GREEN = (0, 128, 0)
_GREY = (128, 128, 128)
_RULE = (200, 200, 200)
_HEADER_FILL = (211, 211, 211)
_NUMERIC = (0, 0, 255)

_NOTES_LINE_CHARS = 60
_NOTES_MAX_LINES = 3
# Above this many columns the grid is laid out on a landscape page.
_PORTRAIT_MAX_COLUMNS = 8


# ---------- Public API -------------------------------------------------------

def render_sheet_pdf(
    sheet: CustomerSheet,
    customer: Customer,
    *,
    company_name: str = "Rubin Seeds",
    subtitle: Optional[str] = "Admin Panel",
    font_path: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """
    Render one customer sheet as a paginated PDF (fpdf2). Returns PDF bytes.

    Layout (top to bottom): company header, customer block, sheet title, the
    grid as a table (first row styled as headings and repeated on each page,
    numeric cells blue and right aligned), and a footer on every page.

    Only the public sheet API is used (shape, get_cell, display_value, summary).

    Args:
        sheet:        The sheet snapshot to export.
        customer:     Owner of the sheet, printed above the grid.
        company_name, subtitle: Header text.
        font_path:    Optional TTF file for non-latin text. Without it the core
                      Helvetica font is used and unsupported characters become "?".
        generated_at: Timestamp printed in the footer (defaults to now).
    """
    stamp = (generated_at or utcnow()).strftime("%Y-%m-%d %H:%M:%S")
    report = _ReportBuilder(
        landscape=sheet.column_count > _PORTRAIT_MAX_COLUMNS,
        font_path=font_path,
        footer_lines=[
            f"Generated on {stamp}",
            f"Sheet: {sheet.title} | {sheet.summary()}",
        ],
    )
    report.set_metadata(title=sheet.title, author=company_name)
    report.add_header(company_name, subtitle)
    report.add_customer(customer)
    report.add_sheet_title(sheet.title)
    report.add_grid(sheet)
    return report.build()


def export_filename(title: str, *, at: Optional[datetime] = None) -> str:
    """Filesystem-safe name: "<sanitized_title>_<epoch_ms>.pdf"."""
    safe = re.sub(r'[<>:"/\\|?*]', "_", title or "sheet")
    safe = re.sub(r"\s+", "_", safe).lower()
    return f"{safe}_{to_epoch_ms(at or utcnow())}.pdf"


def split_text_into_lines(text: str, max_length: int) -> List[str]:
    """Wrap at word boundaries; words longer than a line are cut."""
    return textwrap.wrap(text, width=max_length, break_long_words=True) or [""]


# ---------- Internals --------------------------------------------------------

class _SheetPDF(FPDF):
    """FPDF with a fixed two-line footer on every page."""

    footer_lines: List[str] = []
    font_family_name: str = "Helvetica"

    def footer(self):
        self.set_y(-18)
        self.set_font(self.font_family_name, "", 8)
        self.set_text_color(*_GREY)
        for line in self.footer_lines:
            self.cell(0, 5, self.clean(line), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def clean(self, text: str) -> str:
        if self.font_family_name != "Helvetica":
            return text
        return text.encode("latin-1", "replace").decode("latin-1")


class _ReportBuilder:
    """
    Simple vertical-flow report:
      - A4 (portrait, landscape for wide sheets), margins 15mm, bottom 22mm
      - header, customer block, title, then the grid table
      - the table flows onto new pages automatically
    """

    def __init__(self, *, landscape: bool, font_path: Optional[str], footer_lines: List[str]):
        self._pdf = _SheetPDF(orientation="L" if landscape else "P", unit="mm", format="A4")
        self._pdf.footer_lines = footer_lines
        if font_path:
            self._pdf.add_font("SheetFont", style="", fname=font_path)
            self._pdf.add_font("SheetFont", style="B", fname=font_path)
            self._pdf.font_family_name = "SheetFont"
        self._pdf.set_margins(15, 15, 15)
        self._pdf.set_auto_page_break(auto=True, margin=22)
        self._pdf.add_page()

        self.family = self._pdf.font_family_name
        self.content_w = self._pdf.w - self._pdf.l_margin - self._pdf.r_margin

    def _text(self, text: str) -> str:
        return self._pdf.clean(text or "")

    def _line(self, h: float, text: str, *, size: float, style: str = "", color=(0, 0, 0)):
        self._pdf.set_font(self.family, style, size)
        self._pdf.set_text_color(*color)
        self._pdf.multi_cell(0, h, self._text(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def set_metadata(self, *, title: str, author: str):
        self._pdf.set_title(self._text(title) or "Sheet")
        self._pdf.set_author(self._text(author))

    def add_header(self, company_name: str, subtitle: Optional[str]):
        self._line(12, company_name, size=24, style="B", color=_GREEN)
        if subtitle:
            self._line(8, subtitle, size=14, color=_GREY)
        self._pdf.ln(3)
        y = self._pdf.get_y()
        self._pdf.set_draw_color(*_RULE)
        self._pdf.line(self._pdf.l_margin, y, self._pdf.l_margin + self.content_w, y)
        self._pdf.ln(6)

    def add_customer(self, customer: Customer):
        self._field("Customer", customer.name)
        self._field("Phone", customer.formatted_phone_number)
        if customer.has_notes:
            lines = split_text_into_lines(customer.notes, _NOTES_LINE_CHARS)
            for i, line in enumerate(lines[:_NOTES_MAX_LINES]):
                self._field("Notes" if i == 0 else "", line)
        self._pdf.ln(4)

    def _field(self, label: str, value: str):
        self._pdf.set_text_color(0, 0, 0)
        self._pdf.set_font(self.family, "B", 12)
        self._pdf.cell(30, 7, self._text(f"{label}:" if label else ""))
        self._pdf.set_font(self.family, "", 12)
        self._pdf.multi_cell(0, 7, self._text(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def add_sheet_title(self, title: str):
        self._line(10, f"Sheet: {title}", size=16, style="B")
        self._pdf.ln(3)

    def add_grid(self, sheet: CustomerSheet):
        self._pdf.set_font(self.family, "", 10)
        self._pdf.set_text_color(0, 0, 0)
        self._pdf.set_draw_color(0, 0, 0)

        headings = FontFace(emphasis=TextEmphasis.B, fill_color=_HEADER_FILL, color=(0, 0, 0))
        numeric = FontFace(color=_NUMERIC)

        with self._pdf.table(
            first_row_as_headings=True,
            headings_style=headings,
            line_height=6,
            text_align=Align.L,
        ) as table:
            for r in range(sheet.row_count):
                row = table.row()
                for c in range(sheet.column_count):
                    cell = sheet.get_cell(r, c)
                    text = self._text(cell.display_value if cell else "")
                    if cell is not None and cell.is_numeric and r > 0:
                        row.cell(text, align=Align.R, style=numeric)
                    else:
                        row.cell(text)

    def build(self) -> bytes:
        return bytes(self._pdf.output())
