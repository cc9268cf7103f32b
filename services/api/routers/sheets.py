# services/api/routers/sheets.py
from __future__ import annotations

import logging
from typing import Callable

from fastapi import APIRouter, HTTPException, Response

from core.report_pdf import export_filename, render_sheet_pdf
from core.validation import is_title_taken, validate_sheet_title
from models.cell import CellData
from models.converters import sheet_from_record, sheet_to_record
from models.sheet import CustomerSheet
from schemas import CellUpdate, SheetOut, SheetRename

from .customers import load_customer
from .deps import AppSettings, PdfCache, Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sheets", tags=["sheets"])


def load_sheet(storage, sheet_id: str) -> CustomerSheet:
    record = storage.get_sheet(sheet_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Sheet {sheet_id} not found")
    return sheet_from_record(record, sheet_id)


def apply_edit(storage, sheet_id: str, edit: Callable[[CustomerSheet], CustomerSheet]) -> SheetOut:
    """
    Load -> apply a pure sheet operation -> persist.

    The model returns the same object for a no-op (out-of-range index, limit
    reached); nothing is written then and the unchanged sheet is returned.
    """
    sheet = load_sheet(storage, sheet_id)
    updated = edit(sheet)
    if updated is sheet:
        logger.debug(f"No-op edit on sheet {sheet_id}")
        return SheetOut.from_model(sheet)
    try:
        storage.update_sheet(sheet_id, sheet_to_record(updated))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to save sheet {sheet_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save sheet: {e}")
    return SheetOut.from_model(updated)


@router.get("/{sheet_id}", response_model=SheetOut)
def get_sheet(sheet_id: str, storage: Storage):
    return SheetOut.from_model(load_sheet(storage, sheet_id))


@router.patch("/{sheet_id}", response_model=SheetOut)
def rename_sheet(sheet_id: str, body: SheetRename, storage: Storage):
    validate_sheet_title(body.title)
    sheet = load_sheet(storage, sheet_id)
    siblings = [(r["id"], r.get("title", "")) for r in storage.list_sheets_by_customer(sheet.customer_id)]
    if is_title_taken(body.title, siblings, exclude=sheet_id):
        raise HTTPException(status_code=409, detail=f"Sheet title {body.title.strip()!r} already exists")
    return apply_edit(storage, sheet_id, lambda s: s.rename(body.title))


@router.delete("/{sheet_id}")
def delete_sheet(sheet_id: str, storage: Storage):
    try:
        storage.delete_sheet(sheet_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to delete sheet {sheet_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete sheet: {e}")
    return {"ok": True, "sheet_id": sheet_id}


@router.put("/{sheet_id}/cells/{row}/{column}", response_model=SheetOut)
def set_cell(sheet_id: str, row: int, column: int, body: CellUpdate, storage: Storage):
    return apply_edit(storage, sheet_id, lambda s: s.set_cell(row, column, CellData.from_value(body.value)))


@router.post("/{sheet_id}/rows", response_model=SheetOut)
def add_row(sheet_id: str, storage: Storage):
    return apply_edit(storage, sheet_id, lambda s: s.add_row())


@router.post("/{sheet_id}/columns", response_model=SheetOut)
def add_column(sheet_id: str, storage: Storage):
    return apply_edit(storage, sheet_id, lambda s: s.add_column())


@router.delete("/{sheet_id}/rows/{index}", response_model=SheetOut)
def remove_row(sheet_id: str, index: int, storage: Storage):
    return apply_edit(storage, sheet_id, lambda s: s.remove_row(index))


@router.delete("/{sheet_id}/columns/{index}", response_model=SheetOut)
def remove_column(sheet_id: str, index: int, storage: Storage):
    return apply_edit(storage, sheet_id, lambda s: s.remove_column(index))


@router.get("/{sheet_id}/export.pdf")
def export_sheet_pdf(sheet_id: str, storage: Storage, settings: AppSettings, cache: PdfCache):
    """
    Render the sheet with its customer as a downloadable PDF.

    Cached per (sheet revision, customer revision) for pdf_cache_ttl_seconds.
    """
    sheet = load_sheet(storage, sheet_id)
    customer = load_customer(storage, sheet.customer_id)

    cache_key = (sheet_id, sheet.updated_at, customer.updated_at)
    pdf_bytes = cache.get(cache_key)
    if pdf_bytes is None:
        try:
            pdf_bytes = render_sheet_pdf(
                sheet,
                customer,
                company_name=settings.pdf_company_name,
                subtitle=settings.pdf_subtitle,
                font_path=settings.pdf_font_path,
            )
        except Exception as e:
            logger.exception(f"PDF generation failed for sheet {sheet_id}: {e}")
            raise HTTPException(status_code=500, detail=f"PDF generation failed: {e}")
        cache[cache_key] = pdf_bytes
    else:
        logger.debug(f"PDF cache hit for sheet {sheet_id}")

    fname = export_filename(sheet.title)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{fname}"'},
    )
