# services/api/routers/customers.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from core.validation import (
    is_title_taken,
    validate_customer_fields,
    validate_grid_shape,
    validate_sheet_title,
)
from models.converters import (
    customer_from_record,
    customer_to_record,
    sheet_from_record,
    sheet_to_record,
)
from models.customer import Customer
from models.sheet import CustomerSheet
from schemas import CustomerCreate, CustomerOut, CustomerUpdate, SheetCreate, SheetListItem, SheetOut

from .deps import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["customers"])


def load_customer(storage, customer_id: str) -> Customer:
    record = storage.get_customer(customer_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Customer {customer_id} not found")
    return customer_from_record(record, customer_id)


@router.get("", response_model=List[CustomerOut])
def list_customers(storage: Storage, q: Optional[str] = Query(None, description="Search name, phone or notes")):
    customers = [customer_from_record(r, r["id"]) for r in storage.list_customers()]
    if q:
        customers = [c for c in customers if c.matches_search(q)]
    return [CustomerOut.from_model(c) for c in customers]


@router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(body: CustomerCreate, storage: Storage):
    validate_customer_fields(body.name, body.phone_number, body.notes)
    customer = Customer.create(name=body.name, phone_number=body.phone_number, notes=body.notes)
    try:
        customer_id = storage.create_customer(customer_to_record(customer))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to create customer: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create customer: {e}")
    logger.info(f"Customer created: {customer_id}")
    return CustomerOut.from_model(customer.with_id(customer_id))


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: str, storage: Storage):
    return CustomerOut.from_model(load_customer(storage, customer_id))


@router.patch("/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: str, body: CustomerUpdate, storage: Storage):
    current = load_customer(storage, customer_id)
    updated = current.update(name=body.name, phone_number=body.phone_number, notes=body.notes)
    validate_customer_fields(updated.name, updated.phone_number, updated.notes)
    try:
        storage.update_customer(customer_id, customer_to_record(updated))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to update customer {customer_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update customer: {e}")
    return CustomerOut.from_model(updated)


@router.delete("/{customer_id}")
def delete_customer(customer_id: str, storage: Storage):
    """Delete a customer together with all of its sheets."""
    try:
        storage.delete_customer(customer_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to delete customer {customer_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete customer: {e}")
    return {"ok": True, "customer_id": customer_id}


@router.get("/{customer_id}/sheets", response_model=List[SheetListItem])
def list_customer_sheets(customer_id: str, storage: Storage, q: Optional[str] = Query(None)):
    load_customer(storage, customer_id)
    sheets = [sheet_from_record(r, r["id"]) for r in storage.list_sheets_by_customer(customer_id)]
    if q and q.strip():
        sheets = [s for s in sheets if s.contains_search_term(q)]
    return [SheetListItem.from_model(s) for s in sheets]


@router.post("/{customer_id}/sheets", response_model=SheetOut, status_code=status.HTTP_201_CREATED)
def create_customer_sheet(customer_id: str, body: SheetCreate, storage: Storage):
    """
    Create an empty sheet for the customer.

    Titles are unique per customer (case-insensitive); a duplicate answers 409.
    """
    load_customer(storage, customer_id)
    validate_sheet_title(body.title)
    validate_grid_shape(body.rows, body.columns)

    existing = [(r["id"], r.get("title", "")) for r in storage.list_sheets_by_customer(customer_id)]
    if is_title_taken(body.title, existing):
        raise HTTPException(status_code=409, detail=f"Sheet title {body.title.strip()!r} already exists")

    sheet = CustomerSheet.create(
        customer_id=customer_id,
        title=body.title,
        rows=body.rows,
        columns=body.columns,
    )
    try:
        sheet_id = storage.create_sheet(sheet_to_record(sheet))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to create sheet for {customer_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create sheet: {e}")
    logger.info(f"Sheet created: {sheet_id} ({sheet.summary()})")
    return SheetOut.from_model(sheet.with_id(sheet_id))
