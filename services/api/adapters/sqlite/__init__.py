# services/api/adapters/sqlite/__init__.py
from __future__ import annotations

import json
import logging
import os
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import (
    BigInteger,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    event,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine, RowMapping
from uuid import uuid4

from ..base import (
    CUSTOMERS_TOPIC,
    ChangeFeed,
    Listener,
    Record,
    Unsubscribe,
    sheets_topic,
)

logger = logging.getLogger(__name__)

# ---- Engine (SQLite) with WAL & pragmas -------------------------------------

def _ensure_dir(path: str):
    d = os.path.dirname(path)
    if d and not os.path.isdir(d):
        os.makedirs(d, exist_ok=True)

def make_engine(db_url: str) -> Engine:
    # Create data dir if sqlite file
    if db_url.startswith("sqlite:///"):
        file_path = db_url.replace("sqlite:///", "", 1)
        _ensure_dir(file_path)

    engine = create_engine(
        db_url,
        future=True,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False},
    )

    # Apply pragmas per-connection
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore
        if isinstance(dbapi_connection, sqlite3.Connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    return engine

# ---- Schema via SQLAlchemy Core ---------------------------------------------

metadata = MetaData()

customers = Table(
    "customers",
    metadata,
    Column("customer_id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("phone_number", String, nullable=False, default=""),
    Column("notes", Text, nullable=False, default=""),
    Column("created_at", BigInteger, nullable=False),  # epoch ms
    Column("updated_at", BigInteger, nullable=False),
)

sheets = Table(
    "sheets",
    metadata,
    Column("sheet_id", String, primary_key=True),
    Column(
        "customer_id",
        String,
        ForeignKey("customers.customer_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("title", String, nullable=False),
    Column("row_count", Integer, nullable=False),
    Column("column_count", Integer, nullable=False),
    Column("cells", Text, nullable=False, default="{}"),  # JSON {"cell_r_c": {...}}
    Column("created_at", BigInteger, nullable=False),
    Column("updated_at", BigInteger, nullable=False),
)

Index("idx_sheets_customer", sheets.c.customer_id)

# ---- Row <-> record mapping -------------------------------------------------

def _customer_values(record: Record) -> Dict[str, Any]:
    return dict(
        name=str(record.get("name") or ""),
        phone_number=str(record.get("phoneNumber") or ""),
        notes=str(record.get("notes") or ""),
        created_at=int(record.get("createdAt") or 0),
        updated_at=int(record.get("updatedAt") or 0),
    )

def _customer_record(row: RowMapping) -> Record:
    return {
        "id": row["customer_id"],
        "name": row["name"],
        "phoneNumber": row["phone_number"],
        "notes": row["notes"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }

def _sheet_values(record: Record) -> Dict[str, Any]:
    return dict(
        customer_id=str(record.get("customerId") or ""),
        title=str(record.get("title") or ""),
        row_count=int(record.get("rowCount") or 0),
        column_count=int(record.get("columnCount") or 0),
        cells=json.dumps(record.get("cells") or {}, ensure_ascii=False),
        created_at=int(record.get("createdAt") or 0),
        updated_at=int(record.get("updatedAt") or 0),
    )

def _sheet_record(row: RowMapping) -> Record:
    try:
        cells = json.loads(row["cells"] or "{}")
    except json.JSONDecodeError:
        logger.warning("Unreadable cells JSON for sheet %s", row["sheet_id"])
        cells = {}
    return {
        "id": row["sheet_id"],
        "customerId": row["customer_id"],
        "title": row["title"],
        "rowCount": row["row_count"],
        "columnCount": row["column_count"],
        "cells": cells,
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }

# ---- Adapter implementation --------------------------------------------------

@dataclass(frozen=True)
class SqliteAdapter:
    engine: Engine
    feed: ChangeFeed = field(default_factory=ChangeFeed)

    @classmethod
    def from_url(cls, db_url: str = "sqlite:///data/seeds.db") -> "SqliteAdapter":
        eng = make_engine(db_url)
        metadata.create_all(eng)
        return cls(engine=eng)

    # Customers
    def create_customer(self, record: Record) -> str:
        customer_id = str(uuid4())
        with self.engine.begin() as conn:
            conn.execute(
                insert(customers).values(customer_id=customer_id, **_customer_values(record))
            )
        self._publish_customers()
        return customer_id

    def update_customer(self, customer_id: str, record: Record) -> None:
        with self.engine.begin() as conn:
            res = conn.execute(
                update(customers)
                .where(customers.c.customer_id == customer_id)
                .values(**_customer_values(record))
            )
            if res.rowcount == 0:
                raise HTTPException(status_code=404, detail="Customer not found")
        self._publish_customers()

    # Delete customer (sheets go with it, in the same transaction)
    def delete_customer(self, customer_id: str) -> None:
        with self.engine.begin() as conn:
            removed = conn.execute(
                delete(sheets).where(sheets.c.customer_id == customer_id)
            ).rowcount
            res = conn.execute(
                delete(customers).where(customers.c.customer_id == customer_id)
            )
            if res.rowcount == 0:
                raise HTTPException(status_code=404, detail="Customer not found")
        logger.info("Deleted customer %s and %d sheets", customer_id, removed)
        self._publish_sheets(customer_id)
        self._publish_customers()

    def get_customer(self, customer_id: str) -> Optional[Record]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(customers).where(customers.c.customer_id == customer_id)
            ).mappings().first()
            return _customer_record(row) if row else None

    def list_customers(self) -> List[Record]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                select(customers).order_by(customers.c.created_at.desc())
            ).mappings().all()
            return [_customer_record(r) for r in rows]

    def subscribe_customers(self, listener: Listener) -> Unsubscribe:
        return self.feed.subscribe(CUSTOMERS_TOPIC, listener, self.list_customers)

    def _publish_customers(self) -> None:
        self.feed.publish(CUSTOMERS_TOPIC, self.list_customers)

    # Sheets
    def create_sheet(self, record: Record) -> str:
        values = _sheet_values(record)
        sheet_id = str(uuid4())
        with self.engine.begin() as conn:
            owner = conn.execute(
                select(customers.c.customer_id).where(customers.c.customer_id == values["customer_id"])
            ).first()
            if not owner:
                raise HTTPException(status_code=404, detail="Customer not found")
            conn.execute(insert(sheets).values(sheet_id=sheet_id, **values))
        self._publish_sheets(values["customer_id"])
        return sheet_id

    def update_sheet(self, sheet_id: str, record: Record) -> None:
        values = _sheet_values(record)
        with self.engine.begin() as conn:
            previous = conn.execute(
                select(sheets.c.customer_id).where(sheets.c.sheet_id == sheet_id)
            ).first()
            if not previous:
                raise HTTPException(status_code=404, detail="Sheet not found")
            conn.execute(
                update(sheets).where(sheets.c.sheet_id == sheet_id).values(**values)
            )
        for owner in {previous.customer_id, values["customer_id"]}:
            self._publish_sheets(owner)

    def delete_sheet(self, sheet_id: str) -> None:
        with self.engine.begin() as conn:
            previous = conn.execute(
                select(sheets.c.customer_id).where(sheets.c.sheet_id == sheet_id)
            ).first()
            if not previous:
                raise HTTPException(status_code=404, detail="Sheet not found")
            conn.execute(delete(sheets).where(sheets.c.sheet_id == sheet_id))
        self._publish_sheets(previous.customer_id)

    def get_sheet(self, sheet_id: str) -> Optional[Record]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(sheets).where(sheets.c.sheet_id == sheet_id)
            ).mappings().first()
            return _sheet_record(row) if row else None

    def list_sheets_by_customer(self, customer_id: str) -> List[Record]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                select(sheets)
                .where(sheets.c.customer_id == customer_id)
                .order_by(sheets.c.created_at.desc())
            ).mappings().all()
            return [_sheet_record(r) for r in rows]

    def subscribe_sheets(self, customer_id: str, listener: Listener) -> Unsubscribe:
        return self.feed.subscribe(
            sheets_topic(customer_id),
            listener,
            lambda: self.list_sheets_by_customer(customer_id),
        )

    def _publish_sheets(self, customer_id: str) -> None:
        self.feed.publish(
            sheets_topic(customer_id),
            lambda: self.list_sheets_by_customer(customer_id),
        )
