"""
JSON file storage adapter for the seeds admin panel.
Simple file-based storage for quick demos, local use and testing.
Writes are serialized with an in-process lock; not suitable for several
processes sharing the same data directory.
"""
import json
import logging
import threading
import uuid
from typing import List, Dict, Any, Optional
from pathlib import Path
from fastapi import HTTPException

from ..base import (
    CUSTOMERS_TOPIC,
    ChangeFeed,
    Listener,
    Record,
    Unsubscribe,
    newest_first,
    sheets_topic,
)

logger = logging.getLogger(__name__)


class JsonAdapter:
    """
    JSON file-based storage adapter.
    Stores each collection as one JSON object {id: record} under the data directory.
    Uses atomic file operations for basic consistency.
    """

    def __init__(self, data_dir: str = "data"):
        """
        Initialize the JSON adapter.

        Args:
            data_dir: Directory to store JSON files
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        # File paths
        self.customers_file = self.data_dir / "customers.json"
        self.sheets_file = self.data_dir / "sheets.json"

        self._lock = threading.RLock()
        self._feed = ChangeFeed()

        # Initialize files if they don't exist
        for file in [self.customers_file, self.sheets_file]:
            if not file.exists():
                self._write_file(file, {})

    def _read_file(self, filepath: Path) -> Dict[str, Record]:
        """Read and parse a JSON file."""
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning("Corrupt JSON store %s, treating as empty", filepath)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_file(self, filepath: Path, data: Dict[str, Record]) -> None:
        """Write data to a JSON file atomically."""
        # Write to temporary file first
        tmp_file = filepath.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

        # Atomic rename
        tmp_file.replace(filepath)

    @staticmethod
    def _with_id(doc_id: str, record: Record) -> Record:
        out = dict(record)
        out["id"] = doc_id
        return out

    @staticmethod
    def _body(record: Record) -> Record:
        return {k: v for k, v in record.items() if k != "id"}

    # ========== Customers ==========

    def create_customer(self, record: Record) -> str:
        """Create a new customer."""
        customer_id = str(uuid.uuid4())
        with self._lock:
            customers = self._read_file(self.customers_file)
            customers[customer_id] = self._body(record)
            self._write_file(self.customers_file, customers)
        self._publish_customers()
        return customer_id

    def update_customer(self, customer_id: str, record: Record) -> None:
        with self._lock:
            customers = self._read_file(self.customers_file)
            if customer_id not in customers:
                raise HTTPException(status_code=404, detail=f"Customer {customer_id} not found")
            customers[customer_id] = self._body(record)
            self._write_file(self.customers_file, customers)
        self._publish_customers()

    def delete_customer(self, customer_id: str) -> None:
        """Delete a customer and all of their sheets."""
        with self._lock:
            customers = self._read_file(self.customers_file)
            if customer_id not in customers:
                raise HTTPException(status_code=404, detail=f"Customer {customer_id} not found")

            sheets = self._read_file(self.sheets_file)
            kept = {sid: s for sid, s in sheets.items() if s.get("customerId") != customer_id}
            if len(kept) != len(sheets):
                self._write_file(self.sheets_file, kept)

            del customers[customer_id]
            self._write_file(self.customers_file, customers)

        logger.info(
            "Deleted customer %s and %d sheets", customer_id, len(sheets) - len(kept)
        )
        self._publish_sheets(customer_id)
        self._publish_customers()

    def get_customer(self, customer_id: str) -> Optional[Record]:
        customers = self._read_file(self.customers_file)
        record = customers.get(customer_id)
        return self._with_id(customer_id, record) if record is not None else None

    def list_customers(self) -> List[Record]:
        customers = self._read_file(self.customers_file)
        return newest_first([self._with_id(cid, r) for cid, r in customers.items()])

    def subscribe_customers(self, listener: Listener) -> Unsubscribe:
        return self._feed.subscribe(CUSTOMERS_TOPIC, listener, self.list_customers)

    def _publish_customers(self) -> None:
        self._feed.publish(CUSTOMERS_TOPIC, self.list_customers)

    # ========== Sheets ==========

    def create_sheet(self, record: Record) -> str:
        """Create a new sheet."""
        sheet_id = str(uuid.uuid4())
        customer_id = record.get("customerId", "")
        with self._lock:
            if customer_id not in self._read_file(self.customers_file):
                raise HTTPException(status_code=404, detail=f"Customer {customer_id} not found")
            sheets = self._read_file(self.sheets_file)
            sheets[sheet_id] = self._body(record)
            self._write_file(self.sheets_file, sheets)
        self._publish_sheets(customer_id)
        return sheet_id

    def update_sheet(self, sheet_id: str, record: Record) -> None:
        with self._lock:
            sheets = self._read_file(self.sheets_file)
            previous = sheets.get(sheet_id)
            if previous is None:
                raise HTTPException(status_code=404, detail=f"Sheet {sheet_id} not found")
            sheets[sheet_id] = self._body(record)
            self._write_file(self.sheets_file, sheets)

        owners = {previous.get("customerId", ""), record.get("customerId", "")}
        for owner in owners:
            self._publish_sheets(owner)

    def delete_sheet(self, sheet_id: str) -> None:
        with self._lock:
            sheets = self._read_file(self.sheets_file)
            previous = sheets.pop(sheet_id, None)
            if previous is None:
                raise HTTPException(status_code=404, detail=f"Sheet {sheet_id} not found")
            self._write_file(self.sheets_file, sheets)
        self._publish_sheets(previous.get("customerId", ""))

    def get_sheet(self, sheet_id: str) -> Optional[Record]:
        sheets = self._read_file(self.sheets_file)
        record = sheets.get(sheet_id)
        return self._with_id(sheet_id, record) if record is not None else None

    def list_sheets_by_customer(self, customer_id: str) -> List[Record]:
        sheets = self._read_file(self.sheets_file)
        return newest_first([
            self._with_id(sid, r)
            for sid, r in sheets.items()
            if r.get("customerId") == customer_id
        ])

    def subscribe_sheets(self, customer_id: str, listener: Listener) -> Unsubscribe:
        return self._feed.subscribe(
            sheets_topic(customer_id),
            listener,
            lambda: self.list_sheets_by_customer(customer_id),
        )

    def _publish_sheets(self, customer_id: str) -> None:
        self._feed.publish(
            sheets_topic(customer_id),
            lambda: self.list_sheets_by_customer(customer_id),
        )
