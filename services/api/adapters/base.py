"""
Storage adapter interface for the seeds admin panel.
Defines the contract that all storage backends must implement,
plus the in-process change feed used for live subscriptions.
"""

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Listener = Callable[[List[Record]], None]
Unsubscribe = Callable[[], None]


class StorageAdapter(Protocol):
    """
    Protocol defining the interface for all storage adapters.

    This allows swapping between the JSON file store and SQLite
    without changing the router or state-container code.

    NOTE:
    - Record bodies follow the document shape (camelCase keys, epoch-ms
      timestamps). Identity is assigned by the store and never stored
      inside the body; reads return it under an extra "id" key.
    """

    # ========== Customers ==========

    def create_customer(self, record: Record) -> str:
        """
        Insert a customer record.

        Returns:
            Generated customer id.
        """
        ...

    def update_customer(self, customer_id: str, record: Record) -> None:
        """
        Replace a customer record.

        Raises:
            HTTPException 404 if the customer does not exist.
        """
        ...

    def delete_customer(self, customer_id: str) -> None:
        """
        Delete a customer and every sheet owned by it.

        Raises:
            HTTPException 404 if the customer does not exist.
        """
        ...

    def get_customer(self, customer_id: str) -> Optional[Record]:
        """Return the customer record (with "id"), or None if not found."""
        ...

    def list_customers(self) -> List[Record]:
        """All customers, newest first."""
        ...

    def subscribe_customers(self, listener: Listener) -> Unsubscribe:
        """
        Call `listener` with the full customer list now and after every
        customer write. Returns a callable that removes the listener.
        """
        ...

    # ========== Sheets ==========

    def create_sheet(self, record: Record) -> str:
        """
        Insert a sheet record (see models.converters.sheet_to_record).

        Returns:
            Generated sheet id.
        """
        ...

    def update_sheet(self, sheet_id: str, record: Record) -> None:
        """
        Replace a sheet record (last write wins).

        Raises:
            HTTPException 404 if the sheet does not exist.
        """
        ...

    def delete_sheet(self, sheet_id: str) -> None:
        """
        Delete a single sheet.

        Raises:
            HTTPException 404 if the sheet does not exist.
        """
        ...

    def get_sheet(self, sheet_id: str) -> Optional[Record]:
        """Return the sheet record (with "id"), or None if not found."""
        ...

    def list_sheets_by_customer(self, customer_id: str) -> List[Record]:
        """Sheets owned by `customer_id`, newest first."""
        ...

    def subscribe_sheets(self, customer_id: str, listener: Listener) -> Unsubscribe:
        """
        Call `listener` with the customer's sheets now and after every write
        touching one of them. Returns a callable that removes the listener.
        """
        ...


def newest_first(records: List[Record]) -> List[Record]:
    return sorted(records, key=lambda r: r.get("createdAt") or 0, reverse=True)


class ChangeFeed:
    """
    Observer list keyed by topic ("customers", "sheets:<customer_id>").

    Each publish hands every listener of the topic a full fresh snapshot;
    listeners replace their local copy wholesale. A failing listener is
    logged and skipped so it never breaks the write that triggered it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(
        self,
        topic: str,
        listener: Listener,
        snapshot: Callable[[], List[Record]],
    ) -> Unsubscribe:
        with self._lock:
            self._listeners[topic].append(listener)

        self._deliver(topic, listener, snapshot())

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(topic, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def has_listeners(self, topic: str) -> bool:
        with self._lock:
            return bool(self._listeners.get(topic))

    def publish(self, topic: str, snapshot: Callable[[], List[Record]]) -> None:
        with self._lock:
            listeners = list(self._listeners.get(topic, []))
        if not listeners:
            return
        records = snapshot()
        for listener in listeners:
            self._deliver(topic, listener, records)

    @staticmethod
    def _deliver(topic: str, listener: Listener, records: List[Record]) -> None:
        try:
            listener([dict(r) for r in records])
        except Exception:
            logger.exception("Change listener for %s failed", topic)


def sheets_topic(customer_id: str) -> str:
    return f"sheets:{customer_id}"


CUSTOMERS_TOPIC = "customers"
