# services/api/core/customer_state.py
"""
Editor-side state for the customer list: loading, live updates, selection,
search and sorting. Deleting a customer also removes its sheets in the store.
"""
from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from adapters.base import StorageAdapter, Unsubscribe
from models.converters import customer_from_record, customer_to_record
from models.customer import Customer
from models.timestamps import utcnow

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class CustomerState:
    def __init__(self, storage: StorageAdapter):
        self._storage = storage
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._unsubscribe: Optional[Unsubscribe] = None

        self.customers: List[Customer] = []
        self.is_loading = False
        self.error: Optional[str] = None
        self.selected_customer: Optional[Customer] = None
        self.search_query = ""

    # ---- observers ------------------------------------------------------
    def add_listener(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Customer state listener failed")

    def _set_error(self, message: str) -> None:
        logger.error(message)
        with self._lock:
            self.error = message
        self._notify()

    def clear_error(self) -> None:
        if self.error is not None:
            self.error = None
            self._notify()

    # ---- derived views --------------------------------------------------
    @property
    def has_customers(self) -> bool:
        return bool(self.customers)

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def customer_count(self) -> int:
        return len(self.customers)

    @property
    def filtered_customers(self) -> List[Customer]:
        if not self.search_query.strip():
            return list(self.customers)
        return [c for c in self.customers if c.matches_search(self.search_query)]

    @property
    def statistics(self) -> Dict[str, Any]:
        week_ago = utcnow() - timedelta(days=7)
        return {
            "total": len(self.customers),
            "recent": sum(1 for c in self.customers if c.created_at > week_ago),
            "withNotes": sum(1 for c in self.customers if c.has_notes),
            "recentlyUpdated": sum(1 for c in self.customers if c.was_recently_updated),
        }

    def get_customer_by_id(self, customer_id: str) -> Optional[Customer]:
        return next((c for c in self.customers if c.id == customer_id), None)

    def get_customer_by_phone(self, phone_number: str) -> Optional[Customer]:
        wanted = (phone_number or "").strip()
        return next((c for c in self.customers if c.phone_number.strip() == wanted), None)

    def is_customer_name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        """Case-insensitive, ignoring surrounding whitespace."""
        wanted = (name or "").strip().lower()
        return any(
            c.name.strip().lower() == wanted and c.id != exclude_id
            for c in self.customers
        )

    # ---- loading --------------------------------------------------------
    def load_customers(self) -> bool:
        """Fetch all customers. Skipped while another load is running."""
        with self._lock:
            if self.is_loading:
                logger.debug("Customer load skipped, already loading")
                return False
            self.is_loading = True
            self.error = None
        self._notify()
        try:
            records = self._storage.list_customers()
            with self._lock:
                self.customers = [customer_from_record(r, r.get("id", "")) for r in records]
            logger.info("Loaded %d customers", len(records))
            return True
        except Exception as e:
            self._set_error(f"Failed to load customers: {e}")
            return False
        finally:
            with self._lock:
                self.is_loading = False
            self._notify()

    def refresh_customers(self) -> bool:
        return self.load_customers()

    def start_listening(self) -> None:
        self.stop_listening()
        self._unsubscribe = self._storage.subscribe_customers(self._on_remote_customers)

    def stop_listening(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_remote_customers(self, records: List[Dict[str, Any]]) -> None:
        with self._lock:
            self.customers = [customer_from_record(r, r.get("id", "")) for r in records]
            if self.selected_customer is not None:
                self.selected_customer = self.get_customer_by_id(self.selected_customer.id)
            self.error = None
        self._notify()

    # ---- writes ---------------------------------------------------------
    def add_customer(self, customer: Customer) -> Optional[str]:
        if not customer.is_valid():
            self._set_error("Invalid customer data")
            return None
        try:
            customer_id = self._storage.create_customer(customer_to_record(customer))
        except Exception as e:
            self._set_error(f"Error adding customer: {e}")
            return None
        with self._lock:
            if self.get_customer_by_id(customer_id) is None:
                self.customers.insert(0, customer.with_id(customer_id))
        logger.info("Customer added: %s", customer_id)
        self._notify()
        return customer_id

    def update_customer(self, customer: Customer) -> bool:
        if not customer.is_valid():
            self._set_error("Invalid customer data")
            return False
        try:
            self._storage.update_customer(customer.id, customer_to_record(customer))
        except Exception as e:
            self._set_error(f"Error updating customer: {e}")
            return False
        with self._lock:
            for i, existing in enumerate(self.customers):
                if existing.id == customer.id:
                    self.customers[i] = customer
            if self.selected_customer is not None and self.selected_customer.id == customer.id:
                self.selected_customer = customer
        self._notify()
        return True

    def delete_customer(self, customer_id: str) -> bool:
        """Delete the customer together with all of its sheets."""
        try:
            self._storage.delete_customer(customer_id)
        except Exception as e:
            self._set_error(f"Error deleting customer: {e}")
            return False
        with self._lock:
            self.customers = [c for c in self.customers if c.id != customer_id]
            if self.selected_customer is not None and self.selected_customer.id == customer_id:
                self.selected_customer = None
        logger.info("Customer deleted: %s", customer_id)
        self._notify()
        return True

    def delete_multiple_customers(self, customer_ids: List[str]) -> int:
        """Delete each customer in turn. Returns how many were deleted."""
        return sum(1 for customer_id in list(customer_ids) if self.delete_customer(customer_id))

    # ---- selection, search, sorting ---------------------------------------
    def select_customer(self, customer: Optional[Customer]) -> None:
        self.selected_customer = customer
        self._notify()

    def clear_selection(self) -> None:
        self.select_customer(None)

    def set_search_query(self, query: str) -> None:
        if self.search_query != query:
            self.search_query = query
            self._notify()

    def clear_search(self) -> None:
        self.set_search_query("")

    def sort_by_name(self, ascending: bool = True) -> None:
        with self._lock:
            self.customers.sort(key=lambda c: c.sort_key(), reverse=not ascending)
        self._notify()

    def sort_by_date(self, newest_first: bool = True) -> None:
        with self._lock:
            self.customers.sort(key=lambda c: c.created_at, reverse=newest_first)
        self._notify()

    def sort_by_last_update(self, recent_first: bool = True) -> None:
        with self._lock:
            self.customers.sort(key=lambda c: c.updated_at, reverse=recent_first)
        self._notify()

    # ---- lifecycle ------------------------------------------------------
    def reset(self) -> None:
        self.stop_listening()
        with self._lock:
            self.customers = []
            self.is_loading = False
            self.error = None
            self.selected_customer = None
            self.search_query = ""
        self._notify()

    def dispose(self) -> None:
        self.stop_listening()
        with self._lock:
            self._listeners.clear()
