# services/api/core/sheet_state.py
"""
Editor-side state for one customer's sheets.

Holds the loaded sheet list, the selected sheet and the editing flags, applies
local edits to the selected snapshot and writes it back through a debounced
autosave. Listeners are notified after every change.
"""
from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from adapters.base import StorageAdapter, Unsubscribe
from core.report_pdf import render_sheet_pdf
from core.validation import is_title_taken
from models.cell import CellData
from models.converters import sheet_from_record, sheet_to_record
from models.customer import Customer
from models.sheet import CustomerSheet
from models.timestamps import utcnow
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

Listener = Callable[[], None]
TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


def _make_timer(delay: float, fn: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    return timer


class SheetState:
    """
    Explicit state container owned by the UI composition root.

    Local edits are applied one at a time to the selected snapshot (last write
    wins). Every edit restarts a single autosave timer; when it fires the
    current snapshot is written. There is no merge with remote changes: a live
    subscription replaces the list wholesale.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        *,
        autosave_delay: float = 2.0,
        timer_factory: TimerFactory = _make_timer,
    ):
        self._storage = storage
        self._autosave_delay = autosave_delay
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._autosave_timer: Optional[threading.Timer] = None
        self._unsubscribe: Optional[Unsubscribe] = None

        self.sheets: List[CustomerSheet] = []
        self.is_loading = False
        self.error: Optional[str] = None
        self.current_customer_id: Optional[str] = None
        self.selected_sheet: Optional[CustomerSheet] = None
        self.search_query = ""
        self.is_editing_mode = False
        self.has_unsaved_changes = False

    @classmethod
    def from_settings(cls, storage: StorageAdapter, settings: Optional[Settings] = None, **kwargs: Any) -> "SheetState":
        """Build with the autosave delay configured in settings."""
        settings = settings or get_settings()
        return cls(storage, autosave_delay=settings.autosave_delay_seconds, **kwargs)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
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
                logger.exception("Sheet state listener failed")

    def _set_error(self, message: str) -> None:
        logger.error(message)
        with self._lock:
            self.error = message
        self._notify()

    def clear_error(self) -> None:
        if self.error is not None:
            self.error = None
            self._notify()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    @property
    def has_sheets(self) -> bool:
        return bool(self.sheets)

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def sheet_count(self) -> int:
        return len(self.sheets)

    @property
    def has_selected_sheet(self) -> bool:
        return self.selected_sheet is not None

    @property
    def filtered_sheets(self) -> List[CustomerSheet]:
        if not self.search_query.strip():
            return list(self.sheets)
        return [s for s in self.sheets if s.contains_search_term(self.search_query)]

    @property
    def recent_sheets(self) -> List[CustomerSheet]:
        """Sheets created in the last 7 days."""
        week_ago = utcnow() - timedelta(days=7)
        return [s for s in self.sheets if s.created_at > week_ago]

    @property
    def recently_updated_sheets(self) -> List[CustomerSheet]:
        return [s for s in self.sheets if s.was_recently_updated]

    @property
    def statistics(self) -> Dict[str, Any]:
        return {
            "total": len(self.sheets),
            "recent": len(self.recent_sheets),
            "recentlyUpdated": len(self.recently_updated_sheets),
            "totalCells": sum(s.row_count * s.column_count for s in self.sheets),
            "filledCells": sum(s.non_empty_cell_count for s in self.sheets),
            "emptySheets": sum(1 for s in self.sheets if s.is_empty),
        }

    def get_sheet_by_id(self, sheet_id: str) -> Optional[CustomerSheet]:
        return next((s for s in self.sheets if s.id == sheet_id), None)

    def is_sheet_title_taken(self, title: str, exclude_id: Optional[str] = None) -> bool:
        return is_title_taken(title, [(s.id, s.title) for s in self.sheets], exclude=exclude_id)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def _begin_loading(self) -> bool:
        with self._lock:
            if self.is_loading:
                return False
            self.is_loading = True
            self.error = None
        self._notify()
        return True

    def _end_loading(self) -> None:
        with self._lock:
            self.is_loading = False
        self._notify()

    def load_customer_sheets(self, customer_id: str) -> bool:
        """Fetch the customer's sheets. Skipped while another load is running."""
        if not self._begin_loading():
            logger.debug("Sheet load for %s skipped, already loading", customer_id)
            return False
        self.current_customer_id = customer_id
        try:
            records = self._storage.list_sheets_by_customer(customer_id)
            with self._lock:
                self.sheets = [sheet_from_record(r, r.get("id", "")) for r in records]
            logger.info("Loaded %d sheets for customer %s", len(records), customer_id)
            return True
        except Exception as e:
            self._set_error(f"Failed to load sheets: {e}")
            return False
        finally:
            self._end_loading()

    def refresh_sheets(self) -> bool:
        if self.current_customer_id is None:
            return False
        return self.load_customer_sheets(self.current_customer_id)

    def start_listening(self, customer_id: str) -> None:
        """Replace the local list on every remote change for this customer."""
        self.stop_listening()
        self.current_customer_id = customer_id
        self._unsubscribe = self._storage.subscribe_sheets(customer_id, self._on_remote_sheets)

    def stop_listening(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_remote_sheets(self, records: List[Dict[str, Any]]) -> None:
        with self._lock:
            self.sheets = [sheet_from_record(r, r.get("id", "")) for r in records]
            self.error = None
        self._notify()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def add_sheet(self, sheet: CustomerSheet) -> bool:
        if not sheet.is_valid():
            self._set_error("Invalid sheet data")
            return False
        try:
            sheet_id = self._storage.create_sheet(sheet_to_record(sheet))
        except Exception as e:
            self._set_error(f"Error adding sheet: {e}")
            return False
        with self._lock:
            created = sheet.with_id(sheet_id)
            if self.get_sheet_by_id(sheet_id) is None:
                self.sheets.insert(0, created)
        logger.info("Sheet added: %s", sheet_id)
        self._notify()
        return True

    def update_sheet(self, sheet: CustomerSheet) -> bool:
        if not sheet.is_valid():
            self._set_error("Invalid sheet data")
            return False
        try:
            self._storage.update_sheet(sheet.id, sheet_to_record(sheet))
        except Exception as e:
            self._set_error(f"Error updating sheet: {e}")
            return False
        with self._lock:
            selected = self.selected_sheet
            if selected is None or selected.id != sheet.id:
                self._replace_in_list(sheet)
            elif selected is sheet:
                self.has_unsaved_changes = False
            # otherwise a newer local edit landed during the write and stays unsaved
        logger.info("Sheet updated: %s", sheet.id)
        self._notify()
        return True

    def delete_sheet(self, sheet_id: str) -> bool:
        try:
            self._storage.delete_sheet(sheet_id)
        except Exception as e:
            self._set_error(f"Error deleting sheet: {e}")
            return False
        with self._lock:
            self.sheets = [s for s in self.sheets if s.id != sheet_id]
            if self.selected_sheet is not None and self.selected_sheet.id == sheet_id:
                self._cancel_timer()
                self.selected_sheet = None
                self.is_editing_mode = False
                self.has_unsaved_changes = False
        logger.info("Sheet deleted: %s", sheet_id)
        self._notify()
        return True

    def _replace_in_list(self, sheet: CustomerSheet) -> None:
        for i, existing in enumerate(self.sheets):
            if existing.id == sheet.id:
                self.sheets[i] = sheet
                return

    # ------------------------------------------------------------------
    # Selection and editing
    # ------------------------------------------------------------------
    def select_sheet(self, sheet: CustomerSheet) -> None:
        if self.selected_sheet is not None and self.selected_sheet.id == sheet.id:
            return
        self.flush_pending_save()
        with self._lock:
            self.selected_sheet = sheet
            self.is_editing_mode = False
            self.has_unsaved_changes = False
        self._notify()

    def clear_selection(self) -> None:
        if self.selected_sheet is None:
            return
        self.flush_pending_save()
        with self._lock:
            self.selected_sheet = None
            self.is_editing_mode = False
        self._notify()

    def enter_editing_mode(self) -> None:
        if self.selected_sheet is not None and not self.is_editing_mode:
            self.is_editing_mode = True
            self._notify()

    def exit_editing_mode(self) -> None:
        if self.is_editing_mode:
            self.is_editing_mode = False
            self._notify()

    def _apply(self, edit: Callable[[CustomerSheet], CustomerSheet]) -> bool:
        with self._lock:
            current = self.selected_sheet
            if current is None:
                return False
            updated = edit(current)
            if updated is current:
                return False
            self.selected_sheet = updated
            self._replace_in_list(updated)
            self.has_unsaved_changes = True
            self._schedule_autosave()
        self._notify()
        return True

    def set_cell(self, row: int, column: int, value: str) -> bool:
        return self._apply(lambda s: s.set_cell(row, column, CellData.from_value(value)))

    def add_row(self) -> bool:
        return self._apply(lambda s: s.add_row())

    def add_column(self) -> bool:
        return self._apply(lambda s: s.add_column())

    def remove_row(self, index: int) -> bool:
        return self._apply(lambda s: s.remove_row(index))

    def remove_column(self, index: int) -> bool:
        return self._apply(lambda s: s.remove_column(index))

    def rename(self, title: str) -> bool:
        return self._apply(lambda s: s.rename(title))

    # ------------------------------------------------------------------
    # Autosave
    # ------------------------------------------------------------------
    def _schedule_autosave(self) -> None:
        self._cancel_timer()
        timer: Optional[threading.Timer] = None

        def fire() -> None:
            self._autosave(timer)

        timer = self._timer_factory(self._autosave_delay, fire)
        self._autosave_timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._autosave_timer is not None:
            self._autosave_timer.cancel()
            self._autosave_timer = None

    @property
    def has_pending_save(self) -> bool:
        return self._autosave_timer is not None

    def _autosave(self, timer: Optional[threading.Timer]) -> None:
        with self._lock:
            # a callback already running when its timer was replaced must not
            # drop the newer handle
            if timer is None or self._autosave_timer is not timer:
                return
            self._autosave_timer = None
        self.save_selected_sheet()

    def save_selected_sheet(self) -> bool:
        with self._lock:
            sheet = self.selected_sheet
            if sheet is None or not self.has_unsaved_changes:
                return False
        return self.update_sheet(sheet)

    def flush_pending_save(self) -> bool:
        """Write now instead of waiting for the autosave timer."""
        with self._lock:
            if self._autosave_timer is None:
                return False
            self._cancel_timer()
        return self.save_selected_sheet()

    def cancel_pending_save(self) -> None:
        with self._lock:
            self._cancel_timer()

    # ------------------------------------------------------------------
    # Search and sorting
    # ------------------------------------------------------------------
    def set_search_query(self, query: str) -> None:
        if self.search_query != query:
            self.search_query = query
            self._notify()

    def clear_search(self) -> None:
        self.set_search_query("")

    def sort_by_title(self, ascending: bool = True) -> None:
        with self._lock:
            self.sheets.sort(key=lambda s: s.title.lower(), reverse=not ascending)
        self._notify()

    def sort_by_date(self, newest_first: bool = True) -> None:
        with self._lock:
            self.sheets.sort(key=lambda s: s.created_at, reverse=newest_first)
        self._notify()

    def sort_by_last_update(self, recent_first: bool = True) -> None:
        with self._lock:
            self.sheets.sort(key=lambda s: s.updated_at, reverse=recent_first)
        self._notify()

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------
    def export_selected_sheet_pdf(self, customer: Customer, **render_options: Any) -> Optional[bytes]:
        sheet = self.selected_sheet
        if sheet is None:
            self._set_error("No sheet selected for PDF export")
            return None
        try:
            return render_sheet_pdf(sheet, customer, **render_options)
        except Exception as e:
            self._set_error(f"Error generating PDF: {e}")
            return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self.stop_listening()
        with self._lock:
            self._cancel_timer()
            self.sheets = []
            self.is_loading = False
            self.error = None
            self.current_customer_id = None
            self.selected_sheet = None
            self.search_query = ""
            self.is_editing_mode = False
            self.has_unsaved_changes = False
        self._notify()

    def dispose(self) -> None:
        """Stop listening. A pending autosave is left to complete."""
        self.stop_listening()
        with self._lock:
            self._listeners.clear()
