"""
Tests for the editor state containers: loading, edits, debounced autosave.

Run with: pytest tests/test_sheet_state.py -v
"""
from dataclasses import replace
from datetime import timedelta

import pytest

from core.customer_state import CustomerState
from core.sheet_state import SheetState
from models.converters import customer_to_record, sheet_from_record, sheet_to_record
from models.customer import Customer
from models.sheet import CustomerSheet
from settings import Settings


class FailingStorage:
    """Storage whose every call fails, as when the store is unreachable."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ConnectionError("store unreachable")
        return fail


@pytest.fixture
def state(json_storage, manual_timers):
    return SheetState(json_storage, autosave_delay=2.0, timer_factory=manual_timers)


@pytest.fixture
def owner(json_storage):
    customer = Customer.create(name="Kiran", phone_number="9876543210")
    return customer.with_id(json_storage.create_customer(customer_to_record(customer)))


@pytest.fixture
def loaded(state, owner):
    sheet = CustomerSheet.create(customer_id=owner.id, title="Order A", rows=3, columns=3)
    assert state.add_sheet(sheet)
    state.select_sheet(state.sheets[0])
    return state


class TestLoading:

    def test_load(self, state, json_storage, owner):
        json_storage.create_sheet(sheet_to_record(CustomerSheet.create(customer_id=owner.id, title="A")))
        assert state.load_customer_sheets(owner.id)
        assert state.sheet_count == 1
        assert not state.is_loading
        assert state.error is None

    def test_overlapping_load_skipped(self, state, owner):
        state.is_loading = True
        assert not state.load_customer_sheets(owner.id)

    def test_store_failure_sets_error(self, manual_timers):
        state = SheetState(FailingStorage(), timer_factory=manual_timers)
        assert not state.load_customer_sheets("c1")
        assert state.has_error
        assert "store unreachable" in state.error
        assert not state.is_loading

    def test_listeners_notified(self, state, owner):
        calls = []
        remove = state.add_listener(lambda: calls.append(1))
        state.load_customer_sheets(owner.id)
        assert calls
        remove()
        count = len(calls)
        state.set_search_query("x")
        assert len(calls) == count

    def test_live_updates_replace_list(self, state, json_storage, owner):
        state.start_listening(owner.id)
        assert state.sheets == []
        json_storage.create_sheet(sheet_to_record(CustomerSheet.create(customer_id=owner.id, title="Remote")))
        assert [s.title for s in state.sheets] == ["Remote"]
        state.stop_listening()
        json_storage.create_sheet(sheet_to_record(CustomerSheet.create(customer_id=owner.id, title="Later")))
        assert state.sheet_count == 1


class TestEditingAndAutosave:

    def test_edit_marks_unsaved_and_schedules(self, loaded, manual_timers):
        assert loaded.set_cell(0, 0, "Tomato")
        assert loaded.has_unsaved_changes
        assert loaded.has_pending_save
        timer = manual_timers.created[-1]
        assert timer.started
        assert timer.delay == 2.0

    def test_each_edit_resets_timer(self, loaded, manual_timers, json_storage):
        loaded.set_cell(0, 0, "a")
        first = manual_timers.created[-1]
        loaded.set_cell(0, 1, "b")
        second = manual_timers.created[-1]
        assert first.cancelled
        assert not second.cancelled

        first.fire()  # cancelled: nothing written
        stored = sheet_from_record(json_storage.get_sheet(loaded.selected_sheet.id))
        assert stored.is_empty

        second.fire()
        stored = sheet_from_record(json_storage.get_sheet(loaded.selected_sheet.id))
        assert stored.get_cell(0, 0).value == "a"
        assert stored.get_cell(0, 1).value == "b"
        assert not loaded.has_unsaved_changes
        assert not loaded.has_pending_save

    def test_stale_callback_keeps_current_handle(self, loaded, manual_timers, json_storage):
        """A callback that was already running when its timer got replaced
        must not drop the newer handle."""
        loaded.set_cell(0, 0, "a")
        first = manual_timers.created[-1]
        loaded.set_cell(0, 1, "b")
        first.fn()  # entered before cancel() could stop it
        assert loaded.has_pending_save
        assert sheet_from_record(json_storage.get_sheet(loaded.selected_sheet.id)).is_empty

        loaded.set_cell(0, 2, "c")
        loaded.cancel_pending_save()
        live = [t for t in manual_timers.created if t.started and not t.cancelled]
        assert live == []
        assert not loaded.has_pending_save

    def test_stale_callback_then_flush(self, loaded, manual_timers, json_storage):
        loaded.set_cell(0, 0, "a")
        first = manual_timers.created[-1]
        loaded.set_cell(0, 1, "b")
        first.fn()
        assert loaded.flush_pending_save()
        stored = sheet_from_record(json_storage.get_sheet(loaded.selected_sheet.id))
        assert stored.get_cell(0, 1).value == "b"

    def test_noop_edit_does_not_schedule(self, loaded, manual_timers):
        assert not loaded.set_cell(99, 0, "x")
        assert not loaded.remove_column(10)
        assert manual_timers.created == []
        assert not loaded.has_unsaved_changes

    def test_flush_pending_save(self, loaded, json_storage):
        loaded.add_row()
        loaded.add_column()
        assert loaded.flush_pending_save()
        stored = sheet_from_record(json_storage.get_sheet(loaded.selected_sheet.id))
        assert (stored.row_count, stored.column_count) == (4, 4)
        assert not loaded.flush_pending_save()

    def test_cancel_pending_save(self, loaded, manual_timers, json_storage):
        loaded.rename("Order B")
        loaded.cancel_pending_save()
        assert manual_timers.created[-1].cancelled
        assert sheet_from_record(json_storage.get_sheet(loaded.selected_sheet.id)).title == "Order A"
        assert loaded.has_unsaved_changes

    def test_selecting_another_sheet_flushes(self, loaded, owner, json_storage):
        loaded.set_cell(1, 1, "42")
        edited_id = loaded.selected_sheet.id
        other = CustomerSheet.create(customer_id=owner.id, title="Order B")
        loaded.add_sheet(other)
        loaded.select_sheet(loaded.sheets[0])
        stored = sheet_from_record(json_storage.get_sheet(edited_id))
        assert stored.get_cell(1, 1).is_numeric
        assert not loaded.is_editing_mode

    def test_edit_list_stays_in_sync(self, loaded):
        loaded.set_cell(0, 0, "x")
        assert loaded.get_sheet_by_id(loaded.selected_sheet.id) is loaded.selected_sheet

    def test_editing_mode(self, loaded):
        loaded.enter_editing_mode()
        assert loaded.is_editing_mode
        loaded.exit_editing_mode()
        assert not loaded.is_editing_mode

    def test_save_failure_keeps_unsaved(self, loaded, json_storage):
        loaded.set_cell(0, 0, "x")
        json_storage.delete_sheet(loaded.selected_sheet.id)
        assert not loaded.flush_pending_save()
        assert loaded.has_error
        assert loaded.has_unsaved_changes


class TestConstruction:

    def test_delay_from_settings(self, json_storage, manual_timers, owner):
        settings = Settings(autosave_delay_seconds=0.5)
        state = SheetState.from_settings(json_storage, settings, timer_factory=manual_timers)
        state.add_sheet(CustomerSheet.create(customer_id=owner.id, title="Quick"))
        state.select_sheet(state.sheets[0])
        state.add_row()
        assert manual_timers.created[-1].delay == 0.5


class TestQueries:

    def test_search_and_title_check(self, loaded, owner):
        loaded.add_sheet(CustomerSheet.create(customer_id=owner.id, title="Maize"))
        loaded.set_search_query("maize")
        assert [s.title for s in loaded.filtered_sheets] == ["Maize"]
        loaded.clear_search()
        assert len(loaded.filtered_sheets) == 2
        assert loaded.is_sheet_title_taken("order a")
        assert not loaded.is_sheet_title_taken("order a", exclude_id=loaded.selected_sheet.id)

    def test_sorting(self, loaded, owner):
        loaded.add_sheet(CustomerSheet.create(customer_id=owner.id, title="beta"))
        loaded.add_sheet(CustomerSheet.create(customer_id=owner.id, title="Alpha"))
        loaded.sort_by_title()
        assert [s.title for s in loaded.sheets] == ["Alpha", "beta", "Order A"]
        loaded.sort_by_title(ascending=False)
        assert [s.title for s in loaded.sheets][0] == "Order A"

    def test_statistics(self, loaded):
        loaded.set_cell(0, 0, "1")
        stats = loaded.statistics
        assert stats["total"] == 1
        assert stats["recent"] == 1
        assert stats["totalCells"] == 9
        assert stats["filledCells"] == 1
        assert stats["emptySheets"] == 0

    def test_delete_selected(self, loaded, manual_timers):
        loaded.set_cell(0, 0, "x")
        assert loaded.delete_sheet(loaded.selected_sheet.id)
        assert loaded.selected_sheet is None
        assert not loaded.has_sheets
        assert manual_timers.created[-1].cancelled

    def test_export_without_selection(self, state, owner):
        assert state.export_selected_sheet_pdf(owner) is None
        assert state.has_error

    def test_export_selected(self, loaded, owner):
        pdf = loaded.export_selected_sheet_pdf(owner)
        assert pdf.startswith(b"%PDF")

    def test_reset(self, loaded):
        loaded.set_search_query("x")
        loaded.reset()
        assert loaded.sheets == []
        assert loaded.selected_sheet is None
        assert loaded.search_query == ""
        assert not loaded.has_pending_save


class TestCustomerState:

    def test_add_load_delete(self, json_storage):
        state = CustomerState(json_storage)
        customer_id = state.add_customer(Customer.create(name="Lata", phone_number="9876543210"))
        assert customer_id
        assert state.get_customer_by_id(customer_id).name == "Lata"

        assert state.load_customers()
        assert state.customer_count == 1

        assert state.delete_customer(customer_id)
        assert not state.has_customers

    def test_invalid_customer_rejected(self, json_storage):
        state = CustomerState(json_storage)
        assert state.add_customer(Customer.create(name="", phone_number="1")) is None
        assert state.has_error
        assert json_storage.list_customers() == []

    def test_search_sort_stats(self, json_storage):
        state = CustomerState(json_storage)
        state.add_customer(Customer.create(name="zeta", phone_number="9876543210", notes="n"))
        state.add_customer(Customer.create(name="Alpha", phone_number="9123456780"))
        state.sort_by_name()
        assert [c.name for c in state.customers] == ["Alpha", "zeta"]
        state.set_search_query("912")
        assert [c.name for c in state.filtered_customers] == ["Alpha"]
        assert state.statistics["total"] == 2
        assert state.statistics["withNotes"] == 1

    def test_update_selected(self, json_storage):
        state = CustomerState(json_storage)
        customer_id = state.add_customer(Customer.create(name="Lata", phone_number="9876543210"))
        state.select_customer(state.get_customer_by_id(customer_id))
        assert state.update_customer(state.selected_customer.update(name="Lata K"))
        assert state.selected_customer.name == "Lata K"
        assert json_storage.get_customer(customer_id)["name"] == "Lata K"

    def test_live_updates(self, json_storage):
        state = CustomerState(json_storage)
        state.start_listening()
        json_storage.create_customer(customer_to_record(Customer.create(name="Remote", phone_number="9876543210")))
        assert [c.name for c in state.customers] == ["Remote"]
        state.dispose()

    def test_store_failure(self):
        state = CustomerState(FailingStorage())
        assert not state.load_customers()
        assert state.has_error
        assert not state.delete_customer("c1")

    def test_name_lookup_and_phone(self, json_storage):
        state = CustomerState(json_storage)
        lata = state.add_customer(Customer.create(name="Lata", phone_number="98765 43210"))
        assert state.is_customer_name_taken("  lata ")
        assert not state.is_customer_name_taken("lata", exclude_id=lata)
        assert not state.is_customer_name_taken("Ravi")
        assert state.get_customer_by_phone("98765 43210").id == lata
        assert state.get_customer_by_phone("000") is None

    def test_sort_by_last_update(self, json_storage):
        state = CustomerState(json_storage)
        first = state.add_customer(Customer.create(name="First", phone_number="9876543210"))
        state.add_customer(Customer.create(name="Second", phone_number="9876543210"))
        edited = state.get_customer_by_id(first).update(notes="touched")
        edited = replace(edited, updated_at=edited.updated_at + timedelta(minutes=5))
        state.update_customer(edited)
        state.sort_by_last_update()
        assert [c.name for c in state.customers] == ["First", "Second"]
        state.sort_by_last_update(recent_first=False)
        assert [c.name for c in state.customers] == ["Second", "First"]

    def test_delete_multiple(self, json_storage):
        state = CustomerState(json_storage)
        ids = [
            state.add_customer(Customer.create(name=name, phone_number="9876543210"))
            for name in ("A", "B", "C")
        ]
        assert state.delete_multiple_customers(ids[:2] + ["missing"]) == 2
        assert [c.name for c in state.customers] == ["C"]
        assert state.has_error
