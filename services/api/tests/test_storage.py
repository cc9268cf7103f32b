"""
Tests for the storage adapters (JSON files and SQLite), run against both.

Run with: pytest tests/test_storage.py -v
"""
import pytest
from fastapi import HTTPException

from adapters.json import JsonAdapter
from models.cell import CellData
from models.converters import customer_to_record, sheet_from_record, sheet_to_record
from models.customer import Customer
from models.sheet import CustomerSheet


class TestCustomers:

    def test_create_and_get(self, storage, customer):
        customer_id = storage.create_customer(customer_to_record(customer))
        record = storage.get_customer(customer_id)
        assert record["id"] == customer_id
        assert record["name"] == "Asha Patel"
        assert record["phoneNumber"] == customer.phone_number

    def test_get_unknown(self, storage):
        assert storage.get_customer("missing") is None

    def test_update(self, storage, stored_customer):
        updated = stored_customer.update(notes="Repeat buyer")
        storage.update_customer(stored_customer.id, customer_to_record(updated))
        assert storage.get_customer(stored_customer.id)["notes"] == "Repeat buyer"

    def test_update_unknown(self, storage, customer):
        with pytest.raises(HTTPException) as exc:
            storage.update_customer("missing", customer_to_record(customer))
        assert exc.value.status_code == 404

    def test_list_newest_first(self, storage):
        older = Customer.create(name="Old", phone_number="9876543210")
        newer = Customer.create(name="New", phone_number="9876543210")
        record = customer_to_record(older)
        record["createdAt"] -= 60_000
        storage.create_customer(record)
        storage.create_customer(customer_to_record(newer))
        assert [r["name"] for r in storage.list_customers()] == ["New", "Old"]

    def test_delete_cascades(self, storage, stored_customer, stored_sheet):
        storage.delete_customer(stored_customer.id)
        assert storage.get_customer(stored_customer.id) is None
        assert storage.get_sheet(stored_sheet.id) is None
        assert storage.list_sheets_by_customer(stored_customer.id) == []

    def test_delete_unknown(self, storage):
        with pytest.raises(HTTPException) as exc:
            storage.delete_customer("missing")
        assert exc.value.status_code == 404


class TestSheets:

    def test_round_trip(self, storage, stored_sheet):
        record = storage.get_sheet(stored_sheet.id)
        assert record["id"] == stored_sheet.id
        assert sheet_from_record(record, stored_sheet.id) == stored_sheet

    def test_create_for_unknown_customer(self, storage):
        sheet = CustomerSheet.create(customer_id="nobody", title="t")
        with pytest.raises(HTTPException) as exc:
            storage.create_sheet(sheet_to_record(sheet))
        assert exc.value.status_code == 404

    def test_update(self, storage, stored_sheet):
        edited = stored_sheet.set_cell(0, 1, CellData.from_value("250")).add_row()
        storage.update_sheet(stored_sheet.id, sheet_to_record(edited))
        loaded = sheet_from_record(storage.get_sheet(stored_sheet.id), stored_sheet.id)
        assert loaded == edited
        assert loaded.row_count == 4
        assert loaded.get_cell(0, 1).is_numeric

    def test_update_unknown(self, storage, stored_sheet):
        with pytest.raises(HTTPException) as exc:
            storage.update_sheet("missing", sheet_to_record(stored_sheet))
        assert exc.value.status_code == 404

    def test_delete(self, storage, stored_sheet):
        storage.delete_sheet(stored_sheet.id)
        assert storage.get_sheet(stored_sheet.id) is None
        with pytest.raises(HTTPException) as exc:
            storage.delete_sheet(stored_sheet.id)
        assert exc.value.status_code == 404

    def test_list_by_customer(self, storage, stored_customer, stored_sheet):
        other = Customer.create(name="Other", phone_number="9876543210")
        other_id = storage.create_customer(customer_to_record(other))
        storage.create_sheet(sheet_to_record(CustomerSheet.create(customer_id=other_id, title="x")))

        records = storage.list_sheets_by_customer(stored_customer.id)
        assert [r["id"] for r in records] == [stored_sheet.id]


class TestSubscriptions:
    """Listeners get the full list now and after every write."""

    def test_sheet_stream(self, storage, stored_customer, stored_sheet):
        received = []
        unsubscribe = storage.subscribe_sheets(stored_customer.id, received.append)
        assert [r["id"] for r in received[-1]] == [stored_sheet.id]

        storage.update_sheet(stored_sheet.id, sheet_to_record(stored_sheet.rename("Renamed")))
        assert received[-1][0]["title"] == "Renamed"

        storage.delete_sheet(stored_sheet.id)
        assert received[-1] == []

        count = len(received)
        unsubscribe()
        storage.create_sheet(sheet_to_record(CustomerSheet.create(customer_id=stored_customer.id, title="n")))
        assert len(received) == count

    def test_customer_stream(self, storage, customer):
        received = []
        storage.subscribe_customers(received.append)
        assert received == [[]]
        storage.create_customer(customer_to_record(customer))
        assert [r["name"] for r in received[-1]] == ["Asha Patel"]

    def test_failing_listener_does_not_break_write(self, storage, customer):
        def boom(records):
            raise RuntimeError("listener failed")

        storage.subscribe_customers(boom)
        received = []
        storage.subscribe_customers(received.append)
        customer_id = storage.create_customer(customer_to_record(customer))
        assert storage.get_customer(customer_id) is not None
        assert len(received) == 2


class TestJsonFiles:
    """JSON backend specifics."""

    def test_persists_across_instances(self, tmp_path, customer):
        first = JsonAdapter(data_dir=str(tmp_path))
        customer_id = first.create_customer(customer_to_record(customer))
        second = JsonAdapter(data_dir=str(tmp_path))
        assert second.get_customer(customer_id)["name"] == "Asha Patel"

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        adapter = JsonAdapter(data_dir=str(tmp_path))
        (tmp_path / "customers.json").write_text("{not json", encoding="utf-8")
        assert adapter.list_customers() == []
