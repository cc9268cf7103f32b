"""
Shared fixtures for the API tests.

Run with: pytest services/api/tests -v
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.json import JsonAdapter  # noqa: E402
from adapters.sqlite import SqliteAdapter  # noqa: E402
from models.converters import customer_to_record, sheet_to_record  # noqa: E402
from models.customer import Customer  # noqa: E402
from models.sheet import CustomerSheet  # noqa: E402


class ManualTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    created = []

    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.started = False
        self.cancelled = False
        ManualTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.fn()


@pytest.fixture
def manual_timers():
    ManualTimer.created = []
    yield ManualTimer
    ManualTimer.created = []


@pytest.fixture
def json_storage(tmp_path):
    return JsonAdapter(data_dir=str(tmp_path / "data"))


@pytest.fixture
def sqlite_storage(tmp_path):
    return SqliteAdapter.from_url(f"sqlite:///{tmp_path / 'seeds.db'}")


@pytest.fixture(params=["json", "sqlite"])
def storage(request, tmp_path):
    """Every storage backend, so adapter behaviour is checked on both."""
    if request.param == "json":
        return JsonAdapter(data_dir=str(tmp_path / "data"))
    return SqliteAdapter.from_url(f"sqlite:///{tmp_path / 'seeds.db'}")


@pytest.fixture
def customer():
    return Customer.create(name="Asha Patel", phone_number="+91 98765-43210", notes="Prefers hybrid tomato")


@pytest.fixture
def stored_customer(storage, customer):
    customer_id = storage.create_customer(customer_to_record(customer))
    return customer.with_id(customer_id)


@pytest.fixture
def stored_sheet(storage, stored_customer):
    sheet = CustomerSheet.create(customer_id=stored_customer.id, title="Kharif order", rows=3, columns=2)
    sheet_id = storage.create_sheet(sheet_to_record(sheet))
    return sheet.with_id(sheet_id)
