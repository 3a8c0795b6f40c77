"""
Fixture comuni: Google Sheet finto in memoria, timer manuali, store collegato.
"""

import re
from datetime import date

import gspread
import pytest

from core.models import BookingInput
from core.sheets import SheetsStore
from core.storage import SheetsAdapter
from core.store import EntityStore

ACCOUNT_ID = "acct-1"


class FakeWorksheet:
    """La parte dell'API gspread.Worksheet usata da SheetsStore."""

    def __init__(self, title):
        self.title = title
        self.rows = []
        self.fail_writes = False
        # eccezione qualsiasi da sollevare in scrittura
        self.error = None
        self.writes = 0

    def _check(self):
        if self.error is not None:
            raise self.error
        if self.fail_writes:
            raise gspread.exceptions.GSpreadException(f"{self.title}: quota superata")

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def append_row(self, values, value_input_option=None):
        self._check()
        self.rows.append([str(v) for v in values])

    def append_rows(self, values, value_input_option=None):
        self._check()
        self.writes += 1
        for row in values:
            self.rows.append([str(v) for v in row])

    def batch_update(self, data, value_input_option=None):
        self._check()
        self.writes += 1
        for item in data:
            start = item["range"].split(":")[0]
            row_num = int(re.sub(r"[A-Z]", "", start))
            self.rows[row_num - 1] = list(item["values"][0])

    def delete_rows(self, start_index, end_index=None):
        self._check()
        del self.rows[start_index - 1:(end_index or start_index)]

    def records(self):
        """Righe come dict colonna → testo (esclusa l'intestazione)."""
        header = self.rows[0]
        return [dict(zip(header, r)) for r in self.rows[1:]]


class FakeSpreadsheet:

    def __init__(self):
        self.sheets = {}

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        ws = FakeWorksheet(title)
        self.sheets[title] = ws
        return ws

    def records(self, title):
        if title not in self.sheets:
            return []
        return self.sheets[title].records()


class ManualTimer:
    """Sostituto di threading.Timer: parte solo con fire()."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.started = False
        self.cancelled = False
        self.daemon = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


@pytest.fixture
def timers():
    return []


@pytest.fixture
def timer_factory(timers):
    def factory(interval, function, args=None, kwargs=None):
        timer = ManualTimer(interval, function, args, kwargs)
        timers.append(timer)
        return timer
    return factory


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet()


@pytest.fixture
def remote(spreadsheet):
    return SheetsStore(spreadsheet)


@pytest.fixture
def save_errors():
    return []


@pytest.fixture
def adapter(remote, timer_factory, save_errors):
    return SheetsAdapter(
        remote=remote,
        account_id=ACCOUNT_ID,
        timer_factory=timer_factory,
        on_error=save_errors.append,
    )


@pytest.fixture
def store(adapter):
    s = EntityStore(adapter, month_key="2024-03")
    s.hydrate()
    return s


@pytest.fixture
def memory_store():
    """Store senza persistenza."""
    s = EntityStore(month_key="2024-03")
    s.hydrate()
    return s


def make_booking_input(room_id, start, end, price=100.0, **kwargs):
    return BookingInput(
        room_id=room_id,
        start_date=start,
        end_date=end,
        price_per_night=price,
        **kwargs
    )


@pytest.fixture
def booking_input():
    return make_booking_input


@pytest.fixture
def d():
    """d("2024-03-05") → date."""
    return date.fromisoformat
