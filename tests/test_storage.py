"""
Tests for transaction log and audit storage.

Google Sheets is exercised through in-memory fakes; no network calls.
"""

import pytest
import io
import re
from datetime import date
from uuid import uuid4

import gspread
from tenacity import stop_after_attempt

from household_ledger.config import GoogleSheetsSettings
from household_ledger.models.audit import AUDIT_COLUMNS, AuditEventBuilder
from household_ledger.models.registry import Registry
from household_ledger.models.transaction import PERSISTED_COLUMNS, TransactionEvent
from household_ledger.services.storage import (
    CsvTransactionLogStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionLogStorage,
    StorageError,
    write_transaction_log,
)


# =============================================================================
# FAKES
# =============================================================================

class FakeWorksheet:
    """Minimal stand-in for gspread.Worksheet."""

    def __init__(self, title="Sheet", rows=None, fail=False):
        self.title = title
        self.rows = [list(r) for r in rows or []]
        self.fail = fail
        self.failing_calls = set()

    def _check(self, call):
        if self.fail or call in self.failing_calls:
            raise gspread.exceptions.GSpreadException("quota exceeded")

    def update(self, values=None, range_name=None, value_input_option=None):
        self._check("update")
        assert range_name == "A1"
        written = [[str(cell) for cell in row] for row in values]
        self.rows = written + self.rows[len(written):]

    def batch_clear(self, ranges):
        self._check("batch_clear")
        for cell_range in ranges:
            first, _ = cell_range.split(":")
            first_row = int(re.sub(r"[A-Z]", "", first))
            self.rows = self.rows[:first_row - 1]

    def get_all_values(self):
        self._check("get_all_values")
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self._check("append_row")
        self.rows.append([str(cell) for cell in row])


class FakeSheetsClient:
    """Stand-in for GoogleSheetsClient returning fake worksheets."""

    def __init__(self, fail=False):
        self.transactions = FakeWorksheet("Transactions", [PERSISTED_COLUMNS], fail=fail)
        self.audit = FakeWorksheet("AuditLog", [AUDIT_COLUMNS], fail=fail)

    def get_transactions_sheet(self):
        return self.transactions

    def get_audit_sheet(self):
        return self.audit


class FakeSpreadsheet:
    """Stand-in for gspread.Spreadsheet."""

    def __init__(self):
        self.sheets = {}

    def worksheet(self, title):
        try:
            return self.sheets[title]
        except KeyError:
            raise gspread.WorksheetNotFound(title) from None

    def add_worksheet(self, title, rows, cols):
        sheet = FakeWorksheet(title)
        self.sheets[title] = sheet
        return sheet


@pytest.fixture
def registry():
    registry = Registry.new()
    registry.add_batch([
        TransactionEvent(date=date(2023, 1, 2), amount=1500.0, category="Stipendio", account="Ale"),
        TransactionEvent(date=date(2023, 1, 4), amount=-12.3, category="Treno",
                         description="Milano, andata", account="Ale"),
        TransactionEvent(date=date(2023, 1, 4), amount=-7.0, category="sanità", account="Giulia"),
    ])
    return registry


def _same_transactions(left, right):
    return sorted(left.transactions, key=str) == sorted(right.transactions, key=str)


# =============================================================================
# CSV
# =============================================================================

class TestCsvTransactionLogStorage:
    """Tests for the local CSV transaction log."""

    def test_round_trip(self, registry, tmp_path):
        """Test that save then load reproduces the transactions."""
        storage = CsvTransactionLogStorage(tmp_path / "data" / "transactions.csv")
        assert storage.save_registry(registry) == 3

        restored = storage.load_registry()
        assert _same_transactions(restored, registry)
        assert restored.get_account("Ale").current_value == pytest.approx(1487.7)

    def test_file_starts_with_header(self, registry, tmp_path):
        """Test the persisted column order."""
        path = tmp_path / "transactions.csv"
        CsvTransactionLogStorage(path).save_registry(registry)
        first_line = path.read_text(encoding="utf-8").splitlines()[0]
        assert first_line == "date,amount,category,description,account"

    def test_missing_file_propagates_os_error(self, tmp_path):
        """Test that I/O errors are not wrapped."""
        storage = CsvTransactionLogStorage(tmp_path / "missing.csv")
        with pytest.raises(FileNotFoundError):
            storage.load_registry()

    def test_invalid_content_is_storage_error(self, tmp_path):
        """Test that undecodable rows are reported as StorageError."""
        path = tmp_path / "transactions.csv"
        path.write_text(
            "date,amount,category,description,account\n"
            "2023-01-02,lots,Spesa,,Ale\n",
            encoding="utf-8",
        )
        with pytest.raises(StorageError):
            CsvTransactionLogStorage(path).load_registry()

    def test_write_transaction_log_to_buffer(self, registry):
        """Test writing the log to an in-memory buffer."""
        buffer = io.StringIO()
        assert write_transaction_log(registry, buffer) == 3
        lines = buffer.getvalue().splitlines()
        assert len(lines) == 4
        assert '"Milano, andata"' in lines[2]


# =============================================================================
# GOOGLE SHEETS
# =============================================================================

class TestGoogleSheetsTransactionLogStorage:
    """Tests for the Google Sheets transaction log."""

    def test_save_replaces_content(self, registry):
        """Test that saving writes header and rows."""
        client = FakeSheetsClient()
        client.transactions.rows.append(["stale"] * 5)
        storage = GoogleSheetsTransactionLogStorage(client)

        assert storage.save_registry(registry) == 3
        rows = client.transactions.rows
        assert rows[0] == PERSISTED_COLUMNS
        assert len(rows) == 4
        assert ["stale"] * 5 not in rows

    def test_shorter_save_clears_leftover_rows(self, registry):
        """Test that rows of a longer previous log are removed."""
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionLogStorage(client)
        storage.save_registry(registry)

        smaller = Registry.new()
        smaller.add_single(
            TransactionEvent(date=date(2023, 2, 1), amount=-5.0, category="Pasto", account="Ale")
        )
        assert storage.save_registry(smaller) == 1
        assert len(client.transactions.rows) == 2
        assert _same_transactions(storage.load_registry(), smaller)

    def test_failed_save_keeps_previous_log(self, registry):
        """Test that a failing write leaves the saved log intact."""
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionLogStorage(client)
        storage.save_registry(registry)
        before = [list(row) for row in client.transactions.rows]

        client.transactions.failing_calls.add("update")
        save_once = GoogleSheetsTransactionLogStorage.save_registry.retry_with(
            stop=stop_after_attempt(1)
        )
        with pytest.raises(StorageError, match="quota exceeded"):
            save_once(storage, Registry.new())

        assert client.transactions.rows == before
        assert len(before) == 4

    def test_round_trip(self, registry):
        """Test that save then load reproduces the transactions."""
        storage = GoogleSheetsTransactionLogStorage(FakeSheetsClient())
        storage.save_registry(registry)
        assert _same_transactions(storage.load_registry(), registry)

    def test_load_empty_sheet(self):
        """Test that a header-only sheet is an empty registry."""
        storage = GoogleSheetsTransactionLogStorage(FakeSheetsClient())
        registry = storage.load_registry()
        assert registry.transactions == []
        assert registry.accounts == {}

    def test_api_failure_is_storage_error(self):
        """Test that API errors are wrapped."""
        storage = GoogleSheetsTransactionLogStorage(FakeSheetsClient(fail=True))
        load_once = GoogleSheetsTransactionLogStorage.load_registry.retry_with(
            stop=stop_after_attempt(1)
        )
        with pytest.raises(StorageError, match="quota exceeded"):
            load_once(storage)

    def test_invalid_rows_are_storage_error(self):
        """Test that undecodable rows are wrapped."""
        client = FakeSheetsClient()
        client.transactions.rows.append(["2023-01-02", "1", "Crypto", "", "Ale"])
        storage = GoogleSheetsTransactionLogStorage(client)
        load_once = GoogleSheetsTransactionLogStorage.load_registry.retry_with(
            stop=stop_after_attempt(1)
        )
        with pytest.raises(StorageError):
            load_once(storage)


class TestGoogleSheetsAuditStorage:
    """Tests for the append-only audit log."""

    def test_append_and_read_back(self):
        """Test appending events and reading them by correlation id."""
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        correlation_id = uuid4()

        assert storage.append_event(
            AuditEventBuilder.worksheet_extracted("2023-01", 3, correlation_id)
        ) is True
        assert storage.append_event(
            AuditEventBuilder.worksheet_failed("2023-02", "bad date", correlation_id)
        ) is True
        storage.append_event(AuditEventBuilder.extraction_completed("daily", uuid4()))

        events = storage.get_events_by_correlation_id(correlation_id)
        assert [e.entity_name for e in events] == ["2023-01", "2023-02"]
        assert events[0].details == {"transaction_count": 3}
        assert events[1].error_message == "bad date"

        recent = storage.get_recent_events(limit=2)
        assert len(recent) == 2
        assert recent[0].timestamp >= recent[1].timestamp

    def test_append_failure_returns_false(self, monkeypatch):
        """Test that a failed append never raises."""
        storage = GoogleSheetsAuditStorage(FakeSheetsClient())

        def broken(row):
            raise gspread.exceptions.GSpreadException("quota exceeded")

        monkeypatch.setattr(storage, "_append_row", broken)
        event = AuditEventBuilder.extraction_completed("daily", uuid4())
        assert storage.append_event(event) is False

    def test_malformed_rows_are_skipped(self):
        """Test that unreadable audit rows do not hide the others."""
        client = FakeSheetsClient()
        client.audit.rows.append(["not-a-uuid", "yesterday"])
        storage = GoogleSheetsAuditStorage(client)
        storage.append_event(AuditEventBuilder.extraction_completed("daily", uuid4()))
        assert len(storage.get_recent_events()) == 1


class TestGoogleSheetsClient:
    """Tests for worksheet get-or-create."""

    @pytest.fixture
    def client(self, tmp_path):
        credentials = tmp_path / "credentials.json"
        credentials.write_text("{}")
        settings = GoogleSheetsSettings(
            credentials_path=str(credentials),
            spreadsheet_id="sheet-id",
        )
        client = GoogleSheetsClient(settings)
        client._spreadsheet = FakeSpreadsheet()
        return client

    def test_creates_transactions_sheet_with_header(self, client):
        """Test that a missing worksheet is created with its header."""
        sheet = client.get_transactions_sheet()
        assert sheet.title == "Transactions"
        assert sheet.rows == [PERSISTED_COLUMNS]

    def test_reuses_existing_sheet(self, client):
        """Test that an existing worksheet is returned as is."""
        first = client.get_audit_sheet()
        first.rows.append(["x"])
        assert client.get_audit_sheet() is first
        assert first.rows[0] == AUDIT_COLUMNS
