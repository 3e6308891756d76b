"""
Workbook Ingestion for Household Ledger

Reads the household workbook: one worksheet per month, named ``YYYY-MM``.

Each worksheet holds two tables side by side, sharing the header row:

    Data | Saldo | Categoria | Nota | Conto | <empty> | Conti corrente | Saldo iniziale

- The transactions table spans the header cells up to the first empty one.
- The account seeds table follows that empty cell and lists the opening
  balance of each account for the month.

DESIGN DECISION: A worksheet is all-or-nothing. One bad cell rejects the
whole worksheet, and the batch ingestion records it as failed and moves
on. A registry never contains half a month.
"""

import datetime as dt
import re
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Optional, Sequence, Union

import structlog
from openpyxl import load_workbook
from pydantic import BaseModel, Field, ValidationError

from household_ledger.models.account import Account
from household_ledger.models.registry import Registry
from household_ledger.models.transaction import (
    AccountName,
    TransactionCategory,
    TransactionEvent,
)


logger = structlog.get_logger(__name__)

DEFAULT_WORKSHEET_PATTERN = r"^\d{4}-\d{2}$"

# Header labels of the two tables
DATE_COLUMN = "Data"
AMOUNT_COLUMN = "Saldo"
CATEGORY_COLUMN = "Categoria"
DESCRIPTION_COLUMN = "Nota"
ACCOUNT_COLUMN = "Conto"
TRANSACTION_COLUMNS = [
    DATE_COLUMN,
    AMOUNT_COLUMN,
    CATEGORY_COLUMN,
    DESCRIPTION_COLUMN,
    ACCOUNT_COLUMN,
]

SEED_ACCOUNT_COLUMN = "Conti corrente"
SEED_BALANCE_COLUMN = "Saldo iniziale"

Row = Sequence[Any]


class FieldExtractionError(Exception):
    """A worksheet cell could not be turned into ledger data."""

    def __init__(self, worksheet: str, row: Optional[int], field: str, reason: str):
        self.worksheet = worksheet
        self.row = row
        self.field = field
        self.reason = reason
        location = f"row {row}" if row is not None else "header"
        super().__init__(
            f"Worksheet '{worksheet}', {location}, field '{field}': {reason}"
        )


class IngestionResult(BaseModel):
    """Outcome of ingesting a whole workbook."""

    registry: Registry = Field(
        default_factory=Registry,
        description="Merge of every worksheet that was extracted"
    )
    extracted_worksheets: list[str] = Field(default_factory=list)
    transaction_counts: dict[str, int] = Field(
        default_factory=dict,
        description="Transactions read from each extracted worksheet"
    )
    failed_worksheets: list[str] = Field(
        default_factory=list,
        description="Worksheets matching the pattern that could not be extracted"
    )
    errors: dict[str, str] = Field(
        default_factory=dict,
        description="Failure reason per failed worksheet"
    )


# =============================================================================
# CELL HELPERS
# =============================================================================

def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _cell(row: Row, index: int) -> Any:
    # Read-only worksheets yield short rows when trailing cells are empty
    if index < len(row):
        return row[index]
    return None


def _month_start(worksheet_name: str) -> dt.date:
    try:
        return dt.datetime.strptime(f"{worksheet_name.strip()}-01", "%Y-%m-%d").date()
    except ValueError:
        raise FieldExtractionError(
            worksheet_name, None, "worksheet name", "expected a YYYY-MM name"
        ) from None


# =============================================================================
# WORKSHEET PARSER
# =============================================================================

class WorksheetParser:
    """
    Turns the rows of one monthly worksheet into accounts and transactions.

    Rows are plain tuples of cell values as produced by
    ``Worksheet.iter_rows(values_only=True)``; the first row is the header.
    """

    def __init__(self, worksheet_name: str):
        self.worksheet_name = worksheet_name
        self._transaction_columns: dict[str, int] = {}
        self._seed_columns: dict[str, int] = {}

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @classmethod
    def parse(
        cls,
        worksheet_name: str,
        rows: Iterable[Row],
    ) -> tuple[list[Account], list[TransactionEvent]]:
        """
        Parse a worksheet.

        Args:
            worksheet_name: Name of the worksheet, ``YYYY-MM``
            rows: Cell values, header first

        Returns:
            (opening balance accounts, transactions)

        Raises:
            FieldExtractionError: On a missing column, a wrong cell type or
                an unknown category/account label
        """
        parser = cls(worksheet_name)
        seed_date = _month_start(worksheet_name)

        accounts: list[Account] = []
        transactions: list[TransactionEvent] = []
        seeds_done = False

        for index, row in enumerate(rows):
            row_number = index + 1
            if index == 0:
                parser._read_header(row)
                continue

            if not seeds_done:
                seed = parser._read_seed(row, row_number, seed_date)
                if seed is None:
                    seeds_done = True
                else:
                    accounts.append(seed)

            if parser._is_blank_transaction(row):
                continue
            transactions.append(parser._read_transaction(row, row_number))

        logger.debug(
            "worksheet_parsed",
            worksheet=worksheet_name,
            accounts=len(accounts),
            transactions=len(transactions),
        )
        return accounts, transactions

    # -------------------------------------------------------------------------
    # Header
    # -------------------------------------------------------------------------

    def _read_header(self, header: Row) -> None:
        in_second_block = False
        for position, cell in enumerate(header):
            if _is_empty(cell):
                in_second_block = True
                continue
            label = str(cell).strip()
            if in_second_block:
                self._seed_columns.setdefault(label, position)
            else:
                self._transaction_columns[label] = position

    def _position(self, columns: dict[str, int], name: str, row_number: int) -> int:
        try:
            return columns[name]
        except KeyError:
            raise FieldExtractionError(
                self.worksheet_name, row_number, name, "column not found in header"
            ) from None

    # -------------------------------------------------------------------------
    # Account seeds
    # -------------------------------------------------------------------------

    def _read_seed(
        self,
        row: Row,
        row_number: int,
        seed_date: dt.date,
    ) -> Optional[Account]:
        """Read one seed; None once the seeds table has ended."""
        name_cell = _cell(
            row, self._position(self._seed_columns, SEED_ACCOUNT_COLUMN, row_number)
        )
        if _is_empty(name_cell):
            return None

        try:
            name = AccountName.parse(str(name_cell))
        except ValueError as e:
            raise FieldExtractionError(
                self.worksheet_name, row_number, SEED_ACCOUNT_COLUMN, str(e)
            ) from e

        balance = self._read_amount(
            row,
            row_number,
            self._position(self._seed_columns, SEED_BALANCE_COLUMN, row_number),
            SEED_BALANCE_COLUMN,
        )
        return Account.new(name, balance, seed_date)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _is_blank_transaction(self, row: Row) -> bool:
        positions = [
            self._transaction_columns[name]
            for name in TRANSACTION_COLUMNS
            if name in self._transaction_columns
        ]
        return all(_is_empty(_cell(row, position)) for position in positions)

    def _read_transaction(self, row: Row, row_number: int) -> TransactionEvent:
        columns = self._transaction_columns

        date_value = _cell(row, self._position(columns, DATE_COLUMN, row_number))
        if isinstance(date_value, dt.datetime):
            date = date_value.date()
        elif isinstance(date_value, dt.date):
            date = date_value
        else:
            raise FieldExtractionError(
                self.worksheet_name, row_number, DATE_COLUMN,
                f"expected a date, got {date_value!r}",
            )

        amount = self._read_amount(
            row, row_number, self._position(columns, AMOUNT_COLUMN, row_number),
            AMOUNT_COLUMN,
        )

        category_value = _cell(row, self._position(columns, CATEGORY_COLUMN, row_number))
        if not isinstance(category_value, str):
            raise FieldExtractionError(
                self.worksheet_name, row_number, CATEGORY_COLUMN,
                f"expected text, got {category_value!r}",
            )
        try:
            category = TransactionCategory.parse(category_value)
        except ValueError as e:
            raise FieldExtractionError(
                self.worksheet_name, row_number, CATEGORY_COLUMN, str(e)
            ) from e

        description_value = _cell(
            row, self._position(columns, DESCRIPTION_COLUMN, row_number)
        )
        description = description_value if isinstance(description_value, str) else None

        account_value = _cell(row, self._position(columns, ACCOUNT_COLUMN, row_number))
        if not isinstance(account_value, str):
            raise FieldExtractionError(
                self.worksheet_name, row_number, ACCOUNT_COLUMN,
                f"expected text, got {account_value!r}",
            )
        try:
            account = AccountName.parse(account_value)
        except ValueError as e:
            raise FieldExtractionError(
                self.worksheet_name, row_number, ACCOUNT_COLUMN, str(e)
            ) from e

        try:
            return TransactionEvent(
                date=date,
                amount=amount,
                category=category,
                description=description,
                account=account,
            )
        except ValidationError as e:
            raise FieldExtractionError(
                self.worksheet_name, row_number, "transaction", str(e)
            ) from e

    def _read_amount(self, row: Row, row_number: int, position: int, field: str) -> float:
        value = _cell(row, position)
        # bool is an int subclass but never a valid amount
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise FieldExtractionError(
                self.worksheet_name, row_number, field,
                f"expected a number, got {value!r}",
            )
        return float(value)


# =============================================================================
# REGISTRY BUILDERS
# =============================================================================

def build_registry(worksheet_name: str, rows: Iterable[Row]) -> Registry:
    """
    Build the registry of a single worksheet.

    The seeds open the accounts, then the transactions are folded in
    chronological order.

    Raises:
        FieldExtractionError: If the worksheet cannot be parsed
    """
    accounts, transactions = WorksheetParser.parse(worksheet_name, rows)
    registry = Registry.new(accounts)
    registry.add_batch(transactions)
    return registry


def build_registry_batch(
    source: Union[str, Path, BinaryIO],
    worksheet_pattern: str = DEFAULT_WORKSHEET_PATTERN,
) -> IngestionResult:
    """
    Build one registry from every matching worksheet of a workbook.

    Worksheets are processed in sorted name order, so ``YYYY-MM`` sheets
    are merged chronologically. Sheets not matching the pattern are
    ignored; matching sheets that fail to parse are reported in the
    result and do not stop the batch.

    Args:
        source: Path or binary file object of an .xlsx workbook
        worksheet_pattern: Regular expression selecting the worksheets

    Raises:
        OSError: If the workbook cannot be opened
        re.error: If the pattern is not a valid regular expression
    """
    template = re.compile(worksheet_pattern)
    workbook = load_workbook(source, read_only=True, data_only=True)
    result = IngestionResult()

    try:
        for worksheet_name in sorted(workbook.sheetnames):
            if not template.search(worksheet_name):
                continue

            rows = workbook[worksheet_name].iter_rows(values_only=True)
            try:
                registry = build_registry(worksheet_name, rows)
            except FieldExtractionError as e:
                logger.warning(
                    "worksheet_extraction_failed",
                    worksheet=worksheet_name,
                    row=e.row,
                    field=e.field,
                    reason=e.reason,
                )
                result.failed_worksheets.append(worksheet_name)
                result.errors[worksheet_name] = str(e)
                continue

            result.registry = result.registry.merge(registry)
            result.extracted_worksheets.append(worksheet_name)
            result.transaction_counts[worksheet_name] = len(registry.transactions)
            logger.info(
                "worksheet_extracted",
                worksheet=worksheet_name,
                transactions=len(registry.transactions),
            )
    finally:
        workbook.close()

    logger.info(
        "workbook_ingested",
        extracted=len(result.extracted_worksheets),
        failed=len(result.failed_worksheets),
        transactions=len(result.registry.transactions),
    )
    return result
