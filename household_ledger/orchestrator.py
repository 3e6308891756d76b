"""
Main Orchestrator for Household Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Ingestion (workbook → per-worksheet registries → merged registry)
2. Persistence (registry ↔ transaction log)
3. Reporting (registry → daily, categories and monthly views)

DESIGN DECISION: The orchestrator enforces the boundaries:
- A rejected worksheet never stops the rest of the workbook
- A failing report view never hides the views that could be built
- Every step is audited
"""

from pathlib import Path
from typing import BinaryIO, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.config import ReportSettings, get_settings
from household_ledger.extraction import (
    ExtractionError,
    extract_categories_split,
    extract_daily_transactions,
    monthly_extraction,
)
from household_ledger.extraction.engine import DateRange
from household_ledger.ingestion import IngestionResult, build_registry_batch
from household_ledger.models.registry import AccountSelector, Registry
from household_ledger.models.reports import (
    CategoriesSplit,
    DailyTransactions,
    MonthlyTransactions,
)
from household_ledger.services.storage import (
    CsvTransactionLogStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionLogStorage,
    StorageError,
    TransactionLogStorageInterface,
)


logger = structlog.get_logger(__name__)

DAILY_VIEW = "daily"
CATEGORIES_VIEW = "categories"
MONTHLY_VIEW = "monthly"


class LedgerReport(BaseModel):
    """
    The report views built from one registry.

    A view is None when it could not be built; ``errors`` then holds the
    reason under the view's name.
    """

    daily: Optional[DailyTransactions] = None
    categories: Optional[CategoriesSplit] = None
    monthly: Optional[MonthlyTransactions] = None
    errors: dict[str, str] = Field(
        default_factory=dict,
        description="Failure reason per view that could not be built"
    )

    @property
    def is_empty(self) -> bool:
        return self.daily is None and self.categories is None and self.monthly is None


class ReportFlow:
    """
    Orchestrates ingestion, persistence and reporting.

    Flow:
    1. Ingest → Build one registry per worksheet, merge them in name order
    2. Save / Load → Persist the transaction log, replay it back
    3. Report → Build each view independently from the registry
    """

    def __init__(
        self,
        storage: Optional[TransactionLogStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ReportSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().report

    @property
    def settings(self) -> ReportSettings:
        return self._settings

    @property
    def storage(self) -> Optional[TransactionLogStorageInterface]:
        return self._storage

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def ingest_workbook(
        self,
        source: Union[str, Path, BinaryIO],
        filename: Optional[str] = None,
        file_size: Optional[int] = None,
        worksheet_pattern: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> IngestionResult:
        """
        Build the registry of a whole workbook.

        Args:
            source: Path or binary file object of the workbook
            filename: Name shown in the audit trail (uploads only)
            file_size: Upload size in bytes (uploads only)
            worksheet_pattern: Overrides the configured worksheet pattern
            correlation_id: Ties the audit events of this ingestion together

        Returns:
            IngestionResult with the merged registry and failed worksheets
        """
        correlation_id = correlation_id or create_correlation_id()
        pattern = worksheet_pattern or self._settings.worksheet_pattern

        if self._audit_logger and filename:
            self._audit_logger.log_workbook_uploaded(
                filename=filename,
                file_size=file_size or 0,
                correlation_id=correlation_id,
            )

        result = build_registry_batch(source, pattern)

        if self._audit_logger:
            for worksheet in result.failed_worksheets:
                self._audit_logger.log_worksheet_failed(
                    worksheet=worksheet,
                    error_message=result.errors.get(worksheet, ""),
                    correlation_id=correlation_id,
                )
            for worksheet in result.extracted_worksheets:
                self._audit_logger.log_worksheet_extracted(
                    worksheet=worksheet,
                    transaction_count=result.transaction_counts.get(worksheet, 0),
                    correlation_id=correlation_id,
                )
            self._audit_logger.log_registry_merged(
                worksheets=result.extracted_worksheets,
                transaction_count=len(result.registry.transactions),
                account_count=len(result.registry.accounts),
                correlation_id=correlation_id,
            )

        return result

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _require_storage(self) -> TransactionLogStorageInterface:
        if self._storage is None:
            raise StorageError("No transaction log storage configured")
        return self._storage

    def save_registry(
        self,
        registry: Registry,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Persist the registry's transaction log.

        Returns:
            Number of transactions written

        Raises:
            StorageError: If no storage is configured or the backend fails
            OSError: If the local log file cannot be written
        """
        correlation_id = correlation_id or create_correlation_id()
        storage = self._require_storage()

        try:
            count = storage.save_registry(registry)
        except (StorageError, OSError) as e:
            if self._audit_logger:
                self._audit_logger.log_save_failed(
                    backend=storage.backend_name,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            self._audit_logger.log_registry_saved(
                backend=storage.backend_name,
                transaction_count=count,
                correlation_id=correlation_id,
            )
        return count

    def load_registry(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> Registry:
        """
        Rebuild a registry from the persisted transaction log.

        Raises:
            StorageError: If no storage is configured or the log is invalid
            OSError: If the local log file cannot be read
        """
        correlation_id = correlation_id or create_correlation_id()
        storage = self._require_storage()

        try:
            registry = storage.load_registry()
        except StorageError as e:
            if self._audit_logger:
                self._audit_logger.log_external_service_error(
                    service=storage.backend_name,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise
        except OSError as e:
            if self._audit_logger:
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"backend": storage.backend_name},
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            self._audit_logger.log_registry_loaded(
                backend=storage.backend_name,
                transaction_count=len(registry.transactions),
                correlation_id=correlation_id,
            )
        return registry

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def build_report(
        self,
        registry: Registry,
        accounts: Optional[AccountSelector] = None,
        date_range: Optional[DateRange] = None,
        max_categories: Optional[int] = None,
        monthly_max_categories: Optional[int] = None,
        with_initial_total_value: Optional[bool] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerReport:
        """
        Build every report view for the selected accounts and dates.

        Unset arguments fall back to the report settings. Each view is
        built independently: one failing extraction is recorded in
        ``errors`` and the others are still returned.
        """
        correlation_id = correlation_id or create_correlation_id()
        if accounts is None and self._settings.default_accounts is not None:
            accounts = self._settings.default_accounts
        if accounts is not None:
            accounts = list(accounts)
        if max_categories is None:
            max_categories = self._settings.max_categories
        if monthly_max_categories is None:
            monthly_max_categories = self._settings.monthly_max_categories
        if with_initial_total_value is None:
            with_initial_total_value = self._settings.with_initial_total_value

        extractions = {
            DAILY_VIEW: lambda: extract_daily_transactions(
                registry, accounts, date_range, with_initial_total_value
            ),
            CATEGORIES_VIEW: lambda: extract_categories_split(
                registry, accounts, date_range, max_categories
            ),
            MONTHLY_VIEW: lambda: monthly_extraction(
                registry, accounts, date_range, monthly_max_categories
            ),
        }

        views = {}
        errors = {}
        for view, extract in extractions.items():
            try:
                views[view] = extract()
            except ExtractionError as e:
                errors[view] = str(e)
                logger.warning("extraction_failed", view=view, error=str(e))
                if self._audit_logger:
                    self._audit_logger.log_extraction_failed(
                        view=view,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                continue

            if self._audit_logger:
                self._audit_logger.log_extraction_completed(
                    view=view,
                    correlation_id=correlation_id,
                )

        return LedgerReport(
            daily=views.get(DAILY_VIEW),
            categories=views.get(CATEGORIES_VIEW),
            monthly=views.get(MONTHLY_VIEW),
            errors=errors,
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[ReportFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    When False, or when Google Sheets is not configured,
                    the transaction log is kept in the local CSV file and
                    audit events are only logged locally.

    Returns:
        (report_flow, sheets_client)
    """
    settings = get_settings()
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            storage = GoogleSheetsTransactionLogStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except ValueError as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            storage = CsvTransactionLogStorage(settings.report.csv_path)
            audit_logger = AuditLogger()  # Local-only logging
    else:
        storage = CsvTransactionLogStorage(settings.report.csv_path)
        audit_logger = AuditLogger()  # Local-only logging

    report_flow = ReportFlow(
        storage=storage,
        audit_logger=audit_logger,
        settings=settings.report,
    )

    return report_flow, sheets_client
