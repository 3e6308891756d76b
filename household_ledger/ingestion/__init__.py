"""
Ingestion Module

Builds registries from the monthly household workbook.
"""

from household_ledger.ingestion.workbook import (
    DEFAULT_WORKSHEET_PATTERN,
    FieldExtractionError,
    IngestionResult,
    WorksheetParser,
    build_registry,
    build_registry_batch,
)

__all__ = [
    "DEFAULT_WORKSHEET_PATTERN",
    "FieldExtractionError",
    "IngestionResult",
    "WorksheetParser",
    "build_registry",
    "build_registry_batch",
]
