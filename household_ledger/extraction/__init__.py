"""
Extraction Module

Read-only report views computed from a Registry.
"""

from household_ledger.extraction.engine import (
    EmptyExtractionError,
    ExtractionError,
    extract_categories_split,
    extract_daily_transactions,
    filter_transactions,
    monthly_extraction,
)

__all__ = [
    "EmptyExtractionError",
    "ExtractionError",
    "extract_categories_split",
    "extract_daily_transactions",
    "filter_transactions",
    "monthly_extraction",
]
