"""
Data Models Package

Pydantic models for the ledger: transactions, accounts, the registry
that aggregates them, the report views and the audit trail.
"""

from household_ledger.models.transaction import (
    PERSISTED_COLUMNS,
    AccountName,
    TransactionCategory,
    TransactionEvent,
)
from household_ledger.models.account import (
    Account,
    AccountInvariantError,
    AccountMismatchError,
)
from household_ledger.models.registry import Registry
from household_ledger.models.reports import (
    CategoriesSplit,
    DailyTransactions,
    MonthlyTransactions,
)
from household_ledger.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "PERSISTED_COLUMNS",
    "AccountName",
    "TransactionCategory",
    "TransactionEvent",
    "Account",
    "AccountInvariantError",
    "AccountMismatchError",
    "Registry",
    # Report models
    "CategoriesSplit",
    "DailyTransactions",
    "MonthlyTransactions",
    # Audit models
    "AUDIT_COLUMNS",
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
