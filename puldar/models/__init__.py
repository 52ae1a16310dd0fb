"""
Data Models Package

This package contains all Pydantic models used by the PULDAR ledger core.
All data flowing through the system must conform to these schemas.
"""

from puldar.models.ledger import (
    INCOME_CATEGORY_KEY,
    BucketStatus,
    BudgetBucket,
    BudgetConfiguration,
    CategoryState,
    CustomCategory,
    DateRangeFilter,
    ExtractionResult,
    GroupingMode,
    LedgerEntry,
    LedgerGroup,
    LedgerQuery,
    MonthOverview,
    QueryResult,
    RecurringCommitment,
    ResolvedCategory,
    SortMode,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from puldar.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "INCOME_CATEGORY_KEY",
    "BucketStatus",
    "BudgetBucket",
    "BudgetConfiguration",
    "CategoryState",
    "CustomCategory",
    "DateRangeFilter",
    "ExtractionResult",
    "GroupingMode",
    "LedgerEntry",
    "LedgerGroup",
    "LedgerQuery",
    "MonthOverview",
    "QueryResult",
    "RecurringCommitment",
    "ResolvedCategory",
    "SortMode",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
