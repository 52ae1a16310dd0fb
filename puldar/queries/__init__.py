"""Ledger history queries package."""

from puldar.queries.executor import ALL_CATEGORIES, LedgerQueryExecutor

__all__ = ["ALL_CATEGORIES", "LedgerQueryExecutor"]
