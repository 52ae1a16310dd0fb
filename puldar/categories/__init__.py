"""Category resolution package."""

from puldar.categories.canonical import (
    ALIASES,
    CANONICAL_KEYS,
    ExpenseCategory,
    keyword_category,
    normalize,
)
from puldar.categories.resolver import RESERVED_KEYS, CategoryResolver

__all__ = [
    "ALIASES",
    "CANONICAL_KEYS",
    "RESERVED_KEYS",
    "CategoryResolver",
    "ExpenseCategory",
    "keyword_category",
    "normalize",
]
