"""
Parse Cache

Memoizes extraction results so repeating the same utterance with the
same allowed labels never calls the model twice.

Key:   normalize(input) + "||" + "|".join(sorted(normalize(label) ...))
Bound: 500 entries by default

Eviction removes the LEXICOGRAPHICALLY smallest keys, not the least
recently used ones. This matches what already-persisted caches expect;
the cache is not authoritative, so a poor eviction only costs a model
call.

The cache is not synchronized. Callers sharing one instance across
tasks must serialize access.
"""

from typing import Iterable, Optional

from pydantic import ValidationError

from puldar.models.ledger import ExtractionResult


DEFAULT_MAX_ENTRIES = 500


def _normalize(value: str) -> str:
    return value.strip().lower()


def make_key(raw_input: str, categories: Iterable[str]) -> str:
    """Cache key for an utterance and the label set offered to the model."""
    normalized_categories = sorted(_normalize(category) for category in categories)
    return f"{_normalize(raw_input)}||{'|'.join(normalized_categories)}"


class ParseCache:
    """Bounded map from cache key to ExtractionResult."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self._max_entries = max_entries
        self._entries: dict[str, ExtractionResult] = {}

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        return list(self._entries)

    def get(self, key: str) -> Optional[ExtractionResult]:
        return self._entries.get(key)

    def put(self, key: str, value: ExtractionResult) -> None:
        """Insert (or replace) an entry, then enforce the bound."""
        self._entries[key] = value
        self.trim()

    def trim(self) -> int:
        """
        Drop overflow entries in ascending key order.

        Returns the number of entries removed.
        """
        overflow = len(self._entries) - self._max_entries
        if overflow <= 0:
            return 0
        for key in sorted(self._entries)[:overflow]:
            del self._entries[key]
        return overflow

    def clear(self) -> None:
        self._entries.clear()

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> dict[str, dict]:
        """Serialize the map using the model-output key names."""
        return {key: value.to_cache_dict() for key, value in self._entries.items()}

    @classmethod
    def from_dict(
        cls,
        data: dict[str, dict],
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> "ParseCache":
        """
        Restore a cache from to_dict() output.

        Entries that no longer match the schema are skipped; the result
        is trimmed to the bound.
        """
        cache = cls(max_entries=max_entries)
        for key, value in data.items():
            try:
                cache._entries[key] = ExtractionResult.model_validate(
                    value, strict=False
                )
            except ValidationError:
                continue
        cache.trim()
        return cache
