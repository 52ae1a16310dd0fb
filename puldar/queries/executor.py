"""
Ledger Query Execution

DESIGN DECISION: History browsing is DETERMINISTIC.
A LedgerQuery describes filters; this engine applies them to the
entries actually in storage. Nothing is estimated or invented, and an
empty match is reported as such.

Filter pipeline (all filters narrow the selected month):
1. Entries of the selected month
2. Category display label (as the user currently sees it)
3. Merchant substring, case-insensitive
4. Min / max signed amount
5. Relative date range (last 7 days, last 30 days, custom days)
Then sort, then group.
"""

import csv
import io
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable, Optional

import structlog

from puldar.budget.months import month_from_index, month_index, same_month
from puldar.categories import CategoryResolver
from puldar.models.ledger import (
    DateRangeFilter,
    GroupingMode,
    LedgerEntry,
    LedgerGroup,
    LedgerQuery,
    QueryResult,
    SortMode,
    local_naive,
)
from puldar.services.storage import LedgerStorageInterface, StorageError


logger = structlog.get_logger(__name__)


ALL_CATEGORIES = "All"

CSV_COLUMNS = ["date", "merchant", "amount", "category", "bucket", "notes"]


class LedgerQueryExecutor:
    """
    Executes ledger queries against entry storage.

    GUARANTEES:
    - Only returns real data from storage
    - Clear "no data found" if nothing matches
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        resolver: Optional[CategoryResolver] = None,
    ):
        self._storage = storage
        self._resolver = resolver or CategoryResolver()

    async def execute(
        self,
        query: LedgerQuery,
        now: Optional[datetime] = None,
    ) -> QueryResult:
        """
        Execute a ledger query.

        Storage failures are reported in the result rather than raised.
        """
        try:
            entries = await self._storage.list_entries()
        except StorageError as e:
            logger.warning("ledger_query_failed", error=str(e), query_id=str(query.query_id))
            return QueryResult(
                query_id=query.query_id,
                success=False,
                error_message=str(e),
                data_found=False,
            )

        matched = self.filter_entries(entries, query, local_naive(now or datetime.now()))
        ordered = self.sort_entries(matched, query.sort)
        groups = self.group_entries(ordered, query.group_by, query.sort)

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=bool(ordered),
            result_count=len(ordered),
            entries=ordered,
            groups=groups,
            total_amount=sum(entry.amount for entry in ordered),
        )

    # =========================================================================
    # FILTERING
    # =========================================================================

    def filter_entries(
        self,
        entries: Iterable[LedgerEntry],
        query: LedgerQuery,
        now: datetime,
    ) -> list[LedgerEntry]:
        values = [entry for entry in entries if same_month(entry.date, query.month)]

        label = (query.category_label or "").strip()
        if label and label != ALL_CATEGORIES:
            values = [
                entry for entry in values
                if self._resolver.display_name_for_stored(entry.category_key) == label
            ]

        needle = (query.merchant or "").strip().lower()
        if needle:
            values = [entry for entry in values if needle in entry.merchant.lower()]

        if query.min_amount is not None:
            values = [entry for entry in values if entry.amount >= query.min_amount]
        if query.max_amount is not None:
            values = [entry for entry in values if entry.amount <= query.max_amount]

        window = self._date_window(query, now)
        if window is not None:
            start, end = window
            values = [entry for entry in values if start <= entry.date <= end]

        return values

    @staticmethod
    def _date_window(
        query: LedgerQuery,
        now: datetime,
    ) -> Optional[tuple[datetime, datetime]]:
        if query.date_range is DateRangeFilter.LAST_7_DAYS:
            return now - timedelta(days=7), now
        if query.date_range is DateRangeFilter.LAST_30_DAYS:
            return now - timedelta(days=30), now
        if query.date_range is DateRangeFilter.CUSTOM:
            first = query.custom_start or query.month
            last = query.custom_end or first
            first, last = min(first, last), max(first, last)
            # Inclusive of the whole last day
            end = datetime.combine(last, time.max)
            return datetime.combine(first, time.min), end
        return None

    # =========================================================================
    # SORTING / GROUPING
    # =========================================================================

    @staticmethod
    def sort_entries(entries: Iterable[LedgerEntry], mode: SortMode) -> list[LedgerEntry]:
        if mode is SortMode.LARGEST:
            return sorted(entries, key=lambda e: abs(e.amount), reverse=True)
        if mode is SortMode.ALPHABETICAL:
            return sorted(entries, key=lambda e: e.merchant.casefold())
        return sorted(entries, key=lambda e: e.date, reverse=True)

    def group_entries(
        self,
        entries: list[LedgerEntry],
        mode: GroupingMode,
        sort: SortMode,
    ) -> list[LedgerGroup]:
        """
        Group already-sorted entries.

        Day groups are always newest day first. Other groupings order
        their groups by the sort mode: latest entry, largest absolute
        total, or title.
        """
        if mode is GroupingMode.DAY:
            buckets = self._bucketize(entries, lambda e: e.date.date())
            return [
                self._group(day.strftime("%b %d, %Y"), buckets[day])
                for day in sorted(buckets, reverse=True)
            ]

        title_for: Callable[[LedgerEntry], str]
        if mode is GroupingMode.CATEGORY:
            title_for = lambda e: self._resolver.display_name_for_stored(e.category_key)
        elif mode is GroupingMode.MERCHANT:
            title_for = lambda e: e.merchant
        else:
            title_for = lambda e: e.bucket.value

        buckets = self._bucketize(entries, title_for)

        if sort is SortMode.LARGEST:
            titles = sorted(
                buckets,
                key=lambda t: sum(abs(e.amount) for e in buckets[t]),
                reverse=True,
            )
        elif sort is SortMode.ALPHABETICAL:
            titles = sorted(buckets, key=str.casefold)
        else:
            titles = sorted(
                buckets,
                key=lambda t: max(e.date for e in buckets[t]),
                reverse=True,
            )

        return [self._group(title, buckets[title]) for title in titles]

    @staticmethod
    def _bucketize(entries: list[LedgerEntry], key: Callable) -> dict:
        buckets: dict = {}
        for entry in entries:
            buckets.setdefault(key(entry), []).append(entry)
        return buckets

    @staticmethod
    def _group(title: str, entries: list[LedgerEntry]) -> LedgerGroup:
        return LedgerGroup(
            title=title,
            entries=entries,
            total=sum(entry.amount for entry in entries),
        )

    # =========================================================================
    # OPTIONS / EXPORT
    # =========================================================================

    @staticmethod
    def month_options(
        entries: Iterable[LedgerEntry],
        today: Optional[datetime] = None,
    ) -> list[date]:
        """
        Distinct months with entries, newest first.

        Falls back to the current month when there are no entries.
        """
        indices = sorted({month_index(entry.date) for entry in entries}, reverse=True)
        if not indices:
            indices = [month_index(today or datetime.now())]
        return [month_from_index(index) for index in indices]

    def category_options(self, entries: Iterable[LedgerEntry], month: date) -> list[str]:
        """The "All" option followed by the month's sorted display labels."""
        labels = {
            self._resolver.display_name_for_stored(entry.category_key)
            for entry in entries
            if same_month(entry.date, month)
        }
        return [ALL_CATEGORIES] + sorted(labels)

    def export_csv(self, entries: Iterable[LedgerEntry]) -> str:
        """CSV text of the entries, newest first, every field quoted."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for entry in sorted(entries, key=lambda e: e.date, reverse=True):
            writer.writerow([
                entry.date.isoformat(),
                entry.merchant,
                f"{entry.amount:.2f}",
                self._resolver.display_name_for_stored(entry.category_key),
                entry.bucket.value,
                entry.notes,
            ])
        return buffer.getvalue()
