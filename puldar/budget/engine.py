"""
Budget Engine

ALL budget math lives here: allocation, spend aggregation, overspend
detection and rollover carryover. The language model never does
arithmetic.

DESIGN DECISION: The engine is a pure calculator over snapshots.
- Configuration is an immutable BudgetConfiguration value; setters
  sanitize and swap it, they never raise.
- Every read takes the ledger entries and recurring commitments to use,
  plus a month (any date inside it; defaults to today).
- Nothing here touches storage.

Formulas:
    bucket_budget(b, income)   = income * percentage(b)
    effective_income(m)        = monthly_income + sum(|income entries in m|)
    spent(b, m)                = non-income entries of b in m
                                 + active commitments of b (every month)
    budgeted(b, m)             = bucket_budget(b, effective_income(m))
                                 + carryover(b, m)
    carryover(b, m)            = max(0, budgeted(b, m-1) - spent(b, m-1))
                                 for Fundamentals/Fun with rollover on,
                                 otherwise 0

Carryover is folded oldest-to-newest over at most `max_rollover_depth`
prior months (24 by default) and never before the first month that has
a ledger entry. Months outside that window contribute 0.

Numeric policy: non-finite intermediates are replaced by 0, so NaN and
infinity never reach a result.
"""

from datetime import date
from typing import Iterable, Optional

from puldar.budget.months import MonthIndex, month_from_index, month_index
from puldar.models.ledger import (
    BucketStatus,
    BudgetBucket,
    BudgetConfiguration,
    LedgerEntry,
    MonthOverview,
    RecurringCommitment,
    clamp_fraction,
    finite_or_zero,
)


DEFAULT_ROLLOVER_DEPTH = 24


def estimate_monthly_income(hourly_rate: float, hours_per_week: float) -> float:
    """Monthly income from an hourly wage: hourly * hours * 52 / 12."""
    hourly = max(finite_or_zero(hourly_rate), 0.0)
    hours = max(finite_or_zero(hours_per_week), 0.0)
    return finite_or_zero(hourly * hours * 52 / 12)


class LedgerAggregates:
    """
    Per-month sums over one ledger snapshot.

    Built once per engine call so that status, capacity and carryover
    share a single pass over the entries. Carryover results are memoized
    per (bucket, month).
    """

    def __init__(
        self,
        entries: Iterable[LedgerEntry],
        commitments: Iterable[RecurringCommitment] = (),
    ):
        self._bucket_spend: dict[tuple[MonthIndex, BudgetBucket], float] = {}
        self._month_spend: dict[MonthIndex, float] = {}
        self._income_credits: dict[MonthIndex, float] = {}
        self._recurring: dict[BudgetBucket, float] = {bucket: 0.0 for bucket in BudgetBucket}
        self.first_month: Optional[MonthIndex] = None
        self._carryover_memo: dict[tuple[BudgetBucket, MonthIndex], float] = {}

        for entry in entries:
            index = month_index(entry.date)
            if self.first_month is None or index < self.first_month:
                self.first_month = index

            amount = finite_or_zero(entry.amount)
            if entry.is_income:
                self._income_credits[index] = (
                    self._income_credits.get(index, 0.0) + abs(amount)
                )
                continue

            self._month_spend[index] = self._month_spend.get(index, 0.0) + amount
            key = (index, entry.bucket)
            self._bucket_spend[key] = self._bucket_spend.get(key, 0.0) + amount

        for commitment in commitments:
            if commitment.is_active:
                self._recurring[commitment.bucket] += max(
                    finite_or_zero(commitment.monthly_amount), 0.0
                )

    def recurring_total(self, bucket: Optional[BudgetBucket] = None) -> float:
        if bucket is None:
            return finite_or_zero(sum(self._recurring.values()))
        return finite_or_zero(self._recurring[bucket])

    def income_credits(self, month: MonthIndex) -> float:
        return finite_or_zero(self._income_credits.get(month, 0.0))

    def entry_spend(self, month: MonthIndex) -> float:
        return finite_or_zero(self._month_spend.get(month, 0.0))

    def bucket_spend(self, bucket: BudgetBucket, month: MonthIndex) -> float:
        """Entries of the bucket in the month plus its active commitments."""
        return finite_or_zero(
            self._bucket_spend.get((month, bucket), 0.0) + self._recurring[bucket]
        )

    def memoized_carryover(self, bucket: BudgetBucket, month: MonthIndex) -> Optional[float]:
        return self._carryover_memo.get((bucket, month))

    def remember_carryover(self, bucket: BudgetBucket, month: MonthIndex, value: float) -> None:
        self._carryover_memo[(bucket, month)] = value


class BudgetEngine:
    """
    Pure budgeting calculator.

    Holds no locks: configuration writes must be serialized by the
    caller relative to the reads that compute status.
    """

    def __init__(
        self,
        configuration: Optional[BudgetConfiguration] = None,
        max_rollover_depth: int = DEFAULT_ROLLOVER_DEPTH,
    ):
        self._configuration = configuration or BudgetConfiguration()
        self._max_rollover_depth = max(max_rollover_depth, 0)

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    @property
    def configuration(self) -> BudgetConfiguration:
        return self._configuration

    @property
    def monthly_income(self) -> float:
        return self._configuration.monthly_income

    @property
    def rollover_enabled(self) -> bool:
        return self._configuration.rollover_enabled

    @property
    def max_rollover_depth(self) -> int:
        return self._max_rollover_depth

    def _replace(self, **changes) -> BudgetConfiguration:
        # Rebuild through the constructor so validators sanitize the change.
        values = self._configuration.model_dump()
        values.update(changes)
        self._configuration = BudgetConfiguration(**values)
        return self._configuration

    def set_configuration(self, configuration: BudgetConfiguration) -> None:
        self._configuration = configuration

    def set_monthly_income(self, value: float) -> BudgetConfiguration:
        return self._replace(monthly_income=value)

    def set_rollover_enabled(self, enabled: bool) -> BudgetConfiguration:
        return self._replace(rollover_enabled=bool(enabled))

    def set_percentage(self, bucket: BudgetBucket, value: float) -> BudgetConfiguration:
        percentages = dict(self._configuration.bucket_percentages)
        percentages[bucket] = value
        return self._replace(bucket_percentages=percentages)

    def set_percentages(self, values: dict[BudgetBucket, float]) -> BudgetConfiguration:
        """
        Replace all percentages at once.

        Buckets missing from `values` keep their current percentage.
        """
        merged = {
            bucket: values.get(bucket, self.percentage(bucket))
            for bucket in BudgetBucket
        }
        return self._replace(bucket_percentages=merged)

    def percentage(self, bucket: BudgetBucket) -> float:
        """Current share (0...1) configured for a bucket."""
        return self._configuration.percentage(bucket)

    @property
    def total_percentage(self) -> float:
        return self._configuration.total_percentage

    # =========================================================================
    # ALLOCATION
    # =========================================================================

    def bucket_budget(
        self,
        bucket: BudgetBucket,
        month_income: Optional[float] = None,
    ) -> float:
        """Allocation for one bucket given a month's income."""
        income = self.monthly_income if month_income is None else month_income
        income = max(finite_or_zero(income), 0.0)
        return finite_or_zero(income * clamp_fraction(self.percentage(bucket)))

    def effective_monthly_income(
        self,
        entries: Iterable[LedgerEntry],
        month: Optional[date] = None,
    ) -> float:
        aggregates = LedgerAggregates(entries)
        return self._effective_income(aggregates, self._month(month))

    def _effective_income(self, aggregates: LedgerAggregates, month: MonthIndex) -> float:
        return finite_or_zero(self.monthly_income + aggregates.income_credits(month))

    # =========================================================================
    # SPEND
    # =========================================================================

    def recurring_total(
        self,
        commitments: Iterable[RecurringCommitment],
        bucket: Optional[BudgetBucket] = None,
    ) -> float:
        """Sum of active commitments, optionally for one bucket."""
        return LedgerAggregates((), commitments).recurring_total(bucket)

    def total_spent(
        self,
        entries: Iterable[LedgerEntry],
        commitments: Iterable[RecurringCommitment] = (),
        month: Optional[date] = None,
    ) -> float:
        """Non-income entries in the month plus all active commitments."""
        aggregates = LedgerAggregates(entries, commitments)
        return self._total_spent(aggregates, self._month(month))

    @staticmethod
    def _total_spent(aggregates: LedgerAggregates, month: MonthIndex) -> float:
        return finite_or_zero(aggregates.entry_spend(month) + aggregates.recurring_total())

    # =========================================================================
    # ROLLOVER
    # =========================================================================

    def carryover(
        self,
        bucket: BudgetBucket,
        entries: Iterable[LedgerEntry],
        commitments: Iterable[RecurringCommitment] = (),
        month: Optional[date] = None,
    ) -> float:
        """Unused budget carried into `month` for a bucket."""
        aggregates = LedgerAggregates(entries, commitments)
        return self._carryover(aggregates, bucket, self._month(month))

    def _carryover(
        self,
        aggregates: LedgerAggregates,
        bucket: BudgetBucket,
        month: MonthIndex,
    ) -> float:
        if not self.rollover_enabled or not bucket.is_rollover_eligible:
            return 0.0
        if aggregates.first_month is None or aggregates.first_month >= month:
            return 0.0

        cached = aggregates.memoized_carryover(bucket, month)
        if cached is not None:
            return cached

        start = max(month - self._max_rollover_depth, aggregates.first_month)
        carry = 0.0
        for prior in range(start, month):
            prior_budget = finite_or_zero(
                self.bucket_budget(bucket, self._effective_income(aggregates, prior))
                + carry
            )
            carry = max(0.0, finite_or_zero(prior_budget - aggregates.bucket_spend(bucket, prior)))

        aggregates.remember_carryover(bucket, month, carry)
        return carry

    # =========================================================================
    # STATUS
    # =========================================================================

    def calculate_status(
        self,
        entries: Iterable[LedgerEntry],
        commitments: Iterable[RecurringCommitment] = (),
        month: Optional[date] = None,
    ) -> list[BucketStatus]:
        """Status snapshot for every bucket, in bucket order."""
        aggregates = LedgerAggregates(entries, commitments)
        return self._statuses(aggregates, self._month(month))

    def _statuses(
        self,
        aggregates: LedgerAggregates,
        month: MonthIndex,
    ) -> list[BucketStatus]:
        income = self._effective_income(aggregates, month)
        statuses = []
        for bucket in BudgetBucket:
            carry = self._carryover(aggregates, bucket, month)
            statuses.append(BucketStatus(
                bucket=bucket,
                budgeted=finite_or_zero(self.bucket_budget(bucket, income) + carry),
                spent=aggregates.bucket_spend(bucket, month),
                carryover=carry,
            ))
        return statuses

    def has_any_overspend(
        self,
        entries: Iterable[LedgerEntry],
        commitments: Iterable[RecurringCommitment] = (),
        month: Optional[date] = None,
    ) -> bool:
        """Quick check: is any bucket over its allocation?"""
        return any(
            status.is_overspent
            for status in self.calculate_status(entries, commitments, month)
        )

    def month_spend_capacity(
        self,
        entries: Iterable[LedgerEntry],
        commitments: Iterable[RecurringCommitment] = (),
        month: Optional[date] = None,
    ) -> float:
        """Effective income plus eligible carryover when rollover is on."""
        aggregates = LedgerAggregates(entries, commitments)
        return self._capacity(aggregates, self._month(month))

    def _capacity(self, aggregates: LedgerAggregates, month: MonthIndex) -> float:
        capacity = self._effective_income(aggregates, month)
        if self.rollover_enabled:
            capacity += sum(
                self._carryover(aggregates, bucket, month)
                for bucket in BudgetBucket
                if bucket.is_rollover_eligible
            )
        return finite_or_zero(capacity)

    def monthly_overspent_amount(
        self,
        entries: Iterable[LedgerEntry],
        commitments: Iterable[RecurringCommitment] = (),
        month: Optional[date] = None,
    ) -> float:
        """Amount spent beyond the month's spend capacity (never negative)."""
        aggregates = LedgerAggregates(entries, commitments)
        index = self._month(month)
        return self._overspent(aggregates, index)

    def _overspent(self, aggregates: LedgerAggregates, month: MonthIndex) -> float:
        return max(
            0.0,
            finite_or_zero(self._total_spent(aggregates, month) - self._capacity(aggregates, month)),
        )

    def month_overview(
        self,
        entries: Iterable[LedgerEntry],
        commitments: Iterable[RecurringCommitment] = (),
        month: Optional[date] = None,
    ) -> MonthOverview:
        """All dashboard numbers for one month from a single aggregation."""
        aggregates = LedgerAggregates(entries, commitments)
        index = self._month(month)
        return MonthOverview(
            month=month_from_index(index),
            statuses=self._statuses(aggregates, index),
            effective_income=self._effective_income(aggregates, index),
            total_spent=self._total_spent(aggregates, index),
            spend_capacity=self._capacity(aggregates, index),
            overspent_amount=self._overspent(aggregates, index),
        )

    @staticmethod
    def _month(month: Optional[date]) -> MonthIndex:
        return month_index(month or date.today())
