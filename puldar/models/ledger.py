"""
Core Data Models for PULDAR

These models define the schemas for everything the ledger core reads
and produces:
1. What the language model is allowed to return (ExtractionResult)
2. What gets recorded (LedgerEntry, RecurringCommitment)
3. How the budget is configured (BudgetConfiguration)
4. What the budget engine reports (BucketStatus, MonthOverview)

DESIGN DECISION: Amounts are plain floats with a sign convention.
Positive = expense, negative = credit (refund, gift, income-like
reduction). The sign lives ONLY on individual ledger entries; every
amount held by configuration or derived status is non-negative.
"""

import math
from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


INCOME_CATEGORY_KEY = "income"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BudgetBucket(str, Enum):
    """
    The 50 / 30 / 20 budgeting framework.

    Every category, canonical or custom, maps to exactly one bucket.
    The stored value is the user-facing bucket name.
    """
    FUNDAMENTALS = "Fundamentals"
    FUN = "Fun"
    FUTURE = "Future You"

    @property
    def default_percentage(self) -> float:
        """Default share of monthly income."""
        return _DEFAULT_PERCENTAGES[self]

    @property
    def subtitle(self) -> str:
        return _SUBTITLES[self]

    @property
    def is_rollover_eligible(self) -> bool:
        """Only Fundamentals and Fun carry unused budget forward."""
        return self is not BudgetBucket.FUTURE


_DEFAULT_PERCENTAGES = {
    BudgetBucket.FUNDAMENTALS: 0.50,
    BudgetBucket.FUN: 0.30,
    BudgetBucket.FUTURE: 0.20,
}

_SUBTITLES = {
    BudgetBucket.FUNDAMENTALS: "Needs",
    BudgetBucket.FUN: "Wants",
    BudgetBucket.FUTURE: "Savings & Debt",
}


class TransactionType(str, Enum):
    """Direction reported by the model."""
    EXPENSE = "expense"
    CREDIT = "credit"


def finite_or_zero(value: float) -> float:
    """Replace NaN and infinities with 0."""
    return value if math.isfinite(value) else 0.0


def clamp_fraction(value: float) -> float:
    """Clamp a percentage to [0, 1]; non-finite values become 0."""
    if not math.isfinite(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def local_naive(moment: datetime) -> datetime:
    """Aware datetimes are converted to naive local time."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


# =============================================================================
# MODEL OUTPUT
# =============================================================================

class ExtractionResult(BaseModel):
    """
    The strict JSON contract between the language model and the app.

    The model is prompted to return exactly:
        {"merchant": "Store Name", "amount": 12.50,
         "category": "groceries", "transactionType": "expense"}

    CRITICAL: This is what the model THINKS the user said.
    The amount here is as decoded; the signed ledger amount is
    computed separately from the utterance.
    """
    model_config = ConfigDict(
        strict=True,
        populate_by_name=True,
        frozen=True,
    )

    merchant: str
    amount: float = Field(allow_inf_nan=False)
    category: str
    transaction_type: Optional[TransactionType] = Field(
        default=None,
        alias="transactionType",
    )

    def to_cache_dict(self) -> dict:
        """Serialize with the wire key names."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# LEDGER
# =============================================================================

class LedgerEntry(BaseModel):
    """
    One recorded transaction.

    `bucket` is denormalized from the category so monthly aggregation
    never has to consult the category tables.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    merchant: str = Field(
        ...,
        max_length=200,
        description="Display name of the merchant or payer"
    )
    amount: float = Field(
        ...,
        allow_inf_nan=False,
        description="Signed amount: positive = expense, negative = credit"
    )
    category_key: str = Field(
        ...,
        min_length=1,
        description="Canonical key, custom key, or 'income'"
    )
    bucket: BudgetBucket
    date: datetime = Field(default_factory=datetime.now)
    notes: str = Field(
        default="",
        description="Original user utterance, preserved verbatim"
    )

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        """Stored dates are always naive local time."""
        return local_naive(v)

    @property
    def is_credit(self) -> bool:
        return self.amount < 0

    @property
    def is_income(self) -> bool:
        return self.category_key == INCOME_CATEGORY_KEY


class RecurringCommitment(BaseModel):
    """
    User-defined monthly commitment (rent, gym, streaming).

    Applied as budget load EVERY month while active. Unlike ledger
    entries it is not filtered by date.
    """

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    monthly_amount: float = Field(
        default=0.0,
        description="Monthly amount, sanitized to >= 0"
    )
    bucket: BudgetBucket = BudgetBucket.FUNDAMENTALS
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("monthly_amount", mode="before")
    @classmethod
    def sanitize_amount(cls, v) -> float:
        """Negative or non-finite amounts are stored as 0."""
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(value):
            return 0.0
        return max(value, 0.0)

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return local_naive(v)


# =============================================================================
# CATEGORIES
# =============================================================================

class CustomCategory(BaseModel):
    """A user-defined category with its own bucket mapping."""

    id: UUID = Field(default_factory=uuid4)
    key: str = Field(..., min_length=1, description="Normalized storage key")
    name: str = Field(..., min_length=1, description="Display name")
    bucket: BudgetBucket = BudgetBucket.FUN


class ResolvedCategory(BaseModel):
    """Storage key + bucket produced by category resolution."""
    model_config = ConfigDict(frozen=True)

    storage_key: str
    bucket: BudgetBucket


class CategoryState(BaseModel):
    """Persistable snapshot of the user's category customizations."""

    custom_categories: list[CustomCategory] = Field(default_factory=list)
    renamed_categories: dict[str, str] = Field(
        default_factory=dict,
        description="Canonical key -> display name override"
    )


# =============================================================================
# BUDGET
# =============================================================================

class BudgetConfiguration(BaseModel):
    """
    Long-lived budget settings.

    Writes are SANITIZED, never rejected:
    - income below zero or non-finite becomes 0
    - each percentage is clamped to [0, 1] independently

    IMPORTANT: The three percentages are NOT forced to sum to 1.0.
    Callers must gate commits on that (see EntryValidator.validate_allocation).
    """
    model_config = ConfigDict(frozen=True)

    monthly_income: float = 0.0
    bucket_percentages: dict[BudgetBucket, float] = Field(default_factory=dict)
    rollover_enabled: bool = False

    @field_validator("monthly_income", mode="before")
    @classmethod
    def sanitize_income(cls, v) -> float:
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(value):
            return 0.0
        return max(value, 0.0)

    @field_validator("bucket_percentages", mode="before")
    @classmethod
    def clamp_percentages(cls, v) -> dict:
        if not v:
            return {}
        clamped = {}
        for bucket, value in dict(v).items():
            try:
                clamped[bucket] = clamp_fraction(float(value))
            except (TypeError, ValueError):
                clamped[bucket] = 0.0
        return clamped

    def percentage(self, bucket: BudgetBucket) -> float:
        """Configured share for a bucket, or its default when unset."""
        return clamp_fraction(
            self.bucket_percentages.get(bucket, bucket.default_percentage)
        )

    @property
    def total_percentage(self) -> float:
        return sum(self.percentage(bucket) for bucket in BudgetBucket)


class BucketStatus(BaseModel):
    """
    Snapshot of a single bucket's state for one month.

    Derived on demand, never persisted.
    """
    model_config = ConfigDict(frozen=True)

    bucket: BudgetBucket
    budgeted: float = Field(description="Allocation including carryover")
    spent: float
    carryover: float = 0.0

    @property
    def remaining(self) -> float:
        return finite_or_zero(self.budgeted - self.spent)

    @property
    def is_overspent(self) -> bool:
        if not (math.isfinite(self.budgeted) and math.isfinite(self.spent)):
            return False
        return self.spent > self.budgeted

    @property
    def progress(self) -> float:
        """Spent / budgeted, clamped to [0, 1.5]; 0 without a budget."""
        if not (math.isfinite(self.budgeted) and math.isfinite(self.spent)):
            return 0.0
        if self.budgeted <= 0:
            return 0.0
        return max(0.0, min(self.spent / self.budgeted, 1.5))


class MonthOverview(BaseModel):
    """Everything the dashboard shows for one month."""
    model_config = ConfigDict(frozen=True)

    month: date
    statuses: list[BucketStatus]
    effective_income: float
    total_spent: float
    spend_capacity: float
    overspent_amount: float

    @property
    def has_any_overspend(self) -> bool:
        return any(status.is_overspent for status in self.statuses)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (amount, merchant, category key)
    Stage 2: Semantic validation (suspicious amounts and dates)
    """

    entry_id: Optional[UUID] = None
    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# QUERY MODELS (history view)
# =============================================================================

class DateRangeFilter(str, Enum):
    MONTH = "month"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    CUSTOM = "custom"


class SortMode(str, Enum):
    NEWEST = "newest"
    LARGEST = "largest"
    ALPHABETICAL = "alphabetical"


class GroupingMode(str, Enum):
    DAY = "day"
    CATEGORY = "category"
    MERCHANT = "merchant"
    BUCKET = "bucket"


class LedgerQuery(BaseModel):
    """
    Filters for browsing ledger history.

    Executed deterministically by LedgerQueryExecutor.
    """

    query_id: UUID = Field(default_factory=uuid4)
    month: date = Field(default_factory=date.today)
    category_label: Optional[str] = Field(
        default=None,
        description="Display label; None means all categories"
    )
    merchant: Optional[str] = None
    min_amount: Optional[float] = Field(default=None, allow_inf_nan=False)
    max_amount: Optional[float] = Field(default=None, allow_inf_nan=False)
    date_range: DateRangeFilter = DateRangeFilter.MONTH
    custom_start: Optional[date] = None
    custom_end: Optional[date] = None
    sort: SortMode = SortMode.NEWEST
    group_by: GroupingMode = GroupingMode.DAY

    @property
    def query_description(self) -> str:
        """Human-readable description of the query."""
        parts = [f"entries in {self.month.strftime('%B %Y')}"]
        if self.category_label:
            parts.append(f"category '{self.category_label}'")
        if self.merchant:
            parts.append(f"merchant containing '{self.merchant}'")
        if self.min_amount is not None:
            parts.append(f"amount >= {self.min_amount:,.2f}")
        if self.max_amount is not None:
            parts.append(f"amount <= {self.max_amount:,.2f}")
        if self.date_range is not DateRangeFilter.MONTH:
            parts.append(self.date_range.value.replace("_", " "))
        return ", ".join(parts)


class LedgerGroup(BaseModel):
    title: str
    entries: list[LedgerEntry]
    total: float


class QueryResult(BaseModel):
    """Result of executing a LedgerQuery."""

    query_id: UUID
    success: bool = True
    error_message: Optional[str] = None
    data_found: bool
    result_count: int = 0
    entries: list[LedgerEntry] = Field(default_factory=list)
    groups: list[LedgerGroup] = Field(default_factory=list)
    total_amount: float = 0.0
