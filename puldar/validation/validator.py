"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Amount is finite and non-zero
- Merchant is present
- Category key resolves to exactly one bucket, and it is the bucket
  stored on the entry
- This catches bad extraction and inconsistent construction

STAGE 2 - SEMANTIC VALIDATION:
- Absurd amount detection
- Future / very old date detection
- This catches suspicious but structurally sound entries

Stage 2 only runs when stage 1 passes. Semantic issues are warnings;
they never block a save on their own.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the caller to act on.

Allocation commits are validated here too: the engine accepts any
percentages, but a commit is only allowed when they sum to 100%.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from puldar.categories import CategoryResolver
from puldar.config import get_settings
from puldar.models.ledger import (
    BudgetBucket,
    LedgerEntry,
    ValidationIssue,
    ValidationResult,
    clamp_fraction,
    local_naive,
)


OLD_ENTRY_DAYS = 365 * 2


class EntryValidator:
    """
    Validates ledger entries through a two-stage pipeline.

    Thresholds default to AppSettings when not passed explicitly.
    """

    def __init__(
        self,
        resolver: Optional[CategoryResolver] = None,
        max_entry_amount: Optional[float] = None,
        future_date_tolerance_days: Optional[int] = None,
    ):
        """
        Initialize validator.

        Args:
            resolver: Used to check that the category key resolves.
                      A fresh resolver (canonical categories only) if None.
            max_entry_amount: Absolute amount above which a warning is raised
            future_date_tolerance_days: Days an entry may lie in the future
        """
        self._resolver = resolver or CategoryResolver()
        if max_entry_amount is None or future_date_tolerance_days is None:
            app_settings = get_settings().app
            if max_entry_amount is None:
                max_entry_amount = app_settings.max_entry_amount
            if future_date_tolerance_days is None:
                future_date_tolerance_days = app_settings.future_date_tolerance_days
        self._max_entry_amount = max_entry_amount
        self._future_tolerance = timedelta(days=future_date_tolerance_days)

    def _validate_schema(
        self,
        entry: LedgerEntry,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not math.isfinite(entry.amount):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount is not a finite number",
                severity="error",
                suggested_fix="Re-enter the amount",
            ))
        elif entry.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must not be zero",
                severity="error",
                suggested_fix="Check if the amount was read correctly",
            ))

        if not entry.merchant or not entry.merchant.strip():
            issues.append(ValidationIssue(
                field="merchant",
                issue_type="missing",
                message="Merchant is required",
                severity="error",
                suggested_fix="Enter who the money went to or came from",
            ))

        resolved_bucket = self._resolver.bucket_for_key(entry.category_key)
        if resolved_bucket is None:
            issues.append(ValidationIssue(
                field="category_key",
                issue_type="unknown_category",
                message=f"Category '{entry.category_key}' does not exist",
                severity="error",
                suggested_fix="Pick an existing category or add a custom one",
            ))
        elif resolved_bucket is not entry.bucket:
            issues.append(ValidationIssue(
                field="bucket",
                issue_type="inconsistent",
                message=(
                    f"Category '{entry.category_key}' belongs to "
                    f"{resolved_bucket.value}, not {entry.bucket.value}"
                ),
                severity="error",
                suggested_fix="Re-resolve the category before saving",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        entry: LedgerEntry,
        now: datetime,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if abs(entry.amount) > self._max_entry_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount (${abs(entry.amount):,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        entry_date = local_naive(entry.date)
        reference = local_naive(now)

        if entry_date > reference + self._future_tolerance:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Entry date ({entry.date.date()}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))
        elif entry_date < reference - timedelta(days=OLD_ENTRY_DAYS):
            issues.append(ValidationIssue(
                field="date",
                issue_type="suspicious_date",
                message=f"Entry date ({entry.date.date()}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(
        self,
        entry: LedgerEntry,
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            entry: The entry about to be saved
            now: Reference time for date checks (defaults to now)
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(entry)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                entry, now or datetime.now()
            )
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            entry_id=entry.id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    @staticmethod
    def validate_allocation(percentages: dict[BudgetBucket, float]) -> ValidationResult:
        """
        Check a set of bucket percentages before committing them.

        Valid only when the rounded total is exactly 100%. Buckets
        missing from `percentages` count as 0.
        """
        total = sum(clamp_fraction(percentages.get(bucket, 0.0)) for bucket in BudgetBucket)
        total_points = round(total * 100)

        issues = []
        if total_points != 100:
            issues.append(ValidationIssue(
                field="bucket_percentages",
                issue_type="invalid_total",
                message=f"Bucket percentages add up to {total_points}%, not 100%",
                severity="error",
                suggested_fix="Adjust the buckets until they total 100%",
            ))

        is_valid = not issues
        return ValidationResult(
            schema_valid=is_valid,
            semantic_valid=is_valid,
            is_valid=is_valid,
            issues=issues,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("This entry can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
