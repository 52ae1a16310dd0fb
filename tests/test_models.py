"""
Tests for PULDAR

Test strategy:
1. Unit tests for individual components (models, extractor, resolver, engine)
2. Integration tests for flows (with a fake model client and in-memory storage)
3. No real API calls in tests
"""

import math
from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from puldar.models.ledger import (
    BucketStatus,
    BudgetBucket,
    BudgetConfiguration,
    ExtractionResult,
    LedgerEntry,
    LedgerQuery,
    MonthOverview,
    RecurringCommitment,
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


class TestBudgetBucket:
    """Tests for the bucket enum."""

    def test_stored_values_are_display_names(self):
        """Test raw values match the user-facing names."""
        assert BudgetBucket.FUNDAMENTALS.value == "Fundamentals"
        assert BudgetBucket.FUN.value == "Fun"
        assert BudgetBucket.FUTURE.value == "Future You"

    def test_default_percentages_sum_to_one(self):
        """Test the 50/30/20 defaults."""
        assert BudgetBucket.FUNDAMENTALS.default_percentage == 0.50
        assert BudgetBucket.FUN.default_percentage == 0.30
        assert BudgetBucket.FUTURE.default_percentage == 0.20
        assert math.isclose(sum(b.default_percentage for b in BudgetBucket), 1.0)

    def test_rollover_eligibility(self):
        """Test only Fundamentals and Fun carry over."""
        assert BudgetBucket.FUNDAMENTALS.is_rollover_eligible
        assert BudgetBucket.FUN.is_rollover_eligible
        assert not BudgetBucket.FUTURE.is_rollover_eligible


class TestExtractionResult:
    """Tests for the model-output schema."""

    def test_decodes_wire_names(self):
        """Test transactionType alias is accepted."""
        result = ExtractionResult.model_validate_json(
            '{"merchant": "Target", "amount": 12.5, "category": "shopping", '
            '"transactionType": "credit"}'
        )
        assert result.transaction_type is TransactionType.CREDIT

    def test_strict_rejects_string_amount(self):
        """Test a quoted amount fails strict decoding."""
        with pytest.raises(ValidationError):
            ExtractionResult.model_validate_json(
                '{"merchant": "Target", "amount": "12.5", "category": "shopping"}'
            )

    def test_rejects_infinite_amount(self):
        """Test non-finite amounts are rejected."""
        with pytest.raises(ValidationError):
            ExtractionResult(merchant="X", amount=float("inf"), category="other")

    def test_to_cache_dict_uses_wire_names(self):
        """Test serialization keeps the model's key names."""
        result = ExtractionResult(
            merchant="Target",
            amount=3.0,
            category="shopping",
            transaction_type=TransactionType.EXPENSE,
        )
        assert result.to_cache_dict() == {
            "merchant": "Target",
            "amount": 3.0,
            "category": "shopping",
            "transactionType": "expense",
        }


class TestLedgerModels:
    """Tests for ledger entries and commitments."""

    def test_entry_flags(self):
        """Test credit and income properties."""
        entry = LedgerEntry(
            merchant="Employer",
            amount=-2000.0,
            category_key="income",
            bucket=BudgetBucket.FUTURE,
        )
        assert entry.is_credit is True
        assert entry.is_income is True

    def test_entry_strips_merchant(self):
        """Test whitespace is stripped from the merchant."""
        entry = LedgerEntry(
            merchant="  Target  ",
            amount=5.0,
            category_key="shopping",
            bucket=BudgetBucket.FUN,
        )
        assert entry.merchant == "Target"

    def test_entry_rejects_nan_amount(self):
        """Test a NaN amount never reaches the ledger."""
        with pytest.raises(ValidationError):
            LedgerEntry(
                merchant="X",
                amount=float("nan"),
                category_key="other",
                bucket=BudgetBucket.FUN,
            )

    def test_entry_date_stored_naive_local(self):
        """Test an aware date is converted to the same instant in local time."""
        aware = datetime(2025, 3, 19, 18, 0, tzinfo=timezone.utc)
        entry = LedgerEntry(
            merchant="Cafe",
            amount=4.0,
            category_key="coffee",
            bucket=BudgetBucket.FUN,
            date=aware,
        )
        assert entry.date.tzinfo is None
        assert entry.date == aware.astimezone().replace(tzinfo=None)

    def test_commitment_created_at_naive(self):
        """Test commitment timestamps are normalized the same way."""
        commitment = RecurringCommitment(
            name="Rent",
            monthly_amount=900.0,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        assert commitment.created_at.tzinfo is None

    @pytest.mark.parametrize("raw", [-10.0, float("nan"), float("inf")])
    def test_commitment_amount_sanitized(self, raw):
        """Test negative and non-finite commitments become 0."""
        commitment = RecurringCommitment(name="Gym", monthly_amount=raw)
        assert commitment.monthly_amount == 0.0


class TestBudgetConfiguration:
    """Tests for configuration sanitization."""

    def test_defaults(self):
        """Test unset percentages fall back to bucket defaults."""
        config = BudgetConfiguration()
        assert config.monthly_income == 0.0
        assert config.percentage(BudgetBucket.FUN) == 0.30
        assert config.rollover_enabled is False

    def test_income_sanitized(self):
        """Test negative and NaN income are stored as 0."""
        assert BudgetConfiguration(monthly_income=-5).monthly_income == 0.0
        assert BudgetConfiguration(monthly_income=float("nan")).monthly_income == 0.0

    def test_percentages_clamped_independently(self):
        """Test each percentage is clamped without normalizing the set."""
        config = BudgetConfiguration(bucket_percentages={
            BudgetBucket.FUNDAMENTALS: 1.7,
            BudgetBucket.FUN: -0.2,
            BudgetBucket.FUTURE: float("nan"),
        })
        assert config.percentage(BudgetBucket.FUNDAMENTALS) == 1.0
        assert config.percentage(BudgetBucket.FUN) == 0.0
        assert config.percentage(BudgetBucket.FUTURE) == 0.0
        assert config.total_percentage == 1.0


class TestBucketStatus:
    """Tests for derived bucket status."""

    def test_overspent_is_strict(self):
        """Test spending exactly the budget is not overspent."""
        assert not BucketStatus(bucket=BudgetBucket.FUN, budgeted=100, spent=100).is_overspent
        assert BucketStatus(bucket=BudgetBucket.FUN, budgeted=100, spent=100.01).is_overspent

    def test_progress_clamped(self):
        """Test progress is clamped to [0, 1.5]."""
        assert BucketStatus(bucket=BudgetBucket.FUN, budgeted=100, spent=500).progress == 1.5
        assert BucketStatus(bucket=BudgetBucket.FUN, budgeted=100, spent=-50).progress == 0.0
        assert BucketStatus(bucket=BudgetBucket.FUN, budgeted=0, spent=50).progress == 0.0

    def test_remaining(self):
        """Test remaining may go negative."""
        status = BucketStatus(bucket=BudgetBucket.FUN, budgeted=100, spent=130)
        assert status.remaining == -30

    def test_month_overview_overspend_flag(self):
        """Test overview reports overspend from its statuses."""
        overview = MonthOverview(
            month=date(2025, 3, 1),
            statuses=[BucketStatus(bucket=BudgetBucket.FUN, budgeted=10, spent=20)],
            effective_income=100,
            total_spent=20,
            spend_capacity=100,
            overspent_amount=0,
        )
        assert overview.has_any_overspend is True


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.ENTRY_SAVED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert event.timestamp.tzinfo is not None

    def test_audit_event_to_log_dict(self):
        """Test AuditEvent.to_log_dict method."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            description="Test",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "entry_saved"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_to_row(self):
        """Test the flattened row has one column per field."""
        event = AuditEventBuilder.entry_deleted(uuid4())
        row = event.to_row()
        assert len(row) == 11
        assert row[2] == "entry_deleted"
        assert row[10] == "True"

    def test_builder_fallback_extraction(self):
        """Test fallback extractions are recorded as warnings."""
        event = AuditEventBuilder.extraction_completed(
            merchant="Target",
            category="other",
            used_fallback=True,
            correlation_id=uuid4(),
        )
        assert event.event_type == AuditEventType.EXTRACTION_FALLBACK_USED
        assert event.severity == AuditSeverity.WARNING

    def test_builder_expense_received_hides_text(self):
        """Test the raw utterance is not copied into the audit details."""
        event = AuditEventBuilder.expense_received("spent 45 at whole foods", uuid4())
        assert event.details == {"length": 23}
        assert event.is_user_action is True


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            entry_id=uuid4(),
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must not be zero",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_issue_severity_pattern(self):
        """Test unknown severities are rejected."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestLedgerQuery:
    """Tests for the history query model."""

    def test_query_description(self):
        """Test the human-readable description lists active filters."""
        query = LedgerQuery(
            month=date(2025, 3, 1),
            category_label="Dining",
            min_amount=10,
        )
        description = query.query_description
        assert "March 2025" in description
        assert "category 'Dining'" in description
        assert "amount >= 10.00" in description


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
