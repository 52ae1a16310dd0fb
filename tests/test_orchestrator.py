"""
Integration tests for the capture, budget and category flows.

A fake model client returns canned text; storage is in memory or a
temporary directory. No real API calls.
"""

import asyncio
import json
from datetime import date, datetime

import pytest

from puldar.audit import AuditLogger
from puldar.categories import CategoryResolver
from puldar.extraction import ModelInvocationError, NoStructuredDataFound
from puldar.models.audit import AuditEventType, AuditSeverity
from puldar.models.ledger import BudgetBucket, LedgerEntry
from puldar.orchestrator import (
    BudgetFlow,
    CategoryFlow,
    EntryRejectedError,
    ExpenseCaptureFlow,
    create_app_components,
)
from puldar.services.model import ModelClient, ModelError
from puldar.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileSettingsStorage,
    NotFoundError,
    StorageError,
)
from puldar.validation import EntryValidator


class FakeModelClient(ModelClient):
    """Returns queued responses; queued exceptions are raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def complete(self, system_prompt: str, user_input: str) -> str:
        self.calls.append((system_prompt, user_input))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _reply(merchant, amount, category, transaction_type=None) -> str:
    payload = {"merchant": merchant, "amount": amount, "category": category}
    if transaction_type:
        payload["transactionType"] = transaction_type
    return json.dumps(payload)


class CaptureHarness:
    def __init__(self, model_client=None, settings_storage=None, ledger=None):
        self.resolver = CategoryResolver()
        self.ledger = ledger or InMemoryLedgerStorage()
        self.audit_storage = InMemoryAuditStorage()
        self.model = model_client
        self.flow = ExpenseCaptureFlow(
            model_client=model_client,
            resolver=self.resolver,
            validator=EntryValidator(
                self.resolver,
                max_entry_amount=10_000,
                future_date_tolerance_days=1,
            ),
            ledger_storage=self.ledger,
            settings_storage=settings_storage,
            audit_logger=AuditLogger(self.audit_storage),
        )

    def capture(self, text, **kwargs):
        return asyncio.run(self.flow.capture(text, **kwargs))

    @property
    def event_types(self):
        return [event.event_type for event in self.audit_storage.events]

    @property
    def saved(self):
        return asyncio.run(self.ledger.list_entries())


class TestCapture:
    """Tests for utterance -> ledger entry."""

    def test_expense_saved(self):
        """Test a plain expense lands in the right bucket."""
        harness = CaptureHarness(FakeModelClient(_reply("Whole Foods", 45.0, "groceries")))

        entry, validation = harness.capture("spent 45 at whole foods")

        assert validation.is_valid
        assert entry.merchant == "Whole Foods"
        assert entry.amount == 45.0
        assert entry.category_key == "groceries"
        assert entry.bucket is BudgetBucket.FUNDAMENTALS
        assert entry.notes == "spent 45 at whole foods"
        assert harness.saved == [entry]
        assert harness.event_types == [
            AuditEventType.EXPENSE_RECEIVED,
            AuditEventType.MODEL_COMPLETED,
            AuditEventType.EXTRACTION_COMPLETED,
            AuditEventType.CATEGORY_RESOLVED,
            AuditEventType.ENTRY_SAVED,
        ]

    def test_prompt_lists_resolver_labels(self):
        """Test the model sees the current category labels."""
        model = FakeModelClient(_reply("Cafe", 5.0, "coffee"))
        harness = CaptureHarness(model)
        harness.resolver.add_custom_category("Pets", BudgetBucket.FUNDAMENTALS)

        harness.capture("coffee 5")

        system_prompt, user_input = model.calls[0]
        assert system_prompt.endswith(", other, pets")
        assert user_input == "coffee 5"

    def test_cache_hit_skips_model(self):
        """Test the same utterance is parsed by the model only once."""
        model = FakeModelClient(_reply("Starbucks", 5.5, "coffee"))
        harness = CaptureHarness(model)

        first, _ = harness.capture("Starbucks 5.50")
        second, _ = harness.capture("  starbucks 5.50 ")

        assert len(model.calls) == 1
        assert second.merchant == first.merchant
        assert second.id != first.id
        assert AuditEventType.PARSE_CACHE_HIT in harness.event_types
        assert len(harness.saved) == 2

    def test_fallback_extraction(self):
        """Test malformed model output is recovered by the fallback."""
        harness = CaptureHarness(FakeModelClient('merchant": "Target" total 23.10'))

        entry, _ = harness.capture("target 23.10")

        assert entry.merchant == "Target"
        assert entry.amount == 23.10
        assert entry.category_key == "other"
        assert AuditEventType.EXTRACTION_FALLBACK_USED in harness.event_types

    def test_credit_signal_negates(self):
        """Test gifts from the utterance are stored as credits."""
        harness = CaptureHarness(FakeModelClient(_reply("Grandma", 50.0, "gifts")))
        entry, _ = harness.capture("grandma gave me 50")
        assert entry.amount == -50.0
        assert entry.bucket is BudgetBucket.FUN

    def test_income_routing(self):
        """Test income utterances go to the income pseudo-category."""
        harness = CaptureHarness(FakeModelClient(_reply("Work", 1200.0, "other")))
        entry, _ = harness.capture("got paid 1200 from work")
        assert entry.category_key == "income"
        assert entry.bucket is BudgetBucket.FUTURE
        assert entry.amount == -1200.0

    def test_context_overrides_label(self):
        """Test a needs label with fun context is re-resolved."""
        harness = CaptureHarness(FakeModelClient(_reply("Disneyland", 120.0, "groceries")))
        entry, _ = harness.capture("bought a disneyland ticket for 120")
        assert entry.category_key == "travel"
        assert entry.bucket is BudgetBucket.FUN

    def test_zero_amount_rejected(self):
        """Test a validation error stops the save."""
        harness = CaptureHarness(FakeModelClient(_reply("Somewhere", 0.0, "other")))

        with pytest.raises(EntryRejectedError) as exc_info:
            harness.capture("spent nothing somewhere")

        assert exc_info.value.validation.has_errors
        assert "Amount must not be zero" in str(exc_info.value)
        assert harness.saved == []
        assert AuditEventType.VALIDATION_FAILED in harness.event_types

    def test_model_error(self):
        """Test model failures are audited and surfaced."""
        harness = CaptureHarness(FakeModelClient(ModelError("quota exceeded", service="gemini")))

        with pytest.raises(ModelInvocationError) as exc_info:
            harness.capture("lunch 12")

        assert exc_info.value.service == "gemini"
        assert AuditEventType.MODEL_FAILED in harness.event_types
        assert len(harness.flow.cache) == 0

    def test_no_model_configured(self):
        """Test capture without a model client fails clearly."""
        with pytest.raises(ModelInvocationError):
            CaptureHarness().capture("lunch 12")

    def test_unusable_output(self):
        """Test output without an amount is not cached or saved."""
        harness = CaptureHarness(FakeModelClient("Sorry, I can't help with that."))

        with pytest.raises(NoStructuredDataFound):
            harness.capture("lunch")

        assert len(harness.flow.cache) == 0
        assert harness.saved == []
        assert AuditEventType.EXTRACTION_FAILED in harness.event_types

    def test_empty_input(self):
        """Test blank input never reaches the model."""
        model = FakeModelClient()
        with pytest.raises(NoStructuredDataFound):
            CaptureHarness(model).capture("   ")
        assert model.calls == []

    def test_overflowing_model_amount(self):
        """Test an amount too large for a float is an audited extraction failure."""
        harness = CaptureHarness(FakeModelClient('merchant": "Target" amount ' + "9" * 400))

        with pytest.raises(NoStructuredDataFound):
            harness.capture("bought stuff at target")

        assert harness.saved == []
        assert harness.event_types[-1] is AuditEventType.EXTRACTION_FAILED

    def test_ledger_save_failure(self):
        """Test a failed save is audited and re-raised."""

        class OfflineLedger(InMemoryLedgerStorage):
            async def save_entry(self, entry):
                raise StorageError("ledger offline")

        harness = CaptureHarness(
            FakeModelClient(_reply("Whole Foods", 45.0, "groceries")),
            ledger=OfflineLedger(),
        )

        with pytest.raises(StorageError):
            harness.capture("spent 45 at whole foods")

        event = harness.audit_storage.events[-1]
        assert event.event_type is AuditEventType.EXTERNAL_SERVICE_ERROR
        assert event.details["service"] == "ledger_storage"
        assert event.error_message == "ledger offline"
        assert AuditEventType.ENTRY_SAVED not in harness.event_types


class TestEditAndDelete:
    """Tests for changing saved entries."""

    def _saved_entry(self):
        entry = LedgerEntry(
            merchant="Target",
            amount=30.0,
            category_key="shopping",
            bucket=BudgetBucket.FUN,
        )
        harness = CaptureHarness()
        asyncio.run(harness.ledger.save_entry(entry))
        return harness, entry

    def test_category_change_rederives_bucket(self):
        """Test the bucket follows a new category."""
        harness, entry = self._saved_entry()

        updated = asyncio.run(harness.flow.update_entry(entry.id, category_key="groceries"))

        assert updated.bucket is BudgetBucket.FUNDAMENTALS
        assert harness.saved[0].category_key == "groceries"
        assert harness.audit_storage.events[-1].details["changed_fields"] == [
            "category_key", "bucket",
        ]

    def test_invalid_edit_rejected(self):
        """Test an edit to an unknown category leaves the entry unchanged."""
        harness, entry = self._saved_entry()

        with pytest.raises(EntryRejectedError):
            asyncio.run(harness.flow.update_entry(entry.id, category_key="spaceships"))

        assert harness.saved[0].category_key == "shopping"

    def test_update_missing(self):
        """Test editing an unknown id raises."""
        harness, entry = self._saved_entry()
        asyncio.run(harness.flow.delete_entry(entry.id))
        with pytest.raises(NotFoundError):
            asyncio.run(harness.flow.update_entry(entry.id, amount=5))

    def test_delete(self):
        """Test deletion is audited once."""
        harness, entry = self._saved_entry()
        assert asyncio.run(harness.flow.delete_entry(entry.id)) is True
        assert asyncio.run(harness.flow.delete_entry(entry.id)) is False
        assert harness.event_types == [AuditEventType.ENTRY_DELETED]


class TestParseCachePersistence:
    """Tests for saving and restoring the parse cache."""

    def test_cache_survives_restart(self, tmp_path):
        """Test a restored cache avoids a second model call."""
        storage = JsonFileSettingsStorage(tmp_path)
        first = CaptureHarness(FakeModelClient(_reply("Cafe", 4.0, "coffee")), storage)
        first.capture("coffee 4")
        assert asyncio.run(first.flow.save_cache())

        model = FakeModelClient()
        second = CaptureHarness(model, storage)
        assert asyncio.run(second.flow.load_cache()) == 1

        entry, _ = second.capture("coffee 4")

        assert entry.merchant == "Cafe"
        assert model.calls == []

    def test_corrupt_cache_is_audited(self, tmp_path):
        """Test an unreadable cache file leaves an empty cache and a system error."""
        (tmp_path / "parse_cache.json").write_text("{not json")
        harness = CaptureHarness(FakeModelClient(), JsonFileSettingsStorage(tmp_path))

        assert asyncio.run(harness.flow.load_cache()) == 0

        event = harness.audit_storage.events[-1]
        assert event.event_type is AuditEventType.SYSTEM_ERROR
        assert event.severity is AuditSeverity.ERROR
        assert "Corrupt parse cache" in event.error_message


class TestBudgetFlow:
    """Tests for budget configuration and overview."""

    def _flow(self, tmp_path, ledger=None):
        return BudgetFlow(
            ledger_storage=ledger or InMemoryLedgerStorage(),
            settings_storage=JsonFileSettingsStorage(tmp_path),
            audit_logger=AuditLogger(InMemoryAuditStorage()),
        )

    def test_percentages_committed_only_when_total_is_100(self, tmp_path):
        """Test invalid splits are refused and valid ones applied."""
        flow = self._flow(tmp_path)

        rejected = asyncio.run(flow.commit_percentages({
            BudgetBucket.FUNDAMENTALS: 0.7,
            BudgetBucket.FUN: 0.3,
            BudgetBucket.FUTURE: 0.2,
        }))
        assert not rejected.is_valid
        assert flow.engine.percentage(BudgetBucket.FUNDAMENTALS) == 0.5

        accepted = asyncio.run(flow.commit_percentages({
            BudgetBucket.FUNDAMENTALS: 0.6,
            BudgetBucket.FUN: 0.2,
            BudgetBucket.FUTURE: 0.2,
        }))
        assert accepted.is_valid
        assert flow.engine.percentage(BudgetBucket.FUNDAMENTALS) == 0.6

    def test_configuration_persists(self, tmp_path):
        """Test a new flow loads the saved configuration."""
        flow = self._flow(tmp_path)
        asyncio.run(flow.set_income_from_hourly(20, 40))
        asyncio.run(flow.set_rollover_enabled(True))

        restored = self._flow(tmp_path)
        configuration = asyncio.run(restored.load())

        assert configuration.monthly_income == pytest.approx(20 * 40 * 52 / 12)
        assert configuration.rollover_enabled is True

    def test_commitments_and_overview(self, tmp_path):
        """Test paused commitments drop out of the overview."""
        ledger = InMemoryLedgerStorage([
            LedgerEntry(
                merchant="Whole Foods",
                amount=100.0,
                category_key="groceries",
                bucket=BudgetBucket.FUNDAMENTALS,
                date=datetime(2025, 3, 5, 10, 0),
            ),
        ])
        flow = self._flow(tmp_path, ledger)
        asyncio.run(flow.set_monthly_income(2000))
        rent = asyncio.run(flow.add_commitment(" Rent ", 800))
        assert rent.name == "Rent"

        overview = asyncio.run(flow.month_overview(date(2025, 3, 1)))
        assert overview.total_spent == 900

        paused = asyncio.run(flow.set_commitment_active(rent.id, False))
        assert paused.is_active is False
        overview = asyncio.run(flow.month_overview(date(2025, 3, 1)))
        assert overview.total_spent == 100

        assert asyncio.run(flow.remove_commitment(rent.id))
        with pytest.raises(NotFoundError):
            asyncio.run(flow.set_commitment_active(rent.id, True))


class TestCategoryFlow:
    """Tests for category customization persistence."""

    def test_add_reject_and_reload(self, tmp_path):
        """Test customizations survive a reload into a shared resolver."""
        storage = JsonFileSettingsStorage(tmp_path)
        audit_storage = InMemoryAuditStorage()
        flow = CategoryFlow(settings_storage=storage, audit_logger=AuditLogger(audit_storage))

        pets = asyncio.run(flow.add_custom_category("Pets", BudgetBucket.FUNDAMENTALS))
        assert pets is not None and pets.key == "pets"
        assert asyncio.run(flow.add_custom_category("Income", BudgetBucket.FUN)) is None
        assert asyncio.run(flow.rename_category("groceries", "Food")) == "Food"

        assert [e.event_type for e in audit_storage.events] == [
            AuditEventType.CATEGORY_ADDED,
            AuditEventType.CATEGORY_REJECTED,
        ]

        resolver = CategoryResolver()
        asyncio.run(CategoryFlow(resolver, storage).load())
        assert resolver.bucket_for_key("pets") is BudgetBucket.FUNDAMENTALS
        assert resolver.display_name_for_canonical("groceries") == "Food"

    def test_update_and_remove(self, tmp_path):
        """Test edits are saved only when something changed."""
        flow = CategoryFlow(settings_storage=JsonFileSettingsStorage(tmp_path))
        pets = asyncio.run(flow.add_custom_category("Pets", BudgetBucket.FUN))

        assert asyncio.run(flow.update_custom_category(pets.id, bucket=BudgetBucket.FUTURE))
        assert flow.resolver.bucket_for_key("pets") is BudgetBucket.FUTURE
        assert asyncio.run(flow.remove_custom_category(pets.id))
        assert not asyncio.run(flow.remove_custom_category(pets.id))


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_flows_share_state(self, tmp_path):
        """Test a custom category added through one flow resolves in capture."""
        capture_flow, budget_flow, category_flow = create_app_components(
            use_model=False,
            data_dir=str(tmp_path),
        )

        asyncio.run(category_flow.add_custom_category("Pets", BudgetBucket.FUNDAMENTALS))

        assert capture_flow.resolver is category_flow.resolver
        assert capture_flow.ledger_storage.__class__ is InMemoryLedgerStorage
        assert "pets" in capture_flow.resolver.prompt_categories
        assert budget_flow.engine.max_rollover_depth == 24
        assert len(capture_flow.cache) == 0
