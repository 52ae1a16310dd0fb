"""
Main Orchestrator for PULDAR

This module ties together all the components and defines the
end-to-end flows for:
1. Capture (utterance -> cache/model -> extract -> resolve -> validate -> save)
2. Budget (configuration, commitments, month overview)
3. Categories (custom categories and display renames)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The model only translates; amounts, signs and buckets are decided here
- Nothing invalid reaches the ledger
- Every step is audited

The core components (extractor, cache, resolver, engine) never call
storage or the model themselves; only these flows do.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

import structlog

from puldar.audit import AuditLogger, create_correlation_id
from puldar.budget import BudgetEngine, estimate_monthly_income
from puldar.categories import CategoryResolver
from puldar.config import get_settings
from puldar.extraction import (
    ModelInvocationError,
    NoStructuredDataFound,
    ParseCache,
    build_system_prompt,
    extract_with_path,
    is_income,
    make_key,
    signed_amount,
)
from puldar.extraction.extractor import DEFAULT_MERCHANT
from puldar.models.ledger import (
    INCOME_CATEGORY_KEY,
    BudgetBucket,
    BudgetConfiguration,
    CustomCategory,
    ExtractionResult,
    LedgerEntry,
    MonthOverview,
    RecurringCommitment,
    ValidationResult,
)
from puldar.services.model import GeminiModelClient, ModelClient, ModelError
from puldar.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileSettingsStorage,
    LedgerStorageInterface,
    NotFoundError,
    SettingsStorageInterface,
    StorageError,
)
from puldar.validation import EntryValidator


logger = structlog.get_logger(__name__)

MERCHANT_MAX_LENGTH = 200


class EntryRejectedError(Exception):
    """A captured or edited entry failed validation and was not saved."""

    def __init__(self, validation: ValidationResult):
        self.validation = validation
        messages = "; ".join(
            issue.message for issue in validation.issues if issue.severity == "error"
        )
        super().__init__(f"Entry rejected: {messages}")


class ExpenseCaptureFlow:
    """
    Orchestrates turning an utterance into a ledger entry.

    Flow:
    1. Parse -> parse cache, else model call + extraction (cached on success)
    2. Build -> signed amount, income routing, category resolution
    3. Validate -> two-stage validation (errors reject the entry)
    4. Save -> ledger storage
    """

    def __init__(
        self,
        model_client: Optional[ModelClient] = None,
        resolver: Optional[CategoryResolver] = None,
        cache: Optional[ParseCache] = None,
        validator: Optional[EntryValidator] = None,
        ledger_storage: Optional[LedgerStorageInterface] = None,
        settings_storage: Optional[SettingsStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._model_client = model_client
        self._resolver = resolver or CategoryResolver()
        self._cache = cache if cache is not None else ParseCache()
        self._validator = validator or EntryValidator(self._resolver)
        self._ledger_storage = ledger_storage or InMemoryLedgerStorage()
        self._settings_storage = settings_storage
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def resolver(self) -> CategoryResolver:
        return self._resolver

    @property
    def cache(self) -> ParseCache:
        return self._cache

    @property
    def ledger_storage(self) -> LedgerStorageInterface:
        return self._ledger_storage

    # =========================================================================
    # PARSE CACHE PERSISTENCE
    # =========================================================================

    async def load_cache(self) -> int:
        """
        Restore the parse cache from settings storage; returns its size.

        An unreadable cache document is audited as a system error and the
        current cache is kept.
        """
        if self._settings_storage is None:
            return len(self._cache)
        try:
            data = await self._settings_storage.load_parse_cache()
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="parse_cache_load_failed",
                error_message=str(e),
            )
            return len(self._cache)
        self._cache = ParseCache.from_dict(data, max_entries=self._cache.max_entries)
        return len(self._cache)

    async def save_cache(self) -> bool:
        if self._settings_storage is None:
            return False
        return await self._settings_storage.save_parse_cache(self._cache.to_dict())

    # =========================================================================
    # PARSE
    # =========================================================================

    async def parse(
        self,
        raw_input: str,
        allowed_categories: Optional[list[str]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        """
        Parse an utterance into an ExtractionResult.

        Args:
            raw_input: What the user typed
            allowed_categories: Labels offered to the model; the resolver's
                                prompt labels when None or empty

        Raises:
            ModelInvocationError: The model call failed
            NoStructuredDataFound: The model output had no usable amount
        """
        correlation_id = correlation_id or create_correlation_id()
        categories = allowed_categories or self._resolver.prompt_categories

        cache_key = make_key(raw_input, categories)
        cached = self._cache.get(cache_key)
        if cached is not None:
            await self._audit_logger.log_cache_hit(cache_key, correlation_id)
            return cached

        if self._model_client is None:
            raise ModelInvocationError("No model client configured")

        model_name = self._model_client.model_name
        try:
            response_text = await self._model_client.complete(
                build_system_prompt(categories),
                raw_input,
            )
        except ModelError as e:
            await self._audit_logger.log_model_failed(
                model_name=model_name,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise ModelInvocationError(str(e), service=e.service) from e

        await self._audit_logger.log_model_completed(
            model_name=model_name,
            response_length=len(response_text),
            correlation_id=correlation_id,
        )

        try:
            result, used_fallback = extract_with_path(response_text)
        except NoStructuredDataFound as e:
            await self._audit_logger.log_extraction_failed(
                raw_preview=e.preview,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_extraction_completed(
            merchant=result.merchant,
            category=result.category,
            used_fallback=used_fallback,
            correlation_id=correlation_id,
        )

        self._cache.put(cache_key, result)
        return result

    # =========================================================================
    # BUILD / CAPTURE
    # =========================================================================

    def build_entry(
        self,
        result: ExtractionResult,
        raw_input: str,
        when: Optional[datetime] = None,
    ) -> LedgerEntry:
        """
        Turn an extraction into an (unsaved) ledger entry.

        The sign and income routing come from the utterance; the bucket
        comes from category resolution.
        """
        amount = signed_amount(result.amount, result.transaction_type, raw_input)
        merchant = result.merchant.strip()[:MERCHANT_MAX_LENGTH] or DEFAULT_MERCHANT

        if is_income(raw_input):
            category_key, bucket = INCOME_CATEGORY_KEY, BudgetBucket.FUTURE
        else:
            resolved = self._resolver.resolve(
                result.category,
                context=f"{merchant} {raw_input}",
            )
            category_key, bucket = resolved.storage_key, resolved.bucket

        return LedgerEntry(
            merchant=merchant,
            amount=amount,
            category_key=category_key,
            bucket=bucket,
            date=when or datetime.now(),
            notes=raw_input,
        )

    async def capture(
        self,
        raw_input: str,
        when: Optional[datetime] = None,
        allowed_categories: Optional[list[str]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[LedgerEntry, ValidationResult]:
        """
        Parse, validate and save one utterance.

        Returns:
            (saved_entry, validation) - validation may carry warnings

        Raises:
            NoStructuredDataFound: Empty input or unusable model output
            ModelInvocationError: The model call failed
            EntryRejectedError: Validation found errors; nothing saved
            StorageError: The ledger store rejected the save
        """
        correlation_id = correlation_id or create_correlation_id()
        raw_input = raw_input.strip()

        await self._audit_logger.log_expense_received(raw_input, correlation_id)
        if not raw_input:
            raise NoStructuredDataFound(raw_input)

        result = await self.parse(raw_input, allowed_categories, correlation_id)
        entry = self.build_entry(result, raw_input, when)

        await self._audit_logger.log_category_resolved(
            raw_label=result.category,
            storage_key=entry.category_key,
            bucket=entry.bucket.value,
            correlation_id=correlation_id,
        )

        validation = self._validator.validate(entry)
        if validation.has_errors:
            await self._audit_logger.log_validation_failed(
                entry_id=entry.id,
                issues=[issue.model_dump() for issue in validation.issues],
                correlation_id=correlation_id,
            )
            raise EntryRejectedError(validation)

        try:
            await self._ledger_storage.save_entry(entry)
        except StorageError as e:
            await self._audit_logger.log_external_service_error(
                service="ledger_storage",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        await self._audit_logger.log_entry_saved(
            entry_id=entry.id,
            merchant=entry.merchant,
            amount=entry.amount,
            correlation_id=correlation_id,
        )

        return entry, validation

    # =========================================================================
    # EDIT / DELETE
    # =========================================================================

    async def update_entry(
        self,
        entry_id: UUID,
        merchant: Optional[str] = None,
        amount: Optional[float] = None,
        category_key: Optional[str] = None,
        when: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Edit a saved entry.

        Changing the category re-derives the bucket from the resolver.

        Raises:
            NotFoundError: No entry with that id
            EntryRejectedError: The edited entry fails validation
        """
        entry = await self._ledger_storage.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")

        updates = {}
        if merchant is not None:
            updates["merchant"] = merchant.strip()[:MERCHANT_MAX_LENGTH]
        if amount is not None:
            updates["amount"] = amount
        if category_key is not None:
            updates["category_key"] = category_key
            bucket = self._resolver.bucket_for_key(category_key)
            if bucket is not None:
                updates["bucket"] = bucket
        if when is not None:
            updates["date"] = when
        if notes is not None:
            updates["notes"] = notes

        changed = [field for field, value in updates.items() if getattr(entry, field) != value]
        updated = LedgerEntry(**{**entry.model_dump(), **updates})

        validation = self._validator.validate(updated)
        if validation.has_errors:
            await self._audit_logger.log_validation_failed(
                entry_id=entry_id,
                issues=[issue.model_dump() for issue in validation.issues],
                correlation_id=None,
            )
            raise EntryRejectedError(validation)

        await self._ledger_storage.update_entry(updated)
        await self._audit_logger.log_entry_updated(entry_id, changed)
        return updated

    async def delete_entry(self, entry_id: UUID) -> bool:
        deleted = await self._ledger_storage.delete_entry(entry_id)
        if deleted:
            await self._audit_logger.log_entry_deleted(entry_id)
        return deleted


class BudgetFlow:
    """
    Orchestrates budget configuration and the month overview.

    Configuration changes go through the engine (sanitized), are saved
    to settings storage when present, and are audited. Percentages are
    only committed when they total 100%.
    """

    def __init__(
        self,
        engine: Optional[BudgetEngine] = None,
        ledger_storage: Optional[LedgerStorageInterface] = None,
        settings_storage: Optional[SettingsStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._engine = engine or BudgetEngine()
        self._ledger_storage = ledger_storage or InMemoryLedgerStorage()
        self._settings_storage = settings_storage
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def engine(self) -> BudgetEngine:
        return self._engine

    async def load(self) -> BudgetConfiguration:
        """Load the stored configuration into the engine, if any."""
        if self._settings_storage is not None:
            stored = await self._settings_storage.load_configuration()
            if stored is not None:
                self._engine.set_configuration(stored)
        return self._engine.configuration

    async def _commit(self) -> BudgetConfiguration:
        configuration = self._engine.configuration
        if self._settings_storage is not None:
            await self._settings_storage.save_configuration(configuration)
        await self._audit_logger.log_budget_config_updated(
            monthly_income=configuration.monthly_income,
            percentages={
                bucket.value: configuration.percentage(bucket) for bucket in BudgetBucket
            },
            rollover_enabled=configuration.rollover_enabled,
        )
        return configuration

    async def set_monthly_income(self, value: float) -> BudgetConfiguration:
        self._engine.set_monthly_income(value)
        return await self._commit()

    async def set_income_from_hourly(
        self,
        hourly_rate: float,
        hours_per_week: float,
    ) -> BudgetConfiguration:
        """Set monthly income from an hourly wage estimate."""
        return await self.set_monthly_income(
            estimate_monthly_income(hourly_rate, hours_per_week)
        )

    async def set_rollover_enabled(self, enabled: bool) -> BudgetConfiguration:
        self._engine.set_rollover_enabled(enabled)
        return await self._commit()

    async def commit_percentages(
        self,
        percentages: dict[BudgetBucket, float],
    ) -> ValidationResult:
        """
        Apply new bucket percentages if they total 100%.

        Returns the allocation validation; nothing changes when it fails.
        """
        validation = EntryValidator.validate_allocation(percentages)
        if not validation.is_valid:
            logger.info(
                "allocation_rejected",
                total=sum(percentages.values()),
            )
            return validation

        self._engine.set_percentages(percentages)
        await self._commit()
        return validation

    # =========================================================================
    # RECURRING COMMITMENTS
    # =========================================================================

    async def add_commitment(
        self,
        name: str,
        monthly_amount: float,
        bucket: BudgetBucket = BudgetBucket.FUNDAMENTALS,
    ) -> RecurringCommitment:
        commitment = RecurringCommitment(
            name=name.strip(),
            monthly_amount=monthly_amount,
            bucket=bucket,
        )
        await self._ledger_storage.save_commitment(commitment)
        return commitment

    async def set_commitment_active(self, commitment_id: UUID, active: bool) -> RecurringCommitment:
        """
        Pause or resume a commitment.

        Raises:
            NotFoundError: No commitment with that id
        """
        for commitment in await self._ledger_storage.list_commitments():
            if commitment.id == commitment_id:
                updated = commitment.model_copy(update={"is_active": active})
                await self._ledger_storage.save_commitment(updated)
                return updated
        raise NotFoundError(f"Commitment not found: {commitment_id}")

    async def remove_commitment(self, commitment_id: UUID) -> bool:
        return await self._ledger_storage.delete_commitment(commitment_id)

    # =========================================================================
    # OVERVIEW
    # =========================================================================

    async def month_overview(self, month: Optional[date] = None) -> MonthOverview:
        """Dashboard numbers for a month from the current ledger snapshot."""
        entries = await self._ledger_storage.list_entries()
        commitments = await self._ledger_storage.list_commitments(active_only=True)
        return self._engine.month_overview(entries, commitments, month)


class CategoryFlow:
    """
    Orchestrates category customization.

    Every successful change is saved to settings storage (when present)
    so the resolver state survives restarts.
    """

    def __init__(
        self,
        resolver: Optional[CategoryResolver] = None,
        settings_storage: Optional[SettingsStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._resolver = resolver or CategoryResolver()
        self._settings_storage = settings_storage
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def resolver(self) -> CategoryResolver:
        return self._resolver

    async def load(self) -> None:
        """Replace the resolver's customizations with the stored ones."""
        if self._settings_storage is None:
            return
        # The resolver is shared with the capture flow; update in place
        self._resolver.load_state(await self._settings_storage.load_category_state())

    async def _save(self) -> None:
        if self._settings_storage is not None:
            await self._settings_storage.save_category_state(self._resolver.state)

    async def add_custom_category(self, name: str, bucket: BudgetBucket) -> Optional[CustomCategory]:
        """
        Add a custom category.

        Returns the new category, or None when the name was rejected
        (empty or colliding with an existing key).
        """
        if not self._resolver.add_custom_category(name, bucket):
            await self._audit_logger.log_category_rejected(name)
            return None

        category = self._resolver.custom_categories[-1]
        await self._save()
        await self._audit_logger.log_category_added(
            category_id=category.id,
            name=category.name,
            bucket=category.bucket.value,
        )
        return category

    async def update_custom_category(
        self,
        category_id: UUID,
        name: Optional[str] = None,
        bucket: Optional[BudgetBucket] = None,
    ) -> bool:
        updated = self._resolver.update_custom_category(category_id, name=name, bucket=bucket)
        if updated:
            await self._save()
        return updated

    async def remove_custom_category(self, category_id: UUID) -> bool:
        removed = self._resolver.remove_custom_category(category_id)
        if removed:
            await self._save()
        return removed

    async def rename_category(self, canonical_key: str, name: str) -> str:
        """Set (or clear) a display name; returns the resulting name."""
        self._resolver.set_display_name(name, canonical_key)
        await self._save()
        return self._resolver.display_name_for_canonical(canonical_key)


def create_app_components(
    use_model: bool = True,
    data_dir: Optional[str] = None,
) -> tuple[ExpenseCaptureFlow, BudgetFlow, CategoryFlow]:
    """
    Factory function to create all application components.

    The three flows share one resolver, one ledger store and one
    audit logger. Call the flows' load() / load_cache() afterwards to
    restore persisted settings.

    Args:
        use_model: Whether to initialize the Gemini client.
                   Set to False for testing without a model.
        data_dir: Settings directory; AppSettings.data_dir when None

    Returns:
        (capture_flow, budget_flow, category_flow)
    """
    app_settings = get_settings().app

    model_client = None
    if use_model:
        try:
            model_client = GeminiModelClient()
        except ValueError as e:
            # Model not configured - capture raises until one is set up
            logger.warning("model_not_configured", error=str(e))

    settings_storage = JsonFileSettingsStorage(data_dir or app_settings.data_path)
    ledger_storage = InMemoryLedgerStorage()
    audit_logger = AuditLogger(InMemoryAuditStorage())
    resolver = CategoryResolver()

    capture_flow = ExpenseCaptureFlow(
        model_client=model_client,
        resolver=resolver,
        cache=ParseCache(max_entries=app_settings.parse_cache_max_entries),
        validator=EntryValidator(
            resolver,
            max_entry_amount=app_settings.max_entry_amount,
            future_date_tolerance_days=app_settings.future_date_tolerance_days,
        ),
        ledger_storage=ledger_storage,
        settings_storage=settings_storage,
        audit_logger=audit_logger,
    )

    budget_flow = BudgetFlow(
        engine=BudgetEngine(max_rollover_depth=app_settings.rollover_max_depth),
        ledger_storage=ledger_storage,
        settings_storage=settings_storage,
        audit_logger=audit_logger,
    )

    category_flow = CategoryFlow(
        resolver=resolver,
        settings_storage=settings_storage,
        audit_logger=audit_logger,
    )

    return capture_flow, budget_flow, category_flow
