"""
Audit Logger

DESIGN DECISION: Every step from utterance to ledger row is logged.
This provides:
1. Traceability from an entry back to the model output
2. Debugging capability when parsing falls back or fails
3. A history of budget configuration changes

The audit logger:
- Is async so it sits naturally beside the storage calls
- Gracefully handles failures (a broken audit store never breaks capture)
- Supports correlation IDs to trace one capture end to end
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from puldar.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from puldar.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An AuditStorageInterface (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("puldar.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity is AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity is AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_received(self, raw_input: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.expense_received(raw_input, correlation_id))

    async def log_cache_hit(self, cache_key: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.parse_cache_hit(cache_key, correlation_id))

    async def log_model_completed(
        self,
        model_name: str,
        response_length: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.model_completed(
            model_name=model_name,
            response_length=response_length,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_model_failed(
        self,
        model_name: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.model_failed(
            model_name=model_name,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_extraction_completed(
        self,
        merchant: str,
        category: str,
        used_fallback: bool,
        correlation_id: UUID,
    ) -> None:
        """Log a successful extraction (strict or via the regex fallback)."""
        event = AuditEventBuilder.extraction_completed(
            merchant=merchant,
            category=category,
            used_fallback=used_fallback,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_extraction_failed(
        self,
        raw_preview: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.extraction_failed(
            raw_preview=raw_preview,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_resolved(
        self,
        raw_label: str,
        storage_key: str,
        bucket: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.category_resolved(
            raw_label=raw_label,
            storage_key=storage_key,
            bucket=bucket,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_added(self, category_id: UUID, name: str, bucket: str) -> None:
        await self.log(AuditEventBuilder.category_added(category_id, name, bucket))

    async def log_category_rejected(self, name: str) -> None:
        await self.log(AuditEventBuilder.category_rejected(name))

    async def log_validation_failed(
        self,
        entry_id: UUID,
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            entry_id=entry_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entry_saved(
        self,
        entry_id: UUID,
        merchant: str,
        amount: float,
        correlation_id: Optional[UUID],
    ) -> None:
        event = AuditEventBuilder.entry_saved(
            entry_id=entry_id,
            merchant=merchant,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entry_updated(self, entry_id: UUID, changed_fields: list[str]) -> None:
        await self.log(AuditEventBuilder.entry_updated(entry_id, changed_fields))

    async def log_entry_deleted(self, entry_id: UUID) -> None:
        await self.log(AuditEventBuilder.entry_deleted(entry_id))

    async def log_budget_config_updated(
        self,
        monthly_income: float,
        percentages: dict[str, float],
        rollover_enabled: bool,
    ) -> None:
        event = AuditEventBuilder.budget_config_updated(
            monthly_income=monthly_income,
            percentages=percentages,
            rollover_enabled=rollover_enabled,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a capture and pass it through
    every subsequent step.
    """
    return uuid4()
