"""
Audit Models for PULDAR

Every significant step of turning an utterance into a ledger entry is
logged for audit purposes. This provides:
1. Traceability from a ledger row back to the raw model output
2. Debugging information when parsing goes wrong
3. A record of budget configuration changes

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the capture pipeline has its own event type.
    """
    # Capture
    EXPENSE_RECEIVED = "expense_received"
    PARSE_CACHE_HIT = "parse_cache_hit"

    # Model invocation
    MODEL_COMPLETED = "model_completed"
    MODEL_FAILED = "model_failed"

    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FALLBACK_USED = "extraction_fallback_used"
    EXTRACTION_FAILED = "extraction_failed"

    # Categories
    CATEGORY_RESOLVED = "category_resolved"
    CATEGORY_ADDED = "category_added"
    CATEGORY_REJECTED = "category_rejected"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Persistence
    ENTRY_SAVED = "entry_saved"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"

    # Budget
    BUDGET_CONFIG_UPDATED = "budget_config_updated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'category', 'budget')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - all events of one capture share this
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> list[str]:
        """
        Flatten to a row of strings for tabular audit storage.

        Columns:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_received(text, correlation_id)
        event = AuditEventBuilder.entry_saved(entry_id, merchant, amount, correlation_id)
    """

    @staticmethod
    def expense_received(
        raw_input: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RECEIVED,
            entity_type="utterance",
            correlation_id=correlation_id,
            description="Expense text received",
            details={"length": len(raw_input)},
            is_user_action=True,
        )

    @staticmethod
    def parse_cache_hit(
        cache_key: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_CACHE_HIT,
            severity=AuditSeverity.DEBUG,
            entity_type="parse_cache",
            correlation_id=correlation_id,
            description="Extraction served from parse cache",
            details={"key_length": len(cache_key)},
        )

    @staticmethod
    def model_completed(
        model_name: str,
        response_length: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MODEL_COMPLETED,
            entity_type="model",
            correlation_id=correlation_id,
            description=f"Model {model_name} returned {response_length} characters",
            details={
                "model": model_name,
                "response_length": response_length,
            },
        )

    @staticmethod
    def model_failed(
        model_name: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MODEL_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="model",
            correlation_id=correlation_id,
            description=f"Model {model_name} call failed",
            error_message=error_message,
            details={"model": model_name},
        )

    @staticmethod
    def extraction_completed(
        merchant: str,
        category: str,
        used_fallback: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.EXTRACTION_FALLBACK_USED
            if used_fallback
            else AuditEventType.EXTRACTION_COMPLETED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING if used_fallback else AuditSeverity.INFO,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=(
                "Extraction recovered by regex fallback"
                if used_fallback
                else "Extraction decoded from strict JSON"
            ),
            details={
                "merchant": merchant,
                "category": category,
            },
        )

    @staticmethod
    def extraction_failed(
        raw_preview: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            correlation_id=correlation_id,
            description="No structured data found in model output",
            error_message=error_message,
            details={"raw_preview": raw_preview},
        )

    @staticmethod
    def category_resolved(
        raw_label: str,
        storage_key: str,
        bucket: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_RESOLVED,
            entity_type="category",
            correlation_id=correlation_id,
            description=f"Category '{raw_label}' resolved to '{storage_key}'",
            details={
                "raw_label": raw_label,
                "storage_key": storage_key,
                "bucket": bucket,
            },
        )

    @staticmethod
    def category_added(
        category_id: UUID,
        name: str,
        bucket: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=category_id,
            description=f"Custom category added: {name}",
            details={"name": name, "bucket": bucket},
            is_user_action=True,
        )

    @staticmethod
    def category_rejected(
        name: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            description="Custom category rejected (empty or already exists)",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        entry_id: UUID,
        issues: list[dict],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def entry_saved(
        entry_id: UUID,
        merchant: str,
        amount: float,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry saved: {merchant} {amount:,.2f}",
            details={
                "merchant": merchant,
                "amount": amount,
            },
        )

    @staticmethod
    def entry_updated(
        entry_id: UUID,
        changed_fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            entity_type="entry",
            entity_id=entry_id,
            description=f"Entry updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def entry_deleted(
        entry_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type="entry",
            entity_id=entry_id,
            description="Entry deleted",
            is_user_action=True,
        )

    @staticmethod
    def budget_config_updated(
        monthly_income: float,
        percentages: dict[str, float],
        rollover_enabled: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CONFIG_UPDATED,
            entity_type="budget",
            description="Budget configuration updated",
            details={
                "monthly_income": monthly_income,
                "percentages": percentages,
                "rollover_enabled": rollover_enabled,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
