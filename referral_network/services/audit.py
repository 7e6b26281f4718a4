"""
Audit sink.

Narrow "record event with severity and metadata" contract used by the
network services to report detected cycles and commission failures.
"""

from typing import Any, Protocol

from loguru import logger

from referral_network.models.enums import AuditEventType, AuditSeverity


class AuditSink(Protocol):
    """Receiver for audit events."""

    async def record(
        self,
        event_type: AuditEventType,
        severity: AuditSeverity,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record one audit event."""
        ...


# loguru level per audit severity
_SEVERITY_LEVELS = {
    AuditSeverity.LOW: "DEBUG",
    AuditSeverity.INFO: "INFO",
    AuditSeverity.WARNING: "WARNING",
    AuditSeverity.ERROR: "ERROR",
    AuditSeverity.HIGH: "ERROR",
    AuditSeverity.CRITICAL: "CRITICAL",
}


class LoguruAuditSink:
    """Audit sink writing structured loguru records."""

    async def record(
        self,
        event_type: AuditEventType,
        severity: AuditSeverity,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Log audit event at the level matching its severity."""
        logger.log(
            _SEVERITY_LEVELS.get(severity, "INFO"),
            message,
            extra={
                "audit_event": event_type.value,
                "severity": severity.value,
                **(metadata or {}),
            },
        )


async def safe_record(
    sink: AuditSink,
    event_type: AuditEventType,
    severity: AuditSeverity,
    message: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    """
    Record an audit event without letting sink failures escape.

    An unavailable audit collaborator must not change the outcome of the
    operation being audited.
    """
    try:
        await sink.record(event_type, severity, message, metadata)
    except Exception as e:
        logger.error(
            "Audit sink failed",
            extra={
                "audit_event": event_type.value,
                "error": str(e),
                **(metadata or {}),
            },
        )
