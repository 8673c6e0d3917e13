"""
Entitlement Audit Logger - log every playback denial.

Provides:
- AccessDenialEvent: Structured event for a denied token request
- EntitlementAuditLogger: Writes events to the dedicated audit logger

Events go to the "entitlements.audit" logger as one structured record each,
so log shipping can route them separately from application logs.
"""

import logging
import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Dedicated audit logger for structured logging
audit_logger = logging.getLogger("entitlements.audit")


@dataclass
class AccessDenialEvent:
    """Structured event for a denied media token request."""

    reason_code: str
    user_id: Optional[str] = None
    lesson_id: Optional[str] = None
    module_id: Optional[str] = None
    user_tier: Optional[str] = None
    required_tier: Optional[str] = None
    reason: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EntitlementAuditLogger:
    """
    Audit sink for access denials.

    Writing an audit record must never turn a denial into a server error,
    so failures are logged and dropped.
    """

    def __init__(self, sink: Optional[logging.Logger] = None):
        self._sink = sink or audit_logger

    def log_denial(self, event: AccessDenialEvent) -> None:
        try:
            self._sink.info(
                "access_denied",
                extra={
                    "event_type": "access_denied",
                    "audit_data": event.to_dict(),
                },
            )
        except Exception:
            logger.warning(
                "entitlement_audit.write_failed",
                extra={"event_id": event.event_id},
                exc_info=True,
            )


_audit_logger: Optional[EntitlementAuditLogger] = None


def get_audit_logger() -> EntitlementAuditLogger:
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = EntitlementAuditLogger()
    return _audit_logger
