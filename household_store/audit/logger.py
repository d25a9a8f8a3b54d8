"""
Audit Logger

DESIGN DECISION: Every lifecycle operation is logged.
This provides:
1. Traceability of data moved between partitions
2. Debugging capability for interrupted multi-step operations
3. A record of what maintenance deleted

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash an operation if logging fails)
- Optionally persists events to the store under audit_log/
"""

from typing import Optional

import structlog

from household_store.errors import StoreError
from household_store.models.audit import AuditEvent, AuditEventBuilder
from household_store.schema import paths
from household_store.store.interface import StoreClient


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
    2. The store (for persistence), when a store is given
    """

    def __init__(
        self,
        store: Optional[StoreClient] = None,
    ):
        """
        Initialize audit logger.

        Args:
            store: Store to persist events to.
                   If None, only logs locally.
        """
        self._store = store
        self._logger = structlog.get_logger("household_store.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to the store if available.

        Returns True if the store write succeeded (or no store configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._store:
            try:
                await self._store.write(
                    paths.audit_event(str(event.event_id)),
                    event.to_store_record(),
                )
            except StoreError as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    error_code=e.code,
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            error_code=error_code,
        )
        await self.log(event)
