"""
Error taxonomy for the agenda core and severity-aware error logging.
"""
from enum import Enum
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels used when logging."""
    LOW = "low"           # 404s, validation errors, lost races
    MEDIUM = "medium"     # notification failures, timeouts
    HIGH = "high"         # store failures, auth failures
    CRITICAL = "critical"


class AgendaError(Exception):
    """Base class for errors surfaced to callers of the agenda core."""

    status_code = 400
    severity = ErrorSeverity.LOW

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "detail": self.message}


class ValidationError(AgendaError):
    """Malformed input, rejected before any write."""

    status_code = 422


class NotFound(AgendaError):
    """Unknown appointment id, shop or confirmation token."""

    status_code = 404


class InvalidTransition(AgendaError):
    """Action not legal for the appointment's current status and actor."""

    status_code = 409

    def __init__(self, current, action, actor=None):
        self.current = current
        self.action = action
        self.actor = actor
        who = f" by {actor.value}" if actor is not None else ""
        super().__init__(
            f"Cannot {action.value}{who} an appointment that is {current.value}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(current_status=self.current.value, action=self.action.value)
        if self.actor is not None:
            data["actor"] = self.actor.value
        return data


class Conflict(AgendaError):
    """The row changed underneath us; the caller must re-fetch."""

    status_code = 409

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["hint"] = "already responded, please refresh"
        return data


class NotificationFailure(AgendaError):
    """A notification could not be delivered. Never rolls back a transition."""

    status_code = 502
    severity = ErrorSeverity.MEDIUM

    def __init__(self, channel, message: str):
        self.channel = channel
        super().__init__(f"{channel.value} notification failed: {message}")


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None,
              severity: Optional[ErrorSeverity] = None) -> None:
    """Log an error with its severity; agenda errors carry their own."""
    context = context or {}
    if severity is None:
        severity = getattr(error, "severity", ErrorSeverity.MEDIUM)

    log = logger.warning if severity == ErrorSeverity.LOW else logger.error
    log(
        "agenda_error",
        error_type=type(error).__name__,
        error=str(error)[:200],
        severity=severity.value,
        **context,
    )
