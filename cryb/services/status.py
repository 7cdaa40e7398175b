"""
Shared service status: busy flag + user-facing error message.

Every service the UI talks to mixes this in. A public operation:
1. refuses to start while another one is in flight
2. clears the previous error and raises the busy flag
3. always lowers the busy flag, success or not
4. turns any expected failure into `error_message` instead of raising
"""

from contextlib import asynccontextmanager
from typing import Optional

import pydantic

from cryb.services.storage.interface import (
    AuthenticationError,
    BackendError,
    ConflictError,
    NetworkError,
    NotFoundError,
    ValidationError,
)


class ServiceBusyError(Exception):
    """An operation was started while another one was still running."""
    pass


GENERIC_MESSAGES = {
    NetworkError: "Can't reach the server. Check your connection and try again.",
    NotFoundError: "We couldn't find what you were looking for.",
    ConflictError: "That already exists.",
    ValidationError: "Some of the values were rejected. Please check them and try again.",
    AuthenticationError: "Your session has expired. Please sign in again.",
}


def user_message(error: Exception, default: Optional[str] = None) -> str:
    """Pick a message suitable for showing to the user."""
    if isinstance(error, pydantic.ValidationError):
        first = error.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "value"
        return f"Please check the {field} field: {first.get('msg', 'invalid value')}."
    if isinstance(error, ServiceBusyError):
        return str(error)
    if isinstance(error, NetworkError):
        # Connectivity trumps operation-specific wording
        return GENERIC_MESSAGES[NetworkError]
    if default:
        return default
    for error_type, message in GENERIC_MESSAGES.items():
        if isinstance(error, error_type):
            return message
    return str(error) or "Something went wrong. Please try again."


# Failures a service converts into error_message. Anything else is a bug
# and propagates.
EXPECTED_ERRORS = (BackendError, ServiceBusyError, pydantic.ValidationError)


class ServiceStatus:
    """Mixin holding `is_loading` and `error_message`."""

    is_loading: bool = False
    error_message: Optional[str] = None

    def _init_status(self) -> None:
        self.is_loading = False
        self.error_message = None

    @asynccontextmanager
    async def _busy(self):
        if self.is_loading:
            raise ServiceBusyError("Another operation is still in progress.")
        self.is_loading = True
        self.error_message = None
        try:
            yield
        finally:
            self.is_loading = False

    def _fail(self, event: str, error: Exception, message: Optional[str] = None) -> None:
        """Log the failure and expose a user-facing message."""
        self.error_message = user_message(error, message)
        self._logger.warning(
            event,
            error=str(error),
            error_type=type(error).__name__,
            error_code=getattr(error, "code", None),
        )
