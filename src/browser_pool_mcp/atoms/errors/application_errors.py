"""
Custom exception hierarchy for the application.
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """Base class for all application-specific exceptions."""

    def __init__(self, error_code: str, user_friendly_message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize a new BaseApplicationError.

        Args:
            error_code: A unique code identifying the error.
            user_friendly_message: A message suitable for displaying to end users.
            details: Additional details about the error for debugging purposes.
        """
        super().__init__(user_friendly_message)
        self.error_code = error_code
        self.user_friendly_message = user_friendly_message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception to a dictionary for serialization."""
        return {
            "error_code": self.error_code,
            "user_friendly_message": self.user_friendly_message,
            "details": self.details,
        }


class ConfigurationError(BaseApplicationError):
    """Raised when settings are missing or invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("configuration_error", message, details)


class PoolError(BaseApplicationError):
    """Base class for errors raised by the worker pool."""

    error_code = "pool_error"

    def __init__(self, message: str, port: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if port is not None:
            details["port"] = port
        super().__init__(type(self).error_code, message, details)
        self.port = port


class PortExhaustedError(PoolError):
    """Raised when no free port could be found in the configured range."""

    error_code = "port_exhausted"


class SpawnFailureError(PoolError):
    """Raised when a worker process could not be launched."""

    error_code = "spawn_failure"


class StartupTimeoutError(PoolError):
    """Raised when a worker never answered its health probe in time."""

    error_code = "startup_timeout"


class ConnectionFailureError(PoolError):
    """Raised when the call channel handshake with a worker fails."""

    error_code = "connection_failure"


class ProxyCallError(PoolError):
    """Raised when a forwarded operation fails or the worker reports an error."""

    error_code = "proxy_call_error"


class UnexpectedExitError(PoolError):
    """Describes a worker process that terminated outside a managed kill."""

    error_code = "unexpected_exit"


class InvalidStateTransition(PoolError):
    """Raised when a lifecycle event is not valid for the worker's current state."""

    error_code = "invalid_state_transition"
