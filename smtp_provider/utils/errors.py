"""Centralized error handling module."""

from enum import Enum
from functools import wraps
from typing import Any, Dict, Optional

from smtp_provider.utils.logging import get_logger

_logger = None


def _get_logger():
    """Get logger with lazy initialisation."""
    global _logger
    if _logger is None:
        _logger = get_logger(__name__)
    return _logger


## Error Categories


class ErrorCategory(Enum):
    """Categories of errors for better handling."""

    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    COMPOSITION = "composition"
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    UNKNOWN = "unknown"


## Custom Exceptions


class ProviderError(Exception):
    """Base exception for all SMTP provider errors."""

    category = ErrorCategory.UNKNOWN
    user_message = "An error occurred"

    def __init__(
        self, message: str | None = None, details: Dict[str, Any] | None = None
    ):
        """Initialise ProviderError with optional message and details."""
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error details to a dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


## Configuration Errors


class ConfigurationError(ProviderError):
    """Base exception for configuration-related errors."""

    category = ErrorCategory.CONFIGURATION
    user_message = "A configuration error occurred"


class MissingConfigError(ConfigurationError):
    """Exception for missing configuration settings."""

    user_message = "Missing configuration settings"


class InvalidConfigError(ConfigurationError):
    """Exception for invalid configuration settings."""

    user_message = "Invalid configuration settings"


## Validation Errors


class MessageValidationError(ProviderError):
    """Exception for message requests that can never be sent."""

    category = ErrorCategory.VALIDATION
    user_message = "Invalid message"


## Composition Errors


class CompositionError(ProviderError):
    """Exception for failures while serializing the message document."""

    category = ErrorCategory.COMPOSITION
    user_message = "Failed to compose message"


## Delivery Errors


class DeliveryError(ProviderError):
    """Exception for SMTP transaction failures.

    ``phase`` names the step of the transaction that failed and
    ``smtp_code`` carries the server reply code when there was one.
    """

    category = ErrorCategory.NETWORK
    user_message = "Failed to send message"

    def __init__(
        self,
        message: str | None = None,
        phase: str = "",
        smtp_code: Optional[int] = None,
        details: Dict[str, Any] | None = None,
    ):
        self.phase = phase
        self.smtp_code = smtp_code
        details = dict(details or {})
        details.setdefault("phase", phase)
        if smtp_code is not None:
            details.setdefault("smtp_code", smtp_code)
        super().__init__(message, details)


class AuthenticationError(DeliveryError):
    """Exception for rejected or impossible SMTP authentication."""

    category = ErrorCategory.AUTHENTICATION
    user_message = "SMTP authentication failed"

    def __init__(
        self,
        message: str | None = None,
        smtp_code: Optional[int] = None,
        details: Dict[str, Any] | None = None,
    ):
        super().__init__(
            message, phase="authenticate", smtp_code=smtp_code, details=details
        )


## Error Handler


class ErrorHandler:
    """Centralized error handling and logging."""

    @staticmethod
    def handle(
        error: Exception, context: str = "", log_traceback: bool = True
    ) -> Dict[str, Any]:
        """Handle errors with logging and user-friendly message."""
        if isinstance(error, ProviderError):
            _get_logger().error(f"{context}: {error.message}", extra=error.details)
            if log_traceback:
                _get_logger().exception(error)
            return error.to_dict()
        else:
            _get_logger().error(f"{context}: {str(error)}")
            if log_traceback:
                _get_logger().exception(error)
            return {
                "error_type": "UnknownError",
                "category": ErrorCategory.UNKNOWN.value,
                "message": str(error),
                "details": {"context": context},
            }

    @staticmethod
    def wrap(func):
        """Decorator turning unexpected exceptions into ProviderError."""

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)

            except ProviderError:
                raise

            except Exception as e:
                _get_logger().exception(f"Unexpected error in {func.__name__}")
                raise ProviderError(
                    message=f"Unexpected error: {str(e)}",
                    details={"function": func.__name__},
                ) from e

        return wrapper


## Utility Functions


def format_error_message(error: Exception) -> str:
    """Format an error message for display."""
    if isinstance(error, DeliveryError) and error.phase:
        return f"{error.phase} failed: {error.message}"
    if isinstance(error, ProviderError):
        return error.message
    else:
        return "An unexpected error occurred - check logs for details."
