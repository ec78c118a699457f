"""
iFeedIt Custom Exceptions
=========================

Every error raised by the pipeline carries an error code, structured context
for the log and a message that can be shown to a user.

Errors fall in two groups. Fatal ones (FeedFetchError, MalformedFeedError)
end an ingestion run. Recoverable ones (ImageUnavailableError,
DateUnparsableError) are absorbed where they are detected and only degrade a
single field of a single item.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration (C0xx)
    CONFIG_INVALID = "C001"

    # Storage (D0xx)
    DATABASE_CONNECTION = "D001"
    DATABASE_ERROR = "D006"

    # Feed retrieval and parsing (F0xx)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_NOT_FOUND = "F006"

    # Item images (I0xx)
    IMAGE_UNAVAILABLE = "I001"

    # Field validation (V0xx)
    VALIDATION_INVALID_FORMAT = "V002"

    # Refresh lifecycle (R0xx)
    RESOURCE_BUSY = "R003"

    # Host system (S0xx)
    SYSTEM_PERMISSION_DENIED = "S002"
    SYSTEM_MEMORY_ERROR = "S004"


class IFeedItError(Exception):
    """Base exception for all iFeedIt errors.

    Subclasses set the class-level defaults; any of them can still be
    overridden per instance through the constructor.
    """

    default_code: Optional[ErrorCode] = None
    # May reference {message}
    default_user_message: Optional[str] = None
    default_recoverable = False

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
    ):
        """Initialize iFeedIt error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code, class default if omitted
            context: Additional context information
            user_message: Message safe to show to a user
            recoverable: Whether processing can continue past this error
        """
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})

        if user_message is None and self.default_user_message is not None:
            user_message = self.default_user_message.format(message=message)
        self.user_message = user_message or message

        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def _add_context(self, **fields: Any) -> None:
        self.context.update({key: value for key, value in fields.items() if value is not None})

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.error_code.value}] {message}" if self.error_code else message


class ConfigurationError(IFeedItError):
    """Settings could not be loaded or failed validation."""

    default_code = ErrorCode.CONFIG_INVALID
    default_user_message = "Configuration error: {message}"

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(config_key=config_key)


class DatabaseError(IFeedItError):
    """A statement against the item store failed."""

    default_code = ErrorCode.DATABASE_CONNECTION
    default_user_message = "Database operation failed"
    default_recoverable = True

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(query=query)


class FeedError(IFeedItError):
    """Base for errors that end an ingestion run."""

    default_code = ErrorCode.FEED_NETWORK_ERROR
    default_user_message = "Feed processing failed: {message}"

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(feed_url=feed_url)


class FeedFetchError(FeedError):
    """Feed URL unreachable, timed out, or the stream failed mid-read."""


class MalformedFeedError(FeedError):
    """Feed document is not RSS shaped or is not well-formed XML."""

    default_code = ErrorCode.FEED_PARSE_ERROR


class ImageUnavailableError(IFeedItError):
    """An item image could not be downloaded."""

    default_code = ErrorCode.IMAGE_UNAVAILABLE
    default_user_message = "Image not available"
    default_recoverable = True

    def __init__(self, message: str, image_url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(image_url=image_url)


class DateUnparsableError(IFeedItError):
    """A publication date does not match the RSS date format."""

    default_code = ErrorCode.VALIDATION_INVALID_FORMAT
    default_user_message = "Invalid publication date"
    default_recoverable = True

    def __init__(self, message: str, value: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(value=value)


class RefreshInProgressError(IFeedItError):
    """A refresh was requested while another run is still in flight."""

    default_code = ErrorCode.RESOURCE_BUSY
    default_user_message = "Content is already being refreshed"
    default_recoverable = True

    def __init__(self, message: str = "A feed refresh is already running", **kwargs):
        super().__init__(message, **kwargs)


# Exception handling utilities


def _wrap_builtin(exception: Exception, operation: str, context: Dict[str, Any]) -> IFeedItError:
    detail = f"during {operation}: {exception}"

    if isinstance(exception, (ConnectionError, TimeoutError)):
        return FeedFetchError(
            f"Network error {detail}", context=context, user_message="Network connection failed"
        )
    if isinstance(exception, PermissionError):
        return IFeedItError(
            f"Permission denied {detail}",
            error_code=ErrorCode.SYSTEM_PERMISSION_DENIED,
            context=context,
            user_message="Access denied",
        )
    if isinstance(exception, MemoryError):
        return IFeedItError(
            f"Memory exhausted {detail}",
            error_code=ErrorCode.SYSTEM_MEMORY_ERROR,
            context=context,
            user_message="System resources exhausted",
            recoverable=True,
        )
    return IFeedItError(
        f"Unexpected error {detail}",
        context=context,
        user_message="An unexpected error occurred",
        recoverable=True,
    )


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> IFeedItError:
    """Log an exception and return it as an iFeedIt error.

    Errors that are already IFeedItError instances are logged and returned
    unchanged; anything else is wrapped with the operation name and the
    original exception type added to its context.
    """
    if isinstance(exception, IFeedItError):
        error = exception
    else:
        context = {
            **(context or {}),
            "operation": operation,
            "original_exception_type": type(exception).__name__,
        }
        error = _wrap_builtin(exception, operation, context)

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, IFeedItError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."
