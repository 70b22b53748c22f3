"""
FeedHook Custom Exceptions
=========================

Custom exception hierarchy for FeedHook with error codes, context
information, and user-friendly error messages.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"
    CONFIG_PARSE_ERROR = "C003"
    CONFIG_EMPTY_LIST = "C004"

    # Dedup store errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_READ = "D003"
    DATABASE_WRITE = "D004"

    # Feed errors (F001-F099)
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_INIT_FAILED = "F005"

    # Delivery errors (L001-L099)
    DELIVERY_FAILED = "L001"
    DELIVERY_REJECTED = "L002"
    DELIVERY_NETWORK_ERROR = "L003"

    # Health check errors (H001-H099)
    HEALTH_CHECK_FAILED = "H001"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"


class FeedHookError(Exception):
    """Base exception for all FeedHook errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize FeedHook error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(FeedHookError):
    """Configuration-related errors. Always fatal at startup."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        """Initialize configuration error.

        Args:
            message: Error message
            config_key: Configuration key that caused the error
            **kwargs: Additional arguments for FeedHookError
        """
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.get("user_message", f"Configuration error: {message}"),
            **{
                k: v
                for k, v in kwargs.items()
                if k not in ["context", "error_code", "user_message"]
            },
        )


class DatabaseError(FeedHookError):
    """Dedup store read/write errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize database error.

        Args:
            message: Error message
            query: SQL query that caused the error
            **kwargs: Additional arguments for FeedHookError
        """
        context = kwargs.get("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_CONNECTION),
            context=context,
            user_message=kwargs.get("user_message", "Dedup store operation failed"),
            recoverable=kwargs.get("recoverable", True),
            **{
                k: v
                for k, v in kwargs.items()
                if k not in ["context", "error_code", "user_message", "recoverable"]
            },
        )


class FeedError(FeedHookError):
    """Feed fetching and parsing errors."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        """Initialize feed error.

        Args:
            message: Error message
            feed_url: Feed URL that caused the error
            **kwargs: Additional arguments for FeedHookError
        """
        context = kwargs.get("context", {})
        if feed_url:
            context["feed_url"] = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Feed processing failed: {message}"
            ),
            recoverable=kwargs.get("recoverable", True),
            **{
                k: v
                for k, v in kwargs.items()
                if k not in ["context", "error_code", "user_message", "recoverable"]
            },
        )


class FeedFetchError(FeedError):
    """Feed could not be fetched or parsed after exhausting retries."""

    pass


class FeedInitError(FeedError):
    """Initial fetch of a feed failed; the feed is skipped for the process lifetime."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_INIT_FAILED)
        kwargs.setdefault("recoverable", False)
        super().__init__(message, feed_url=feed_url, **kwargs)


class DeliveryError(FeedHookError):
    """Webhook delivery errors."""

    def __init__(
        self,
        message: str,
        webhook_url: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs,
    ):
        """Initialize delivery error.

        Args:
            message: Error message
            webhook_url: Webhook the payload was posted to
            status: HTTP status returned by the webhook, if any
            **kwargs: Additional arguments for FeedHookError
        """
        context = kwargs.get("context", {})
        if webhook_url:
            context["webhook_url"] = webhook_url
        if status is not None:
            context["status"] = status

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DELIVERY_FAILED),
            context=context,
            user_message=kwargs.get("user_message", "Webhook delivery failed"),
            recoverable=kwargs.get("recoverable", True),
            **{
                k: v
                for k, v in kwargs.items()
                if k not in ["context", "error_code", "user_message", "recoverable"]
            },
        )


class HealthCheckError(FeedHookError):
    """Heartbeat call failed after its retry budget."""

    def __init__(self, message: str, endpoint: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if endpoint:
            context["endpoint"] = endpoint

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.HEALTH_CHECK_FAILED),
            context=context,
            user_message=kwargs.get("user_message", "Health check call failed"),
            recoverable=kwargs.get("recoverable", True),
        )


class ValidationError(FeedHookError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        """Initialize validation error.

        Args:
            message: Error message
            field_name: Field name that failed validation
            **kwargs: Additional arguments for FeedHookError
        """
        context = kwargs.get("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Invalid {field_name or 'input'}: {message}"
            ),
            recoverable=kwargs.get("recoverable", False),
            **{
                k: v
                for k, v in kwargs.items()
                if k not in ["context", "error_code", "user_message", "recoverable"]
            },
        )


def is_retryable_error(exception: FeedHookError) -> bool:
    """Check if an error is worth retrying on a later poll.

    Args:
        exception: FeedHook exception to check

    Returns:
        True if the error is potentially retryable
    """
    if not exception.recoverable:
        return False

    retryable_codes = {
        ErrorCode.FEED_NETWORK_ERROR,
        ErrorCode.FEED_FETCH_TIMEOUT,
        ErrorCode.FEED_PARSE_ERROR,
        ErrorCode.DELIVERY_FAILED,
        ErrorCode.DELIVERY_NETWORK_ERROR,
        ErrorCode.DATABASE_CONNECTION,
        ErrorCode.DATABASE_READ,
        ErrorCode.DATABASE_WRITE,
    }

    return exception.error_code in retryable_codes
