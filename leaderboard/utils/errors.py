"""
Custom error classes for the leaderboard service.

Provides structured error handling with error codes,
context information, and proper exception chaining.
"""

from typing import Optional, Dict, Any
from dataclasses import dataclass


@dataclass
class ErrorContext:
    """Error context information."""
    service: str
    operation: str
    correlation_id: Optional[str] = None
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}


class LeaderboardError(Exception):
    """Base exception for leaderboard errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        result = {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

        if self.context:
            result["context"] = {
                "service": self.context.service,
                "operation": self.context.operation,
                "correlation_id": self.context.correlation_id,
                "metadata": self.context.metadata,
            }

        return result


class StoreError(LeaderboardError):
    """Error raised when the ranked store cannot answer a query or refresh."""

    def __init__(
        self,
        message: str,
        retryable: bool,
        operation: Optional[str] = None,
        error_code: str = "STORE_ERROR",
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            context=context,
            details=details or {}
        )
        self.retryable = retryable
        self.operation = operation

        self.details["retryable"] = retryable
        if operation:
            self.details["operation"] = operation


class TransientStoreError(StoreError):
    """Network, timeout or pool failure against the ranked store."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            retryable=True,
            operation=operation,
            error_code="STORE_UNAVAILABLE",
            context=context,
            details=details
        )


class PermanentStoreError(StoreError):
    """Malformed query or shape rejected by the ranked store."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            retryable=False,
            operation=operation,
            error_code="STORE_QUERY_INVALID",
            context=context,
            details=details
        )


class CacheUnavailable(LeaderboardError):
    """Cache backend could not be reached. Never surfaced past the cache layer."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="CACHE_UNAVAILABLE",
            context=context,
            details=details or {}
        )
        self.key = key

        if key:
            self.details["key"] = key


class BroadcastSendFailure(LeaderboardError):
    """Error raised when a subscriber transport rejects a push."""

    def __init__(
        self,
        message: str,
        subscriber_id: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="BROADCAST_SEND_FAILURE",
            context=context,
            details=details or {}
        )
        self.subscriber_id = subscriber_id

        if subscriber_id:
            self.details["subscriber_id"] = subscriber_id


class ServiceError(LeaderboardError):
    """Error surfaced by the leaderboard service to its callers."""

    def __init__(
        self,
        message: str,
        client_error: bool = False,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="INVALID_REQUEST" if client_error else "SERVICE_UNAVAILABLE",
            context=context,
            details=details or {}
        )
        self.client_error = client_error


class ConfigurationError(LeaderboardError):
    """Error raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            context=context,
            details=details or {}
        )
        self.config_key = config_key
        self.config_value = config_value

        if config_key:
            self.details["config_key"] = config_key
        if config_value is not None:
            self.details["config_value"] = str(config_value)


def create_error_context(
    service: str,
    operation: str,
    correlation_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> ErrorContext:
    """Create error context."""
    return ErrorContext(
        service=service,
        operation=operation,
        correlation_id=correlation_id,
        metadata=metadata or {}
    )
