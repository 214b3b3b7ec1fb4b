"""
Custom exceptions for the pagination engine with structured error context.

This module provides the exception hierarchy used while fetching, classifying
and parsing paginated HTTP resources. Each exception includes context
information for debugging and monitoring.

Exception Hierarchy:
    PaginationException (base)
    ├── ConfigurationError
    │   └── PaginationConflictError
    ├── FetchError
    │   ├── TransportError
    │   └── HttpFetchError
    ├── PageParseError
    ├── RecordConversionError
    ├── CheckpointError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class PaginationException(Exception):
    """
    Base exception for all pagination-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (url, status code, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(PaginationException):
    """
    Mixin for errors that are classified and possibly retried.

    Use this for transient errors like:
    - Connection refused
    - TLS handshake failures
    - Read timeouts
    """
    pass


class NonRetryableError(PaginationException):
    """
    Mixin for errors that abort the whole fetch.

    Use this for permanent errors like:
    - A status code whose after-retry action is "Fail"
    - Invalid configuration
    """
    pass


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(NonRetryableError):
    """
    Exception raised when a source configuration property is invalid.

    Context should include:
        - property_name: Name of the offending property
    """

    def __init__(
        self,
        message: str,
        property_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, context, original_exception)
        self.property_name = property_name
        if property_name:
            self.context["property_name"] = property_name


class PaginationConflictError(ConfigurationError):
    """
    Raised when "Skip" or "Send to error" handling is configured for a
    pagination type that needs every page body to find the next page.

    Context should include:
        - pagination_type: The configured pagination type
        - status_code: The status code whose handling conflicts (if known)
    """
    pass


# ============================================================================
# Fetch Errors
# ============================================================================

class FetchError(PaginationException):
    """Base exception for page fetch failures."""
    pass


class TransportError(RetryableError, FetchError):
    """
    Transport-level failure (no HTTP response at all).

    The pagination iterator never lets this escape: it is turned into the
    sentinel status code and classified like any other code.
    """
    pass


class HttpFetchError(NonRetryableError, FetchError):
    """
    Exception raised when the final status code of a page maps to "Fail".

    Context should include:
        - url: The page url
        - status_code: Final HTTP status code
        - response_body: Response body (truncated if large)
    """
    pass


# ============================================================================
# Parsing Errors
# ============================================================================

class PageParseError(PaginationException):
    """
    Exception raised when a page body cannot be parsed at all.

    Context should include:
        - page_format: Format of the page (json, xml, ...)
        - url: The page url (if known)
    """
    pass


class RecordConversionError(PaginationException):
    """
    Exception raised when a single record cannot be converted to the output schema.

    Context should include:
        - field_name: Field that failed conversion (if applicable)
        - field_value: Value that failed conversion (if applicable)
    """
    pass


# ============================================================================
# Checkpoint Errors
# ============================================================================

class CheckpointError(PaginationException):
    """
    Exception raised when checkpoint state cannot be serialized, restored or stored.

    Context should include:
        - source_name: Name of the source (if applicable)
        - operation: Operation that failed (serialize, deserialize, read, write)
    """
    pass
