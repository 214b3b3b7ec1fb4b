"""
Page contract and page entries.

A page is one HTTP response interpreted as a forward-only sequence of
entries. Each entry is either a converted record or an ``InvalidEntry``
describing why the element could not be converted. Conversion problems never
escape a page as exceptions.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from core.exceptions import PageParseError, PaginationException
from ingestion.transport import HttpResponse
from models.base import AfterRetryAction, ErrorHandling

ERROR_BODY_FIELD = "body"


class InvalidEntry(BaseModel):
    """
    An element that could not be turned into a valid record.

    Attributes:
        code: 0 for conversion errors, 1 for missing required fields,
            the HTTP status code for error pages
        message: Human-readable reason
        partial_record: Whatever could be recovered (the raw body for
            conversion errors)
    """

    code: int
    message: str
    partial_record: Optional[Dict[str, Any]] = None

    class Config:
        frozen = True


class PageEntry(BaseModel):
    """Either ``record`` or ``error`` is set, never both"""

    record: Optional[Dict[str, Any]] = None
    error: Optional[InvalidEntry] = None
    error_handling: Optional[ErrorHandling] = None

    class Config:
        frozen = True

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def of_record(cls, record: Dict[str, Any]) -> "PageEntry":
        return cls(record=record)

    @classmethod
    def of_error(cls, error: InvalidEntry, error_handling: ErrorHandling) -> "PageEntry":
        return cls(error=error, error_handling=error_handling)


def error_handling_for(action: AfterRetryAction) -> ErrorHandling:
    """Record level disposition of a page whose status code maps to ``action``"""
    if action == AfterRetryAction.SKIP:
        return ErrorHandling.SKIP
    if action == AfterRetryAction.SEND_TO_ERROR:
        return ErrorHandling.SEND_TO_ERROR
    return ErrorHandling.STOP


def _reason(error: Exception) -> str:
    message = error.message if isinstance(error, PaginationException) else str(error)
    return f"{type(error).__name__}: {message}"


def build_string_error(body: str, error: Exception) -> InvalidEntry:
    return InvalidEntry(
        code=0,
        message=f"Cannot convert line '{body}' to a record. Reason: '{_reason(error)}'",
        partial_record={ERROR_BODY_FIELD: body},
    )


def build_bytes_error(body: bytes, error: Exception) -> InvalidEntry:
    return InvalidEntry(
        code=0,
        message=f"Cannot convert bytes to a record. Reason: '{_reason(error)}'",
        partial_record={ERROR_BODY_FIELD: body},
    )


class BasePage:
    """
    Base class for all page parsers.

    Subclasses implement ``has_next`` and ``next``. Pages are also Python
    iterators, so ``for entry in page`` drains them.
    """

    page_format = None

    def __init__(self, response: HttpResponse):
        self.response = response

    def has_next(self) -> bool:
        raise NotImplementedError

    def next(self) -> PageEntry:
        raise NotImplementedError

    def get_primitive_by_path(self, path: str) -> Optional[str]:
        """
        Look up a primitive value in the page body.

        Returns None when the path resolves to nothing.

        Raises:
            PageParseError: If the page format does not support path lookups
        """
        raise PageParseError(
            f"Page format '{self.page_format}' does not support searching by path",
            context={"page_format": self.page_format, "path": path}
        )

    def __iter__(self):
        return self

    def __next__(self) -> PageEntry:
        if not self.has_next():
            raise StopIteration
        return self.next()

    def close(self):
        self.response.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
