"""
Single-entry pages standing in for a response that yields no records.
"""

from core.exceptions import PageParseError
from ingestion.error_handling import ErrorClassifier
from ingestion.pages.base import (
    ERROR_BODY_FIELD,
    BasePage,
    InvalidEntry,
    PageEntry,
    error_handling_for,
)
from models.base import ErrorHandling


class _SingleEntryPage(BasePage):

    def __init__(self, response):
        super().__init__(response)
        self._returned = False

    def has_next(self) -> bool:
        return not self._returned

    def next(self) -> PageEntry:
        if not self.has_next():
            raise StopIteration
        self._returned = True
        return self._build_entry()

    def _build_entry(self) -> PageEntry:
        raise NotImplementedError


class HttpErrorPage(_SingleEntryPage):
    """
    Page for a response whose status code maps to "Skip" or "Send to error".

    The one entry carries the status code and body. Its disposition follows
    the after-retry action of the status code.
    """

    page_format = "http error"

    def __init__(self, response, classifier: ErrorClassifier):
        super().__init__(response)
        self.classifier = classifier

    def _build_entry(self) -> PageEntry:
        status_code = self.response.status_code
        # Binary bodies of error responses are usually text (an error message)
        body = self.response.body
        error = InvalidEntry(
            code=status_code,
            message=f"Request failed with '{status_code}' http status code. Body is '{body}'",
            partial_record={ERROR_BODY_FIELD: body},
        )
        return PageEntry.of_error(
            error,
            error_handling_for(self.classifier.after_retry_action(status_code))
        )


class MalformedPage(_SingleEntryPage):
    """Page for a body that could not be parsed at all"""

    def __init__(self, response, error: PageParseError, error_handling: ErrorHandling, page_format=None):
        super().__init__(response)
        self.error = error
        self.error_handling = error_handling
        self.page_format = page_format

    def _build_entry(self) -> PageEntry:
        body = self.response.body
        reason = self.error.message
        if self.error.original_exception is not None:
            reason += f": {self.error.original_exception}"
        error = InvalidEntry(
            code=0,
            message=f"Cannot convert page to records. Reason: '{reason}'",
            partial_record={ERROR_BODY_FIELD: body},
        )
        return PageEntry.of_error(error, self.error_handling)

    def get_primitive_by_path(self, path: str):
        return None
