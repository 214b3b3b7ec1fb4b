from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class CheckpointStatus(str, enum.Enum):
    """Pagination run status"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


class PageFormat(str, enum.Enum):
    """Response body formats"""
    JSON = "json"
    XML = "xml"
    TSV = "tsv"
    CSV = "csv"
    TEXT = "text"
    BLOB = "blob"


class PaginationType(str, enum.Enum):
    """How the url of the next page is computed"""
    NONE = "None"
    LINK_IN_RESPONSE_HEADER = "Link in response header"
    LINK_IN_RESPONSE_BODY = "Link in response body"
    TOKEN_IN_RESPONSE_BODY = "Token in response body"
    INCREMENT_AN_INDEX = "Increment an index"
    CUSTOM = "Custom"


class RetryPolicyType(str, enum.Enum):
    """Wait interval progression between retries"""
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class RetryDecision(str, enum.Enum):
    """Whether a fetch attempt should be repeated"""
    NO_RETRY = "no_retry"
    RETRY = "retry"


class AfterRetryAction(str, enum.Enum):
    """What happens to a page once retries are exhausted"""
    SUCCESS = "Success"
    FAIL = "Fail"
    SKIP = "Skip"
    SEND_TO_ERROR = "Send to error"


class HttpErrorHandlingStrategy(str, enum.Enum):
    """Strategy assigned to a status code by an error handling rule"""
    SUCCESS = "Success"
    FAIL = "Fail"
    SKIP = "Skip"
    SEND_TO_ERROR = "Send to error"
    RETRY_AND_FAIL = "Retry and fail"
    RETRY_AND_SKIP = "Retry and skip"
    RETRY_AND_SEND_TO_ERROR = "Retry and send to error"

    @property
    def should_retry(self) -> bool:
        return self.value.startswith("Retry and")

    @property
    def after_retry_action(self) -> AfterRetryAction:
        """Strip the "Retry and" prefix: RETRY_AND_SKIP -> SKIP"""
        name = self.name[len("RETRY_AND_"):] if self.should_retry else self.name
        return AfterRetryAction[name]


class ErrorHandling(str, enum.Enum):
    """What the host does with an invalid entry"""
    SKIP = "Skip on error"
    SEND_TO_ERROR = "Send to error"
    STOP = "Stop on error"


def enum_by_value(enum_class, value):
    """
    Look up an enum member by value or member name, case-insensitively.

    Returns None when nothing matches.
    """
    if isinstance(value, enum_class):
        return value
    text = str(value).strip().lower()
    for member in enum_class:
        if member.value.lower() == text or member.name.lower() == text:
            return member
    return None
