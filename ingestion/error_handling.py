"""
HTTP status code classification.

Maps every status code of a fetch attempt to a retry decision and to the
action taken once retries are exhausted, using an ordered table of
``(regex, strategy)`` rules:

    2..:Success, 429:Retry and fail, 5..:Retry and skip, .*:Fail

The first rule whose regex fully matches the status code wins. Status codes
matching no rule are not retried and fail the fetch.
"""

import re
from typing import List, Optional, Pattern, Sequence, Tuple, Union

from core.exceptions import ConfigurationError
from models.base import (
    AfterRetryAction,
    HttpErrorHandlingStrategy,
    RetryDecision,
    enum_by_value,
)
import logging

logger = logging.getLogger(__name__)

# Status code recorded when the transport raised instead of returning a response
TRANSPORT_ERROR_CODE = -1

DEFAULT_HTTP_ERRORS_HANDLING = "2..:Success,.*:Fail"

PROPERTY_HTTP_ERRORS_HANDLING = "http_errors_handling"

RuleSpec = Union[str, Sequence[Tuple[str, Union[str, HttpErrorHandlingStrategy]]]]


class HttpErrorHandlingRule:
    """A compiled ``(regex, strategy)`` pair"""

    def __init__(self, pattern: Pattern, strategy: HttpErrorHandlingStrategy):
        self.pattern = pattern
        self.strategy = strategy

    def matches(self, status_code: int) -> bool:
        return self.pattern.fullmatch(str(status_code)) is not None

    def __eq__(self, other):
        if not isinstance(other, HttpErrorHandlingRule):
            return NotImplemented
        return self.pattern.pattern == other.pattern.pattern and self.strategy == other.strategy

    def __hash__(self):
        return hash((self.pattern.pattern, self.strategy))

    def __repr__(self):
        return f"HttpErrorHandlingRule({self.pattern.pattern!r}, {self.strategy.value!r})"


def parse_key_value_string(text: Optional[str]) -> List[Tuple[str, str]]:
    """
    Split ``"k1:v1,k2:v2"`` into ordered pairs.

    Raises:
        ValueError: If an entry has no value
    """
    pairs = []
    if not text:
        return pairs

    for mapping in text.split(","):
        columns = mapping.split(":", 1)
        if len(columns) < 2:
            raise ValueError(f"Missing value for key {columns[0]}")
        pairs.append((columns[0], columns[1]))
    return pairs


def compile_rules(spec: Optional[RuleSpec]) -> List[HttpErrorHandlingRule]:
    """
    Compile an error handling table.

    Args:
        spec: ``"regex:strategy,..."`` or a sequence of ``(regex, strategy)`` pairs.
            ``None`` selects the default table.

    Raises:
        ConfigurationError: On an invalid regex or an unknown strategy name
    """
    if spec is None:
        spec = DEFAULT_HTTP_ERRORS_HANDLING

    if isinstance(spec, str):
        try:
            pairs = parse_key_value_string(spec)
        except ValueError as e:
            raise ConfigurationError(str(e), property_name=PROPERTY_HTTP_ERRORS_HANDLING)
    else:
        pairs = list(spec)

    rules = []
    for regex, strategy_name in pairs:
        strategy = enum_by_value(HttpErrorHandlingStrategy, strategy_name)
        if strategy is None:
            raise ConfigurationError(
                f"Unsupported value for '{PROPERTY_HTTP_ERRORS_HANDLING}': '{strategy_name}'",
                property_name=PROPERTY_HTTP_ERRORS_HANDLING
            )
        try:
            pattern = re.compile(str(regex).strip())
        except re.error as e:
            raise ConfigurationError(
                f"Error handling regex '{regex}' is not valid. {e}",
                property_name=PROPERTY_HTTP_ERRORS_HANDLING,
                original_exception=e
            )
        rules.append(HttpErrorHandlingRule(pattern, strategy))
    return rules


class ErrorClassifier:
    """
    Classify status codes with an ordered rule table.

    Rules are compiled on construction, so a malformed regex is reported
    before the first page is fetched.
    """

    def __init__(self, rules: Optional[RuleSpec] = None):
        if rules and isinstance(rules, list) and isinstance(rules[0], HttpErrorHandlingRule):
            self.rules = list(rules)
        else:
            self.rules = compile_rules(rules)

    def get_strategy(self, status_code: int) -> HttpErrorHandlingStrategy:
        for rule in self.rules:
            if rule.matches(status_code):
                return rule.strategy

        logger.warning(
            f"No error handling strategy defined for HTTP status code '{status_code}'. "
            f"Please correct {PROPERTY_HTTP_ERRORS_HANDLING}."
        )
        return HttpErrorHandlingStrategy.FAIL

    def classify(self, status_code: int) -> Tuple[RetryDecision, AfterRetryAction]:
        """Return the retry decision and the after-retry action for a status code"""
        strategy = self.get_strategy(status_code)
        decision = RetryDecision.RETRY if strategy.should_retry else RetryDecision.NO_RETRY
        return decision, strategy.after_retry_action

    def should_retry(self, status_code: int) -> bool:
        return self.classify(status_code)[0] == RetryDecision.RETRY

    def after_retry_action(self, status_code: int) -> AfterRetryAction:
        return self.classify(status_code)[1]

    def skipping_actions(self) -> List[HttpErrorHandlingRule]:
        """Rules whose after-retry action drops or reroutes the page"""
        return [
            rule for rule in self.rules
            if rule.strategy.after_retry_action in (AfterRetryAction.SKIP, AfterRetryAction.SEND_TO_ERROR)
        ]
