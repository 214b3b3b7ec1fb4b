"""
Retry scheduling for a single page fetch.

The scheduler polls a predicate until it reports that no further retry is
needed or the retry deadline passes. It never raises on timeout: the caller
inspects the last observed status code to decide what the page becomes.
"""

import time
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.config import settings
from models.base import RetryPolicyType
import logging

logger = logging.getLogger(__name__)


class RetryPolicy(BaseModel):
    """
    Wait interval progression and retry deadline.

    Attributes:
        kind: Linear (fixed interval) or exponential (doubling interval)
        linear_interval_seconds: Interval for the linear policy
        max_duration_seconds: Upper bound for the whole retry loop
        exponential_base_seconds: First interval of the exponential policy
    """

    kind: RetryPolicyType = RetryPolicyType.EXPONENTIAL
    linear_interval_seconds: Optional[float] = Field(None, ge=0)
    max_duration_seconds: float = Field(default_factory=lambda: settings.MAX_RETRY_DURATION, ge=0)
    exponential_base_seconds: float = Field(
        default_factory=lambda: settings.EXPONENTIAL_RETRY_BASE_SECONDS, gt=0
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_linear_interval(self):
        """Linear policy needs an interval, exponential must not have one"""
        if self.kind == RetryPolicyType.LINEAR and self.linear_interval_seconds is None:
            raise ValueError("linear_interval_seconds must be set, since retry policy is linear")
        if self.kind == RetryPolicyType.EXPONENTIAL and self.linear_interval_seconds is not None:
            raise ValueError("linear_interval_seconds must not be set, since retry policy is exponential")
        return self

    def interval(self, attempt: int) -> float:
        """
        Wait before retry number ``attempt + 1``.

        Args:
            attempt: Number of attempts already made minus one (0-indexed)
        """
        if self.kind == RetryPolicyType.LINEAR:
            return float(self.linear_interval_seconds)
        return self.exponential_base_seconds * (2 ** attempt)


class RetryScheduler:
    """
    Explicit poll-until loop with computed sleeps and a deadline.

    ``sleep`` and ``clock`` are injectable so tests can run without waiting.
    """

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.sleep = sleep
        self.clock = clock

    def await_until(
        self,
        predicate: Callable[[], bool],
        policy: RetryPolicy,
        initial_delay: float = 0.0
    ) -> bool:
        """
        Invoke ``predicate`` until it returns True or the retry deadline passes.

        Args:
            predicate: Performs one attempt, True when no further retry is needed
            policy: Interval progression and deadline
            initial_delay: Seconds to wait before the first attempt. Throttles
                page to page cadence and does not count against the deadline.

        Returns:
            True if the predicate succeeded, False on timeout
        """
        if initial_delay > 0:
            logger.debug(f"Waiting {initial_delay:.3f}s before fetching the next page")
            self.sleep(initial_delay)

        deadline = self.clock() + policy.max_duration_seconds
        attempt = 0

        while True:
            if predicate():
                return True

            delay = policy.interval(attempt)
            if self.clock() + delay > deadline:
                logger.warning(
                    f"Retries exhausted after {attempt + 1} attempts "
                    f"(max duration {policy.max_duration_seconds}s)"
                )
                return False

            logger.info(f"Attempt {attempt + 1} needs a retry. Retrying in {delay:.2f}s...")
            self.sleep(delay)
            attempt += 1
