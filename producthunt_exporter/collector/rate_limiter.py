"""Rate-limit tracking for Product Hunt API requests."""

import logging
from typing import Any, Mapping, Optional

from producthunt_exporter.models.dtos import RateLimitSnapshot

logger = logging.getLogger(__name__)

LIMIT_HEADER = "x-rate-limit-limit"
REMAINING_HEADER = "x-rate-limit-remaining"
RESET_HEADER = "x-rate-limit-reset"
RATE_LIMIT_HEADERS = (LIMIT_HEADER, REMAINING_HEADER, RESET_HEADER)

# Product Hunt's published complexity budget per 15 minute window
DEFAULT_LIMIT = 6250
# Wait used when the budget is nearly exhausted and no reset time is known
EXHAUSTED_WAIT_MS = 900_000


def parse_int_header(headers: Mapping[str, Any], name: str) -> Optional[int]:
    """Read an integer header case-insensitively. Returns None if absent or unparsable."""
    value = None
    for key, candidate in headers.items():
        if key.lower() == name:
            value = candidate
            break
    if value is None:
        return None
    try:
        return int(float(value))
    except (ValueError, TypeError):
        logger.warning(f"Failed to parse {name} header: {value!r}")
        return None


class RateLimitTracker:
    """
    Courtesy throttle driven by X-Rate-Limit-* response headers.

    Header values are trusted as-is; a corrupt value only degrades the wait
    calculation. The tracker never blocks a request by itself, it only tells
    the caller how long to pause between pages.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT, remaining: Optional[int] = None, reset_seconds: int = 0):
        self.limit = limit
        self.remaining = limit if remaining is None else remaining
        self.reset_seconds = reset_seconds

    def update(self, headers: Mapping[str, Any]) -> None:
        """
        Overwrite whichever rate-limit values are present in ``headers``.

        Args:
            headers: Response headers (any mapping; keys matched case-insensitively)
        """
        limit = parse_int_header(headers, LIMIT_HEADER)
        if limit is not None:
            self.limit = limit

        remaining = parse_int_header(headers, REMAINING_HEADER)
        if remaining is not None:
            self.remaining = remaining

        reset = parse_int_header(headers, RESET_HEADER)
        if reset is not None:
            self.reset_seconds = reset

        logger.debug(
            f"Rate limit status: {self.remaining}/{self.limit} remaining, reset in {self.reset_seconds}s"
        )

    def remaining_percentage(self) -> float:
        if self.limit <= 0:
            return 0.0
        return self.remaining / self.limit * 100

    def wait_policy_ms(self) -> int:
        """
        Milliseconds to pause before the next page request.

        Returns:
            reset time (or 15 minutes) at <=5% budget, 5s at <=10%, 2s at <=20%, else 150ms
        """
        percentage = self.remaining_percentage()
        if percentage <= 5:
            return self.reset_seconds * 1000 if self.reset_seconds > 0 else EXHAUSTED_WAIT_MS
        if percentage <= 10:
            return 5000
        if percentage <= 20:
            return 2000
        return 150

    def snapshot(self) -> RateLimitSnapshot:
        return RateLimitSnapshot(limit=self.limit, remaining=self.remaining, reset_seconds=self.reset_seconds)
