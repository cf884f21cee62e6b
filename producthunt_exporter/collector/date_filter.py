"""Date window derivation and per-record filtering."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional

from dateutil.parser import isoparse

from producthunt_exporter.exceptions import InvalidInputError
from producthunt_exporter.models.dtos import Post

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp from the API into an aware UTC datetime.

    Naive values are taken to be UTC. Returns None when the value is missing
    or cannot be parsed.
    """
    if not value:
        return None
    try:
        parsed = isoparse(value)
    except (ValueError, TypeError, OverflowError):
        logger.debug(f"Unparsable timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class DateWindow:
    """An inclusive [start, end] UTC interval covering one calendar day."""

    start: datetime
    end: datetime

    @classmethod
    def for_date(cls, date_str: Optional[str]) -> "DateWindow":
        """
        Build the window for a YYYY-MM-DD string.

        Raises:
            InvalidInputError: If the date is missing or malformed.
        """
        value = (date_str or "").strip()
        if not value:
            raise InvalidInputError("No date was specified")
        message = f"Invalid date format: {date_str}. Expected YYYY-MM-DD"
        if not DATE_PATTERN.fullmatch(value):
            raise InvalidInputError(message)
        try:
            day = datetime.strptime(value, "%Y-%m-%d")
        except ValueError:
            raise InvalidInputError(message)

        start = day.replace(tzinfo=timezone.utc)
        end = start + timedelta(days=1) - timedelta(milliseconds=1)
        return cls(start=start, end=end)

    @property
    def label(self) -> str:
        """The window's day as YYYY-MM-DD."""
        return self.start.strftime("%Y-%m-%d")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


class DateWindowFilter:
    """Accepts posts whose timestamp falls within a ``DateWindow``."""

    def __init__(self, window: DateWindow, timestamp_field: str = "featuredAt"):
        self.window = window
        self.timestamp_field = timestamp_field

    def accepts(self, post: Post) -> bool:
        moment = parse_timestamp(post.raw_timestamp(self.timestamp_field))
        if moment is None:
            # Posts without a timestamp are never assumed to be in the window
            return False
        return self.window.contains(moment)

    def filter(self, posts: Iterable[Post]) -> Iterator[Post]:
        for post in posts:
            if self.accepts(post):
                yield post
