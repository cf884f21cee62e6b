"""
Early termination of pagination.

Assumes the API returns posts newest-first. Once whole pages are both
descending and older than the window start, later pages can only be older
still. Nothing verifies the assumption: if upstream ordering changes, posts
inside the window may be skipped silently.
"""

import logging
from typing import Tuple

from producthunt_exporter.collector.date_filter import DateWindow, parse_timestamp
from producthunt_exporter.models.dtos import Page

logger = logging.getLogger(__name__)

DEFAULT_STREAK_THRESHOLD = 2


def should_stop(
    page: Page,
    window: DateWindow,
    streak: int,
    threshold: int = DEFAULT_STREAK_THRESHOLD,
    timestamp_field: str = "featuredAt",
) -> Tuple[bool, int]:
    """
    Decide whether pagination can stop after ``page``.

    Args:
        page: The page just fetched
        window: The requested date window
        streak: Consecutive qualifying pages seen before this one
        threshold: Qualifying pages in a row needed to stop
        timestamp_field: Upstream timestamp field to inspect

    Returns:
        (stop, new_streak)
    """
    first = None
    last = None
    for post in page.records:
        moment = parse_timestamp(post.raw_timestamp(timestamp_field))
        if moment is None:
            continue
        if first is None:
            first = moment
        last = moment

    if first is None:
        # Ordering is indeterminate for this page
        return False, 0

    if first >= last and last < window.start:
        streak += 1
    else:
        streak = 0

    if streak >= threshold:
        logger.info(
            f"Early stop: {streak} consecutive descending pages older than {window.start.isoformat()}. "
            f"Relies on newest-first ordering from the API."
        )
        return True, streak
    return False, streak
