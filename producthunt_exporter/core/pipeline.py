"""
Fetch-filter-report orchestrator for a single day's export.

Drives the paginated fetch loop: every page is filtered against the date
window as it arrives, the rate-limit tracker and early-stop heuristic are
consulted, and progress is pushed to a reporter. When the loop ends the
matching posts are rendered as CSV.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from producthunt_exporter.collector.client import ProductHuntClient
from producthunt_exporter.collector.date_filter import DateWindow, DateWindowFilter
from producthunt_exporter.collector.early_stop import should_stop
from producthunt_exporter.collector.rate_limiter import RateLimitTracker
from producthunt_exporter.config.settings import Settings, get_settings
from producthunt_exporter.core.cancellation import CancelToken
from producthunt_exporter.core.progress import NullProgressReporter, ProgressReporter
from producthunt_exporter.exceptions import (
    ExportError,
    InvalidInputError,
    NoPostsFoundError,
)
from producthunt_exporter.models.dtos import ExportResult, Post
from producthunt_exporter.models.events import (
    CompleteEvent,
    ErrorEvent,
    FilteringEvent,
    GeneratingEvent,
    ProgressUpdateEvent,
    StartEvent,
    WaitingEvent,
)
from producthunt_exporter.models.mapping import (
    LAYOUT_HEADERS,
    LAYOUT_TIMESTAMP_FIELD,
    posts_to_rows,
    resolve_layout,
)
from producthunt_exporter.storage.csv_encoder import encode_csv

logger = logging.getLogger(__name__)

# Waits shorter than this are applied silently
WAIT_REPORT_THRESHOLD_MS = 1000


class StopReason(str, Enum):
    """Why the fetch loop ended."""

    EXHAUSTED = "exhausted"
    EMPTY_PAGE = "empty_page"
    PAGE_CAP = "page_cap"
    EARLY_STOP = "early_stop"


def export_filename(date_str: str) -> str:
    return f"product-hunt-posts-{date_str}.csv"


@dataclass
class ExportContext:
    """Mutable state owned by one export run."""

    date_str: str
    window: DateWindow
    date_filter: DateWindowFilter
    tracker: RateLimitTracker = field(default_factory=RateLimitTracker)
    posts: List[Post] = field(default_factory=list)
    cursor: Optional[str] = None
    pages_fetched: int = 0
    total_posts: int = 0
    streak: int = 0


class ExportPipeline:
    """
    Orchestrates one export: fetch pages, filter per page, render CSV.

    One instance serves one request; nothing is shared across runs.
    """

    def __init__(
        self,
        fetcher: ProductHuntClient,
        reporter: Optional[ProgressReporter] = None,
        settings: Optional[Settings] = None,
        cancel_token: Optional[CancelToken] = None,
        layout: Optional[str] = None,
    ):
        """
        Args:
            fetcher: Page fetcher; should share ``cancel_token``
            reporter: Progress sink (silent when omitted)
            settings: Application settings (cached settings when omitted)
            cancel_token: Cooperative cancellation for sleeps between pages
            layout: CSV layout override; defaults to ``settings.EXPORT_LAYOUT``
        """
        self.settings = settings or get_settings()
        self.fetcher = fetcher
        self.reporter = reporter or NullProgressReporter()
        self.cancel_token = cancel_token or fetcher.cancel_token
        self.layout_name = layout or self.settings.EXPORT_LAYOUT
        self.max_pages = self.settings.MAX_PAGES
        self.early_stop_enabled = self.settings.EARLY_STOP_ENABLED
        self.early_stop_threshold = self.settings.EARLY_STOP_STREAK

    async def run(self, date_str: Optional[str]) -> ExportResult:
        """
        Export every post featured on ``date_str`` (YYYY-MM-DD, UTC).

        Returns:
            ExportResult with the BOM-prefixed CSV text

        Raises:
            InvalidInputError: Missing/invalid date or unknown layout
            NoPostsFoundError: No post matched the day
            UpstreamError: The API failed after any allowed retries
            ExportCancelled: The cancel token fired
        """
        try:
            window = DateWindow.for_date(date_str)
            date_str = window.label
            try:
                layout = resolve_layout(self.layout_name)
            except ValueError as e:
                raise InvalidInputError(str(e))

            await self.reporter.emit(StartEvent(message="Starting data retrieval...", selected_date=date_str))

            timestamp_field = LAYOUT_TIMESTAMP_FIELD[layout]
            ctx = ExportContext(
                date_str=date_str,
                window=window,
                date_filter=DateWindowFilter(window, timestamp_field=timestamp_field),
            )
            stop_reason = await self._fetch_and_filter(ctx)
            logger.info(
                f"Fetch loop finished ({stop_reason.value}) after {ctx.pages_fetched} pages: "
                f"{len(ctx.posts)}/{ctx.total_posts} posts matched {date_str}"
            )

            if not ctx.posts:
                raise NoPostsFoundError(date_str)

            await self.reporter.emit(
                GeneratingEvent(message="Generating CSV file...", filtered_count=len(ctx.posts))
            )
            rows = posts_to_rows(ctx.posts, layout, self.settings.CSV_TIMEZONE)
            csv_text = encode_csv(LAYOUT_HEADERS[layout], rows)
            filename = export_filename(date_str)

            await self.reporter.emit(
                CompleteEvent(message="The CSV file is ready", filename=filename, csv_data=csv_text)
            )
            return ExportResult(
                date=date_str,
                filename=filename,
                csv_text=csv_text,
                filtered_count=len(ctx.posts),
                pages_fetched=ctx.pages_fetched,
                stop_reason=stop_reason.value,
            )

        except ExportError as e:
            logger.warning(f"Export for {date_str} ended with {e.code}: {e.message}")
            await self.reporter.emit(ErrorEvent(message=e.message, code=e.code, details=e.details))
            raise
        except Exception as e:
            logger.error(f"Unexpected error exporting {date_str}: {e}", exc_info=True)
            await self.reporter.emit(ErrorEvent(message=str(e) or "Unknown error occurred", code="internal_error"))
            raise

    async def _fetch_and_filter(self, ctx: ExportContext) -> StopReason:
        """Run the page loop until a termination condition holds."""

        async def on_throttled(wait_seconds: float) -> None:
            snapshot = ctx.tracker.snapshot()
            await self.reporter.emit(
                WaitingEvent(
                    message=f"Rate limit reached. Waiting {wait_seconds:.0f} seconds...",
                    wait_seconds=wait_seconds,
                    rate_limit_remaining=snapshot.remaining,
                    rate_limit_limit=snapshot.limit,
                )
            )

        while True:
            self.cancel_token.raise_if_cancelled()
            ctx.pages_fetched += 1

            await self.reporter.emit(
                ProgressUpdateEvent(
                    message=f"Sending request {ctx.pages_fetched}...",
                    request_count=ctx.pages_fetched,
                    total_posts=ctx.total_posts,
                    filtered_count=len(ctx.posts),
                    rate_limit_remaining=ctx.tracker.remaining,
                    rate_limit_limit=ctx.tracker.limit,
                )
            )

            page = await self.fetcher.fetch(ctx.cursor, tracker=ctx.tracker, on_throttled=on_throttled)

            matched = list(ctx.date_filter.filter(page.records))
            ctx.posts.extend(matched)
            ctx.total_posts += len(page.records)
            ctx.tracker.update(page.headers)

            stop_early = False
            if self.early_stop_enabled:
                stop_early, ctx.streak = should_stop(
                    page,
                    ctx.window,
                    ctx.streak,
                    threshold=self.early_stop_threshold,
                    timestamp_field=ctx.date_filter.timestamp_field,
                )

            logger.info(
                f"Page {ctx.pages_fetched}: {len(page.records)} posts, {len(matched)} matched, "
                f"{len(ctx.posts)} total matched (rate limit {ctx.tracker.remaining}/{ctx.tracker.limit})"
            )
            await self.reporter.emit(
                FilteringEvent(
                    message=f"Filtered page {ctx.pages_fetched} by date",
                    total_posts=ctx.total_posts,
                    filtered_count=len(ctx.posts),
                )
            )

            if not page.has_next:
                return StopReason.EXHAUSTED
            if not page.records:
                return StopReason.EMPTY_PAGE
            if ctx.pages_fetched >= self.max_pages:
                logger.warning(f"Page cap of {self.max_pages} requests reached for {ctx.date_str}")
                return StopReason.PAGE_CAP
            if stop_early:
                return StopReason.EARLY_STOP
            if not page.next_cursor:
                logger.warning("API reported another page but returned no cursor; stopping")
                return StopReason.EXHAUSTED

            ctx.cursor = page.next_cursor
            await self._courtesy_wait(ctx)

    async def _courtesy_wait(self, ctx: ExportContext) -> None:
        wait_ms = ctx.tracker.wait_policy_ms()
        if wait_ms >= WAIT_REPORT_THRESHOLD_MS:
            wait_seconds = wait_ms / 1000
            await self.reporter.emit(
                WaitingEvent(
                    message=(
                        f"Waiting {wait_seconds:.0f} seconds before the next request... "
                        f"(remaining quota: {ctx.tracker.remaining}/{ctx.tracker.limit})"
                    ),
                    wait_seconds=wait_seconds,
                    rate_limit_remaining=ctx.tracker.remaining,
                    rate_limit_limit=ctx.tracker.limit,
                )
            )
        await self.cancel_token.sleep(wait_ms / 1000)
