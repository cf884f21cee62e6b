"""
Export API endpoints.

This module implements the buffered CSV download, the server-sent-events
variant that streams progress while the export runs, and a small preview of
the latest posts.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Optional

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response, StreamingResponse

from producthunt_exporter.collector.client import ProductHuntClient
from producthunt_exporter.config.settings import Settings, get_settings
from producthunt_exporter.core.cancellation import CancelToken
from producthunt_exporter.core.pipeline import ExportPipeline
from producthunt_exporter.core.progress import StreamingProgressReporter
from producthunt_exporter.exceptions import ExportCancelled, ExportError, UpstreamError
from producthunt_exporter.models.dtos import ExportRequest

router = APIRouter()
logger = logging.getLogger(__name__)


# Dependency to get application settings
async def get_app_settings() -> Settings:
    """Get settings instance."""
    return get_settings()


# Dependency to get a shared httpx client; None lets each fetcher own its own
async def get_http_client() -> Optional[httpx.AsyncClient]:
    return None


# Dependency to get the factory for per-request cancel tokens
async def get_cancel_token_factory() -> Callable[[], CancelToken]:
    return CancelToken


@router.post(
    "/export/csv",
    summary="Export a day's posts as CSV",
    responses={
        200: {"content": {"text/csv": {}}},
        400: {"description": "Missing or invalid date"},
        404: {"description": "No posts for the date"},
        500: {"description": "Access token not configured"},
        502: {"description": "Product Hunt API error"},
        504: {"description": "Export timed out"},
    },
)
async def export_csv(
    request: ExportRequest,
    settings: Settings = Depends(get_app_settings),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
    token_factory: Callable[[], CancelToken] = Depends(get_cancel_token_factory),
) -> Response:
    """
    Run the whole export and answer with the CSV file.

    Throttle waits are capped and the run is bounded by
    ``BUFFERED_TIMEOUT_SECONDS`` so the request cannot hang indefinitely.

    Raises:
        ExportError: Mapped to a status code by the application's error handler
    """
    token = token_factory()
    fetcher = ProductHuntClient.from_settings(
        settings,
        cancel_token=token,
        client=http_client,
        max_retry_wait=settings.BUFFERED_MAX_RETRY_WAIT_SECONDS,
    )
    pipeline = ExportPipeline(fetcher, settings=settings, cancel_token=token, layout=request.layout)

    try:
        result = await asyncio.wait_for(pipeline.run(request.date), timeout=settings.BUFFERED_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        token.cancel("timeout")
        logger.error(f"Buffered export for {request.date} timed out after {settings.BUFFERED_TIMEOUT_SECONDS}s")
        raise ExportCancelled("The export timed out")
    finally:
        await fetcher.close()

    logger.info(f"Buffered export for {result.date}: {result.filtered_count} posts in {result.pages_fetched} pages")
    return Response(
        content=result.csv_text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@router.post("/export/csv-stream", summary="Export a day's posts with live progress")
async def export_csv_stream(
    request: ExportRequest,
    settings: Settings = Depends(get_app_settings),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
    token_factory: Callable[[], CancelToken] = Depends(get_cancel_token_factory),
) -> StreamingResponse:
    """
    Stream progress events as ``text/event-stream`` while the export runs.

    The stream always ends with one ``complete`` or ``error`` event; the
    ``complete`` event carries the CSV text. Closing the connection cancels
    the export. A missing access token is answered with a JSON error before
    the stream opens.
    """
    token = token_factory()
    fetcher = ProductHuntClient.from_settings(settings, cancel_token=token, client=http_client)
    reporter = StreamingProgressReporter()

    async def run_export() -> None:
        try:
            try:
                await ExportPipeline(fetcher, reporter, settings=settings, cancel_token=token, layout=request.layout).run(
                    request.date
                )
            finally:
                await fetcher.close()
        finally:
            await reporter.close()

    async def event_stream() -> AsyncIterator[str]:
        task = asyncio.create_task(run_export())
        try:
            async for chunk in reporter.stream():
                yield chunk
        finally:
            if not task.done():
                token.cancel("client disconnected")
                task.cancel()
            try:
                await task
            except (asyncio.CancelledError, ExportError) as e:
                # Already reported to the client as an error event (or the client is gone)
                logger.debug(f"Streaming export ended early: {e!r}")
            except Exception as e:
                logger.error(f"Streaming export failed: {e}", exc_info=True)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/posts", summary="Preview the latest posts")
async def list_posts(
    first: Optional[int] = Query(None, ge=1, le=50, description="Number of posts to return"),
    settings: Settings = Depends(get_app_settings),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
    token_factory: Callable[[], CancelToken] = Depends(get_cancel_token_factory),
) -> Any:
    """
    Return the newest posts straight from the API, without date filtering.

    Upstream failures keep the upstream status code.
    """
    fetcher = ProductHuntClient.from_settings(
        settings,
        cancel_token=token_factory(),
        client=http_client,
        max_retry_wait=settings.BUFFERED_MAX_RETRY_WAIT_SECONDS,
    )
    try:
        page = await fetcher.fetch(first=first or settings.PREVIEW_PAGE_SIZE)
    except UpstreamError as e:
        status = e.status_code or 502
        return JSONResponse(status_code=status, content={"error": e.message, "details": e.details, "status": status})
    finally:
        await fetcher.close()

    return {
        "posts": [post.model_dump(by_alias=True) for post in page.records],
        "pageInfo": {"hasNextPage": page.has_next, "endCursor": page.next_cursor},
    }
