"""Command-line interface for the Product Hunt exporter."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from producthunt_exporter.collector.client import ProductHuntClient
from producthunt_exporter.config.settings import get_settings
from producthunt_exporter.core.pipeline import ExportPipeline
from producthunt_exporter.core.progress import LoggingProgressReporter
from producthunt_exporter.exceptions import ExportError, NoPostsFoundError
from producthunt_exporter.models.dtos import ExportResult
from producthunt_exporter.utils.logging_utils import setup_logging

app = typer.Typer(help="Product Hunt Exporter - Export the posts featured on a given day as CSV")

logger = logging.getLogger(__name__)

# Exit status when the day has no posts
EXIT_NOT_FOUND = 2


async def run_export(date: str, layout: Optional[str] = None) -> ExportResult:
    """
    Run one export with progress written to the log.

    Args:
        date: Day to export (YYYY-MM-DD, UTC)
        layout: CSV layout override

    Returns:
        ExportResult: The finished export
    """
    settings = get_settings()
    async with ProductHuntClient.from_settings(settings) as fetcher:
        pipeline = ExportPipeline(fetcher, LoggingProgressReporter(logger), settings=settings, layout=layout)
        return await pipeline.run(date)


@app.command()
def export(
    date: Annotated[str, typer.Option("--date", "-d", help="Day to export (YYYY-MM-DD, UTC)")],
    output: Annotated[Optional[str], typer.Option("--output", "-o", help="Output CSV path (default: product-hunt-posts-<date>.csv)")] = None,
    layout: Annotated[Optional[str], typer.Option("--layout", help="CSV layout: featured or basic")] = None,
    loglevel: Annotated[str, typer.Option("--loglevel", "-l", help="Logging level")] = "INFO",
) -> None:
    """
    Export every post featured on DATE to a CSV file.
    """
    setup_logging(level=loglevel)
    logger.info(f"Starting export for {date}")

    try:
        result = asyncio.run(run_export(date, layout))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except NoPostsFoundError as e:
        logger.warning(e.message)
        sys.exit(EXIT_NOT_FOUND)
    except ExportError as e:
        logger.critical(f"Export failed ({e.code}): {e.message}" + (f" - {e.details}" if e.details else ""))
        sys.exit(1)
    except Exception as e:
        logger.critical(f"Unhandled exception: {str(e)}", exc_info=True)
        sys.exit(1)

    path = Path(output or result.filename)
    # The CSV text already carries the BOM
    path.write_text(result.csv_text, encoding="utf-8")
    logger.info(f"Wrote {result.filtered_count} posts to {path} ({result.pages_fetched} requests, {result.stop_reason})")
    typer.echo(str(path))


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address (overrides API_HOST)")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port (overrides API_PORT)")] = None,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """
    Run the HTTP API with uvicorn.
    """
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "producthunt_exporter.api.main:app",
        host=host or settings.API_HOST,
        port=port or settings.API_PORT,
        reload=reload,
        log_config=None,
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
