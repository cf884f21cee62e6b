"""
Core components for the Product Hunt exporter.
"""

from .cancellation import CancelToken
from .pipeline import ExportContext, ExportPipeline, StopReason, export_filename
from .progress import (
    LoggingProgressReporter,
    NullProgressReporter,
    ProgressReporter,
    StreamingProgressReporter,
)

__all__ = [
    "CancelToken",
    "ExportContext",
    "ExportPipeline",
    "StopReason",
    "export_filename",
    "LoggingProgressReporter",
    "NullProgressReporter",
    "ProgressReporter",
    "StreamingProgressReporter",
]
