"""
Shared per-item machinery for import pipelines.

A pipeline pulls items from a lazy source one at a time and drives each
through ``pending -> succeeded | skipped | failed``. A failing item is
recorded in the run report and never stops the run; only failure to
acquire the source at all propagates out of ``run()``.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from ..utils.api_client import RequestCancelledError
from ..utils.logger import ProgressLogger

DEFAULT_MAX_ERRORS = 200


class ItemOutcome(str, Enum):
    """Terminal state of one processed item."""
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ImportRunReport:
    """Counters and bounded error list for one pipeline run."""
    total: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    errors_truncated: int = 0
    grouping_records_created: int = 0
    cancelled: bool = False
    source_error: Optional[str] = None
    max_errors: int = field(default=DEFAULT_MAX_ERRORS, repr=False)

    def record(self, outcome: ItemOutcome) -> None:
        if outcome == ItemOutcome.SUCCEEDED:
            self.succeeded += 1
        elif outcome == ItemOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def record_error(self, item: str, message: str) -> None:
        """Keep the error message unless the list is already full."""
        if len(self.errors) < self.max_errors:
            self.errors.append({"item": item, "message": message})
        else:
            self.errors_truncated += 1

    @property
    def processed(self) -> int:
        return self.succeeded + self.skipped + self.failed

    @property
    def has_failures(self) -> bool:
        return self.failed > 0 or self.source_error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
            "errors_truncated": self.errors_truncated,
            "grouping_records_created": self.grouping_records_created,
            "cancelled": self.cancelled,
            "source_error": self.source_error,
        }


class ImportPipeline:
    """
    Base class for sequential, failure-isolating import pipelines.

    Subclasses provide ``default_source()``, ``describe_item()`` and
    ``process_item()``; the latter returns an ``ItemOutcome`` or raises, in
    which case the item is counted as failed.
    """

    operation = "Import"

    def __init__(
        self,
        cancel_event: Optional[threading.Event] = None,
        max_errors: int = DEFAULT_MAX_ERRORS,
        progress_callback: Optional[Callable[[ImportRunReport, str], None]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize pipeline.

        Args:
            cancel_event: Event checked between items; when set the run stops
            max_errors: Maximum number of error messages kept in the report
            progress_callback: Called with the report and item label after each item
            logger: Logger instance
        """
        self.cancel_event = cancel_event
        self.max_errors = max_errors
        self.progress_callback = progress_callback
        self.logger = logger or logging.getLogger(__name__)
        self.progress_logger = ProgressLogger(self.logger)

    def default_source(self) -> Iterable[Any]:
        raise NotImplementedError

    def describe_item(self, item: Any) -> str:
        return str(item)

    def process_item(self, item: Any, report: ImportRunReport) -> ItemOutcome:
        raise NotImplementedError

    def start_run(self) -> None:
        """Reset per-run state such as grouping caches."""
        pass

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def run(self, source: Optional[Iterable[Any]] = None) -> ImportRunReport:
        """
        Process every item of the source.

        Args:
            source: Iterable of items; defaults to ``default_source()``

        Returns:
            ImportRunReport for the run

        Raises:
            Exception: Whatever the source raised on the very first pull
        """
        report = ImportRunReport(max_errors=self.max_errors)
        self.start_run()
        self.progress_logger.start_operation(self.operation)

        items = iter(source if source is not None else self.default_source())
        pulled = False

        while True:
            if self._cancelled():
                report.cancelled = True
                self.logger.warning(f"{self.operation} cancelled after {report.processed} items")
                break

            try:
                item = next(items)
            except StopIteration:
                break
            except RequestCancelledError:
                report.cancelled = True
                self.logger.warning(f"{self.operation} cancelled while fetching items")
                break
            except Exception as e:
                if not pulled:
                    raise
                report.source_error = str(e)
                self.logger.error(f"{self.operation} source failed after {report.total} items: {e}")
                break

            pulled = True
            report.total += 1
            label = self.describe_item(item)

            try:
                outcome = self.process_item(item, report)
            except Exception as e:
                outcome = ItemOutcome.FAILED
                report.record_error(label, str(e))
                self.logger.error(f"Failed to import {label}: {e}")

            report.record(outcome)

            if self.progress_callback:
                self.progress_callback(report, label)

            self.progress_logger.log_progress(
                self.operation,
                report.processed,
                report.succeeded,
                report.skipped,
                report.failed,
                current_item=label
            )

        self.progress_logger.complete_operation(
            self.operation,
            report.total,
            report.succeeded,
            error_count=report.failed,
            skipped_count=report.skipped
        )
        return report
