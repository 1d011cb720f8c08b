"""
Import orchestration manager.

This module wires configured collaborators into the import pipelines,
checks the caller's authorization before anything is touched, and records
each run in ``sync_logs``.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
import logging

from .pipeline import ImportRunReport
from .media_import import MediaImportPipeline
from .product_import import ProductImportPipeline
from ..config import MediaImportConfig, ProductImportConfig
from ..sources.drive_client import DriveClient
from ..storage.object_storage import create_object_storage
from ..storage.record_store import RecordStore, RecordStoreError
from ..utils.api_client import create_shopify_client

PRODUCT_SYNC_TYPE = "import_from_shopify"
MEDIA_SYNC_TYPE = "import_from_google_drive"


class ImportPermissionError(Exception):
    """Raised when the authorization predicate refuses an import."""
    pass


def admin_only(record_store: RecordStore, auth_user_id: Optional[str]) -> Callable[[], bool]:
    """
    Build a predicate allowing only users whose role is ``admin``.

    Args:
        record_store: Store holding the ``users`` table
        auth_user_id: Authenticated user's auth ID

    Returns:
        Zero-argument predicate
    """
    def authorize() -> bool:
        if not auth_user_id:
            return False
        user = record_store.select_one("users", {"auth_user_id": auth_user_id}, columns="role")
        return bool(user) and user.get("role") == "admin"

    return authorize


def allow_all() -> bool:
    return True


def sync_status(report: ImportRunReport) -> str:
    if report.cancelled:
        return "cancelled"
    if report.has_failures:
        return "completed_with_errors"
    return "completed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ImportManager:
    """
    Main import orchestration class.

    Runs product and media imports with collaborators built from
    configuration unless they are passed in explicitly.
    """

    def __init__(
        self,
        record_store: RecordStore,
        authorize: Callable[[], bool] = allow_all,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize import manager.

        Args:
            record_store: Record store used by the pipelines and for sync logs
            authorize: Predicate that must return True before an import runs
            logger: Logger instance
        """
        self.record_store = record_store
        self.authorize = authorize
        self.cancel_event = threading.Event()
        self.logger = logger or logging.getLogger(__name__)

    def cancel(self) -> None:
        """Stop the running import after its current item."""
        self.cancel_event.set()

    def _begin_run(self) -> None:
        self._check_permission()
        self.cancel_event = threading.Event()

    def _check_permission(self) -> None:
        if not self.authorize():
            raise ImportPermissionError("Admin access required")

    def run_product_import(
        self,
        config: ProductImportConfig,
        api_client=None,
        progress_callback: Optional[Callable[[ImportRunReport, str], None]] = None
    ) -> ImportRunReport:
        """
        Import all Shopify products and variants.

        Args:
            config: Product import configuration
            api_client: Prebuilt Shopify client (built from config if None)
            progress_callback: Called after each product

        Returns:
            ImportRunReport for the run

        Raises:
            ImportPermissionError: The caller may not run imports
        """
        self._begin_run()

        owns_client = api_client is None
        if owns_client:
            api_client = create_shopify_client(config, cancel_event=self.cancel_event, logger=self.logger)

        pipeline = ProductImportPipeline(
            api_client,
            self.record_store,
            page_size=config.page_size,
            import_statuses=config.import_statuses,
            cancel_event=self.cancel_event,
            max_errors=config.max_reported_errors,
            progress_callback=progress_callback,
            logger=self.logger
        )

        try:
            return self._run_logged(PRODUCT_SYNC_TYPE, pipeline)
        finally:
            if owns_client:
                api_client.close()

    def run_media_import(
        self,
        config: MediaImportConfig,
        drive_client=None,
        object_storage=None,
        progress_callback: Optional[Callable[[ImportRunReport, str], None]] = None
    ) -> ImportRunReport:
        """
        Import media files from the configured Drive folder.

        Args:
            config: Media import configuration
            drive_client: Prebuilt Drive client (built from config if None)
            object_storage: Prebuilt object storage (built from config if None)
            progress_callback: Called after each file

        Returns:
            ImportRunReport for the run

        Raises:
            ImportPermissionError: The caller may not run imports
        """
        self._begin_run()

        if drive_client is None:
            drive_client = DriveClient(
                credentials_file=config.google_credentials_file,
                retries=config.drive_retries,
                logger=self.logger
            )
        if object_storage is None:
            object_storage = create_object_storage(config, logger=self.logger)

        pipeline = MediaImportPipeline(
            drive_client,
            object_storage,
            self.record_store,
            root_folder_id=config.drive_folder_id,
            bucket=config.storage_bucket,
            base_path=config.base_path,
            duplicate_policy=config.duplicate_policy,
            cancel_event=self.cancel_event,
            max_errors=config.max_reported_errors,
            progress_callback=progress_callback,
            logger=self.logger
        )
        return self._run_logged(MEDIA_SYNC_TYPE, pipeline)

    def _run_logged(self, sync_type: str, pipeline) -> ImportRunReport:
        started_at = _now()
        self.logger.info(f"Starting {sync_type}")

        try:
            report = pipeline.run()
        except Exception as e:
            self._write_sync_log(sync_type, "failed", None, started_at, error=str(e))
            raise

        self._write_sync_log(sync_type, sync_status(report), report, started_at)
        return report

    def _write_sync_log(
        self,
        sync_type: str,
        status: str,
        report: Optional[ImportRunReport],
        started_at: str,
        error: Optional[str] = None
    ) -> None:
        record: Dict[str, Any] = {
            "sync_type": sync_type,
            "status": status,
            "started_at": started_at,
            "completed_at": _now(),
        }

        if report is not None:
            record.update({
                "items_processed": report.total,
                "items_succeeded": report.succeeded,
                "items_failed": report.failed,
                "items_skipped": report.skipped,
                "error_details": {
                    "errors": report.errors,
                    "errors_truncated": report.errors_truncated,
                    "source_error": report.source_error,
                },
            })
        else:
            record["error_details"] = {"source_error": error}

        try:
            self.record_store.insert("sync_logs", record)
        except RecordStoreError as e:
            self.logger.error(f"Could not record {sync_type} sync log: {e}")

    def get_import_status(self, sync_type: str = PRODUCT_SYNC_TYPE) -> Dict[str, Any]:
        """
        Get the last sync log and the current product count.

        Returns:
            Dictionary with ``last_sync`` (or None) and ``product_count``
        """
        last_sync = self.record_store.select(
            "sync_logs",
            {"sync_type": sync_type},
            order_by="created_at",
            descending=True,
            limit=1
        )
        return {
            "last_sync": last_sync[0] if last_sync else None,
            "product_count": self.record_store.count("products"),
        }
