"""
Import of product media from a Drive folder tree into object storage.

The first folder below the import root is a product's SKU label. Every file
found under it is uploaded to object storage and recorded as a
``media_assets`` row in the SKU's ``media_buckets`` record.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional
import logging

from .pipeline import DEFAULT_MAX_ERRORS, ImportPipeline, ImportRunReport, ItemOutcome
from ..sources.tree_walker import RemoteFile, TreeWalker
from ..storage.object_storage import ObjectStorage, ObjectStorageError, build_object_key
from ..storage.record_store import RecordStore

SNAPSHOT = "snapshot"
SKIP_EXISTING = "skip_existing"

# Cached result for a SKU label with no product
NO_OWNER = object()


class MediaImportPipeline(ImportPipeline):
    """Drive tree -> object storage -> media_buckets / media_assets."""

    operation = "Media import"

    def __init__(
        self,
        drive_client,
        object_storage: ObjectStorage,
        record_store: RecordStore,
        root_folder_id: str,
        bucket: str,
        base_path: str = "",
        duplicate_policy: str = SNAPSHOT,
        tree_walker: Optional[TreeWalker] = None,
        cancel_event: Optional[threading.Event] = None,
        max_errors: int = DEFAULT_MAX_ERRORS,
        progress_callback: Optional[Callable[[ImportRunReport, str], None]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize media import pipeline.

        Args:
            drive_client: Drive client used to walk and download files
            object_storage: Destination for file bytes
            record_store: Destination for bucket and asset records
            root_folder_id: Drive folder holding one sub-folder per SKU label
            bucket: Object storage bucket name
            base_path: Optional key prefix inside the bucket
            duplicate_policy: ``snapshot`` or ``skip_existing``
            tree_walker: Walker over the Drive tree (built from drive_client if None)
            cancel_event: Event checked between items
            max_errors: Maximum number of error messages kept in the report
            progress_callback: Called after each item
            logger: Logger instance
        """
        super().__init__(cancel_event, max_errors, progress_callback, logger)

        if duplicate_policy not in (SNAPSHOT, SKIP_EXISTING):
            raise ValueError(f"Unknown duplicate policy: {duplicate_policy}")

        self.drive_client = drive_client
        self.object_storage = object_storage
        self.record_store = record_store
        self.root_folder_id = root_folder_id
        self.bucket = bucket
        self.base_path = base_path
        self.duplicate_policy = duplicate_policy
        self.tree_walker = tree_walker or TreeWalker(drive_client, self.logger)
        self._grouping_cache: Dict[str, Any] = {}

    def default_source(self) -> Iterable[RemoteFile]:
        return self.tree_walker.walk(self.root_folder_id)

    def describe_item(self, item: RemoteFile) -> str:
        return item.path

    def start_run(self) -> None:
        self._grouping_cache = {}

    def process_item(self, item: RemoteFile, report: ImportRunReport) -> ItemOutcome:
        media_bucket = self._resolve_media_bucket(item, report)
        if media_bucket is None:
            self.logger.debug(f"No product for SKU label '{item.grouping_key}', skipping {item.path}")
            return ItemOutcome.SKIPPED

        if self.duplicate_policy == SKIP_EXISTING and self._asset_exists(media_bucket, item):
            self.logger.debug(f"Asset already imported, skipping {item.path}")
            return ItemOutcome.SKIPPED

        content = self.drive_client.download_file(item.id)
        key = build_object_key(self.base_path, item.path)
        file_url = self.object_storage.put_object(self.bucket, key, content, item.mime_type)

        try:
            self.record_store.insert(
                "media_assets",
                self._asset_record(media_bucket, item, key, file_url, len(content))
            )
        except Exception:
            self._discard_upload(key)
            raise

        return ItemOutcome.SUCCEEDED

    def _resolve_media_bucket(self, item: RemoteFile, report: ImportRunReport) -> Optional[Dict[str, Any]]:
        """
        Find or create the media bucket for the item's SKU label.

        Returns:
            The media_buckets row, or None when no product owns the label
        """
        sku_label = item.grouping_key
        if not sku_label:
            raise ValueError("Missing SKU label in path")

        cached = self._grouping_cache.get(sku_label)
        if cached is NO_OWNER:
            return None
        if cached is not None:
            return cached

        product = self.record_store.select_one("products", {"sku_label": sku_label}, columns="id, sku_label")
        if not product:
            self._grouping_cache[sku_label] = NO_OWNER
            return None

        media_bucket, created = self.record_store.resolve_or_create(
            "media_buckets",
            "sku_label",
            {
                "product_id": product["id"],
                "sku_label": sku_label,
                "storj_path": build_object_key(self.base_path, f"products/{sku_label}") + "/",
                "bucket_status": "active",
                "google_drive_folder_path": item.folder_path,
                "last_upload_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        if created:
            report.grouping_records_created += 1
            self.logger.info(f"Created media bucket for SKU label '{sku_label}'")

        self._grouping_cache[sku_label] = media_bucket
        return media_bucket

    def _asset_exists(self, media_bucket: Dict[str, Any], item: RemoteFile) -> bool:
        existing = self.record_store.select_one(
            "media_assets",
            {"media_bucket_id": media_bucket["id"], "google_drive_file_id": item.id},
            columns="id"
        )
        return existing is not None

    def _asset_record(
        self,
        media_bucket: Dict[str, Any],
        item: RemoteFile,
        key: str,
        file_url: str,
        file_size: int
    ) -> Dict[str, Any]:
        return {
            "media_bucket_id": media_bucket["id"],
            "media_type": item.media_type,
            "workflow_state": "imported",
            "workflow_category": "raw",
            "file_url": file_url,
            "file_key": key,
            "file_size": file_size,
            "file_mime_type": item.mime_type,
            "original_filename": item.name,
            "source_folder_path": item.path,
            "google_drive_file_id": item.id,
            "google_drive_folder_path": item.folder_path,
            "import_source": "google_drive",
        }

    def _discard_upload(self, key: str) -> None:
        try:
            self.object_storage.delete_object(self.bucket, key)
        except ObjectStorageError as e:
            self.logger.warning(f"Could not remove orphaned object {self.bucket}/{key}: {e}")
