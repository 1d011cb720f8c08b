"""
Google Drive v3 client used as the remote file-tree source for media imports.

Wraps ``google-api-python-client`` with service-account credentials and
tenacity retries, exposing only what the import needs: list the children of
a folder, read file metadata and download file bytes.
"""

import io
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload
from tenacity import (
    Retrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")

SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
WORKSPACE_MIME_PREFIX = "application/vnd.google-apps."
LIST_FIELDS = "nextPageToken, files(id,name,mimeType,size)"


class DriveError(Exception):
    """Base error for Drive operations."""
    pass


class DriveAuthError(DriveError):
    """Raised when credentials are missing or access is denied."""
    pass


class DriveNotFoundError(DriveError):
    """Raised when a file or folder does not exist or is not shared."""
    pass


def _translate_http_error(exc: HttpError, target: str) -> Exception:
    status = getattr(exc.resp, "status", None)
    if status == 404:
        return DriveNotFoundError(f"Drive item not found: {target}")
    if status in (401, 403):
        return DriveAuthError(f"Access denied to Drive item {target}: {exc}")
    return exc


def _parse_size(raw: Any) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class DriveClient:
    """Thin, retrying wrapper over the Drive v3 files API."""

    def __init__(
        self,
        credentials_file: Optional[str] = None,
        retries: int = 3,
        retry_base: float = 0.5,
        service: Any = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize Drive client.

        Args:
            credentials_file: Service account JSON key file; when omitted the
                application default credentials are used
            retries: Retries after the first attempt for transient failures
            retry_base: Base delay in seconds for exponential backoff
            service: Prebuilt Drive service resource (mainly for tests)
            logger: Logger instance
        """
        self.credentials_file = credentials_file
        self.retries = max(retries, 0)
        self.retry_base = retry_base
        self._service = service
        self.logger = logger or logging.getLogger(__name__)

    def _call_with_retry(self, func: Callable[[], T], target: str = "") -> T:
        def _call() -> T:
            try:
                return func()
            except HttpError as exc:
                translated = _translate_http_error(exc, target)
                if translated is exc:
                    raise
                raise translated from exc

        retryer = Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.retry_base, min=self.retry_base, max=10),
            retry=retry_if_exception_type(Exception)
            & retry_if_not_exception_type((DriveAuthError, DriveNotFoundError)),
            reraise=True,
        )
        return retryer(_call)

    def _service_handle(self) -> Any:
        if self._service is not None:
            return self._service

        if self.credentials_file:
            try:
                creds = service_account.Credentials.from_service_account_file(
                    self.credentials_file, scopes=SCOPES
                )
            except (OSError, ValueError) as exc:
                raise DriveAuthError(
                    f"Could not load Drive credentials from {self.credentials_file}: {exc}"
                ) from exc
            self._service = build("drive", "v3", credentials=creds, cache_discovery=False)
        else:
            # Falls back to application default credentials
            self._service = build("drive", "v3", cache_discovery=False)

        return self._service

    def list_children(self, folder_id: str) -> Iterator[Dict[str, Any]]:
        """
        List the direct children of a folder, following page tokens.

        Args:
            folder_id: Drive folder ID

        Yields:
            Raw file mappings with id, name, mimeType and size
        """
        service = self._service_handle()
        query = f"'{folder_id}' in parents and trashed = false"
        page_token: Optional[str] = None

        while True:
            response: Dict[str, Any] = self._call_with_retry(
                lambda t=page_token: service.files().list(
                    q=query,
                    fields=LIST_FIELDS,
                    pageToken=t,
                    pageSize=1000,
                    supportsAllDrives=True,
                    includeItemsFromAllDrives=True,
                ).execute(),
                target=folder_id
            )

            for item in response.get("files", []):
                if item.get("id"):
                    item["size"] = _parse_size(item.get("size"))
                    yield item

            page_token = response.get("nextPageToken")
            if not page_token:
                break

    def list_files_in_folder(self, folder_id: str) -> List[Dict[str, Any]]:
        """Materialise the direct children of a folder."""
        return list(self.list_children(folder_id))

    def get_metadata(self, file_id: str) -> Dict[str, Any]:
        """
        Get metadata for a single file or folder.

        Args:
            file_id: Drive file ID

        Returns:
            Mapping with id, name, mimeType and size
        """
        service = self._service_handle()
        meta: Dict[str, Any] = self._call_with_retry(
            lambda: service.files().get(
                fileId=file_id,
                fields="id,name,mimeType,size",
                supportsAllDrives=True,
            ).execute(),
            target=file_id
        )
        meta["size"] = _parse_size(meta.get("size"))
        return meta

    def download_file(self, file_id: str) -> bytes:
        """
        Download a file's content.

        Args:
            file_id: Drive file ID

        Returns:
            File content as bytes
        """
        def _download() -> bytes:
            service = self._service_handle()
            request = service.files().get_media(fileId=file_id, supportsAllDrives=True)
            buffer = io.BytesIO()
            downloader = MediaIoBaseDownload(buffer, request)
            done = False
            while not done:
                _, done = downloader.next_chunk()
            return buffer.getvalue()

        content = self._call_with_retry(_download, target=file_id)
        self.logger.debug(f"Downloaded Drive file {file_id} ({len(content)} bytes)")
        return content
