"""
Depth-first walk over a remote folder tree.

Flattens a nested Drive folder into a lazy sequence of ``RemoteFile``
entries whose ``path`` is built from folder names, so that hierarchy is
carried by the path alone.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional
import logging

from .drive_client import FOLDER_MIME_TYPE, WORKSPACE_MIME_PREFIX


@dataclass
class RemoteFile:
    """A file found under the import root."""
    id: str
    path: str
    mime_type: str
    name: str
    size_bytes: Optional[int] = None

    @property
    def grouping_key(self) -> str:
        """First path segment; by convention the product SKU label."""
        return self.path.split("/", 1)[0]

    @property
    def folder_path(self) -> str:
        """Path of the containing folder relative to the import root."""
        return "/".join(self.path.split("/")[:-1])

    @property
    def media_type(self) -> str:
        if self.mime_type.startswith("image/"):
            return "image"
        if self.mime_type.startswith("video/"):
            return "video"
        return "file"


class TreeWalker:
    """
    Walks a Drive folder tree and yields its files.

    Children of a folder are fully enumerated before the walk continues with
    that folder's siblings. Sibling order is whatever the remote listing
    returns. Nothing is cached between walks.
    """

    def __init__(self, drive_client, logger: Optional[logging.Logger] = None):
        """
        Initialize tree walker.

        Args:
            drive_client: Object exposing ``list_children(folder_id)``
            logger: Logger instance
        """
        self.drive_client = drive_client
        self.logger = logger or logging.getLogger(__name__)

    def walk(self, root_folder_id: str) -> Iterator[RemoteFile]:
        """
        Lazily yield every file below the root folder.

        Args:
            root_folder_id: Drive ID of the import root

        Yields:
            RemoteFile entries with paths relative to the root
        """
        yield from self._walk_folder(root_folder_id, [])

    def _walk_folder(self, folder_id: str, parents: List[str]) -> Iterator[RemoteFile]:
        for child in self.drive_client.list_children(folder_id):
            name = child.get("name") or child["id"]
            mime_type = child.get("mimeType") or ""

            if mime_type == FOLDER_MIME_TYPE:
                yield from self._walk_folder(child["id"], parents + [name])
                continue

            if mime_type.startswith(WORKSPACE_MIME_PREFIX):
                # Shortcuts and native Docs/Sheets have no downloadable bytes
                self.logger.debug(f"Ignoring {mime_type} entry {'/'.join(parents + [name])}")
                continue

            yield self._to_remote_file(child, parents + [name])

    def _to_remote_file(self, entry: Dict[str, Any], segments: List[str]) -> RemoteFile:
        return RemoteFile(
            id=entry["id"],
            path="/".join(segments),
            mime_type=entry.get("mimeType") or "application/octet-stream",
            name=entry.get("name") or entry["id"],
            size_bytes=entry.get("size")
        )

    def list_tree(self, root_folder_id: str) -> List[RemoteFile]:
        """Walk the whole tree and return the files as a list."""
        return list(self.walk(root_folder_id))
