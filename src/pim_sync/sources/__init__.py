"""
Remote sources walked by the media import.
"""

from .drive_client import DriveClient, DriveError, DriveNotFoundError
from .tree_walker import RemoteFile, TreeWalker

__all__ = [
    "DriveClient",
    "DriveError",
    "DriveNotFoundError",
    "RemoteFile",
    "TreeWalker",
]
