"""
Destinations for imported data: object storage and the record store.
"""

from .object_storage import ObjectStorage, ObjectStorageError, build_object_key
from .record_store import RecordStore, RecordStoreError, RecordNotFoundError

__all__ = [
    "ObjectStorage",
    "ObjectStorageError",
    "build_object_key",
    "RecordStore",
    "RecordStoreError",
    "RecordNotFoundError",
]
