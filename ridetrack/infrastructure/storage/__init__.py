"""Storage infrastructure - key-value blob store and the ride log."""

from .blob_store import BlobStore, MemoryBlobStore, SqliteBlobStore
from .ride_log import RideLogStore
from .schema import BLOB_SCHEMA

__all__ = [
    "BLOB_SCHEMA",
    "BlobStore",
    "MemoryBlobStore",
    "RideLogStore",
    "SqliteBlobStore",
]
