"""Store module - Object store backends for the cache."""

from s3cache_core.store.backend import (
    ObjectStore,
    ObjectPage,
    ObjectSummary,
    DeleteFailure,
    StorageStats,
)
from s3cache_core.store.memory import MemoryObjectStore
from s3cache_core.store.s3 import S3ObjectStore

__all__ = [
    "ObjectStore",
    "ObjectPage",
    "ObjectSummary",
    "DeleteFailure",
    "StorageStats",
    "MemoryObjectStore",
    "S3ObjectStore",
]
