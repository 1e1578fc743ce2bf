"""S3Cache Storage Backend - Abstract Object Store Interface.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Collection, Dict, List, Mapping, Optional

from s3cache_core.cache.entry import CacheEntry

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000


@dataclass
class ObjectSummary:
    """A listed object.

    Attributes:
        key: Physical key
        size: Payload size in bytes
        last_modified: Last write time
    """

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None


@dataclass
class ObjectPage:
    """One page of a listing.

    Attributes:
        items: Objects on this page, in backend order
        next_token: Continuation token for the next page
        truncated: Whether more pages follow
    """

    items: List[ObjectSummary] = field(default_factory=list)
    next_token: Optional[str] = None
    truncated: bool = False


@dataclass
class DeleteFailure:
    """A key the backend refused to delete in a batch.

    Attributes:
        key: Physical key
        code: Backend error code
        message: Backend error message
    """

    key: str
    code: Optional[str] = None
    message: Optional[str] = None


@dataclass
class StorageStats:
    """Storage backend statistics.

    Attributes:
        reads: Number of get/head requests
        writes: Number of put requests
        deletes: Number of delete requests (batches count once)
        lists: Number of list requests
        errors: Number of failed requests
    """

    reads: int = 0
    writes: int = 0
    deletes: int = 0
    lists: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    def record_error(self, error: str) -> None:
        """Record an error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()


class ObjectStore(ABC):
    """Abstract object store the cache persists entries in.

    Requests are S3-style parameter mappings (``Key``, ``Body``,
    ``Expires``, ``ContentType``, ``ACL``, ``Bucket``, ...) merged over
    the store's default parameters, so callers can override any field.

    Implementations:
    - S3ObjectStore: Amazon S3 (or compatible) through boto3
    - MemoryObjectStore: In-process buckets, for tests
    """

    def __init__(self, params: Optional[Mapping[str, Any]] = None):
        """Initialize store.

        Args:
            params: Default request parameters (usually ``Bucket``)
        """
        self.params: Dict[str, Any] = dict(params or {})
        self._stats = StorageStats()

    def merge_params(
        self,
        params: Optional[Mapping[str, Any]] = None,
        accepted: Optional[Collection[str]] = None,
    ) -> Dict[str, Any]:
        """Merge request parameters over the defaults.

        Defaults an operation does not accept are left out, so a
        default ``ContentType`` does not break reads. Explicit
        parameters are always passed through.

        Args:
            params: Request parameters
            accepted: Parameter names the operation accepts

        Returns:
            Merged request parameters
        """
        defaults = self.params
        if accepted is not None:
            defaults = {k: v for k, v in defaults.items() if k in accepted}
        return {**defaults, **(params or {})}

    @abstractmethod
    def get_object(self, params: Mapping[str, Any]) -> CacheEntry:
        """Retrieve an object with its payload.

        Args:
            params: Request parameters, ``Key`` required

        Returns:
            CacheEntry with body

        Raises:
            ObjectNotFoundError: Key does not exist
        """
        pass

    @abstractmethod
    def put_object(self, params: Mapping[str, Any]) -> None:
        """Store an object.

        Args:
            params: Request parameters, ``Key`` and ``Body`` required
        """
        pass

    @abstractmethod
    def delete_object(self, params: Mapping[str, Any]) -> None:
        """Delete an object. Deleting a missing key is not an error.

        Args:
            params: Request parameters, ``Key`` required
        """
        pass

    @abstractmethod
    def list_objects(
        self,
        params: Optional[Mapping[str, Any]] = None,
        continuation_token: Optional[str] = None,
    ) -> ObjectPage:
        """List one page of objects.

        Args:
            params: Request parameters (``Prefix``, ``MaxKeys``, ...)
            continuation_token: Token from the previous page

        Returns:
            ObjectPage
        """
        pass

    @abstractmethod
    def delete_objects(
        self,
        keys: List[str],
        params: Optional[Mapping[str, Any]] = None,
    ) -> List[DeleteFailure]:
        """Delete up to one page of objects in a single request.

        Args:
            keys: Physical keys
            params: Request parameters

        Returns:
            Keys that could not be deleted
        """
        pass

    @abstractmethod
    def head_object(self, params: Mapping[str, Any]) -> CacheEntry:
        """Retrieve object metadata without the payload.

        Args:
            params: Request parameters, ``Key`` required

        Returns:
            CacheEntry without body

        Raises:
            ObjectNotFoundError: Key does not exist
        """
        pass

    def get_stats(self) -> StorageStats:
        """Get storage statistics.

        Returns:
            StorageStats instance
        """
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = StorageStats()


__all__ = [
    "ObjectStore",
    "ObjectPage",
    "ObjectSummary",
    "DeleteFailure",
    "StorageStats",
    "MAX_PAGE_SIZE",
]
