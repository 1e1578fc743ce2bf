"""S3Cache Memory Store - In-Memory Object Store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import bisect
import dataclasses
import logging
import re
import threading
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from s3cache_core.cache.entry import CacheEntry
from s3cache_core.errors import ObjectNotFoundError, StoreRequestError
from s3cache_core.store.backend import (
    MAX_PAGE_SIZE,
    DeleteFailure,
    ObjectPage,
    ObjectStore,
    ObjectSummary,
)

logger = logging.getLogger(__name__)

MAX_KEY_BYTES = 1024

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

_READ_PARAMS = frozenset({
    "Bucket", "Key", "IfMatch", "IfModifiedSince", "IfNoneMatch",
    "IfUnmodifiedSince", "Range", "VersionId", "ResponseContentType",
})

# Parameters each request type accepts, as the S3 API does
ALLOWED_PARAMS: Dict[str, FrozenSet[str]] = {
    "get": _READ_PARAMS,
    "head": _READ_PARAMS,
    "put": frozenset({
        "Bucket", "Key", "Body", "Expires", "ContentType", "ACL", "Metadata",
        "CacheControl", "ContentEncoding", "ContentDisposition",
        "ContentLanguage", "StorageClass", "ServerSideEncryption", "Tagging",
    }),
    "delete": frozenset({"Bucket", "Key", "VersionId"}),
    "list": frozenset({
        "Bucket", "Prefix", "MaxKeys", "StartAfter", "Delimiter", "EncodingType",
    }),
    "delete_batch": frozenset({"Bucket"}),
}

# Put parameters kept as entry fields rather than metadata
_ENTRY_FIELDS = frozenset({"Bucket", "Key", "Body", "Expires", "ContentType"})


class MemoryObjectStore(ObjectStore):
    """In-memory object store.

    Holds buckets in process and checks requests the way S3 would, so
    it can stand in for S3ObjectStore in tests.

    Features:
    - Buckets created on first use
    - Parameter and key validation
    - Sorted listings with continuation tokens
    - Thread-safe with RLock

    Example:
        store = MemoryObjectStore({"Bucket": "cache"})
        store.put_object({"Key": "ab/cd/abcd", "Body": b"data"})
        entry = store.get_object({"Key": "ab/cd/abcd"})
    """

    def __init__(
        self,
        params: Optional[Mapping[str, Any]] = None,
        page_size: int = MAX_PAGE_SIZE,
    ):
        """Initialize memory store.

        Args:
            params: Default request parameters
            page_size: Objects per listing page (at most 1000)
        """
        super().__init__(params)
        self.page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        self._buckets: Dict[str, Dict[str, CacheEntry]] = {}
        self._lock = threading.RLock()

    def _request(
        self,
        operation: str,
        params: Optional[Mapping[str, Any]],
        needs_key: bool = True,
    ) -> Dict[str, Any]:
        params = self.merge_params(params, ALLOWED_PARAMS[operation])
        unexpected = sorted(set(params) - ALLOWED_PARAMS[operation])
        if unexpected:
            raise StoreRequestError(f"Unexpected key '{unexpected[0]}' found in params")

        if not params.get("Bucket"):
            raise StoreRequestError("No bucket specified")

        if not needs_key:
            return params

        key = params.get("Key")
        if not isinstance(key, str) or not key:
            raise StoreRequestError(f"Key must be a non-empty string, got {key!r}")
        if len(key.encode("utf-8")) > MAX_KEY_BYTES:
            raise StoreRequestError(f"Key is more than {MAX_KEY_BYTES} bytes long")
        if _CONTROL_CHARS.search(key):
            raise StoreRequestError("Key contains unprintable characters")

        return params

    def _bucket(self, name: str) -> Dict[str, CacheEntry]:
        return self._buckets.setdefault(name, {})

    def _lookup(self, operation: str, params: Mapping[str, Any]) -> CacheEntry:
        request = self._request(operation, params)

        with self._lock:
            self._stats.reads += 1
            entry = self._bucket(request["Bucket"]).get(request["Key"])

        if entry is None:
            raise ObjectNotFoundError(request["Key"])
        return entry

    def get_object(self, params: Mapping[str, Any]) -> CacheEntry:
        entry = self._lookup("get", params)
        return dataclasses.replace(entry, metadata=dict(entry.metadata))

    def head_object(self, params: Mapping[str, Any]) -> CacheEntry:
        return self._lookup("head", params).without_body()

    def put_object(self, params: Mapping[str, Any]) -> None:
        request = self._request("put", params)

        body = request.get("Body", b"")
        if isinstance(body, str):
            body = body.encode("utf-8")
        elif isinstance(body, (bytearray, memoryview)):
            body = bytes(body)
        elif not isinstance(body, bytes):
            raise StoreRequestError(f"Body must be bytes or str, got {type(body).__name__}")

        entry = CacheEntry(
            key=request["Key"],
            body=body,
            expires_at=request.get("Expires"),
            content_type=request.get("ContentType"),
            last_modified=datetime.now(timezone.utc),
            metadata={k: v for k, v in request.items() if k not in _ENTRY_FIELDS},
        )

        with self._lock:
            self._bucket(request["Bucket"])[entry.key] = entry
            self._stats.writes += 1

    def delete_object(self, params: Mapping[str, Any]) -> None:
        request = self._request("delete", params)

        with self._lock:
            self._bucket(request["Bucket"]).pop(request["Key"], None)
            self._stats.deletes += 1

    def list_objects(
        self,
        params: Optional[Mapping[str, Any]] = None,
        continuation_token: Optional[str] = None,
    ) -> ObjectPage:
        request = self._request("list", params, needs_key=False)

        limit = min(int(request.get("MaxKeys", self.page_size)), self.page_size)
        prefix = request.get("Prefix") or ""
        start_after = continuation_token or request.get("StartAfter")

        with self._lock:
            self._stats.lists += 1
            bucket = self._bucket(request["Bucket"])
            names = sorted(k for k in bucket if k.startswith(prefix))
            start = bisect.bisect_right(names, start_after) if start_after else 0
            selected = names[start:start + limit]
            items = [
                ObjectSummary(
                    key=name,
                    size=bucket[name].content_length or 0,
                    last_modified=bucket[name].last_modified,
                )
                for name in selected
            ]

        truncated = start + limit < len(names)
        return ObjectPage(
            items=items,
            next_token=selected[-1] if truncated and selected else None,
            truncated=truncated,
        )

    def delete_objects(
        self,
        keys: List[str],
        params: Optional[Mapping[str, Any]] = None,
    ) -> List[DeleteFailure]:
        request = self._request("delete_batch", params, needs_key=False)

        if len(keys) > MAX_PAGE_SIZE:
            raise StoreRequestError(f"Cannot delete more than {MAX_PAGE_SIZE} keys per request")

        with self._lock:
            bucket = self._bucket(request["Bucket"])
            for key in keys:
                bucket.pop(key, None)
            self._stats.deletes += 1

        return []

    def object_count(self, bucket: Optional[str] = None) -> int:
        """Get the number of objects in a bucket.

        Args:
            bucket: Bucket name (defaults to the store's bucket)

        Returns:
            Object count
        """
        with self._lock:
            return len(self._buckets.get(bucket or self.params.get("Bucket"), {}))

    def __repr__(self) -> str:
        return f"MemoryObjectStore(buckets={len(self._buckets)}, objects={sum(len(b) for b in self._buckets.values())})"


__all__ = ["MemoryObjectStore", "ALLOWED_PARAMS"]
