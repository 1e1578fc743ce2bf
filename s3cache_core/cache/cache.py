"""S3Cache Cache - Cache Operations over an Object Store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from s3cache_core.addressing.checksum import NO_CHECKSUM
from s3cache_core.addressing.resolver import SEPARATOR, KeyResolver
from s3cache_core.cache.entry import CacheEntry
from s3cache_core.cache.options import (
    CacheOptions,
    apply_log_levels,
    build_client_config,
    build_options,
    compute_expiry,
)
from s3cache_core.errors import (
    BatchDeleteError,
    ConfigurationError,
    InvalidKeyError,
    InvalidValueError,
    ObjectNotFoundError,
)
from s3cache_core.store.backend import DeleteFailure, ObjectStore
from s3cache_core.store.s3 import S3ObjectStore

logger = logging.getLogger(__name__)

_loggers = {
    op: logging.getLogger(f"{__name__}.{op}")
    for op in ("get", "set", "del", "keys", "head", "ttl", "reset")
}

NO_EXPIRY = -1

# Concurrent batch deletes during reset
RESET_CONCURRENCY = 2

Payload = Union[str, bytes]


@dataclass
class CacheStats:
    """Cache statistics.

    Attributes:
        hits: Reads that returned a value
        misses: Reads that found nothing or an expired entry
        expirations: Expired entries observed by reads
        sets: Number of set operations
        deletes: Number of delete operations
        started_at: When the cache was created
    """

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    sets: int = 0
    deletes: int = 0
    started_at: Optional[datetime] = None

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        """Reset statistics."""
        self.hits = 0
        self.misses = 0
        self.expirations = 0
        self.sets = 0
        self.deletes = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "sets": self.sets,
            "deletes": self.deletes,
            "hit_rate": self.hit_rate,
        }


def check_key(key: Any) -> str:
    """Raise InvalidKeyError unless key is a string."""
    if not isinstance(key, str):
        raise InvalidKeyError(f"Key must be a string, got {type(key).__name__}")
    return key


def to_payload(value: Any) -> bytes:
    """Coerce a value to the bytes that get stored.

    Text is encoded as UTF-8; bytes-like values are copied as-is.
    """
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise InvalidValueError(f"Value must be str or bytes, got {type(value).__name__}")


def decode_response(entry: CacheEntry, stringify: bool = True) -> Optional[Payload]:
    """Turn a retrieved entry into the value handed to the caller.

    With ``stringify`` the payload is decoded as UTF-8 and invalid
    sequences are replaced, so binary payloads only survive with
    ``stringify`` off.

    Args:
        entry: Retrieved entry
        stringify: Decode to text

    Returns:
        Text, bytes, or None when the entry carries no payload
    """
    if entry.body is None:
        logger.warning(f"Response for {entry.key!r} has no body")
        return None
    if stringify:
        return entry.body.decode("utf-8", errors="replace")
    return entry.body


def _request_overrides(overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    s3_options = (overrides or {}).get("s3_options")
    if s3_options is None:
        return {}
    if not isinstance(s3_options, Mapping):
        raise ConfigurationError("Expected a mapping for s3_options")
    return dict(s3_options)


def prefix_is_addressable(options: CacheOptions) -> bool:
    """Check whether logical prefixes survive addressing.

    Only true when keys are stored unhashed and without folder chunks.
    """
    return (
        options.checksum_algorithm == NO_CHECKSUM
        and options.checksum_encoding != "base64"
        and options.folder_path_depth == 0
    )


class S3Cache:
    """Key/value cache persisted as objects in an S3 bucket.

    Keys are normalized, checksummed and folder-chunked into object
    keys (see KeyResolver). Expiry is stored with each object and
    checked on read, since the bucket does not expire objects itself.

    Every operation takes an optional mapping of per-call options that
    override the instance options. Its ``s3_options`` entry is merged
    into the generated request last and can override any field,
    ``Key`` included.

    Example:
        cache = S3Cache(
            access_key="AKIA...",
            secret_key="...",
            bucket="my-cache-bucket",
            ttl=1,
            ttl_units="hours",
            s3_options={"region_name": "us-west-2"},
        )

        cache.set("https://example.com/?b=2&a=1", "<html>...</html>")
        html = cache.get("https://example.com/?b=2&a=1")

        # Binary payloads
        cache.set("logo", png_bytes)
        data = cache.get("logo", {"stringify_responses": False})
    """

    def __init__(
        self,
        options: Optional[Union[CacheOptions, Mapping[str, Any]]] = None,
        store: Optional[ObjectStore] = None,
        **kwargs: Any,
    ):
        """Initialize cache.

        Args:
            options: CacheOptions or mapping of option names
            store: Object store (defaults to an S3ObjectStore built from
                the client configuration). A given store takes the
                configured bucket and ``s3_options['params']`` as its
                default request parameters.
            **kwargs: Further options, overriding ``options``

        Raises:
            ConfigurationError: Missing credentials/bucket or bad options
        """
        self.options = build_options(options, **kwargs)
        self.options.validate()
        apply_log_levels(self.options.log_level, self.options.log_levels)

        self.client_config = build_client_config(self.options)
        if store is None:
            store = S3ObjectStore(self.client_config)
        else:
            # bucket and default params come from this cache's configuration
            store.params = {**store.params, **self.client_config["params"]}
        self.store = store

        self._resolver = KeyResolver(self.options)
        self._stats = CacheStats(started_at=datetime.now())
        self._lock = threading.Lock()

    def _count(self, **deltas: int) -> None:
        with self._lock:
            for name, delta in deltas.items():
                setattr(self._stats, name, getattr(self._stats, name) + delta)

    def _resolve(self, key: str, options: CacheOptions) -> str:
        resolver = self._resolver if options is self.options else KeyResolver(options)
        return resolver.resolve(key)

    def _prepare(
        self,
        key: Any,
        overrides: Optional[Mapping[str, Any]],
    ) -> Tuple[CacheOptions, Dict[str, Any]]:
        check_key(key)
        options = self.options.merge(overrides)
        return options, {"Key": self._resolve(key, options)}

    def physical_key(self, key: str, options: Optional[Mapping[str, Any]] = None) -> str:
        """Get the object key a cache key is stored under.

        Args:
            key: Cache key
            options: Per-call options

        Returns:
            Physical object key
        """
        check_key(key)
        return self._resolve(key, self.options.merge(options))

    def get(self, key: str, options: Optional[Mapping[str, Any]] = None) -> Optional[Payload]:
        """Get value from cache.

        Args:
            key: Cache key
            options: Per-call options

        Returns:
            Cached value, or None when absent or expired
        """
        log = _loggers["get"]
        merged, params = self._prepare(key, options)
        params.update(_request_overrides(options))

        log.debug(f"Getting key: {key}")
        try:
            entry = self.store.get_object(params)
        except ObjectNotFoundError:
            log.debug(f"Key not found: {key}")
            self._count(misses=1)
            return None

        if entry.is_expired:
            self._count(misses=1, expirations=1)
            if merged.proactive_expiry:
                log.debug(f"Object is expired, deleting it: {key}")
                self._expire(params)
            else:
                log.debug(f"Object is expired, ignoring result: {key}")
            return None

        self._count(hits=1)
        return decode_response(entry, merged.stringify_responses)

    def _expire(self, params: Mapping[str, Any]) -> None:
        """Best-effort removal of an expired object."""
        request = {k: v for k, v in params.items() if k in ("Key", "Bucket")}
        try:
            self.store.delete_object(request)
        except Exception as e:
            _loggers["get"].warning(f"Failed to delete expired object {request['Key']}: {e}")

    def set(self, key: str, value: Payload, options: Optional[Mapping[str, Any]] = None) -> None:
        """Set value in cache.

        Args:
            key: Cache key
            value: Text or bytes
            options: Per-call options
        """
        log = _loggers["set"]
        check_key(key)
        body = to_payload(value)
        merged, params = self._prepare(key, options)
        params["Body"] = body

        if merged.acl:
            params["ACL"] = merged.acl
        if merged.content_type:
            params["ContentType"] = merged.content_type

        expires = compute_expiry(merged.ttl, merged.ttl_units)
        if expires is not None:
            params["Expires"] = expires
            log.debug(f"Adding object expires at {int(expires.timestamp())}")

        params.update(_request_overrides(options))

        log.debug(f"Setting key: {key}")
        self.store.put_object(params)
        self._count(sets=1)

    def delete(self, key: str, options: Optional[Mapping[str, Any]] = None) -> None:
        """Delete key from cache. Missing keys are not an error.

        Args:
            key: Cache key
            options: Per-call options
        """
        _, params = self._prepare(key, options)
        params.update(_request_overrides(options))

        _loggers["del"].debug(f"Deleting key: {key}")
        self.store.delete_object(params)
        self._count(deletes=1)

    # "del" is reserved
    del_ = delete

    def keys(
        self,
        prefix: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> List[str]:
        """List the object keys of all stored entries.

        Pages are fetched one after another until the store reports no
        more. Keys come back in store order. Hashing destroys key
        prefixes, so ``prefix`` only filters when keys are stored
        unhashed and unchunked; otherwise it is ignored.

        Args:
            prefix: Logical key prefix
            options: Per-call options

        Returns:
            Physical keys
        """
        log = _loggers["keys"]
        merged = self.options.merge(options)
        scope = (merged.path_prefix or "").strip(SEPARATOR)

        params: Dict[str, Any] = {}
        if prefix and prefix_is_addressable(merged):
            if merged.normalize_lowercase:
                prefix = prefix.lower()
            params["Prefix"] = f"{scope}{SEPARATOR}{prefix}" if scope else prefix
        else:
            if prefix:
                log.debug(f"Ignoring prefix {prefix!r}: keys are hashed")
            if scope:
                params["Prefix"] = f"{scope}{SEPARATOR}"
        params.update(_request_overrides(options))

        log.debug(f"Enumerating keys by prefix: {params.get('Prefix')}")
        keys: List[str] = []
        token = None
        while True:
            page = self.store.list_objects(params, token)
            keys.extend(item.key for item in page.items)
            if not page.truncated or not page.next_token:
                break
            token = page.next_token

        log.debug(f"Found {len(keys)} keys")
        return keys

    def head(self, key: str, options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Get entry metadata without the payload.

        Args:
            key: Cache key
            options: Per-call options

        Returns:
            Metadata mapping (ContentType, ContentLength, Expires, ...)

        Raises:
            ObjectNotFoundError: Key does not exist
        """
        _, params = self._prepare(key, options)
        params.update(_request_overrides(options))

        _loggers["head"].debug(f"Getting metadata on key: {key}")
        return self.store.head_object(params).to_headers()

    def ttl(self, key: str, options: Optional[Mapping[str, Any]] = None) -> int:
        """Get the expiry of an entry.

        Args:
            key: Cache key
            options: Per-call options

        Returns:
            Expiry as epoch seconds, or NO_EXPIRY

        Raises:
            ObjectNotFoundError: Key does not exist
        """
        _, params = self._prepare(key, options)
        params.update(_request_overrides(options))

        _loggers["ttl"].debug(f"Getting TTL on key: {key}")
        expires = self.store.head_object(params).expires_timestamp
        return NO_EXPIRY if expires is None else expires

    def reset(self, options: Optional[Mapping[str, Any]] = None) -> int:
        """Delete every object in the bucket.

        Listing is serial; each page is handed to a small pool of batch
        deletes. All batches run to completion before failures are
        reported, and nothing is rolled back.

        Args:
            options: Per-call options

        Returns:
            Number of objects deleted

        Raises:
            BatchDeleteError: One or more batches failed, or listing
                failed after batches were already submitted
        """
        log = _loggers["reset"]
        self.options.merge(options)
        list_params = _request_overrides(options)
        # DeleteObjects only shares the bucket with the listing
        batch_params = {k: v for k, v in list_params.items() if k == "Bucket"}

        log.info("Resetting cache")
        batches = []
        token = None
        listing_error: Optional[Exception] = None
        with ThreadPoolExecutor(
            max_workers=RESET_CONCURRENCY,
            thread_name_prefix="S3Cache-reset",
        ) as executor:
            while True:
                try:
                    page = self.store.list_objects(list_params, token)
                except Exception as e:
                    log.error(f"Listing failed after {len(batches)} batches: {e}")
                    listing_error = e
                    break
                keys = [item.key for item in page.items]
                if keys:
                    future = executor.submit(self.store.delete_objects, keys, batch_params)
                    batches.append((future, keys))
                if not page.truncated or not page.next_token:
                    break
                token = page.next_token

        failures: List[DeleteFailure] = []
        errors: List[BaseException] = []
        deleted = 0
        for future, keys in batches:
            try:
                batch_failures = future.result()
            except Exception as e:
                log.error(f"Batch delete of {len(keys)} keys failed: {e}")
                errors.append(e)
                continue
            failures.extend(batch_failures)
            deleted += len(keys) - len(batch_failures)

        if listing_error is not None:
            if not batches:
                raise listing_error
            errors.append(listing_error)
            raise BatchDeleteError(failures, errors, deleted) from listing_error

        if failures or errors:
            raise BatchDeleteError(failures, errors, deleted)

        log.info(f"Reset deleted {deleted} objects")
        return deleted

    def get_stats(self) -> CacheStats:
        """Get cache statistics.

        Returns:
            CacheStats instance
        """
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        with self._lock:
            self._stats.reset()

    def __contains__(self, key: str) -> bool:
        """Check if a live entry exists for key."""
        _, params = self._prepare(key, None)
        try:
            entry = self.store.head_object(params)
        except ObjectNotFoundError:
            return False
        return not entry.is_expired

    def __repr__(self) -> str:
        return f"S3Cache(bucket={self.options.bucket!r}, store={self.store!r})"


__all__ = [
    "S3Cache",
    "CacheStats",
    "NO_EXPIRY",
    "check_key",
    "to_payload",
    "decode_response",
    "prefix_is_addressable",
]
