"""S3Cache - Key/Value Cache Persisted in S3.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A caching store that keeps entries as objects in an S3 bucket, with:
- Deterministic key addressing (normalize, checksum, folder-chunk, prefix)
- URL and path normalization of keys
- Client-side TTL with optional proactive expiry
- Text and byte-exact binary payloads
- Paginated listing and bulk reset
- Pluggable object stores (S3, in-memory)

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                         S3Cache System                          │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐             │
    │  │   S3Cache   │  │   Options   │  │   Entry     │   CACHE     │
    │  │ get/set/del │  │ merge/ttl   │  │  expiry     │   LAYER     │
    │  └──────┬──────┘  └──────┬──────┘  └──────┬──────┘             │
    │         │                │                │                     │
    │  ┌──────┴────────────────┴────────────────┴──────┐             │
    │  │              Key Addressing                    │             │
    │  │  ┌──────────┐  ┌──────────┐  ┌──────────┐    │  ADDRESSING │
    │  │  │Normalizer│  │ Checksum │  │ Resolver │    │   LAYER     │
    │  │  └──────────┘  └──────────┘  └──────────┘    │             │
    │  └──────────────────────┬────────────────────────┘             │
    │                         │                                       │
    │  ┌──────────────────────┴────────────────────────┐             │
    │  │              Object Stores                     │             │
    │  │        ┌────────┐        ┌────────┐           │   STORAGE   │
    │  │        │   S3   │        │ Memory │           │   LAYER     │
    │  │        └────────┘        └────────┘           │             │
    │  └──────────────────────────────────────────────┘             │
    └─────────────────────────────────────────────────────────────────┘

Example Usage:
    from s3cache_core import S3Cache

    cache = S3Cache(
        access_key="AKIA...",
        secret_key="...",
        bucket="my-cache-bucket",
        ttl=1,
        ttl_units="hours",
        normalize_lowercase=True,
        parse_key_as_url=True,
    )
    cache.set("https://example.com/page?b=2&a=1", html)
    html = cache.get("HTTPS://EXAMPLE.COM/page?a=1&b=2")

    # Testing without S3
    from s3cache_core import MemoryObjectStore

    store = MemoryObjectStore({"Bucket": "cache"})
    cache = S3Cache(access_key="a", secret_key="s", bucket="cache", store=store)
"""

__version__ = "1.3.0"
__author__ = "BlackRoad OS"

from s3cache_core.errors import (
    S3CacheError,
    ConfigurationError,
    InvalidKeyError,
    InvalidValueError,
    ObjectNotFoundError,
    StoreRequestError,
    BatchDeleteError,
)
from s3cache_core.addressing import (
    KeyResolver,
    derive_physical_key,
    normalize_path,
    normalize_url,
    checksum_key,
)
from s3cache_core.cache.entry import CacheEntry, EntryState
from s3cache_core.cache.options import (
    CacheOptions,
    compute_expiry,
    log_levels_from_env,
)
from s3cache_core.cache.cache import (
    S3Cache,
    CacheStats,
    NO_EXPIRY,
)
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
    # Cache
    "S3Cache",
    "CacheOptions",
    "CacheStats",
    "CacheEntry",
    "EntryState",
    "NO_EXPIRY",
    "compute_expiry",
    "log_levels_from_env",
    # Addressing
    "KeyResolver",
    "derive_physical_key",
    "normalize_path",
    "normalize_url",
    "checksum_key",
    # Storage
    "ObjectStore",
    "ObjectPage",
    "ObjectSummary",
    "DeleteFailure",
    "StorageStats",
    "MemoryObjectStore",
    "S3ObjectStore",
    # Errors
    "S3CacheError",
    "ConfigurationError",
    "InvalidKeyError",
    "InvalidValueError",
    "ObjectNotFoundError",
    "StoreRequestError",
    "BatchDeleteError",
]
