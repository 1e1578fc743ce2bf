"""Cache module - Cache operations, options and entries.

This module provides the S3-backed cache interface and its configuration.
"""

from s3cache_core.cache.entry import (
    CacheEntry,
    EntryState,
    to_datetime,
    to_timestamp,
)
from s3cache_core.cache.options import (
    CacheOptions,
    DEFAULT_OPTIONS,
    build_client_config,
    compute_expiry,
    log_levels_from_env,
)
from s3cache_core.cache.cache import (
    S3Cache,
    CacheStats,
    NO_EXPIRY,
)

__all__ = [
    "CacheEntry",
    "EntryState",
    "to_datetime",
    "to_timestamp",
    "CacheOptions",
    "DEFAULT_OPTIONS",
    "build_client_config",
    "compute_expiry",
    "log_levels_from_env",
    "S3Cache",
    "CacheStats",
    "NO_EXPIRY",
]
