"""Addressing module - Cache key normalization and physical key derivation."""

from s3cache_core.addressing.checksum import NO_CHECKSUM, checksum_key
from s3cache_core.addressing.normalizer import normalize_path, normalize_url
from s3cache_core.addressing.resolver import (
    KeyResolver,
    derive_physical_key,
    folder_chunks,
)

__all__ = [
    "NO_CHECKSUM",
    "checksum_key",
    "normalize_path",
    "normalize_url",
    "KeyResolver",
    "derive_physical_key",
    "folder_chunks",
]
