"""S3Cache Key Resolver - Logical to Physical Key Mapping.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from s3cache_core.addressing.checksum import checksum_key
from s3cache_core.addressing.normalizer import normalize_path, normalize_url

if TYPE_CHECKING:
    from s3cache_core.cache.options import CacheOptions

logger = logging.getLogger(__name__)

SEPARATOR = "/"


def folder_chunks(key: str, depth: int, chunk_size: int) -> List[str]:
    """Split the head of a key into fixed-size folder names.

    Chunks past the end of the key come back short or empty.

    Args:
        key: Checksummed key
        depth: Number of chunks
        chunk_size: Characters per chunk

    Returns:
        List of ``depth`` chunks
    """
    return [key[level * chunk_size:(level + 1) * chunk_size] for level in range(depth)]


class KeyResolver:
    """Derives storage keys from cache keys for one configuration.

    Pipeline:
    1. Lowercase (``normalize_lowercase``)
    2. URL normalization (``parse_key_as_url``), or else path
       normalization (``parse_key_as_path``)
    3. Checksum (``checksum_algorithm`` / ``checksum_encoding``)
    4. Folder chunking (``folder_path_depth`` x ``folder_path_chunk_size``)
    5. Prefixing (``path_prefix``)

    The same key and configuration always give the same physical key.
    Changing any addressing field moves every key.

    Example:
        resolver = KeyResolver(CacheOptions(bucket="b", access_key="a", secret_key="s"))
        resolver.resolve("user:1")  # 'a7/b2/a7b2...'
    """

    def __init__(self, options: "CacheOptions"):
        self.options = options

    def normalize(self, key: str) -> str:
        """Apply the configured normalization steps.

        Args:
            key: Logical key

        Returns:
            Normalized key, before checksumming
        """
        options = self.options
        normalized = key

        if options.normalize_lowercase:
            normalized = normalized.lower()

        if options.parse_key_as_url:
            normalized = normalize_url(normalized, sort_query=options.normalize_url)
        elif options.parse_key_as_path:
            normalized = normalize_path(normalized, resolve=options.normalize_path)

        if options.normalize_lowercase or options.parse_key_as_url or options.parse_key_as_path:
            logger.debug(f"Key normalized: {normalized}")

        return normalized

    def resolve(self, key: str) -> str:
        """Derive the physical key.

        Args:
            key: Logical key

        Returns:
            Storage-ready object key
        """
        options = self.options
        digest = checksum_key(
            self.normalize(key),
            algorithm=options.checksum_algorithm,
            encoding=options.checksum_encoding,
        )

        segments = folder_chunks(
            digest, options.folder_path_depth, options.folder_path_chunk_size
        )
        segments.append(digest)

        prefix = (options.path_prefix or "").strip(SEPARATOR)
        if prefix:
            segments.insert(0, prefix)

        physical = SEPARATOR.join(segments)
        logger.debug(f"Final path: {physical}")
        return physical


def derive_physical_key(key: str, options: "CacheOptions") -> str:
    """Derive the physical key for a logical key.

    Args:
        key: Logical key
        options: Addressing configuration

    Returns:
        Storage-ready object key
    """
    return KeyResolver(options).resolve(key)


__all__ = ["KeyResolver", "derive_physical_key", "folder_chunks", "SEPARATOR"]
