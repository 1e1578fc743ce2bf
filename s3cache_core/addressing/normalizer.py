"""S3Cache Normalizer - Lexical Key Normalization.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import posixpath
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)


def _lower_host(netloc: str) -> str:
    """Lowercase the host part of a netloc, leaving userinfo alone."""
    userinfo, sep, host = netloc.rpartition("@")
    return f"{userinfo}{sep}{host.lower()}"


def normalize_url(key: str, sort_query: bool = True) -> str:
    """Parse a key as a URL and re-serialize it.

    Scheme and host come back lowercased. When ``sort_query`` is set,
    query parameters are ordered by name so that URLs which differ only
    in parameter order produce the same string. Values of a repeated
    parameter keep their relative order.

    Malformed input never raises: whatever the parser recovers is
    re-serialized, and input it rejects outright is returned unchanged.

    Args:
        key: Key to normalize
        sort_query: Sort query parameters by name

    Returns:
        Normalized URL string
    """
    try:
        parts = urlsplit(key)
    except ValueError as e:
        logger.debug(f"Could not parse {key!r} as URL: {e}")
        return key

    query = parts.query
    if sort_query and query:
        params = parse_qs(query, keep_blank_values=True)
        query = urlencode(
            [(name, value) for name in sorted(params) for value in params[name]]
        )

    return urlunsplit(
        (parts.scheme, _lower_host(parts.netloc), parts.path, query, parts.fragment)
    )


def normalize_path(key: str, resolve: bool = True) -> str:
    """Parse a key as a POSIX path and re-join it.

    With ``resolve`` the path is collapsed lexically: redundant
    separators and ``.``/``..`` segments are removed. The filesystem is
    never consulted and relative paths stay relative.

    Args:
        key: Key to normalize
        resolve: Collapse separators and relative segments

    Returns:
        Normalized path string
    """
    head, tail = posixpath.split(key)
    location = posixpath.join(head, tail) if head else tail

    if resolve:
        location = posixpath.normpath(location)
        # normpath keeps exactly two leading slashes
        if location.startswith("//"):
            location = "/" + location.lstrip("/")

    return location


__all__ = ["normalize_url", "normalize_path"]
