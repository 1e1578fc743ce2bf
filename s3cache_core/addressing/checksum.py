"""S3Cache Checksum - Key Digests.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import base64
import hashlib

from s3cache_core.errors import ConfigurationError

NO_CHECKSUM = "none"

ENCODINGS = ("hex", "base64", "latin1")


def validate_algorithm(algorithm: str) -> None:
    """Raise ConfigurationError unless algorithm can checksum a key."""
    if algorithm == NO_CHECKSUM:
        return
    if not isinstance(algorithm, str):
        raise ConfigurationError(f"Checksum algorithm must be a string, got {algorithm!r}")
    name = algorithm.lower()
    # shake digests need an explicit length
    if name.startswith("shake"):
        raise ConfigurationError(f"Variable-length digest not supported: {algorithm}")
    try:
        hashlib.new(name)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Unknown checksum algorithm: {algorithm}") from e


def validate_encoding(encoding: str) -> None:
    """Raise ConfigurationError unless encoding is supported."""
    if encoding not in ENCODINGS:
        raise ConfigurationError(
            f"Unknown checksum encoding: {encoding!r} (expected one of {', '.join(ENCODINGS)})"
        )


def _encode(data: bytes, encoding: str) -> str:
    if encoding == "hex":
        return data.hex()
    if encoding == "base64":
        return base64.b64encode(data).decode("ascii")
    if encoding == "latin1":
        return data.decode("latin-1")
    raise ConfigurationError(f"Unknown checksum encoding: {encoding!r}")


def checksum_key(key: str, algorithm: str = "md5", encoding: str = "hex") -> str:
    """Replace a key with its digest.

    With the ``none`` algorithm the key is not hashed: a ``base64``
    encoding still base64-encodes the raw key, any other encoding
    returns it untouched.

    Args:
        key: Normalized key
        algorithm: hashlib algorithm name or ``none``
        encoding: hex, base64 or latin1

    Returns:
        Encoded digest
    """
    if algorithm == NO_CHECKSUM:
        if encoding == "base64":
            return _encode(key.encode("utf-8"), encoding)
        return key

    validate_algorithm(algorithm)
    digest = hashlib.new(algorithm.lower(), key.encode("utf-8")).digest()
    return _encode(digest, encoding)


__all__ = [
    "NO_CHECKSUM",
    "ENCODINGS",
    "checksum_key",
    "validate_algorithm",
    "validate_encoding",
]
