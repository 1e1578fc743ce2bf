"""S3Cache Errors - Error Taxonomy.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from s3cache_core.store.backend import DeleteFailure


class S3CacheError(Exception):
    """Base class for all cache errors."""


class ConfigurationError(S3CacheError, ValueError):
    """Missing or malformed configuration."""


class InvalidKeyError(S3CacheError, TypeError):
    """Key is not a string."""


class InvalidValueError(S3CacheError, TypeError):
    """Value cannot be stored as a byte payload."""


class StoreRequestError(S3CacheError):
    """Request rejected by the storage backend before it was executed."""


class ObjectNotFoundError(S3CacheError, KeyError):
    """Backend reports that the object does not exist.

    Attributes:
        key: Physical key that was requested
    """

    def __init__(self, key: Optional[str], message: Optional[str] = None):
        self.key = key
        super().__init__(message or f"Object not found: {key}")

    def __str__(self) -> str:
        return str(self.args[0])


class BatchDeleteError(S3CacheError):
    """One or more batch deletes failed during a reset.

    Attributes:
        failures: Keys the backend refused to delete
        errors: Exceptions raised by whole batches
        deleted: Number of objects removed before reporting
    """

    def __init__(
        self,
        failures: List["DeleteFailure"],
        errors: List[BaseException],
        deleted: int = 0,
    ):
        self.failures = failures
        self.errors = errors
        self.deleted = deleted
        super().__init__(
            f"Reset incomplete: {len(failures)} key(s) failed, "
            f"{len(errors)} batch(es) errored, {deleted} deleted"
        )


__all__ = [
    "S3CacheError",
    "ConfigurationError",
    "InvalidKeyError",
    "InvalidValueError",
    "StoreRequestError",
    "ObjectNotFoundError",
    "BatchDeleteError",
]
