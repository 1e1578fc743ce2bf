"""S3Cache Entry - Stored Object with Client-Side Expiry.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Dict, Optional, Union

from dateutil import parser as dateutil_parser

Timestamp = Union[datetime, int, float, str]


def to_datetime(value: Optional[Timestamp]) -> Optional[datetime]:
    """Coerce an expiry value to an aware UTC datetime.

    Accepts datetimes (naive ones are taken as UTC), epoch seconds as
    numbers or numeric strings, and date strings such as the HTTP-date
    format S3 returns in ``Expires`` headers.

    Args:
        value: Timestamp in any supported form

    Returns:
        Aware datetime, or None for None/empty input
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        raise TypeError(f"Not a timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromtimestamp(float(text), tz=timezone.utc)
        except ValueError:
            parsed = dateutil_parser.parse(text)
    else:
        raise TypeError(f"Not a timestamp: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_timestamp(value: Optional[Timestamp]) -> Optional[int]:
    """Coerce an expiry value to whole epoch seconds."""
    parsed = to_datetime(value)
    if parsed is None:
        return None
    return int(parsed.timestamp())


class EntryState(Enum):
    """Cache entry states."""

    LIVE = auto()        # No expiry, or expiry in the future
    EXPIRED = auto()     # Expiry has passed, object still stored


@dataclass
class CacheEntry:
    """An object as held by the storage backend.

    Attributes:
        key: Physical key
        body: Payload bytes (None for metadata-only reads)
        expires_at: Absolute expiry, if any
        content_type: MIME type
        content_length: Payload size in bytes
        last_modified: Last write time
        metadata: Remaining backend attributes (ACL, ETag, user metadata)
    """

    key: str
    body: Optional[bytes] = None
    expires_at: Optional[datetime] = None
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    last_modified: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.expires_at = to_datetime(self.expires_at)
        if self.content_length is None and self.body is not None:
            self.content_length = len(self.body)

    @property
    def expires_timestamp(self) -> Optional[int]:
        """Get expiry as epoch seconds."""
        return to_timestamp(self.expires_at)

    @property
    def remaining_ttl(self) -> Optional[float]:
        """Get seconds until expiry, floored at zero."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at.timestamp() - time.time())

    @property
    def is_expired(self) -> bool:
        """Check whether the expiry lies strictly in the past."""
        if self.expires_at is None:
            return False
        return self.expires_at.timestamp() < time.time()

    @property
    def state(self) -> EntryState:
        """Get entry state."""
        return EntryState.EXPIRED if self.is_expired else EntryState.LIVE

    def without_body(self) -> "CacheEntry":
        """Copy of this entry with the payload dropped."""
        return dataclasses.replace(self, body=None, metadata=dict(self.metadata))

    def to_headers(self) -> Dict[str, Any]:
        """Convert to an S3-style header mapping.

        Returns:
            Dictionary of metadata fields, without the body
        """
        headers: Dict[str, Any] = dict(self.metadata)
        if self.content_type is not None:
            headers["ContentType"] = self.content_type
        if self.content_length is not None:
            headers["ContentLength"] = self.content_length
        if self.last_modified is not None:
            headers["LastModified"] = self.last_modified
        if self.expires_at is not None:
            headers["Expires"] = self.expires_at
        return headers

    def __repr__(self) -> str:
        return (
            f"CacheEntry(key={self.key!r}, state={self.state.name}, "
            f"size={self.content_length})"
        )


__all__ = ["CacheEntry", "EntryState", "to_datetime", "to_timestamp"]
