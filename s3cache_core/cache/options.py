"""S3Cache Options - Configuration, Merging and Validation.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Union

from dateutil.relativedelta import relativedelta

from s3cache_core.addressing.checksum import validate_algorithm, validate_encoding
from s3cache_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

Duration = Union[int, float, timedelta, relativedelta, Mapping[str, float]]

# Unit aliases, moment.js style ("m" is minutes, "M" is months).
TTL_UNITS: Dict[str, str] = {
    "ms": "milliseconds",
    "millisecond": "milliseconds",
    "milliseconds": "milliseconds",
    "s": "seconds",
    "second": "seconds",
    "seconds": "seconds",
    "m": "minutes",
    "minute": "minutes",
    "minutes": "minutes",
    "h": "hours",
    "hour": "hours",
    "hours": "hours",
    "d": "days",
    "day": "days",
    "days": "days",
    "w": "weeks",
    "week": "weeks",
    "weeks": "weeks",
    "M": "months",
    "month": "months",
    "months": "months",
    "y": "years",
    "year": "years",
    "years": "years",
}

CALENDAR_UNITS = ("months", "years")

REQUIRED_OPTIONS = ("access_key", "secret_key", "bucket")

# Logger names per operation, for log_levels / S3CACHE_<OP>_LOGLEVEL
OPERATION_LOGGERS: Dict[str, str] = {
    "get": "s3cache_core.cache.cache.get",
    "set": "s3cache_core.cache.cache.set",
    "del": "s3cache_core.cache.cache.del",
    "keys": "s3cache_core.cache.cache.keys",
    "head": "s3cache_core.cache.cache.head",
    "ttl": "s3cache_core.cache.cache.ttl",
    "reset": "s3cache_core.cache.cache.reset",
    "resolver": "s3cache_core.addressing.resolver",
}

ROOT_LOGGER = "s3cache_core"
ENV_PREFIX = "S3CACHE"


@dataclass(frozen=True)
class CacheOptions:
    """Cache configuration.

    Attributes:
        access_key: AWS access key id
        secret_key: AWS secret access key
        bucket: Bucket holding the cache objects
        path_prefix: Folder all objects are placed under
        folder_path_depth: Number of folders the checksum is chunked into
        folder_path_chunk_size: Characters per folder
        checksum_algorithm: hashlib algorithm, or "none"
        checksum_encoding: hex, base64 or latin1
        normalize_lowercase: Lowercase keys before anything else
        parse_key_as_path: Treat keys as POSIX paths
        normalize_path: Collapse "." / ".." / "//" in path keys
        parse_key_as_url: Treat keys as URLs (wins over parse_key_as_path)
        normalize_url: Sort query parameters of URL keys
        ttl: Expiry amount, timedelta, relativedelta or {unit: amount}
        ttl_units: Unit of a numeric ttl
        proactive_expiry: Delete expired objects when a read finds them
        stringify_responses: Decode payloads as UTF-8 text on get
        acl: Canned ACL sent with every set
        content_type: Content type sent with every set
        s3_options: Backend options; see build_client_config
        log_level: Level for the package logger
        log_levels: Levels per operation logger
    """

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    bucket: Optional[str] = None

    path_prefix: str = ""
    folder_path_depth: int = 2
    folder_path_chunk_size: int = 2
    checksum_algorithm: str = "md5"
    checksum_encoding: str = "hex"

    normalize_lowercase: bool = False
    parse_key_as_path: bool = False
    normalize_path: bool = True
    parse_key_as_url: bool = False
    normalize_url: bool = True

    ttl: Optional[Duration] = None
    ttl_units: str = "seconds"
    proactive_expiry: bool = False

    stringify_responses: bool = True
    acl: Optional[str] = None
    content_type: Optional[str] = None

    s3_options: Optional[Mapping[str, Any]] = None

    log_level: Optional[str] = None
    log_levels: Mapping[str, str] = field(default_factory=dict)

    def validate(self, require_identity: bool = True) -> None:
        """Check the configuration, raising ConfigurationError.

        Args:
            require_identity: Also require credentials and bucket
        """
        if require_identity:
            for name in REQUIRED_OPTIONS:
                if not getattr(self, name):
                    raise ConfigurationError(f"Did not get required parameter: {name}")

        for name in ("folder_path_depth", "folder_path_chunk_size"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")

        validate_algorithm(self.checksum_algorithm)
        validate_encoding(self.checksum_encoding)
        canonical_unit(self.ttl_units)
        compute_expiry(self.ttl, self.ttl_units)

        if self.s3_options is not None and not isinstance(self.s3_options, Mapping):
            raise ConfigurationError("Expected a mapping for s3_options")

    def merge(self, overrides: Optional[Mapping[str, Any]] = None) -> "CacheOptions":
        """Return a copy with per-call overrides applied.

        Args:
            overrides: Option names mapped to values

        Returns:
            Merged options
        """
        if not overrides:
            return self

        if not isinstance(overrides, Mapping):
            raise ConfigurationError(f"Expected a mapping of options, got {type(overrides).__name__}")

        unknown = set(overrides) - OPTION_NAMES
        if unknown:
            raise ConfigurationError(f"Unknown option(s): {', '.join(sorted(unknown))}")

        merged = dataclasses.replace(self, **overrides)
        merged.validate(require_identity=False)
        return merged


OPTION_NAMES = frozenset(f.name for f in dataclasses.fields(CacheOptions))

DEFAULT_OPTIONS = CacheOptions()


def build_options(
    options: Optional[Union[CacheOptions, Mapping[str, Any]]] = None,
    **kwargs: Any,
) -> CacheOptions:
    """Merge defaults, an options object or mapping, and keyword options."""
    if isinstance(options, CacheOptions):
        base = options
    else:
        base = DEFAULT_OPTIONS.merge(options)
    return base.merge(kwargs)


def build_client_config(options: CacheOptions) -> Dict[str, Any]:
    """Translate options into the storage client configuration.

    ``s3_options`` is merged over the credentials shallowly, except for
    its ``params`` mapping, which is merged over ``{"Bucket": bucket}``
    so that default request parameters extend rather than replace the
    bucket. A ``Bucket`` inside ``params`` wins.

    Args:
        options: Validated cache options

    Returns:
        Client configuration dictionary
    """
    config: Dict[str, Any] = {
        "aws_access_key_id": options.access_key,
        "aws_secret_access_key": options.secret_key,
        "params": {"Bucket": options.bucket},
    }

    if options.s3_options is None:
        return config

    if not isinstance(options.s3_options, Mapping):
        raise ConfigurationError("Expected a mapping for s3_options")

    extra = dict(options.s3_options)
    if "params" in extra:
        params = extra["params"]
        if not isinstance(params, Mapping):
            raise ConfigurationError("Expected a mapping for s3_options['params']")
        extra["params"] = {**config["params"], **params}

    config.update(extra)
    return config


def canonical_unit(unit: str) -> str:
    """Resolve a ttl unit alias to its canonical name."""
    if not isinstance(unit, str):
        raise ConfigurationError(f"ttl_units must be a string, got {unit!r}")
    resolved = TTL_UNITS.get(unit) or TTL_UNITS.get(unit.lower())
    # "M" (months) must not be reached through lowercasing "m"
    if unit not in TTL_UNITS and len(unit) == 1:
        resolved = None
    if resolved is None:
        raise ConfigurationError(f"Unknown ttl unit: {unit!r}")
    return resolved


def _delta(amount: float, unit: str) -> Union[timedelta, relativedelta]:
    unit = canonical_unit(unit)
    if unit in CALENDAR_UNITS:
        if amount != int(amount):
            raise ConfigurationError(f"Fractional {unit} are not supported: {amount}")
        return relativedelta(**{unit: int(amount)})
    return timedelta(**{unit: amount})


def compute_expiry(
    ttl: Optional[Duration],
    units: str = "seconds",
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Compute the absolute expiry for a ttl.

    Args:
        ttl: Amount in ``units``, a timedelta, a relativedelta, or a
            mapping of unit names to amounts
        units: Unit of a numeric ttl
        now: Reference time (defaults to the current UTC time)

    Returns:
        Aware UTC datetime, or None when no ttl is configured
    """
    if not ttl:
        return None

    moment = now or datetime.now(timezone.utc)

    if isinstance(ttl, (timedelta, relativedelta)):
        return moment + ttl
    if isinstance(ttl, Mapping):
        for unit, amount in ttl.items():
            moment = moment + _delta(amount, unit)
        return moment
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        raise ConfigurationError(f"Unsupported ttl: {ttl!r}")

    return moment + _delta(ttl, units)


def _level(name: str) -> int:
    level = name.upper()
    # loglevel-style TRACE has no stdlib equivalent
    if level == "TRACE":
        level = "DEBUG"
    value = logging.getLevelName(level)
    if not isinstance(value, int):
        raise ConfigurationError(f"Unknown log level: {name!r}")
    return value


def apply_log_levels(
    log_level: Optional[str] = None,
    log_levels: Optional[Mapping[str, str]] = None,
) -> None:
    """Set the package and per-operation logger levels.

    Args:
        log_level: Level for the ``s3cache_core`` logger
        log_levels: Operation name mapped to level
    """
    if log_level:
        logging.getLogger(ROOT_LOGGER).setLevel(_level(log_level))

    for operation, level in (log_levels or {}).items():
        if operation not in OPERATION_LOGGERS:
            raise ConfigurationError(f"Unknown log operation: {operation!r}")
        logging.getLogger(OPERATION_LOGGERS[operation]).setLevel(_level(level))


def log_levels_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Read log levels from the environment once.

    ``S3CACHE_LOGLEVEL`` sets the package level and
    ``S3CACHE_<OP>_LOGLEVEL`` (``S3CACHE_GET_LOGLEVEL``, ...) sets the
    level of one operation.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        ``log_level`` / ``log_levels`` options, ready to pass to S3Cache
    """
    environ = os.environ if environ is None else environ
    resolved: Dict[str, Any] = {}

    main = environ.get(f"{ENV_PREFIX}_LOGLEVEL")
    if main:
        resolved["log_level"] = main

    levels = {}
    for operation in OPERATION_LOGGERS:
        value = environ.get(f"{ENV_PREFIX}_{operation.upper()}_LOGLEVEL")
        if value:
            levels[operation] = value
    if levels:
        resolved["log_levels"] = levels

    return resolved


__all__ = [
    "CacheOptions",
    "DEFAULT_OPTIONS",
    "OPTION_NAMES",
    "TTL_UNITS",
    "build_options",
    "build_client_config",
    "canonical_unit",
    "compute_expiry",
    "apply_log_levels",
    "log_levels_from_env",
]
