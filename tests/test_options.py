"""Tests for cache configuration.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest
from dateutil.relativedelta import relativedelta

from s3cache_core.cache.options import (
    OPERATION_LOGGERS,
    ROOT_LOGGER,
    CacheOptions,
    apply_log_levels,
    build_client_config,
    build_options,
    canonical_unit,
    compute_expiry,
    log_levels_from_env,
)
from s3cache_core.errors import ConfigurationError

IDENTITY = {"access_key": "AKIATEST", "secret_key": "secret", "bucket": "cache-bucket"}

NOW = datetime(2026, 1, 31, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def restore_log_levels():
    """Put logger levels back after a test changes them."""
    names = [ROOT_LOGGER] + list(OPERATION_LOGGERS.values())
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestCacheOptions:
    """Tests for CacheOptions."""

    def test_defaults(self):
        """Test default addressing values."""
        options = CacheOptions()
        assert options.folder_path_depth == 2
        assert options.folder_path_chunk_size == 2
        assert options.checksum_algorithm == "md5"
        assert options.checksum_encoding == "hex"
        assert options.normalize_path is True
        assert options.normalize_url is True
        assert options.stringify_responses is True
        assert options.proactive_expiry is False

    @pytest.mark.parametrize("missing", ["access_key", "secret_key", "bucket"])
    def test_required(self, missing):
        """Test credentials and bucket are required."""
        values = dict(IDENTITY)
        del values[missing]
        with pytest.raises(ConfigurationError, match=missing):
            CacheOptions(**values).validate()

    def test_configuration_error_is_value_error(self):
        """Test configuration errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            CacheOptions().validate()

    def test_identity_optional(self):
        """Test partial options validate without identity."""
        CacheOptions().validate(require_identity=False)

    @pytest.mark.parametrize("value", [-1, 1.5, True, "2"])
    def test_bad_depth(self, value):
        """Test depth must be a non-negative integer."""
        with pytest.raises(ConfigurationError):
            CacheOptions(folder_path_depth=value, **IDENTITY).validate()

    def test_bad_chunk_size(self):
        """Test chunk size must be a non-negative integer."""
        with pytest.raises(ConfigurationError):
            CacheOptions(folder_path_chunk_size=-2, **IDENTITY).validate()

    def test_bad_algorithm(self):
        """Test unknown checksum algorithm."""
        with pytest.raises(ConfigurationError):
            CacheOptions(checksum_algorithm="crc99", **IDENTITY).validate()

    def test_bad_encoding(self):
        """Test unknown checksum encoding."""
        with pytest.raises(ConfigurationError):
            CacheOptions(checksum_encoding="utf-16", **IDENTITY).validate()

    def test_bad_ttl_units(self):
        """Test unknown ttl unit."""
        with pytest.raises(ConfigurationError):
            CacheOptions(ttl=1, ttl_units="fortnights", **IDENTITY).validate()

    def test_bad_ttl(self):
        """Test unsupported ttl value."""
        with pytest.raises(ConfigurationError):
            CacheOptions(ttl="soon", **IDENTITY).validate()

    def test_s3_options_must_be_mapping(self):
        """Test s3_options type check."""
        with pytest.raises(ConfigurationError, match="mapping"):
            CacheOptions(s3_options="us-west-2", **IDENTITY).validate()


class TestMerge:
    """Tests for option merging."""

    def test_empty_returns_self(self):
        """Test no overrides means no copy."""
        options = CacheOptions(**IDENTITY)
        assert options.merge(None) is options
        assert options.merge({}) is options

    def test_override(self):
        """Test overrides win and the base is untouched."""
        options = CacheOptions(**IDENTITY)
        merged = options.merge({"folder_path_depth": 0, "ttl": 5})
        assert merged.folder_path_depth == 0
        assert merged.ttl == 5
        assert merged.bucket == "cache-bucket"
        assert options.folder_path_depth == 2
        assert options.ttl is None

    def test_unknown_option(self):
        """Test unknown option names are rejected."""
        with pytest.raises(ConfigurationError, match="bogus"):
            CacheOptions(**IDENTITY).merge({"bogus": 1})

    def test_not_a_mapping(self):
        """Test overrides must be a mapping."""
        with pytest.raises(ConfigurationError):
            CacheOptions(**IDENTITY).merge([("ttl", 1)])

    def test_merged_values_validated(self):
        """Test merged values are checked."""
        with pytest.raises(ConfigurationError):
            CacheOptions(**IDENTITY).merge({"checksum_encoding": "rot13"})

    def test_build_options_layers(self):
        """Test keyword options override the mapping."""
        options = build_options({"ttl": 10, **IDENTITY}, ttl=20)
        assert options.ttl == 20
        assert options.access_key == "AKIATEST"

    def test_build_options_from_object(self):
        """Test an options object is used as the base."""
        base = CacheOptions(path_prefix="p", **IDENTITY)
        assert build_options(base) is base
        assert build_options(base, path_prefix="q").path_prefix == "q"


class TestClientConfig:
    """Tests for build_client_config."""

    def test_defaults(self):
        """Test credentials and bucket mapping."""
        config = build_client_config(CacheOptions(**IDENTITY))
        assert config == {
            "aws_access_key_id": "AKIATEST",
            "aws_secret_access_key": "secret",
            "params": {"Bucket": "cache-bucket"},
        }

    def test_extra_client_options(self):
        """Test s3_options are merged into the client configuration."""
        options = CacheOptions(s3_options={"region_name": "us-west-2"}, **IDENTITY)
        config = build_client_config(options)
        assert config["region_name"] == "us-west-2"
        assert config["params"] == {"Bucket": "cache-bucket"}

    def test_params_extend_bucket(self):
        """Test default params keep the bucket."""
        options = CacheOptions(s3_options={"params": {"ContentType": "text/plain"}}, **IDENTITY)
        config = build_client_config(options)
        assert config["params"] == {"Bucket": "cache-bucket", "ContentType": "text/plain"}

    def test_params_bucket_wins(self):
        """Test a bucket in params overrides the bucket option."""
        options = CacheOptions(s3_options={"params": {"Bucket": "other"}}, **IDENTITY)
        assert build_client_config(options)["params"] == {"Bucket": "other"}

    def test_credentials_overridable(self):
        """Test s3_options can replace credentials."""
        options = CacheOptions(s3_options={"aws_access_key_id": "AKIAOTHER"}, **IDENTITY)
        assert build_client_config(options)["aws_access_key_id"] == "AKIAOTHER"

    def test_params_must_be_mapping(self):
        """Test params type check."""
        options = CacheOptions(s3_options={"params": "Bucket=x"}, **IDENTITY)
        with pytest.raises(ConfigurationError):
            build_client_config(options)


class TestComputeExpiry:
    """Tests for ttl handling."""

    @pytest.mark.parametrize("ttl", [None, 0])
    def test_no_ttl(self, ttl):
        """Test empty ttl means no expiry."""
        assert compute_expiry(ttl, "hours", now=NOW) is None

    def test_seconds_default(self):
        """Test seconds are the default unit."""
        assert compute_expiry(30, now=NOW) == NOW + timedelta(seconds=30)

    def test_hours(self):
        """Test named units."""
        assert compute_expiry(1, "hours", now=NOW) == NOW + timedelta(hours=1)

    def test_aliases(self):
        """Test short unit aliases."""
        assert compute_expiry(2, "h", now=NOW) == NOW + timedelta(hours=2)
        assert compute_expiry(2, "m", now=NOW) == NOW + timedelta(minutes=2)
        assert compute_expiry(500, "ms", now=NOW) == NOW + timedelta(milliseconds=500)

    def test_months_are_calendar_months(self):
        """Test "M" means months, clamped to the month end."""
        assert compute_expiry(1, "M", now=NOW) == datetime(2026, 2, 28, 12, 0, 0, tzinfo=timezone.utc)

    def test_years(self):
        """Test years unit."""
        assert compute_expiry(1, "years", now=NOW) == NOW + relativedelta(years=1)

    def test_fractional_months(self):
        """Test fractional calendar units are rejected."""
        with pytest.raises(ConfigurationError):
            compute_expiry(1.5, "months", now=NOW)

    def test_mapping(self):
        """Test a mapping of units is applied in order."""
        expected = NOW + timedelta(days=1, hours=2)
        assert compute_expiry({"days": 1, "hours": 2}, now=NOW) == expected

    def test_timedelta(self):
        """Test duration objects are used as-is."""
        assert compute_expiry(timedelta(minutes=5), "days", now=NOW) == NOW + timedelta(minutes=5)

    def test_bool_rejected(self):
        """Test booleans are not durations."""
        with pytest.raises(ConfigurationError):
            compute_expiry(True, now=NOW)

    def test_default_now_is_utc(self):
        """Test computed expiry is timezone-aware."""
        assert compute_expiry(1).tzinfo is not None

    def test_canonical_unit_case(self):
        """Test long unit names ignore case, single letters do not."""
        assert canonical_unit("Hours") == "hours"
        assert canonical_unit("M") == "months"
        assert canonical_unit("m") == "minutes"
        with pytest.raises(ConfigurationError):
            canonical_unit("H")


class TestLogLevels:
    """Tests for log level configuration."""

    def test_from_env(self):
        """Test environment variables are read."""
        environ = {
            "S3CACHE_LOGLEVEL": "TRACE",
            "S3CACHE_GET_LOGLEVEL": "warning",
            "S3CACHE_RESET_LOGLEVEL": "ERROR",
            "UNRELATED": "x",
        }
        assert log_levels_from_env(environ) == {
            "log_level": "TRACE",
            "log_levels": {"get": "warning", "reset": "ERROR"},
        }

    def test_from_empty_env(self):
        """Test no variables give no options."""
        assert log_levels_from_env({}) == {}

    def test_apply(self, restore_log_levels):
        """Test levels are set on the package and operation loggers."""
        apply_log_levels("TRACE", {"get": "warning", "resolver": "error"})
        assert logging.getLogger(ROOT_LOGGER).level == logging.DEBUG
        assert logging.getLogger(OPERATION_LOGGERS["get"]).level == logging.WARNING
        assert logging.getLogger(OPERATION_LOGGERS["resolver"]).level == logging.ERROR

    def test_unknown_operation(self, restore_log_levels):
        """Test unknown operations are rejected."""
        with pytest.raises(ConfigurationError):
            apply_log_levels(None, {"fetch": "DEBUG"})

    def test_unknown_level(self, restore_log_levels):
        """Test unknown levels are rejected."""
        with pytest.raises(ConfigurationError):
            apply_log_levels("LOUD")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
