"""Tests for the S3 object store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import io
import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import boto3
import pytest
from botocore.exceptions import ClientError

from s3cache_core.cache.cache import S3Cache
from s3cache_core.errors import ObjectNotFoundError
from s3cache_core.store.s3 import S3ObjectStore, entry_from_response, is_not_found

BUCKET = "cache-bucket"

IDENTITY = {"access_key": "AKIATEST", "secret_key": "secret", "bucket": BUCKET}


def client_error(code, status=400, operation="GetObject"):
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


@pytest.fixture(scope="module")
def service_model():
    """Real S3 service model, so parameter filtering matches boto3."""
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    return client.meta.service_model


@pytest.fixture
def client(service_model):
    mock = MagicMock()
    mock.meta.service_model = service_model
    return mock


@pytest.fixture
def store(client):
    return S3ObjectStore(
        {"params": {"Bucket": BUCKET, "ContentType": "text/plain"}},
        client=client,
    )


class TestErrorTranslation:
    """Tests for not-found detection."""

    @pytest.mark.parametrize("code,status", [("NoSuchKey", 404), ("NotFound", 404), ("404", 404)])
    def test_not_found(self, code, status):
        """Test missing keys are recognized."""
        assert is_not_found(client_error(code, status))

    def test_missing_bucket(self):
        """Test a missing bucket is a real failure."""
        assert not is_not_found(client_error("NoSuchBucket", 404))

    def test_access_denied(self):
        """Test other errors are not misses."""
        assert not is_not_found(client_error("AccessDenied", 403))


class TestEntryFromResponse:
    """Tests for response conversion."""

    def test_full_response(self):
        """Test fields and metadata are mapped."""
        expires = datetime(2026, 10, 19, tzinfo=timezone.utc)
        entry = entry_from_response("k", {
            "Body": io.BytesIO(b"data"),
            "ContentType": "text/plain",
            "ContentLength": 4,
            "Expires": expires,
            "ETag": '"abc"',
            "ResponseMetadata": {"HTTPStatusCode": 200},
        })
        assert entry.body == b"data"
        assert entry.content_type == "text/plain"
        assert entry.expires_at == expires
        assert entry.metadata == {"ETag": '"abc"'}

    def test_expires_string(self):
        """Test unparsed Expires headers are used as a fallback."""
        entry = entry_from_response("k", {"ExpiresString": "Mon, 19 Oct 2026 12:00:00 GMT"}, with_body=False)
        assert entry.expires_at == datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
        assert entry.body is None

    def test_unparsable_expires(self, caplog):
        """Test an unreadable Expires header counts as no expiry."""
        with caplog.at_level(logging.WARNING, logger="s3cache_core.store.s3"):
            entry = entry_from_response("k", {"Body": io.BytesIO(b"x"), "ExpiresString": "not a date"})
        assert entry.expires_at is None
        assert not entry.is_expired
        assert "not a date" in caplog.text


class TestS3ObjectStore:
    """Tests for S3ObjectStore."""

    def test_get_object(self, store, client):
        """Test reads drop defaults GetObject does not accept."""
        client.get_object.return_value = {"Body": io.BytesIO(b"data"), "ContentLength": 4}
        entry = store.get_object({"Key": "k"})
        assert entry.body == b"data"
        client.get_object.assert_called_once_with(Bucket=BUCKET, Key="k")

    def test_get_missing(self, store, client):
        """Test NoSuchKey becomes ObjectNotFoundError."""
        client.get_object.side_effect = client_error("NoSuchKey", 404)
        with pytest.raises(ObjectNotFoundError):
            store.get_object({"Key": "k"})

    def test_head_missing(self, store, client):
        """Test bare 404 from HEAD becomes ObjectNotFoundError."""
        client.head_object.side_effect = client_error("404", 404, "HeadObject")
        with pytest.raises(ObjectNotFoundError):
            store.head_object({"Key": "k"})

    def test_other_errors_propagate(self, store, client):
        """Test other client errors reach the caller."""
        client.get_object.side_effect = client_error("AccessDenied", 403)
        with pytest.raises(ClientError):
            store.get_object({"Key": "k"})
        assert store.get_stats().errors == 1

    def test_put_object(self, store, client):
        """Test writes carry the default parameters."""
        store.put_object({"Key": "k", "Body": b"x"})
        client.put_object.assert_called_once_with(
            Bucket=BUCKET, ContentType="text/plain", Key="k", Body=b"x"
        )
        assert store.get_stats().writes == 1

    def test_explicit_params_win(self, store, client):
        """Test explicit parameters override defaults."""
        store.put_object({"Key": "k", "Body": b"x", "Bucket": "other", "ContentType": "image/gif"})
        client.put_object.assert_called_once_with(
            Bucket="other", ContentType="image/gif", Key="k", Body=b"x"
        )

    def test_delete_object(self, store, client):
        """Test deletes."""
        store.delete_object({"Key": "k"})
        client.delete_object.assert_called_once_with(Bucket=BUCKET, Key="k")

    def test_list_objects(self, store, client):
        """Test listing pages and continuation."""
        client.list_objects_v2.return_value = {
            "Contents": [{"Key": "a", "Size": 3}, {"Key": "b"}],
            "IsTruncated": True,
            "NextContinuationToken": "token-2",
        }
        page = store.list_objects({"Prefix": "p/"}, "token-1")
        client.list_objects_v2.assert_called_once_with(
            Bucket=BUCKET, Prefix="p/", ContinuationToken="token-1"
        )
        assert [item.key for item in page.items] == ["a", "b"]
        assert page.items[0].size == 3
        assert page.truncated
        assert page.next_token == "token-2"

    def test_list_last_page(self, store, client):
        """Test the last page carries no token."""
        client.list_objects_v2.return_value = {"KeyCount": 0, "IsTruncated": False}
        page = store.list_objects()
        assert page.items == []
        assert not page.truncated
        assert page.next_token is None

    def test_delete_objects(self, store, client):
        """Test batch delete reports per-key failures."""
        client.delete_objects.return_value = {
            "Errors": [{"Key": "b", "Code": "AccessDenied", "Message": "denied"}],
        }
        failures = store.delete_objects(["a", "b"])
        client.delete_objects.assert_called_once_with(
            Bucket=BUCKET,
            Delete={"Objects": [{"Key": "a"}, {"Key": "b"}], "Quiet": True},
        )
        assert [(f.key, f.code) for f in failures] == [("b", "AccessDenied")]

    def test_delete_nothing(self, store, client):
        """Test empty batches make no request."""
        assert store.delete_objects([]) == []
        client.delete_objects.assert_not_called()

    def test_lazy_client(self, service_model):
        """Test the client is created on first use."""
        store = S3ObjectStore({
            "aws_access_key_id": "AKIATEST",
            "aws_secret_access_key": "secret",
            "region_name": "us-west-2",
            "params": {"Bucket": BUCKET},
        })
        assert store._client is None

        with patch("s3cache_core.store.s3.boto3.client") as factory:
            factory.return_value.meta.service_model = service_model
            factory.return_value.delete_object.return_value = {}
            store.delete_object({"Key": "k"})
            store.delete_object({"Key": "k"})

        factory.assert_called_once_with(
            "s3",
            aws_access_key_id="AKIATEST",
            aws_secret_access_key="secret",
            region_name="us-west-2",
        )


class TestCacheOverS3:
    """Tests for S3Cache with the S3 store."""

    def test_default_store(self):
        """Test the cache builds an S3 store without connecting."""
        cache = S3Cache(s3_options={"region_name": "eu-west-1"}, **IDENTITY)
        assert isinstance(cache.store, S3ObjectStore)
        assert cache.store.params == {"Bucket": BUCKET}
        assert cache.store.client_kwargs["region_name"] == "eu-west-1"
        assert cache.store._client is None

    def test_get_missing(self, client):
        """Test a missing object reads as None."""
        client.get_object.side_effect = client_error("NoSuchKey", 404)
        cache = S3Cache(store=S3ObjectStore({"params": {"Bucket": BUCKET}}, client=client), **IDENTITY)
        assert cache.get("absent") is None
        assert cache.get_stats().misses == 1

    def test_unparsable_expiry_reads_as_live(self, client):
        """Test a stored object with a bad Expires header is still returned."""
        client.get_object.return_value = {"Body": io.BytesIO(b"value"), "ExpiresString": "not a date"}
        client.head_object.return_value = {"ContentLength": 5, "ExpiresString": "not a date"}
        cache = S3Cache(store=S3ObjectStore({"params": {"Bucket": BUCKET}}, client=client), **IDENTITY)
        assert cache.get("k") == "value"
        assert cache.ttl("k") == -1
        assert "Expires" not in cache.head("k")

    def test_set_sends_expiry(self, client):
        """Test set passes Expires and content type to S3."""
        cache = S3Cache(
            store=S3ObjectStore({"params": {"Bucket": BUCKET}}, client=client),
            ttl=1,
            ttl_units="hours",
            content_type="text/html",
            **IDENTITY,
        )
        cache.set("page", "<p>hi</p>")
        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Key"] == cache.physical_key("page")
        assert kwargs["Body"] == b"<p>hi</p>"
        assert kwargs["ContentType"] == "text/html"
        assert kwargs["Expires"].tzinfo is not None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
