"""S3Cache S3 Store - Amazon S3 Storage Backend.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

import boto3
from botocore.exceptions import ClientError

from s3cache_core.cache.entry import CacheEntry, to_datetime
from s3cache_core.errors import ObjectNotFoundError
from s3cache_core.store.backend import (
    DeleteFailure,
    ObjectPage,
    ObjectStore,
    ObjectSummary,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})

# Response fields that are not object metadata
_TRANSPORT_FIELDS = frozenset({"Body", "ResponseMetadata"})

# Response fields mapped onto CacheEntry attributes
_ENTRY_FIELDS = frozenset({
    "ContentType", "ContentLength", "LastModified", "Expires", "ExpiresString",
})

# boto3 operation names, for filtering default params
_OPERATIONS = {
    "get": "GetObject",
    "head": "HeadObject",
    "put": "PutObject",
    "delete": "DeleteObject",
    "list": "ListObjectsV2",
    "delete_batch": "DeleteObjects",
}


def is_not_found(error: ClientError) -> bool:
    """Check whether a ClientError means the key does not exist.

    A missing bucket also answers 404 but is a real failure.
    """
    details = error.response.get("Error", {})
    code = str(details.get("Code", ""))
    if code in NOT_FOUND_CODES:
        return True
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return status == 404 and code != "NoSuchBucket"


def entry_from_response(key: str, response: Mapping[str, Any], with_body: bool = True) -> CacheEntry:
    """Build a CacheEntry from a get_object/head_object response.

    Args:
        key: Physical key requested
        response: boto3 response dictionary
        with_body: Read the streaming body

    Returns:
        CacheEntry
    """
    body = None
    if with_body and response.get("Body") is not None:
        body = response["Body"].read()

    # newer botocore moves unparsable Expires values to ExpiresString
    expires = response.get("Expires") or response.get("ExpiresString")
    try:
        expires = to_datetime(expires)
    except (ValueError, OverflowError, TypeError) as e:
        logger.warning(f"Ignoring unparsable Expires {expires!r} on {key}: {e}")
        expires = None

    return CacheEntry(
        key=key,
        body=body,
        expires_at=expires,
        content_type=response.get("ContentType"),
        content_length=response.get("ContentLength"),
        last_modified=response.get("LastModified"),
        metadata={
            k: v for k, v in response.items()
            if k not in _TRANSPORT_FIELDS and k not in _ENTRY_FIELDS
        },
    )


class S3ObjectStore(ObjectStore):
    """Amazon S3 storage backend.

    Wraps a boto3 S3 client. The client is created on first use from
    the client configuration, so constructing the store performs no
    network activity. Only not-found errors are translated; every other
    ClientError reaches the caller unchanged, and retries are left to
    the client's own configuration.

    Example:
        store = S3ObjectStore({
            "aws_access_key_id": "AKIA...",
            "aws_secret_access_key": "...",
            "region_name": "us-west-2",
            "params": {"Bucket": "my-cache-bucket"},
        })
        store.put_object({"Key": "ab/cd/abcd", "Body": b"data"})
    """

    def __init__(self, config: Optional[Mapping[str, Any]] = None, client: Optional[Any] = None):
        """Initialize S3 store.

        Args:
            config: boto3 client keyword arguments, plus ``params`` holding
                default request parameters
            client: Pre-built S3 client
        """
        config = dict(config or {})
        super().__init__(config.pop("params", None))
        self.client_kwargs: Dict[str, Any] = config
        self._client = client
        self._accepted: Dict[str, FrozenSet[str]] = {}

    def _ensure_client(self) -> Any:
        """Ensure the S3 client exists.

        Returns:
            boto3 S3 client
        """
        if self._client is not None:
            return self._client

        self._client = boto3.client("s3", **self.client_kwargs)
        logger.info(f"Created S3 client for bucket {self.params.get('Bucket')}")
        return self._client

    def _accepted_params(self, operation: str) -> Optional[FrozenSet[str]]:
        if operation not in self._accepted:
            client = self._ensure_client()
            try:
                model = client.meta.service_model.operation_model(_OPERATIONS[operation])
                self._accepted[operation] = frozenset(model.input_shape.members)
            except (AttributeError, KeyError, TypeError):
                return None
        return self._accepted[operation]

    def _request(self, operation: str, params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        return self.merge_params(params, self._accepted_params(operation))

    def _record(self, error: Exception) -> None:
        self._stats.record_error(str(error))

    def get_object(self, params: Mapping[str, Any]) -> CacheEntry:
        request = self._request("get", params)
        self._stats.reads += 1
        try:
            response = self._ensure_client().get_object(**request)
        except ClientError as e:
            if is_not_found(e):
                raise ObjectNotFoundError(request.get("Key")) from e
            self._record(e)
            raise
        return entry_from_response(request.get("Key"), response)

    def head_object(self, params: Mapping[str, Any]) -> CacheEntry:
        request = self._request("head", params)
        self._stats.reads += 1
        try:
            response = self._ensure_client().head_object(**request)
        except ClientError as e:
            if is_not_found(e):
                raise ObjectNotFoundError(request.get("Key")) from e
            self._record(e)
            raise
        return entry_from_response(request.get("Key"), response, with_body=False)

    def put_object(self, params: Mapping[str, Any]) -> None:
        request = self._request("put", params)
        try:
            self._ensure_client().put_object(**request)
        except ClientError as e:
            self._record(e)
            raise
        self._stats.writes += 1

    def delete_object(self, params: Mapping[str, Any]) -> None:
        request = self._request("delete", params)
        try:
            self._ensure_client().delete_object(**request)
        except ClientError as e:
            self._record(e)
            raise
        self._stats.deletes += 1

    def list_objects(
        self,
        params: Optional[Mapping[str, Any]] = None,
        continuation_token: Optional[str] = None,
    ) -> ObjectPage:
        request = self._request("list", params)
        if continuation_token:
            request["ContinuationToken"] = continuation_token

        self._stats.lists += 1
        try:
            response = self._ensure_client().list_objects_v2(**request)
        except ClientError as e:
            self._record(e)
            raise

        items = [
            ObjectSummary(
                key=obj["Key"],
                size=obj.get("Size", 0),
                last_modified=obj.get("LastModified"),
            )
            for obj in response.get("Contents", [])
        ]
        truncated = bool(response.get("IsTruncated"))
        return ObjectPage(
            items=items,
            next_token=response.get("NextContinuationToken") if truncated else None,
            truncated=truncated,
        )

    def delete_objects(
        self,
        keys: List[str],
        params: Optional[Mapping[str, Any]] = None,
    ) -> List[DeleteFailure]:
        if not keys:
            return []

        request = self._request("delete_batch", params)
        request["Delete"] = {"Objects": [{"Key": key} for key in keys], "Quiet": True}

        try:
            response = self._ensure_client().delete_objects(**request)
        except ClientError as e:
            self._record(e)
            raise
        self._stats.deletes += 1

        failures = [
            DeleteFailure(key=err.get("Key"), code=err.get("Code"), message=err.get("Message"))
            for err in response.get("Errors", [])
        ]
        for failure in failures:
            self._record(Exception(f"{failure.key}: {failure.code}"))
        return failures

    def __repr__(self) -> str:
        return f"S3ObjectStore(bucket={self.params.get('Bucket')!r})"


__all__ = ["S3ObjectStore", "entry_from_response", "is_not_found"]
