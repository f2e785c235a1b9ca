"""S3 blob storage adapter built on aioboto3."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from shiplog.core.errors import StorageError

logger = logging.getLogger(__name__)


def new_session() -> Any:
    """Create an ``aioboto3.Session``.

    Raises:
        RuntimeError: If aioboto3 is not installed.
    """
    try:
        import aioboto3
    except ImportError as e:
        raise RuntimeError(
            "the s3 storage backend requires aioboto3, install shiplog[s3]"
        ) from e
    return aioboto3.Session()


class S3BlobStorage:
    """S3 (or S3-compatible) implementation of BlobStoragePort.

    A client is opened per put, which keeps the adapter safe to share
    across categories and event loops. Credentials and region come from the
    standard AWS configuration chain unless given explicitly.

    Args:
        endpoint_url: Custom endpoint, e.g. for MinIO. None for AWS.
        region: AWS region name.
        access_key: Access key id; None to use the default chain.
        secret_key: Secret access key; None to use the default chain.
        session: Preconfigured ``aioboto3.Session``. Created on first use
            when omitted.
    """

    def __init__(
        self,
        endpoint_url: str | None = None,
        region: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        session: Any | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.region = region
        self._access_key = access_key
        self._secret_key = secret_key
        self._session = session

    def _get_session(self) -> Any:
        if self._session is None:
            self._session = new_session()
        return self._session

    @asynccontextmanager
    async def client_context(self) -> AsyncIterator[Any]:
        """Open an S3 client for the duration of the block."""
        kwargs: dict[str, Any] = {}
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self.region:
            kwargs["region_name"] = self.region
        if self._access_key and self._secret_key:
            kwargs["aws_access_key_id"] = self._access_key
            kwargs["aws_secret_access_key"] = self._secret_key

        async with self._get_session().client("s3", **kwargs) as client:
            yield client

    async def put(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        """Upload body as a single object.

        Raises:
            StorageError: If the upload fails for any reason.
        """
        try:
            async with self.client_context() as client:
                await client.put_object(
                    Bucket=bucket,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                )
        except Exception as e:
            raise StorageError(bucket, key, str(e)) from e
        logger.debug("put object", extra={"bucket": bucket, "key": key, "size": len(body)})
