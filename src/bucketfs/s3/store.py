from contextlib import contextmanager
from typing import AsyncIterator

import httpx
from structlog import get_logger

from bucketfs.config import Settings
from bucketfs.exceptions import HttpError, NotFound, StoreUnavailable
from bucketfs.store import (
    KeyStore,
    Listing,
    ObjectMetadata,
    PutData,
    StoredObject,
    read_all,
)

from .client import S3Client

logger = get_logger()


@contextmanager
def _store_errors(operation: str, key: str):
    """
    Maps S3 transport failures onto the store error taxonomy.
    """
    try:
        yield
    except HttpError as e:
        if e.status == 404:
            raise NotFound(key) from e
        if e.status >= 500:
            raise StoreUnavailable(operation, e) from e
        raise
    except httpx.TransportError as e:
        logger.error("Transport error", operation=operation, key=key, error=str(e))
        raise StoreUnavailable(operation, e) from e


class S3KeyStore(KeyStore):
    def __init__(self, client: S3Client, bucket: str):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3KeyStore":
        if settings.s3_access_key is None or settings.s3_secret_key is None:
            raise ValueError("s3_access_key or s3_secret_key not specified")
        if not settings.bucket:
            raise ValueError("bucket not specified")

        client = S3Client(
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            region=settings.s3_region,
            provider=settings.s3_provider,
            endpoint=settings.s3_endpoint,
        )
        return cls(client, settings.bucket)

    async def connect(self):
        await self.client.connect()

    async def disconnect(self):
        await self.client.disconnect()

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *exc_info):
        await self.disconnect()

    async def list_by_prefix(self, prefix: str, use_delimiter: bool) -> Listing:
        listing = Listing()
        token = None
        while True:
            with _store_errors("list", prefix):
                page = await self.client.list_objects(
                    self.bucket,
                    prefix=prefix,
                    delimiter="/" if use_delimiter else None,
                    continuation_token=token,
                )
            for s3_object in page.objects:
                listing.keys.append(
                    StoredObject(
                        key=s3_object.key,
                        size=s3_object.size,
                        updated_at=s3_object.last_modified,
                    )
                )
            listing.common_prefixes.extend(page.common_prefixes)

            if not page.is_truncated or not page.next_continuation_token:
                break
            logger.debug("Listing truncated, continuing", prefix=prefix)
            token = page.next_continuation_token

        return listing

    async def get(self, key: str) -> AsyncIterator[bytes]:
        with _store_errors("get", key):
            res = await self.client.get_object(self.bucket, key)

        async def chunks():
            try:
                with _store_errors("get", key):
                    async for chunk in res.aiter_bytes():
                        yield chunk
            finally:
                await res.aclose()

        return chunks()

    async def put(
        self,
        key: str,
        data: PutData,
        content_type: str | None = None,
        size: int | None = None,
    ):
        if not isinstance(data, bytes) and size is None:
            data = await read_all(data)
        with _store_errors("put", key):
            await self.client.put_object(
                self.bucket,
                data=data,
                key=key,
                content_type=content_type,
                content_length=None if isinstance(data, bytes) else size,
            )

    async def delete(self, key: str):
        # DeleteObject succeeds on missing keys
        await self.metadata(key)
        with _store_errors("delete", key):
            await self.client.delete_object(self.bucket, key)

    async def copy(self, src_key: str, dst_key: str):
        with _store_errors("copy", src_key):
            await self.client.copy_object(self.bucket, source_key=src_key, key=dst_key)

    async def metadata(self, key: str) -> ObjectMetadata:
        with _store_errors("metadata", key):
            head = await self.client.head_object(self.bucket, key)
        return ObjectMetadata(
            size=head.size,
            content_type=head.content_type,
            updated_at=head.last_modified,
        )
