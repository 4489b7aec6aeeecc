"""
In-process key store with the listing semantics of an S3 bucket.

Useful for tests and for running the folder emulation without a remote store.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Dict

from .exceptions import NotFound
from .store import KeyStore, Listing, ObjectMetadata, PutData, StoredObject, read_all

DEFAULT_CONTENT_TYPE = "application/octet-stream"
CHUNK_SIZE = 64 * 1024


@dataclass
class _Blob:
    data: bytes
    content_type: str
    updated_at: datetime


class MemoryKeyStore(KeyStore):
    def __init__(self, objects: Dict[str, bytes] | None = None):
        self._objects: Dict[str, _Blob] = {}
        for key, data in (objects or {}).items():
            self._store(key, data, None)

    def _store(self, key: str, data: bytes, content_type: str | None):
        self._objects[key] = _Blob(
            data=data,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            updated_at=datetime.now(timezone.utc),
        )

    def _blob(self, key: str) -> _Blob:
        try:
            return self._objects[key]
        except KeyError as exc:
            raise NotFound(key) from exc

    def keys(self) -> list[str]:
        return sorted(self._objects)

    def read(self, key: str) -> bytes:
        return self._blob(key).data

    async def list_by_prefix(self, prefix: str, use_delimiter: bool) -> Listing:
        await asyncio.sleep(0)
        listing = Listing()
        seen_prefixes = set()
        for key in sorted(self._objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if use_delimiter and "/" in rest:
                common_prefix = prefix + rest[: rest.index("/") + 1]
                if common_prefix not in seen_prefixes:
                    seen_prefixes.add(common_prefix)
                    listing.common_prefixes.append(common_prefix)
                continue
            blob = self._objects[key]
            listing.keys.append(
                StoredObject(
                    key=key,
                    size=len(blob.data),
                    content_type=blob.content_type,
                    updated_at=blob.updated_at,
                )
            )
        return listing

    async def get(self, key: str) -> AsyncIterator[bytes]:
        data = self._blob(key).data

        async def chunks():
            for start in range(0, len(data), CHUNK_SIZE):
                yield data[start : start + CHUNK_SIZE]

        return chunks()

    async def put(
        self,
        key: str,
        data: PutData,
        content_type: str | None = None,
        size: int | None = None,
    ):
        body = await read_all(data)
        self._store(key, body, content_type)

    async def delete(self, key: str):
        await asyncio.sleep(0)
        self._blob(key)
        del self._objects[key]

    async def copy(self, src_key: str, dst_key: str):
        await asyncio.sleep(0)
        blob = self._blob(src_key)
        self._store(dst_key, blob.data, blob.content_type)

    async def metadata(self, key: str) -> ObjectMetadata:
        blob = self._blob(key)
        return ObjectMetadata(
            size=len(blob.data),
            content_type=blob.content_type,
            updated_at=blob.updated_at,
        )
