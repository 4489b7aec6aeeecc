from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterable, AsyncIterator, List

from .exceptions import NotFound

PutData = bytes | AsyncIterable[bytes]


@dataclass
class StoredObject:
    key: str
    size: int
    content_type: str | None = None
    updated_at: datetime | None = None


@dataclass
class ObjectMetadata:
    size: int
    content_type: str | None = None
    updated_at: datetime | None = None


@dataclass
class Listing:
    keys: List[StoredObject] = field(default_factory=list)
    common_prefixes: List[str] = field(default_factory=list)


class KeyStore(ABC):
    """
    Minimal capability interface over a flat object store.

    Keys are opaque strings; the store has no notion of directories. Every
    implementation raises `NotFound` for single-key operations on a missing
    key and `StoreUnavailable` for transient I/O failures.
    """

    @abstractmethod
    async def list_by_prefix(self, prefix: str, use_delimiter: bool) -> Listing:
        """
        Lists every key starting with `prefix`, following pagination.

        :param prefix: Key prefix, "" for the whole store.
        :param use_delimiter: When true, keys containing a further "/" after
            the prefix are rolled up into `common_prefixes`.
        """

    @abstractmethod
    async def get(self, key: str) -> AsyncIterator[bytes]:
        """
        Opens the object for reading and returns its byte chunks.
        """

    @abstractmethod
    async def put(
        self,
        key: str,
        data: PutData,
        content_type: str | None = None,
        size: int | None = None,
    ):
        """
        Stores `data` under `key`, replacing any existing object.

        :param size: Declared byte length of a streamed body, if known.
        """

    @abstractmethod
    async def delete(self, key: str):
        pass

    @abstractmethod
    async def copy(self, src_key: str, dst_key: str):
        pass

    @abstractmethod
    async def metadata(self, key: str) -> ObjectMetadata:
        pass

    async def exists(self, key: str) -> bool:
        try:
            await self.metadata(key)
        except NotFound:
            return False
        return True


async def read_all(data: PutData) -> bytes:
    if isinstance(data, bytes):
        return data
    chunks = []
    async for chunk in data:
        chunks.append(chunk)
    return b"".join(chunks)
