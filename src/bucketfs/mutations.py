"""
Create, delete and rename over a keyspace with no directories.

Folder operations expand to one store call per descendant key. They run
concurrently, are not atomic and never roll back: each key gets its own
outcome and the caller decides what a partial result means.
"""

import asyncio
from dataclasses import dataclass, field
from typing import AsyncIterator, List

from structlog import get_logger

from .enums import EntryType
from .exceptions import NotFound, ValidationError
from .namespace import MARKER_SUFFIX
from .store import KeyStore, ObjectMetadata

logger = get_logger()

MARKER_CONTENT_TYPE = "text/plain"


@dataclass
class ItemOutcome:
    key: str
    succeeded: bool
    reason: str | None = None

    @classmethod
    def failure(cls, key: str, error: BaseException) -> "ItemOutcome":
        return cls(key=key, succeeded=False, reason=str(error) or type(error).__name__)


@dataclass
class BatchResult:
    outcomes: List[ItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def ok(self) -> bool:
        return not self.failed


def entry_kind(path: str) -> EntryType:
    return EntryType.FOLDER if path.endswith("/") else EntryType.FILE


def _require_path(path: str | None, what: str = "path") -> str:
    if not path:
        raise ValidationError(f"Missing {what}")
    return path


async def create_folder(
    store: KeyStore, path: str, *, marker_suffix: str = MARKER_SUFFIX
) -> str:
    """
    Writes the zero-byte marker that keeps an empty folder visible.

    Re-creating an existing folder rewrites its marker.
    """
    _require_path(path)
    if not path.endswith("/"):
        raise ValidationError(f"Folder path must end with '/': {path!r}")

    marker_key = path + marker_suffix
    await store.put(marker_key, b"", content_type=MARKER_CONTENT_TYPE, size=0)
    logger.info("Created folder", path=path, marker=marker_key)

    return marker_key


async def _fan_out(keys: List[str], operation) -> List[ItemOutcome]:
    results = await asyncio.gather(
        *(operation(key) for key in keys), return_exceptions=True
    )
    outcomes = []
    for key, result in zip(keys, results):
        if isinstance(result, BaseException):
            logger.error("Bulk item failed", key=key, error=str(result))
            outcomes.append(ItemOutcome.failure(key, result))
        else:
            outcomes.append(ItemOutcome(key=key, succeeded=True))
    return outcomes


async def _descendant_keys(store: KeyStore, prefix: str) -> List[str]:
    listing = await store.list_by_prefix(prefix, use_delimiter=False)
    return [o.key for o in listing.keys]


async def delete_entry(
    store: KeyStore, path: str, kind: EntryType | str
) -> BatchResult:
    """
    Deletes one file, or every key under a folder prefix.

    A file delete propagates its error (`NotFound` for a missing key). A
    folder delete reports per-key outcomes instead of raising.
    """
    _require_path(path)
    try:
        kind = EntryType(kind)
    except ValueError as e:
        raise ValidationError(f"Unknown entry kind: {kind!r}") from e

    if kind == EntryType.FILE:
        await store.delete(path)
        logger.info("Deleted file", path=path)
        return BatchResult([ItemOutcome(key=path, succeeded=True)])

    if not path.endswith("/"):
        raise ValidationError(f"Folder path must end with '/': {path!r}")

    keys = await _descendant_keys(store, path)
    result = BatchResult(await _fan_out(keys, store.delete))
    logger.info(
        "Deleted folder",
        path=path,
        keys=len(keys),
        failed=len(result.failed),
    )
    return result


async def rename_entry(store: KeyStore, old_path: str, new_path: str) -> BatchResult:
    """
    Moves a file or a whole folder by copy-then-delete.

    The original key is only deleted once its copy exists. A crash between
    the two leaves both keys in place.
    """
    _require_path(old_path, "old path")
    _require_path(new_path, "new path")
    if old_path == new_path:
        raise ValidationError("Old and new path are identical")

    kind = entry_kind(old_path)
    if entry_kind(new_path) != kind:
        raise ValidationError(
            f"Cannot rename {kind.value} {old_path!r} to {new_path!r}"
        )

    if kind == EntryType.FILE:
        await store.copy(old_path, new_path)
        await store.delete(old_path)
        logger.info("Renamed file", old_path=old_path, new_path=new_path)
        return BatchResult([ItemOutcome(key=old_path, succeeded=True)])

    if new_path.startswith(old_path):
        raise ValidationError(f"Cannot move folder {old_path!r} into itself")
    if old_path.startswith(new_path):
        raise ValidationError(
            f"Cannot move folder {old_path!r} into its ancestor {new_path!r}"
        )

    keys = await _descendant_keys(store, old_path)
    if not keys:
        raise NotFound(old_path)

    def target(key: str) -> str:
        return new_path + key[len(old_path):]

    copies = await _fan_out(keys, lambda key: store.copy(key, target(key)))
    copied = [o.key for o in copies if o.succeeded]
    deletes = {o.key: o for o in await _fan_out(copied, store.delete)}

    outcomes = []
    for copy_outcome in copies:
        if not copy_outcome.succeeded:
            copy_outcome.reason = f"copy failed: {copy_outcome.reason}"
            outcomes.append(copy_outcome)
            continue
        delete_outcome = deletes[copy_outcome.key]
        if not delete_outcome.succeeded:
            delete_outcome.reason = (
                f"copied but original not deleted: {delete_outcome.reason}"
            )
        outcomes.append(delete_outcome)

    result = BatchResult(outcomes)
    logger.info(
        "Renamed folder",
        old_path=old_path,
        new_path=new_path,
        keys=len(keys),
        failed=len(result.failed),
    )
    return result


@dataclass
class OpenedEntry:
    path: str
    metadata: ObjectMetadata
    chunks: AsyncIterator[bytes]

    @property
    def filename(self) -> str:
        return download_name(self.path)


def download_name(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


async def open_entry(store: KeyStore, path: str) -> OpenedEntry:
    _require_path(path)
    if path.endswith("/"):
        raise ValidationError(f"Cannot download a folder: {path!r}")

    metadata = await store.metadata(path)
    chunks = await store.get(path)
    return OpenedEntry(path=path, metadata=metadata, chunks=chunks)
