"""
Folder view over a flat keyspace.

A folder is never stored: it exists because some key continues past its
prefix, either reported by the store as a common prefix or found by splitting
a returned key. Empty folders are kept alive by a zero-byte marker object.
"""

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, List

from structlog import get_logger

from .aggregate import size_of
from .enums import EntryType
from .exceptions import ValidationError
from .store import KeyStore, StoredObject

logger = get_logger()

MARKER_SUFFIX = ".placeholder"


@dataclass
class Entry:
    name: str
    type: EntryType
    path: str
    size: int = 0
    content_type: str | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if self.type == EntryType.FOLDER and not self.path.endswith("/"):
            raise ValueError(f"Folder path must end with '/': {self.path!r}")
        if self.type == EntryType.FILE and self.path.endswith("/"):
            raise ValueError(f"File path must not end with '/': {self.path!r}")

    @property
    def is_folder(self) -> bool:
        return self.type == EntryType.FOLDER

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        if self.updated_at is not None:
            data["updated_at"] = self.updated_at.isoformat()
        return data


def validate_prefix(prefix: str):
    if prefix and not prefix.endswith("/"):
        raise ValidationError(f"Prefix must be empty or end with '/': {prefix!r}")


def merge_folder_candidates(
    prefix: str, common_prefixes: Iterable[str], keys: Iterable[str]
) -> List[str]:
    """
    Folder names directly under `prefix`, deduplicated and sorted.

    Stores may report folders as common prefixes, as nested keys, or both;
    each source contributes the first path segment after `prefix`.
    """
    names = set()

    for common_prefix in common_prefixes:
        if not common_prefix.startswith(prefix):
            continue
        name = common_prefix[len(prefix):].split("/")[0]
        if name:
            names.add(name)

    for key in keys:
        if not key.startswith(prefix):
            continue
        parts = key[len(prefix):].split("/")
        if len(parts) > 1 and parts[0]:
            names.add(parts[0])

    return sorted(names, key=lambda name: (name.casefold(), name))


def is_direct_file(prefix: str, key: str, marker_suffix: str = MARKER_SUFFIX) -> bool:
    if not key.startswith(prefix):
        return False
    relative = key[len(prefix):]
    return (
        bool(relative)
        and "/" not in relative
        and not relative.endswith(marker_suffix)
    )


def sort_entries(entries: Iterable[Entry]) -> List[Entry]:
    return sorted(
        entries,
        key=lambda entry: (
            0 if entry.is_folder else 1,
            entry.name.casefold(),
            entry.name,
        ),
    )


def file_entry(stored: StoredObject) -> Entry:
    return Entry(
        name=stored.key.rsplit("/", 1)[-1],
        type=EntryType.FILE,
        path=stored.key,
        size=stored.size,
        content_type=stored.content_type,
        updated_at=stored.updated_at,
    )


async def list_entries(
    store: KeyStore, prefix: str = "", *, marker_suffix: str = MARKER_SUFFIX
) -> List[Entry]:
    """
    The folders and files immediately under `prefix`, folders first.

    Each folder's size is a recursive scan of its own prefix, so a listing
    with F folders costs F + 1 store round trips.
    If one scan fails the others are cancelled and the error propagates.
    """
    validate_prefix(prefix)

    listing = await store.list_by_prefix(prefix, use_delimiter=True)
    folder_names = merge_folder_candidates(
        prefix, listing.common_prefixes, (o.key for o in listing.keys)
    )
    folder_paths = [f"{prefix}{name}/" for name in folder_names]
    scans = [asyncio.ensure_future(size_of(store, path)) for path in folder_paths]
    try:
        folder_sizes = await asyncio.gather(*scans)
    except BaseException:
        for scan in scans:
            scan.cancel()
        await asyncio.gather(*scans, return_exceptions=True)
        raise

    entries = [
        Entry(name=name, type=EntryType.FOLDER, path=path, size=size)
        for name, path, size in zip(folder_names, folder_paths, folder_sizes)
    ]
    entries.extend(
        file_entry(o)
        for o in listing.keys
        if is_direct_file(prefix, o.key, marker_suffix)
    )

    logger.info(
        "Listed entries",
        prefix=prefix,
        folders=len(folder_names),
        files=len(entries) - len(folder_names),
    )
    return sort_entries(entries)


def split_path(prefix: str) -> List[tuple[str, str]]:
    """
    Breadcrumbs for a folder prefix: (name, prefix) for every ancestor,
    outermost first.

    >>> split_path("a/b/")
    [('a', 'a/'), ('b', 'a/b/')]
    """
    crumbs = []
    current = ""
    for part in prefix.split("/"):
        if not part:
            continue
        current = f"{current}{part}/"
        crumbs.append((part, current))
    return crumbs


def parent_prefix(path: str) -> str:
    """
    The folder containing `path`, which may name a file or a folder.
    """
    trimmed = path[:-1] if path.endswith("/") else path
    if "/" not in trimmed:
        return ""
    return trimmed.rsplit("/", 1)[0] + "/"
