from dataclasses import dataclass

from structlog import get_logger

from .store import KeyStore

logger = get_logger()


@dataclass
class BucketStats:
    total_size: int
    file_count: int
    bucket: str | None = None


async def size_of(store: KeyStore, folder_prefix: str) -> int:
    """
    Sum of the declared sizes of every key under `folder_prefix`, at any depth.

    Marker objects are zero bytes and add nothing.
    """
    listing = await store.list_by_prefix(folder_prefix, use_delimiter=False)
    total = sum(o.size for o in listing.keys)
    logger.debug(
        "Folder size", prefix=folder_prefix, keys=len(listing.keys), size=total
    )
    return total


async def bucket_stats(
    store: KeyStore, *, marker_suffix: str, bucket: str | None = None
) -> BucketStats:
    listing = await store.list_by_prefix("", use_delimiter=False)
    return BucketStats(
        total_size=sum(o.size for o in listing.keys),
        file_count=sum(1 for o in listing.keys if not o.key.endswith(marker_suffix)),
        bucket=bucket,
    )
