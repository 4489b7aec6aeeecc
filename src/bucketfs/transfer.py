"""
Batch uploads in bounded waves with throughput and ETA reporting.

Files are uploaded `wave_width` at a time and a wave must finish before the
next one starts. Progress only counts files that have finished, so it moves
in whole-file steps. Speed is the cumulative average since the batch began.
"""

import asyncio
import math
import mimetypes
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Callable, Iterable, List

import aiofiles
from structlog import get_logger

from .mutations import BatchResult, ItemOutcome
from .namespace import validate_prefix
from .store import KeyStore

logger = get_logger()

DEFAULT_WAVE_WIDTH = 3
CHUNK_SIZE = 8192


@dataclass
class UploadSource:
    name: str
    size: int
    open: Callable[[], AsyncIterator[bytes]]
    relative_path: str | None = None
    content_type: str | None = None

    @property
    def display_path(self) -> str:
        return self.relative_path or self.name


@dataclass
class UploadProgress:
    uploaded_bytes: int
    total_bytes: int
    completed_count: int
    total_count: int
    current_file_name: str | None = None
    failed_count: int = 0
    elapsed: float = 0.0
    speed: float | None = None
    eta: float | None = None
    outcome: ItemOutcome | None = None
    done: bool = False

    @property
    def percent(self) -> int:
        if not self.total_bytes:
            return 100 if self.done else 0
        return round(self.uploaded_bytes / self.total_bytes * 100)


@dataclass
class UploadReport:
    result: BatchResult = field(default_factory=BatchResult)
    progress: UploadProgress | None = None


def destination_for(prefix: str, source: UploadSource) -> str:
    if source.relative_path:
        return prefix + source.relative_path
    return prefix + source.name


def guess_content_type(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name)
    return content_type or "application/octet-stream"


def estimate(
    uploaded_bytes: int, total_bytes: int, elapsed: float
) -> tuple[float | None, float | None]:
    """
    Returns (speed, eta); both are None until something has been uploaded.
    """
    if uploaded_bytes <= 0 or elapsed <= 0:
        return None, None
    speed = uploaded_bytes / elapsed
    return speed, (total_bytes - uploaded_bytes) / speed


async def read_file_chunks(path: Path, chunk_size: int = CHUNK_SIZE):
    async with aiofiles.open(path, "rb") as f:
        while chunk := await f.read(chunk_size):
            yield chunk


def source_from_path(path: Path, relative_path: str | None = None) -> UploadSource:
    path = Path(path)
    return UploadSource(
        name=path.name,
        size=path.stat().st_size,
        open=lambda: read_file_chunks(path),
        relative_path=relative_path,
        content_type=guess_content_type(path.name),
    )


def collect_files(root: Path) -> List[UploadSource]:
    """
    Upload sources for a local file or directory tree.

    Files inside a directory carry a relative path starting with the
    directory's own name, with "/" separators whatever the platform.
    """
    root = Path(root).resolve()
    if root.is_file():
        return [source_from_path(root)]

    sources = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        relative_dir = Path(dirpath).relative_to(root.parent)
        for filename in sorted(filenames):
            relative_path = "/".join([*relative_dir.parts, filename])
            sources.append(source_from_path(Path(dirpath) / filename, relative_path))
    return sources


async def _upload_one(
    store: KeyStore, prefix: str, source: UploadSource
) -> ItemOutcome:
    destination = destination_for(prefix, source)
    try:
        await store.put(
            destination,
            source.open(),
            content_type=source.content_type or guess_content_type(source.name),
            size=source.size,
        )
    except Exception as e:
        logger.error(
            "Upload failed",
            file=source.display_path,
            destination=destination,
            error=str(e),
        )
        return ItemOutcome.failure(destination, e)

    logger.debug("Uploaded file", file=source.display_path, destination=destination)
    return ItemOutcome(key=destination, succeeded=True)


async def upload_batch(
    store: KeyStore,
    sources: Iterable[UploadSource],
    prefix: str = "",
    *,
    wave_width: int = DEFAULT_WAVE_WIDTH,
    clock: Callable[[], float] = time.monotonic,
) -> AsyncIterator[UploadProgress]:
    """
    Uploads `sources` under `prefix`, yielding progress after every file.

    A failed file is logged and skipped; its bytes never count towards
    `uploaded_bytes`. The last event has `done=True`.
    """
    validate_prefix(prefix)
    if wave_width < 1:
        raise ValueError("wave_width must be at least 1")

    sources = list(sources)
    total_bytes = sum(s.size for s in sources)
    uploaded_bytes = 0
    completed_count = 0
    failed_count = 0
    started = clock()

    def progress(source: UploadSource | None, outcome: ItemOutcome | None, done=False):
        elapsed = clock() - started
        speed, eta = estimate(uploaded_bytes, total_bytes, elapsed)
        return UploadProgress(
            uploaded_bytes=uploaded_bytes,
            total_bytes=total_bytes,
            completed_count=completed_count,
            total_count=len(sources),
            current_file_name=source.display_path if source else None,
            failed_count=failed_count,
            elapsed=elapsed,
            speed=speed,
            eta=eta,
            outcome=outcome,
            done=done,
        )

    logger.info(
        "Starting upload batch",
        files=len(sources),
        bytes=total_bytes,
        prefix=prefix,
    )

    for start in range(0, len(sources), wave_width):
        wave = sources[start : start + wave_width]
        tasks = {
            asyncio.ensure_future(_upload_one(store, prefix, source)): source
            for source in wave
        }
        try:
            pending = set(tasks)
            while pending:
                finished, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for task in finished:
                    source = tasks[task]
                    outcome = task.result()
                    if outcome.succeeded:
                        uploaded_bytes += source.size
                        completed_count += 1
                    else:
                        failed_count += 1
                    yield progress(source, outcome)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    final = progress(None, None, done=True)
    logger.info(
        "Upload batch finished",
        completed=completed_count,
        failed=failed_count,
        bytes=uploaded_bytes,
        elapsed=round(final.elapsed, 3),
    )
    yield final


async def run_upload(
    store: KeyStore,
    sources: Iterable[UploadSource],
    prefix: str = "",
    *,
    wave_width: int = DEFAULT_WAVE_WIDTH,
    on_progress: Callable[[UploadProgress], None] | None = None,
) -> UploadReport:
    report = UploadReport()
    async for event in upload_batch(store, sources, prefix, wave_width=wave_width):
        if event.outcome is not None:
            report.result.outcomes.append(event.outcome)
        if on_progress is not None:
            on_progress(event)
        report.progress = event
    return report


def _scaled(value: float, units: List[str]) -> str:
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def format_size(num_bytes: float | None) -> str:
    if not num_bytes:
        return "0 B"
    return _scaled(num_bytes, ["B", "KB", "MB", "GB", "TB"])


def format_speed(bytes_per_second: float | None) -> str:
    if not bytes_per_second:
        return "0 B/s"
    return _scaled(bytes_per_second, ["B/s", "KB/s", "MB/s", "GB/s"])


def format_eta(seconds: float | None) -> str:
    if seconds is None or math.isinf(seconds) or math.isnan(seconds) or seconds <= 0:
        return "--"
    if seconds < 60:
        return f"{round(seconds)}s"
    minutes = int(seconds // 60)
    if minutes < 60:
        return f"{minutes}m {round(seconds % 60)}s"
    return f"{minutes // 60}h {minutes % 60}m"
