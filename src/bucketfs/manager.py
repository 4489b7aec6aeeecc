from typing import Any, AsyncIterator, Iterable, List

from structlog import get_logger

from . import aggregate, mutations, namespace, transfer
from .aggregate import BucketStats
from .config import Settings, get_settings
from .enums import EntryType
from .exceptions import Unauthorized
from .logs import LogRecord, append_log, configure_logging, list_logs
from .mutations import BatchResult, OpenedEntry
from .namespace import Entry
from .session import SessionGate
from .store import KeyStore
from .transfer import UploadProgress, UploadSource

logger = get_logger()


class FileManager:
    """
    Folder operations over a key store, guarded by a session gate.

    Every operation checks the gate first and raises `Unauthorized` without
    touching the store when the request is not authenticated.

    Building one applies the log level and log buffer capacity from
    `settings`.
    """

    def __init__(
        self,
        store: KeyStore,
        gate: SessionGate,
        *,
        settings: Settings | None = None,
    ):
        self.store = store
        self.gate = gate
        self.settings = settings or get_settings()
        configure_logging(self.settings.log_level, self.settings.log_capacity)

    @property
    def marker_suffix(self) -> str:
        return self.settings.marker_suffix

    def _authorize(self, request: Any, operation: str):
        if not self.gate.is_authenticated(request):
            logger.warning("Unauthorized request", operation=operation)
            raise Unauthorized()

    def _audit(self, level: str, message: str, **details):
        append_log(level, message, **details)
        getattr(logger, level)(message, **details)

    def _audit_batch(self, message: str, result: BatchResult, **details):
        if result.ok:
            self._audit("info", message, keys=len(result.outcomes), **details)
        else:
            self._audit(
                "warning",
                message,
                keys=len(result.outcomes),
                failed=[o.key for o in result.failed],
                **details,
            )

    async def list_entries(self, request: Any, prefix: str = "") -> List[Entry]:
        self._authorize(request, "list")
        return await namespace.list_entries(
            self.store, prefix, marker_suffix=self.marker_suffix
        )

    async def create_folder(self, request: Any, path: str) -> str:
        self._authorize(request, "create_folder")
        marker = await mutations.create_folder(
            self.store, path, marker_suffix=self.marker_suffix
        )
        self._audit("info", "Folder created", path=path)
        return marker

    async def delete_entry(
        self, request: Any, path: str, kind: EntryType | str
    ) -> BatchResult:
        self._authorize(request, "delete")
        result = await mutations.delete_entry(self.store, path, kind)
        self._audit_batch(
            "Entry deleted", result, path=path, kind=EntryType(kind).value
        )
        return result

    async def rename_entry(
        self, request: Any, old_path: str, new_path: str
    ) -> BatchResult:
        self._authorize(request, "rename")
        result = await mutations.rename_entry(self.store, old_path, new_path)
        self._audit_batch("Entry renamed", result, old_path=old_path, new_path=new_path)
        return result

    def upload_batch(
        self, request: Any, sources: Iterable[UploadSource], prefix: str = ""
    ) -> AsyncIterator[UploadProgress]:
        self._authorize(request, "upload")
        return self._upload(sources, prefix)

    async def _upload(self, sources: Iterable[UploadSource], prefix: str):
        async for event in transfer.upload_batch(
            self.store,
            sources,
            prefix,
            wave_width=self.settings.upload_wave_width,
        ):
            if event.outcome is not None and not event.outcome.succeeded:
                self._audit(
                    "error",
                    "Upload failed",
                    path=event.outcome.key,
                    reason=event.outcome.reason,
                )
            if event.done:
                self._audit(
                    "info",
                    "Upload batch finished",
                    prefix=prefix,
                    completed=event.completed_count,
                    failed=event.failed_count,
                    bytes=event.uploaded_bytes,
                )
            yield event

    async def get_stats(self, request: Any) -> BucketStats:
        self._authorize(request, "stats")
        return await aggregate.bucket_stats(
            self.store,
            marker_suffix=self.marker_suffix,
            bucket=self.settings.bucket,
        )

    async def open_entry(self, request: Any, path: str) -> OpenedEntry:
        self._authorize(request, "download")
        return await mutations.open_entry(self.store, path)

    def list_logs(self, request: Any, limit: int | str | None = 100) -> List[LogRecord]:
        self._authorize(request, "logs")
        return list_logs(limit)
