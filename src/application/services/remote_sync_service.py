from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from metrics import record_operation, track_performance
from observability import emit_event
from src.application.dto.backup_options import (
    ExportOptions,
    ImportOptions,
    RestoreResult,
    SyncResult,
)
from src.application.services.backup_export_service import BackupExportService
from src.application.services.backup_import_service import BackupImportService
from src.domain.entities.backup import S3ObjectInfo
from src.domain.interfaces.object_store_interface import IObjectStore
from src.domain.services import backup_codec

logger = logging.getLogger(__name__)

BACKUP_KEY_PREFIX = "backups/"
DEFAULT_PRESIGN_TTL = timedelta(minutes=15)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_key(key: str) -> str:
    key = (key or "").strip()
    if not key:
        raise ValueError("object key is required")
    return key


class RemoteSyncService:
    """Thin adapter between the backup pipelines and an S3-compatible store.

    Every call is a single blocking round trip; no retries. Object-store
    failures surface as RemoteIOError from the store and are not caught here.
    """

    def __init__(
        self,
        object_store: IObjectStore,
        exporter: BackupExportService,
        importer: BackupImportService,
        bucket: str = "",
        presign_ttl: timedelta = DEFAULT_PRESIGN_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = object_store
        self._exporter = exporter
        self._importer = importer
        self._bucket = bucket or ""
        self._presign_ttl = presign_ttl
        self._clock = clock or _utcnow

    def sync_to_remote(self, options: Optional[ExportOptions] = None) -> SyncResult:
        """Export a fresh backup and upload it under ``backups/<filename>``."""
        result = SyncResult(started_at=self._clock())
        try:
            with track_performance("backup_sync"):
                content, filename = self._exporter.export(options)
                key = BACKUP_KEY_PREFIX + filename
                self._store.upload(key, content, backup_codec.content_type_for(filename))
        except Exception as e:
            record_operation("sync", False)
            emit_event("backup_sync_failed", severity="error", error=str(e))
            raise

        result.key = key
        result.size = len(content)
        result.uploaded = 1
        result.finished_at = self._clock()
        record_operation("sync", True, len(content))
        emit_event("backup_synced", key=key, size_bytes=len(content))
        return result

    def list_remote(self) -> List[S3ObjectInfo]:
        with track_performance("backup_list_remote"):
            return self._store.list(BACKUP_KEY_PREFIX)

    def restore_from_remote(self, key: str, options: Optional[ImportOptions] = None) -> RestoreResult:
        """Download ``key`` and run it through the import pipeline.

        Per-record import errors are copied into the result; hard errors
        (format, authentication, remote I/O) propagate.
        """
        key = _require_key(key)
        result = RestoreResult(key=key, started_at=self._clock())
        try:
            with track_performance("backup_restore_remote"):
                data = self._store.download(key)
                imported = self._importer.import_backup(data, options)
        except Exception as e:
            record_operation("restore", False)
            emit_event("backup_restore_failed", severity="error", key=key, error=str(e))
            raise

        result.import_result = imported
        result.restored = imported.snippets_imported + imported.tags_imported + imported.folders_imported
        result.errors.extend(imported.errors)
        result.finished_at = self._clock()
        record_operation("restore", True, len(data))
        emit_event(
            "backup_restored",
            key=key,
            restored=result.restored,
            errors_count=len(result.errors),
        )
        return result

    def delete_remote(self, key: str) -> None:
        key = _require_key(key)
        self._store.delete(key)
        emit_event("backup_remote_deleted", key=key)

    def presigned_download_url(self, key: str, ttl: Union[timedelta, int, float, None] = None) -> str:
        key = _require_key(key)
        if ttl is None:
            ttl = self._presign_ttl
        elif not isinstance(ttl, timedelta):
            ttl = timedelta(seconds=float(ttl))
        if ttl.total_seconds() <= 0:
            raise ValueError("ttl must be positive")
        return self._store.presign_get(key, ttl)

    def status(self) -> Dict[str, Any]:
        return {"enabled": True, "bucket": self._bucket, "prefix": BACKUP_KEY_PREFIX}
