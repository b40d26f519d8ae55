from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from metrics import record_operation, track_performance
from observability import emit_event
from src.application.dto.backup_options import ExportOptions
from src.domain.entities.backup import (
    BACKUP_FORMAT_VERSION,
    FolderRecord,
    SnippetRecord,
    Snapshot,
    TagRecord,
)
from src.domain.interfaces.folder_store_interface import IFolderStore
from src.domain.interfaces.snippet_store_interface import ISnippetStore
from src.domain.interfaces.tag_store_interface import ITagStore
from src.domain.services import backup_cipher, backup_codec

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BackupExportService:
    """Gather the live library into a Snapshot, encode it, optionally seal it.

    Best-effort: a snippet whose detail cannot be fetched is logged and left
    out; the export itself only fails when the snippet list cannot be read.
    """

    def __init__(
        self,
        snippet_store: ISnippetStore,
        tag_store: ITagStore,
        folder_store: IFolderStore,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._snippets = snippet_store
        self._tags = tag_store
        self._folders = folder_store
        self._clock = clock or _utcnow

    def export(self, options: Optional[ExportOptions] = None) -> Tuple[bytes, str]:
        """Return (payload, filename)."""
        options = options or ExportOptions()
        try:
            with track_performance("backup_export"):
                now = self._clock()
                snapshot = self.build_snapshot(now)

                content = backup_codec.encode(snapshot, options.format)
                encrypted = bool(options.password)
                if encrypted:
                    content = backup_cipher.seal(content, options.password)
                filename = backup_codec.backup_filename(options.format, encrypted, now)
        except Exception as e:
            record_operation("export", False)
            emit_event("backup_export_failed", severity="error", error=str(e))
            raise

        record_operation("export", True, len(content))
        emit_event(
            "backup_exported",
            snippets=len(snapshot.snippets),
            tags=len(snapshot.tags),
            folders=len(snapshot.folders),
            format=options.format,
            encrypted=encrypted,
            size_bytes=len(content),
        )
        return content, filename

    def build_snapshot(self, now: Optional[datetime] = None) -> Snapshot:
        return Snapshot(
            version=BACKUP_FORMAT_VERSION,
            created_at=now or self._clock(),
            snippets=self._gather_snippets(),
            tags=self._gather_tags(),
            folders=self._gather_folders(),
        )

    def _gather_snippets(self) -> List[SnippetRecord]:
        # רשימה מלאה בבת אחת: כישלון כאן מפיל את הייצוא
        summaries = self._snippets.list_all()
        records: List[SnippetRecord] = []
        for summary in summaries:
            # ה-projection של הרשימה רזה; שליפת פרטים מלאים (קבצים, תגיות, תיקיות)
            try:
                records.append(self._snippets.get_detail(summary.id))
            except Exception as e:
                logger.warning("failed to get snippet details id=%s: %s", summary.id, e)
                emit_event(
                    "backup_export_snippet_skipped",
                    severity="warn",
                    snippet_id=str(summary.id),
                    error=str(e),
                )
        return records

    def _gather_tags(self) -> List[TagRecord]:
        try:
            return list(self._tags.list_all())
        except Exception as e:
            logger.warning("failed to get tags for export: %s", e)
            return []

    def _gather_folders(self) -> List[FolderRecord]:
        try:
            return list(self._folders.list_all())
        except Exception as e:
            logger.warning("failed to get folders for export: %s", e)
            return []
