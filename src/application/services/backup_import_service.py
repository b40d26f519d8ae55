from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from metrics import record_operation, track_import_counts, track_performance
from observability import emit_event
from src.application.dto.backup_options import (
    STRATEGY_MERGE,
    STRATEGY_REPLACE,
    STRATEGY_SKIP,
    ImportOptions,
)
from src.domain.entities.backup import FolderRecord, ImportResult, SnippetRecord, Snapshot
from src.domain.entities.library import FolderInput, SnippetFileInput, SnippetInput
from src.domain.errors import BackupTooLargeError
from src.domain.interfaces.folder_store_interface import IFolderStore
from src.domain.interfaces.snippet_store_interface import ISnippetStore
from src.domain.interfaces.tag_store_interface import ITagStore
from src.domain.services import backup_cipher, backup_codec
from src.domain.services.natural_key_resolver import NaturalKeyResolver

logger = logging.getLogger(__name__)

DEFAULT_MAX_BACKUP_SIZE = 50 * 1024 * 1024


class BackupImportService:
    """Merge a Snapshot into the live store.

    Import is best-effort, not transactional: each tag, folder and snippet is
    written on its own, per-record failures are collected in
    ``ImportResult.errors`` and never undo what was already written. Callers
    that need all-or-nothing semantics must stage the import themselves.
    Concurrent imports against the same store must be serialized by the caller.
    """

    def __init__(
        self,
        snippet_store: ISnippetStore,
        tag_store: ITagStore,
        folder_store: IFolderStore,
        max_backup_size: Optional[int] = DEFAULT_MAX_BACKUP_SIZE,
    ) -> None:
        self._snippets = snippet_store
        self._tags = tag_store
        self._folders = folder_store
        self._max_size = max_backup_size

    def import_backup(self, data: bytes, options: Optional[ImportOptions] = None) -> ImportResult:
        """Decrypt (when a password is given), decode and merge ``data``.

        Raises:
            BackupTooLargeError: payload exceeds the configured limit.
            AuthenticationFailedError: wrong password or tampered payload.
            InvalidFormatError: neither a Document nor a versioned Archive.
        """
        options = options or ImportOptions()
        try:
            with track_performance("backup_import"):
                snapshot, fmt = self._unpack(data, options)
                result = self.apply_snapshot(snapshot, options.strategy)
        except Exception as e:
            record_operation("import", False, len(data))
            emit_event("backup_import_failed", severity="warn", error=str(e), error_type=type(e).__name__)
            raise

        record_operation("import", True, len(data))
        track_import_counts(
            result.snippets_imported, result.tags_imported, result.folders_imported, len(result.errors)
        )
        emit_event(
            "backup_imported",
            strategy=options.strategy,
            format=fmt,
            encrypted=bool(options.password),
            snippets=result.snippets_imported,
            tags=result.tags_imported,
            folders=result.folders_imported,
            errors_count=len(result.errors),
        )
        return result

    def _unpack(self, data: bytes, options: ImportOptions) -> Tuple[Snapshot, str]:
        if self._max_size and len(data) > self._max_size:
            raise BackupTooLargeError(len(data), self._max_size)
        if options.password:
            data = backup_cipher.open_sealed(data, options.password)
        return backup_codec.decode(data)

    def apply_snapshot(self, snapshot: Snapshot, strategy: str = STRATEGY_MERGE) -> ImportResult:
        """Write ``snapshot`` into the live store under ``strategy``."""
        result = ImportResult()

        # נקודת אל-חזור: replace מוחק הכל לפני כל כתיבה אחרת
        if strategy == STRATEGY_REPLACE:
            self._clear_all()

        resolver = NaturalKeyResolver(
            self._tags.list_all(), self._folders.list_all(), self._snippets.list_all()
        )

        self._import_tags(snapshot, resolver, result)
        self._import_folders(snapshot, resolver, result)
        self._import_snippets(snapshot, resolver, strategy, result)

        logger.info(
            "backup imported: snippets=%d tags=%d folders=%d errors=%d",
            result.snippets_imported,
            result.tags_imported,
            result.folders_imported,
            len(result.errors),
        )
        return result

    def _clear_all(self) -> None:
        # snippets first: their tag/folder links go with them
        removed_snippets = self._snippets.delete_all()
        removed_tags = self._tags.delete_all()
        removed_folders = self._folders.delete_all()
        emit_event(
            "backup_replace_cleared",
            severity="warn",
            snippets=removed_snippets,
            tags=removed_tags,
            folders=removed_folders,
        )

    def _import_tags(self, snapshot: Snapshot, resolver: NaturalKeyResolver, result: ImportResult) -> None:
        for tag in snapshot.tags:
            existing = resolver.find_tag(tag.name)
            if existing is not None:
                # קיימת כבר: רק מיפוי, לא נספרת כמיובאת
                resolver.map_tag(tag.id, existing)
                continue
            try:
                created = self._tags.create(tag.name, tag.color)
            except Exception as e:
                result.errors.append(f"tag {tag.name}: {e}")
                continue
            resolver.map_tag(tag.id, created, tag.name)
            result.tags_imported += 1

    def _import_folders(
        self, snapshot: Snapshot, resolver: NaturalKeyResolver, result: ImportResult
    ) -> None:
        # Pass 1: create/resolve every folder without a parent
        created: List[Tuple[FolderRecord, Any]] = []
        for folder in snapshot.folders:
            existing = resolver.find_folder(folder.name)
            if existing is not None:
                resolver.map_folder(folder.id, existing)
                continue
            try:
                live = self._folders.create(
                    FolderInput(name=folder.name, icon=folder.icon, sort_order=folder.sort_order)
                )
            except Exception as e:
                result.errors.append(f"folder {folder.name}: {e}")
                continue
            resolver.map_folder(folder.id, live, folder.name)
            created.append((folder, live.id))
            result.folders_imported += 1

        # Pass 2: re-parent only folders created by this import; folders that
        # already existed keep whatever parent they have.
        for folder, live_id in created:
            if folder.parent_id is None:
                continue
            parent_live_id = resolver.live_folder_id(folder.parent_id)
            if parent_live_id is None:
                logger.warning(
                    "folder %s: parent %s not found in backup, left at root",
                    folder.name,
                    folder.parent_id,
                )
                continue
            try:
                self._folders.move(live_id, parent_live_id)
            except Exception as e:
                result.errors.append(f"folder {folder.name}: {e}")

    def _import_snippets(
        self,
        snapshot: Snapshot,
        resolver: NaturalKeyResolver,
        strategy: str,
        result: ImportResult,
    ) -> None:
        skip_existing = strategy in (STRATEGY_SKIP, STRATEGY_MERGE)
        for snippet in snapshot.snippets:
            # merge ו-skip זהים כרגע: כותרת קיימת => דילוג
            if skip_existing and resolver.has_snippet_title(snippet.title):
                continue
            try:
                self._snippets.create(self._to_input(snippet, resolver))
            except Exception as e:
                logger.warning("failed to import snippet %r: %s", snippet.title, e)
                result.errors.append(f"snippet {snippet.title}: {e}")
                continue
            resolver.add_snippet_title(snippet.title)
            result.snippets_imported += 1

    def _to_input(self, snippet: SnippetRecord, resolver: NaturalKeyResolver) -> SnippetInput:
        folder_id = None
        if snippet.folders:
            # רק התיקייה הראשונה נשמרת בשחזור; שיוך לתיקיות נוספות אובד
            if len(snippet.folders) > 1:
                logger.info(
                    "snippet %r lists %d folders; only the first is restored",
                    snippet.title,
                    len(snippet.folders),
                )
            folder_id = resolver.live_folder_id(snippet.folders[0].id)
        return SnippetInput(
            title=snippet.title,
            description=snippet.description,
            content=snippet.content,
            language=snippet.language,
            is_public=snippet.is_public,
            is_archived=snippet.is_archived,
            # tags are resolved/created by name when the snippet is written
            tags=[t.name for t in snippet.tags],
            folder_id=folder_id,
            files=[
                SnippetFileInput(filename=f.filename, content=f.content, language=f.language)
                for f in snippet.files
            ],
        )
