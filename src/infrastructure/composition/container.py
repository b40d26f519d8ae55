from __future__ import annotations

import threading
from datetime import timedelta
from typing import Any, Optional


_backup_services_singleton = None  # type: Optional["BackupServices"]
_singleton_lock = threading.Lock()


class BackupServices:
    """Wired pipelines: export, import and (when S3 is enabled) remote sync."""

    def __init__(self, exporter: Any, importer: Any, remote: Optional[Any] = None) -> None:
        self.exporter = exporter
        self.importer = importer
        self.remote = remote


def build_backup_services(cfg: Any = None, db_manager: Any = None, object_store: Any = None) -> BackupServices:
    """Build the services from config. Pass ``db_manager``/``object_store`` to override (tests)."""
    # Lazy imports to avoid hard coupling at import time and ease tests/mocks
    from src.application.services.backup_export_service import BackupExportService
    from src.application.services.backup_import_service import BackupImportService
    from src.application.services.remote_sync_service import RemoteSyncService
    from src.infrastructure.database.mongodb.repositories.folder_store import MongoFolderStore
    from src.infrastructure.database.mongodb.repositories.snippet_store import MongoSnippetStore
    from src.infrastructure.database.mongodb.repositories.tag_store import MongoTagStore

    if cfg is None:
        from config import config as cfg  # type: ignore
    if db_manager is None:
        from database import init_database

        db_manager = init_database()

    tags = MongoTagStore(db_manager)
    folders = MongoFolderStore(db_manager)
    snippets = MongoSnippetStore(db_manager, tags, folders, max_files=cfg.MAX_FILES_PER_SNIPPET)

    exporter = BackupExportService(snippets, tags, folders)
    importer = BackupImportService(
        snippets, tags, folders, max_backup_size=cfg.max_backup_size_bytes
    )

    remote = None
    if cfg.S3_ENABLED:
        if object_store is None:
            from src.infrastructure.storage.s3_object_store import S3ObjectStore

            object_store = S3ObjectStore.from_config(cfg)
            object_store.ensure_bucket()
        remote = RemoteSyncService(
            object_store,
            exporter,
            importer,
            bucket=cfg.S3_BUCKET or "",
            presign_ttl=timedelta(seconds=cfg.S3_PRESIGN_TTL_SECS),
        )
    return BackupServices(exporter, importer, remote)


def get_backup_services() -> BackupServices:
    """
    Composition Root: build and return a singleton BackupServices.
    Keeps construction inside infrastructure, so callers only depend on the application layer.
    """
    global _backup_services_singleton
    if _backup_services_singleton is not None:
        return _backup_services_singleton

    # Ensure singleton creation is thread-safe under concurrent first requests
    with _singleton_lock:
        if _backup_services_singleton is None:
            _backup_services_singleton = build_backup_services()
        return _backup_services_singleton


def reset_backup_services() -> None:
    global _backup_services_singleton
    with _singleton_lock:
        _backup_services_singleton = None
