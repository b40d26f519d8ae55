from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from database.manager import DatabaseManager
from src.domain.entities.backup import FileRecord, SnippetRecord
from src.domain.entities.library import SnippetInput, SnippetSummary
from src.domain.errors import NotFoundError, SnippetValidationError
from src.domain.interfaces.snippet_store_interface import ISnippetStore
from src.domain.services.snippet_validator import validate_snippet_input
from src.infrastructure.database.mongodb.repositories.folder_store import MongoFolderStore
from src.infrastructure.database.mongodb.repositories.tag_store import MongoTagStore

DEFAULT_MAX_FILES = 10

# מסננים מסמכים שנמחקו רכות (is_active=False)
_ACTIVE = {"is_active": {"$ne": False}}
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _recency(doc: Dict[str, Any]) -> datetime:
    return doc.get("updated_at") or doc.get("created_at") or _EPOCH


class MongoSnippetStore(ISnippetStore):
    """Snippets in the ``snippets`` collection.

    Files are embedded; tags and folders are linked by integer id
    (``tag_ids`` / ``folder_ids``) and resolved on read.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        tag_store: MongoTagStore,
        folder_store: MongoFolderStore,
        max_files: int = DEFAULT_MAX_FILES,
    ) -> None:
        self._db = db_manager
        self._tags = tag_store
        self._folders = folder_store
        self._max_files = max_files

    @property
    def _col(self):
        return self._db.snippets

    def list_all(self) -> List[SnippetSummary]:
        docs = [d for d in self._col.find(dict(_ACTIVE)) if isinstance(d, dict)]
        docs.sort(key=_recency, reverse=True)
        return [
            SnippetSummary(
                id=str(d.get("id", "")),
                title=str(d.get("title", "") or ""),
                language=str(d.get("language", "") or ""),
                is_favorite=bool(d.get("is_favorite", False)),
                is_public=bool(d.get("is_public", False)),
                is_archived=bool(d.get("is_archived", False)),
                updated_at=d.get("updated_at"),
            )
            for d in docs
        ]

    def get_detail(self, snippet_id: str) -> SnippetRecord:
        doc = self._col.find_one({"id": snippet_id, **_ACTIVE})
        if not isinstance(doc, dict):
            raise NotFoundError(f"snippet {snippet_id} not found")
        return self._from_doc(doc)

    def create(self, data: SnippetInput) -> SnippetRecord:
        errors = validate_snippet_input(data)
        if errors:
            raise SnippetValidationError(errors)

        if data.folder_id is not None and self._folders.get_by_id(data.folder_id) is None:
            raise NotFoundError(f"folder {data.folder_id} not found")

        tag_ids: List[int] = []
        for name in data.tags:
            tag = self._tags.get_or_create_by_name(name)
            if tag.id not in tag_ids:
                tag_ids.append(tag.id)

        files = [
            {
                "filename": f.filename,
                "content": f.content,
                "language": f.language or data.language,
                "sort_order": i,
            }
            for i, f in enumerate(data.files[: self._max_files])
        ]

        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            "id": uuid.uuid4().hex,
            "title": data.title,
            "description": data.description,
            "content": data.content,
            "language": data.language,
            "is_favorite": False,
            "is_public": bool(data.is_public),
            "is_archived": bool(data.is_archived),
            "view_count": 0,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
            "files": files,
            "tag_ids": tag_ids,
            "folder_ids": [data.folder_id] if data.folder_id is not None else [],
        }
        self._col.insert_one(doc)
        return self._from_doc(doc)

    def delete_all(self) -> int:
        # הקבצים והקישורים לתגיות/תיקיות מוטמעים במסמך ונמחקים איתו
        return int(self._col.delete_many({}).deleted_count or 0)

    def _from_doc(self, d: Dict[str, Any]) -> SnippetRecord:
        files = sorted(
            (f for f in (d.get("files") or []) if isinstance(f, dict)),
            key=lambda f: int(f.get("sort_order", 0) or 0),
        )
        return SnippetRecord(
            id=str(d.get("id", "")),
            title=str(d.get("title", "") or ""),
            description=str(d.get("description", "") or ""),
            content=str(d.get("content", "") or ""),
            language=str(d.get("language", "") or ""),
            is_favorite=bool(d.get("is_favorite", False)),
            is_public=bool(d.get("is_public", False)),
            is_archived=bool(d.get("is_archived", False)),
            view_count=int(d.get("view_count", 0) or 0),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
            files=[
                FileRecord(
                    filename=str(f.get("filename", "") or ""),
                    content=str(f.get("content", "") or ""),
                    language=str(f.get("language", "") or ""),
                    sort_order=int(f.get("sort_order", 0) or 0),
                )
                for f in files
            ],
            tags=self._tags.get_by_ids(d.get("tag_ids") or []),
            folders=self._folders.get_by_ids(d.get("folder_ids") or []),
        )
