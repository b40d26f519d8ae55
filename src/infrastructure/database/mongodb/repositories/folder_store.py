from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from database.manager import DatabaseManager
from src.domain.entities.backup import FolderRecord
from src.domain.entities.library import FolderInput
from src.domain.errors import CircularReferenceError, NotFoundError, StoreError
from src.domain.interfaces.folder_store_interface import IFolderStore


class MongoFolderStore(IFolderStore):
    """Folders in the ``folders`` collection; hierarchy via ``parent_id``."""

    def __init__(self, db_manager: DatabaseManager) -> None:
        self._db = db_manager

    @property
    def _col(self):
        return self._db.folders

    def list_all(self) -> List[FolderRecord]:
        docs = [d for d in self._col.find({}) if isinstance(d, dict)]
        return sorted((self._from_doc(d) for d in docs), key=lambda f: (f.sort_order, f.name))

    def get_by_id(self, folder_id: Any) -> Optional[FolderRecord]:
        doc = self._col.find_one({"id": folder_id})
        return self._from_doc(doc) if isinstance(doc, dict) else None

    def get_by_ids(self, ids: Iterable[int]) -> List[FolderRecord]:
        wanted = list(ids)
        if not wanted:
            return []
        found = {d.get("id"): self._from_doc(d) for d in self._col.find({"id": {"$in": wanted}})}
        return [found[i] for i in wanted if i in found]

    def create(self, data: FolderInput) -> FolderRecord:
        name = (data.name or "").strip()
        if not name:
            raise StoreError("folder name is required")
        if data.parent_id is not None and self.get_by_id(data.parent_id) is None:
            raise NotFoundError(f"parent folder {data.parent_id} not found")
        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            "id": self._db.next_id("folders"),
            "name": name,
            "parent_id": data.parent_id,
            "icon": data.icon or "",
            "sort_order": int(data.sort_order or 0),
            "created_at": now,
            "updated_at": now,
        }
        self._col.insert_one(doc)
        return self._from_doc(doc)

    def move(self, folder_id: int, new_parent_id: Optional[int]) -> FolderRecord:
        folder = self.get_by_id(folder_id)
        if folder is None:
            raise NotFoundError(f"folder {folder_id} not found")

        if new_parent_id is not None:
            if new_parent_id == folder_id:
                raise CircularReferenceError()
            if self.get_by_id(new_parent_id) is None:
                raise NotFoundError(f"parent folder {new_parent_id} not found")
            # עולים בשרשרת האבות של היעד; אם פוגשים את התיקייה עצמה: מעגל
            seen: Set[Any] = set()
            current: Any = new_parent_id
            while current is not None and current not in seen:
                if current == folder_id:
                    raise CircularReferenceError()
                seen.add(current)
                parent = self.get_by_id(current)
                current = parent.parent_id if parent is not None else None

        self._col.update_one(
            {"id": folder_id},
            {"$set": {"parent_id": new_parent_id, "updated_at": datetime.now(timezone.utc)}},
        )
        folder.parent_id = new_parent_id
        return folder

    def delete_all(self) -> int:
        return int(self._col.delete_many({}).deleted_count or 0)

    @staticmethod
    def _from_doc(d: Dict[str, Any]) -> FolderRecord:
        return FolderRecord(
            id=d.get("id"),
            name=str(d.get("name", "") or ""),
            parent_id=d.get("parent_id"),
            icon=str(d.get("icon", "") or ""),
            sort_order=int(d.get("sort_order", 0) or 0),
            created_at=d.get("created_at"),
        )
