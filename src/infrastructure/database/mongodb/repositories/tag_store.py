from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pymongo.errors import DuplicateKeyError

from database.manager import DatabaseManager
from src.domain.entities.backup import TagRecord
from src.domain.errors import DuplicateNameError, StoreError
from src.domain.interfaces.tag_store_interface import ITagStore

DEFAULT_TAG_COLOR = "#6366f1"


class MongoTagStore(ITagStore):
    """Tags in the ``tags`` collection, integer ids from ``counters``."""

    def __init__(self, db_manager: DatabaseManager) -> None:
        self._db = db_manager

    @property
    def _col(self):
        return self._db.tags

    def list_all(self) -> List[TagRecord]:
        docs = [d for d in self._col.find({}) if isinstance(d, dict)]
        return sorted((self._from_doc(d) for d in docs), key=lambda t: t.name)

    def get_by_ids(self, ids: Iterable[int]) -> List[TagRecord]:
        wanted = list(ids)
        if not wanted:
            return []
        found = {d.get("id"): self._from_doc(d) for d in self._col.find({"id": {"$in": wanted}})}
        # סדר התגיות כפי שנשמר על הסניפט
        return [found[i] for i in wanted if i in found]

    def get_by_name(self, name: str) -> Optional[TagRecord]:
        doc = self._col.find_one({"name": name})
        return self._from_doc(doc) if isinstance(doc, dict) else None

    def create(self, name: str, color: str = "") -> TagRecord:
        name = (name or "").strip()
        if not name:
            raise StoreError("tag name is required")
        if self.get_by_name(name) is not None:
            raise DuplicateNameError("tag", name)
        doc: Dict[str, Any] = {
            "id": self._db.next_id("tags"),
            "name": name,
            "color": color or DEFAULT_TAG_COLOR,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            self._col.insert_one(doc)
        except DuplicateKeyError as e:
            # מרוץ מול כותב אחר על אותו שם
            raise DuplicateNameError("tag", name) from e
        return self._from_doc(doc)

    def get_or_create_by_name(self, name: str) -> TagRecord:
        existing = self.get_by_name(name)
        if existing is not None:
            return existing
        try:
            return self.create(name, DEFAULT_TAG_COLOR)
        except DuplicateNameError:
            existing = self.get_by_name(name)
            if existing is None:
                raise
            return existing

    def delete_all(self) -> int:
        return int(self._col.delete_many({}).deleted_count or 0)

    @staticmethod
    def _from_doc(d: Dict[str, Any]) -> TagRecord:
        return TagRecord(
            id=d.get("id"),
            name=str(d.get("name", "") or ""),
            color=str(d.get("color", "") or ""),
            created_at=d.get("created_at"),
        )
