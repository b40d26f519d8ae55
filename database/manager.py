from datetime import timezone
from typing import Any, Optional, Protocol

from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient, ReturnDocument

from config import config
from observability import emit_event


SNIPPETS_COLLECTION = "snippets"
TAGS_COLLECTION = "tags"
FOLDERS_COLLECTION = "folders"
COUNTERS_COLLECTION = "counters"


class CollectionLike(Protocol):
    def insert_one(self, *args: Any, **kwargs: Any) -> Any: ...
    def update_one(self, *args: Any, **kwargs: Any) -> Any: ...
    def delete_many(self, *args: Any, **kwargs: Any) -> Any: ...
    def find_one(self, *args: Any, **kwargs: Any) -> Any: ...
    def find_one_and_update(self, *args: Any, **kwargs: Any) -> Any: ...
    def find(self, *args: Any, **kwargs: Any) -> Any: ...
    def create_indexes(self, *args: Any, **kwargs: Any) -> Any: ...


class DBLike(Protocol):
    def __getitem__(self, name: str) -> CollectionLike: ...


class DatabaseManager:
    """אחראי על חיבור MongoDB, הגדרת אינדקסים ומוני מזהים."""

    client: Optional[Any]
    db: DBLike

    def __init__(self, client: Optional[Any] = None, database_name: Optional[str] = None):
        self.client = client
        self._database_name = database_name or config.DATABASE_NAME
        self.connect()

    def connect(self):
        # client מוזרק (בדיקות): בלי ping ובלי אינדקסים
        if self.client is not None:
            self.db = self.client[self._database_name]
            return

        try:
            self.client = MongoClient(
                config.MONGODB_URL,
                **({"appname": config.MONGODB_APPNAME} if config.MONGODB_APPNAME else {}),
                serverSelectionTimeoutMS=config.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
                socketTimeoutMS=config.MONGODB_SOCKET_TIMEOUT_MS,
                connectTimeoutMS=config.MONGODB_CONNECT_TIMEOUT_MS,
                retryWrites=True,
                retryReads=True,
                tz_aware=True,
                tzinfo=timezone.utc,
            )
            self.db = self.client[self._database_name]
            self.client.admin.command('ping')
            self._create_indexes()
            emit_event("db_connected", severity="info", database=self._database_name)
        except Exception as e:
            emit_event("db_connection_failed", severity="error", error=str(e))
            raise

    @property
    def snippets(self) -> CollectionLike:
        return self.db[SNIPPETS_COLLECTION]

    @property
    def tags(self) -> CollectionLike:
        return self.db[TAGS_COLLECTION]

    @property
    def folders(self) -> CollectionLike:
        return self.db[FOLDERS_COLLECTION]

    @property
    def counters(self) -> CollectionLike:
        return self.db[COUNTERS_COLLECTION]

    def next_id(self, name: str) -> int:
        """מזהה שלם עוקב לפי שם מונה (tags / folders)."""
        doc = self.counters.find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int((doc or {}).get("seq", 1))

    def _create_indexes(self):
        snippets_indexes = [
            IndexModel([("is_active", ASCENDING), ("updated_at", DESCENDING)], name="active_recent_idx"),
            IndexModel([("title", ASCENDING)], name="title_idx"),
            IndexModel([("tag_ids", ASCENDING)], name="tag_ids_idx"),
            IndexModel([("folder_ids", ASCENDING)], name="folder_ids_idx"),
        ]
        tags_indexes = [
            IndexModel([("id", ASCENDING)], name="id_unique", unique=True),
            IndexModel([("name", ASCENDING)], name="name_unique", unique=True),
        ]
        folders_indexes = [
            IndexModel([("id", ASCENDING)], name="id_unique", unique=True),
            IndexModel([("parent_id", ASCENDING), ("sort_order", ASCENDING)], name="parent_sort_idx"),
        ]
        try:
            self.snippets.create_indexes(snippets_indexes)
            self.tags.create_indexes(tags_indexes)
            self.folders.create_indexes(folders_indexes)
        except Exception as e:
            # אינדקס קיים עם אופציות שונות לא אמור לחסום עבודה
            emit_event("db_create_indexes_error", severity="warn", error=str(e))
