from typing import Optional

from .manager import DatabaseManager

_db: Optional[DatabaseManager] = None


def init_database() -> DatabaseManager:
    """מחזיר מנהל יחיד; החיבור נפתח רק בקריאה הראשונה."""
    global _db
    if _db is None:
        _db = DatabaseManager()
    return _db
