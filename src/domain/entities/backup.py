"""Snapshot model: the complete, portable picture of a snippet library.

Everything here is a plain value. Identifiers carried by records are the
identifiers of the *source* system and are only meaningful inside one
Snapshot (``parent_id`` references, ``old_id -> live_id`` remapping).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.domain.errors import InvalidFormatError

# גרסת פורמט הגיבוי: מאפשר לזהות שינויים עתידיים במבנה
BACKUP_FORMAT_VERSION = "1.0"


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _str_to_dt(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 timestamps, including RFC3339 with 'Z' and nanoseconds."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str):
        raise InvalidFormatError(f"invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat מקבל עד 6 ספרות שבר: חותכים ננו-שניות
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        while rest and rest[0].isdigit():
            digits, rest = digits + rest[0], rest[1:]
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}" if digits else head + rest
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidFormatError(f"invalid timestamp: {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidFormatError(f"expected integer, got {value!r}") from exc


def _ref(value: Any, name: str) -> Any:
    """id / parent_id: int, str or null. Anything else cannot be remapped."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise InvalidFormatError(f"'{name}' must be an integer or a string, got {value!r}")


def _flag(value: Any, name: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidFormatError(f"'{name}' must be true or false, got {value!r}")
    return value


def _list_of_dicts(value: Any, name: str) -> List[Dict[str, Any]]:
    # older exports may write null for empty lists
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise InvalidFormatError(f"'{name}' must be a list of objects")
    return value


@dataclass
class FileRecord:
    filename: str
    content: str = ""
    language: str = ""
    sort_order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "content": self.content,
            "language": self.language,
            "sort_order": self.sort_order,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FileRecord":
        return cls(
            filename=_text(d.get("filename")),
            content=_text(d.get("content")),
            language=_text(d.get("language")),
            sort_order=_int(d.get("sort_order")),
        )


@dataclass
class TagRecord:
    """A tag. Two tags are the same iff their names match exactly."""

    id: Any
    name: str
    color: str = ""
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "created_at": _dt_to_str(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TagRecord":
        return cls(
            id=_ref(d.get("id"), "id"),
            name=_text(d.get("name")),
            color=_text(d.get("color")),
            created_at=_str_to_dt(d.get("created_at")),
        )


@dataclass
class FolderRecord:
    """A folder. ``parent_id`` points at another FolderRecord of the same Snapshot."""

    id: Any
    name: str
    parent_id: Any = None
    icon: str = ""
    sort_order: int = 0
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "icon": self.icon,
            "sort_order": self.sort_order,
            "created_at": _dt_to_str(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FolderRecord":
        return cls(
            id=_ref(d.get("id"), "id"),
            name=_text(d.get("name")),
            parent_id=_ref(d.get("parent_id"), "parent_id"),
            icon=_text(d.get("icon")),
            sort_order=_int(d.get("sort_order")),
            created_at=_str_to_dt(d.get("created_at")),
        )


@dataclass
class SnippetRecord:
    """Full snippet detail. Tags and folders are embedded by value, not by key."""

    id: Any
    title: str
    description: str = ""
    content: str = ""
    language: str = ""
    is_favorite: bool = False
    is_public: bool = False
    is_archived: bool = False
    view_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    files: List[FileRecord] = field(default_factory=list)
    tags: List[TagRecord] = field(default_factory=list)
    folders: List[FolderRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "language": self.language,
            "is_favorite": self.is_favorite,
            "is_public": self.is_public,
            "is_archived": self.is_archived,
            "view_count": self.view_count,
            "created_at": _dt_to_str(self.created_at),
            "updated_at": _dt_to_str(self.updated_at),
            "files": [f.to_dict() for f in self.files],
            "tags": [t.to_dict() for t in self.tags],
            "folders": [f.to_dict() for f in self.folders],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SnippetRecord":
        return cls(
            id=_ref(d.get("id"), "id"),
            title=_text(d.get("title")),
            description=_text(d.get("description")),
            content=_text(d.get("content")),
            language=_text(d.get("language")),
            is_favorite=_flag(d.get("is_favorite"), "is_favorite"),
            is_public=_flag(d.get("is_public"), "is_public"),
            is_archived=_flag(d.get("is_archived"), "is_archived"),
            view_count=_int(d.get("view_count")),
            created_at=_str_to_dt(d.get("created_at")),
            updated_at=_str_to_dt(d.get("updated_at")),
            files=[FileRecord.from_dict(f) for f in _list_of_dicts(d.get("files"), "files")],
            tags=[TagRecord.from_dict(t) for t in _list_of_dicts(d.get("tags"), "tags")],
            folders=[
                FolderRecord.from_dict(f) for f in _list_of_dicts(d.get("folders"), "folders")
            ],
        )


@dataclass
class Snapshot:
    version: str
    created_at: Optional[datetime]
    snippets: List[SnippetRecord] = field(default_factory=list)
    tags: List[TagRecord] = field(default_factory=list)
    folders: List[FolderRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "created_at": _dt_to_str(self.created_at),
            "snippets": [s.to_dict() for s in self.snippets],
            "tags": [t.to_dict() for t in self.tags],
            "folders": [f.to_dict() for f in self.folders],
        }

    @classmethod
    def from_dict(cls, d: Any) -> "Snapshot":
        """Build a Snapshot from a decoded document.

        Raises InvalidFormatError when the document is not an object, when the
        version is empty, or when its major version is newer than ours.
        """
        if not isinstance(d, dict):
            raise InvalidFormatError("backup document must be a JSON object")
        version = _text(d.get("version")).strip()
        if not version:
            raise InvalidFormatError("backup has no version")
        if not is_supported_version(version):
            raise InvalidFormatError(
                f"unsupported backup version {version} (supported: {BACKUP_FORMAT_VERSION})"
            )
        return cls(
            version=version,
            created_at=_str_to_dt(d.get("created_at")),
            snippets=[
                SnippetRecord.from_dict(s) for s in _list_of_dicts(d.get("snippets"), "snippets")
            ],
            tags=[TagRecord.from_dict(t) for t in _list_of_dicts(d.get("tags"), "tags")],
            folders=[
                FolderRecord.from_dict(f) for f in _list_of_dicts(d.get("folders"), "folders")
            ],
        )


def is_supported_version(version: str) -> bool:
    """Accept every version whose major component is not newer than ours."""
    try:
        major = int(str(version).split(".", 1)[0])
        current = int(BACKUP_FORMAT_VERSION.split(".", 1)[0])
    except ValueError:
        return False
    return 0 < major <= current


@dataclass
class ImportResult:
    """Accumulator for one import. Entries in ``errors`` never undo earlier writes."""

    snippets_imported: int = 0
    tags_imported: int = 0
    folders_imported: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snippets_imported": self.snippets_imported,
            "tags_imported": self.tags_imported,
            "folders_imported": self.folders_imported,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class S3ObjectInfo:
    key: str
    size: int
    last_modified: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "size": self.size,
            "last_modified": _dt_to_str(self.last_modified),
        }
