from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class SnippetSummary:
    """Light list projection of a live snippet (no content, files, tags or folders)."""

    id: str
    title: str
    language: str = ""
    is_favorite: bool = False
    is_public: bool = False
    is_archived: bool = False
    updated_at: Optional[datetime] = None


@dataclass
class SnippetFileInput:
    filename: str
    content: str = ""
    language: str = ""


@dataclass
class SnippetInput:
    title: str
    content: str
    description: str = ""
    language: str = ""
    is_public: bool = False
    is_archived: bool = False
    tags: List[str] = field(default_factory=list)
    folder_id: Optional[int] = None
    files: List[SnippetFileInput] = field(default_factory=list)


@dataclass
class FolderInput:
    name: str
    parent_id: Optional[int] = None
    icon: str = ""
    sort_order: int = 0
