"""
Domain service: resolve Snapshot records to live records by natural key.

Identifiers do not survive a trip between systems, names do. For every import
a fresh resolver is built from the *current* live store:

- tag name      -> live tag
- folder name   -> live folder
- snippet title -> present / absent

and it accumulates ``old_id -> live_id`` maps for tags and folders as records
are resolved or created. Records created during the import are registered
too, so a name that appears twice in one Snapshot resolves to the first copy.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Set

from src.domain.entities.backup import FolderRecord, TagRecord
from src.domain.entities.library import SnippetSummary


class NaturalKeyResolver:
    def __init__(
        self,
        tags: Iterable[TagRecord],
        folders: Iterable[FolderRecord],
        snippets: Iterable[SnippetSummary],
    ) -> None:
        self._tags_by_name: Dict[str, TagRecord] = {t.name: t for t in tags}
        self._folders_by_name: Dict[str, FolderRecord] = {f.name: f for f in folders}
        self._snippet_titles: Set[str] = {s.title for s in snippets}
        self._tag_ids: Dict[Any, Any] = {}
        self._folder_ids: Dict[Any, Any] = {}

    # ---- tags ----
    def find_tag(self, name: str) -> Optional[TagRecord]:
        return self._tags_by_name.get(name)

    def map_tag(self, old_id: Any, live: TagRecord, name: Optional[str] = None) -> None:
        self._tag_ids[old_id] = live.id
        self._tags_by_name.setdefault(live.name, live)
        # the store may have trimmed the name; the snapshot spelling must resolve too
        if name is not None:
            self._tags_by_name.setdefault(name, live)

    def live_tag_id(self, old_id: Any) -> Optional[Any]:
        return self._tag_ids.get(old_id)

    # ---- folders ----
    def find_folder(self, name: str) -> Optional[FolderRecord]:
        return self._folders_by_name.get(name)

    def map_folder(self, old_id: Any, live: FolderRecord, name: Optional[str] = None) -> None:
        self._folder_ids[old_id] = live.id
        self._folders_by_name.setdefault(live.name, live)
        if name is not None:
            self._folders_by_name.setdefault(name, live)

    def live_folder_id(self, old_id: Any) -> Optional[Any]:
        if old_id is None:
            return None
        return self._folder_ids.get(old_id)

    # ---- snippets ----
    def has_snippet_title(self, title: str) -> bool:
        return title in self._snippet_titles

    def add_snippet_title(self, title: str) -> None:
        self._snippet_titles.add(title)
