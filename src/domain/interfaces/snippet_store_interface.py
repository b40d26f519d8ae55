from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from src.domain.entities.backup import SnippetRecord
from src.domain.entities.library import SnippetInput, SnippetSummary


class ISnippetStore(ABC):
    """Store contract for snippets as the backup engine sees them.

    Domain defines the contract; infrastructure implements it.
    """

    @abstractmethod
    def list_all(self) -> List[SnippetSummary]:
        """Every non-deleted snippet, in one unbounded pass."""
        raise NotImplementedError

    @abstractmethod
    def get_detail(self, snippet_id: str) -> SnippetRecord:
        """Full record with files, tags and folders. Raises NotFoundError."""
        raise NotImplementedError

    @abstractmethod
    def create(self, data: SnippetInput) -> SnippetRecord:
        """Raises SnippetValidationError for invalid input."""
        raise NotImplementedError

    @abstractmethod
    def delete_all(self) -> int:
        """Remove every snippet together with its files and tag/folder links."""
        raise NotImplementedError
