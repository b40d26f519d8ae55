from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from src.domain.entities.backup import TagRecord


class ITagStore(ABC):
    @abstractmethod
    def list_all(self) -> List[TagRecord]:
        raise NotImplementedError

    @abstractmethod
    def create(self, name: str, color: str) -> TagRecord:
        """Raises DuplicateNameError when the name is taken."""
        raise NotImplementedError

    @abstractmethod
    def delete_all(self) -> int:
        raise NotImplementedError
