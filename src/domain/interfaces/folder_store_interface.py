from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from src.domain.entities.backup import FolderRecord
from src.domain.entities.library import FolderInput


class IFolderStore(ABC):
    @abstractmethod
    def list_all(self) -> List[FolderRecord]:
        raise NotImplementedError

    @abstractmethod
    def create(self, data: FolderInput) -> FolderRecord:
        raise NotImplementedError

    @abstractmethod
    def move(self, folder_id: int, new_parent_id: Optional[int]) -> FolderRecord:
        """Re-parent a folder. Raises CircularReferenceError or NotFoundError."""
        raise NotImplementedError

    @abstractmethod
    def delete_all(self) -> int:
        raise NotImplementedError
