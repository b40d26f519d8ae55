from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import List

from src.domain.entities.backup import S3ObjectInfo


class IObjectStore(ABC):
    """S3-compatible object storage. Every failure surfaces as RemoteIOError."""

    @abstractmethod
    def upload(self, key: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def download(self, key: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def list(self, prefix: str) -> List[S3ObjectInfo]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def presign_get(self, key: str, ttl: timedelta) -> str:
        raise NotImplementedError
