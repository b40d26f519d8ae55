from __future__ import annotations

from typing import List, Optional, Tuple


class BackupError(Exception):
    """Base class for every failure raised by the backup engine."""


class InvalidFormatError(BackupError):
    """Bytes are neither a Document nor an Archive with a versioned manifest."""

    def __init__(self, message: str = "invalid backup format") -> None:
        super().__init__(message)


class BackupTooLargeError(InvalidFormatError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = int(size)
        self.limit = int(limit)
        super().__init__(
            f"backup too large ({self.size // (1024 * 1024)}MB, max {self.limit // (1024 * 1024)}MB)"
        )


class AuthenticationFailedError(BackupError):
    """Wrong password or tampered ciphertext. The two are never told apart."""

    def __init__(self) -> None:
        super().__init__("decryption failed - wrong password?")


class RemoteIOError(BackupError):
    """An object-storage round trip failed."""

    def __init__(self, operation: str, key: str = "", cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.key = key
        detail = f": {cause}" if cause is not None else ""
        target = f" {key}" if key else ""
        super().__init__(f"failed to {operation}{target}{detail}")


# ---- store-level (soft) failures ----


class StoreError(Exception):
    """Base class for failures raised by the snippet/tag/folder stores."""


class NotFoundError(StoreError):
    pass


class DuplicateNameError(StoreError):
    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} named {name!r} already exists")


class CircularReferenceError(StoreError):
    def __init__(self) -> None:
        super().__init__("cannot move folder: would create circular reference")


class SnippetValidationError(StoreError):
    """Carries (field, message) pairs, joined like 'title: Title is required'."""

    def __init__(self, errors: List[Tuple[str, str]]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(f"{field}: {message}" for field, message in self.errors))
