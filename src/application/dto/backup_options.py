from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.domain.entities.backup import ImportResult
from src.domain.services.backup_codec import FORMAT_JSON, normalize_format

STRATEGY_REPLACE = "replace"
STRATEGY_MERGE = "merge"
STRATEGY_SKIP = "skip"
STRATEGIES = (STRATEGY_REPLACE, STRATEGY_MERGE, STRATEGY_SKIP)


@dataclass
class ExportOptions:
    format: str = FORMAT_JSON
    password: str = ""

    def __post_init__(self) -> None:
        self.format = normalize_format(self.format)
        self.password = self.password or ""


@dataclass
class ImportOptions:
    """``merge`` and ``skip`` currently behave the same: skip on title collision."""

    strategy: str = STRATEGY_MERGE
    password: str = ""

    def __post_init__(self) -> None:
        strategy = (self.strategy or STRATEGY_MERGE).strip().lower()
        if strategy not in STRATEGIES:
            raise ValueError(
                f"unsupported import strategy {self.strategy!r} (expected one of: {', '.join(STRATEGIES)})"
            )
        self.strategy = strategy
        self.password = self.password or ""


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class SyncResult:
    key: str = ""
    size: int = 0
    uploaded: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "size": self.size,
            "uploaded": self.uploaded,
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "errors": list(self.errors),
        }


@dataclass
class RestoreResult:
    key: str = ""
    restored: int = 0
    import_result: Optional[ImportResult] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "restored": self.restored,
            "import_result": self.import_result.to_dict() if self.import_result else None,
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "errors": list(self.errors),
        }
