"""
tests/conftest.py

Safe env defaults (no external IO) and shared fixtures for the backup tests.
"""

import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("SNIPO_MONGODB_URL", "mongodb://localhost:27017/snipo_test")
os.environ.setdefault("SNIPO_S3_ENABLED", "false")
os.environ.setdefault("SNIPO_LOG_FORMAT", "console")

# Prefer the project root on sys.path so `tests._fakes` and `src.*` resolve locally
_PROJECT_ROOT = Path(__file__).parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from observability import setup_structlog_logging  # noqa: E402
from tests._fakes import FakeClient, make_stores  # noqa: E402

# structlog ל-stderr, כדי שבדיקות ה-CLI יקראו stdout נקי
setup_structlog_logging("INFO", "console")


@pytest.fixture
def stores():
    """(snippets, tags, folders) in-memory stores."""
    return make_stores()


@pytest.fixture
def db_manager():
    from database.manager import DatabaseManager

    return DatabaseManager(client=FakeClient(), database_name="snipo_test")


@pytest.fixture
def events(monkeypatch):
    """Capture emit_event calls made by the application services."""
    captured = []

    def _emit(event, severity="info", **fields):
        captured.append({"event": event, "severity": severity, **fields})

    import src.application.services.backup_export_service as export_mod
    import src.application.services.backup_import_service as import_mod
    import src.application.services.remote_sync_service as remote_mod

    for mod in (export_mod, import_mod, remote_mod):
        monkeypatch.setattr(mod, "emit_event", _emit)
    return captured
