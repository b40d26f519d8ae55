from __future__ import annotations

# Public API of the composition root
from .container import (  # noqa: F401
    BackupServices,
    build_backup_services,
    get_backup_services,
    reset_backup_services,
)
