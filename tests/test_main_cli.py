import json
from datetime import datetime, timezone

import pytest

import main as cli
from src.application.services.backup_export_service import BackupExportService
from src.application.services.backup_import_service import BackupImportService
from src.application.services.remote_sync_service import RemoteSyncService
from src.domain.entities.library import SnippetInput
from src.infrastructure.composition.container import BackupServices
from tests._fakes import InMemoryObjectStore, make_stores

NOW = datetime(2024, 1, 15, 14, 30, 22, tzinfo=timezone.utc)


def _services(stores=None, remote=False):
    stores = stores or make_stores()
    exporter = BackupExportService(*stores, clock=lambda: NOW)
    importer = BackupImportService(*stores)
    sync = None
    if remote:
        sync = RemoteSyncService(InMemoryObjectStore(), exporter, importer, bucket="snipo", clock=lambda: NOW)
    return BackupServices(exporter, importer, sync)


def test_export_writes_generated_filename_into_directory(tmp_path, capsys):
    stores = make_stores()
    stores[0].create(SnippetInput(title="A", content="x"))

    code = cli.main(["export", "--format", "zip", "--output", str(tmp_path)], services=_services(stores))

    assert code == 0
    target = tmp_path / "snipo-backup-2024-01-15-143022.zip"
    assert target.exists()
    assert capsys.readouterr().out.strip() == str(target)


def test_import_prints_result_json(tmp_path, capsys):
    src = make_stores()
    src[0].create(SnippetInput(title="A", content="x", tags=["t"]))
    path = tmp_path / "backup.json"
    cli.main(["export", "--output", str(path)], services=_services(src))
    capsys.readouterr()

    code = cli.main(["import", str(path), "--strategy", "skip"], services=_services())

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out == {"snippets_imported": 1, "tags_imported": 1, "folders_imported": 0, "errors": []}


def test_wrong_password_exits_with_backup_error(tmp_path, capsys):
    path = tmp_path / "b.json.enc"
    cli.main(["export", "--password", "right", "--output", str(path)], services=_services())
    capsys.readouterr()

    code = cli.main(["import", str(path), "--password", "wrong"], services=_services())

    assert code == 1
    assert "wrong password" in capsys.readouterr().err


def test_missing_file_is_usage_error(tmp_path):
    assert cli.main(["import", str(tmp_path / "nope.json")], services=_services()) == 2


def test_unknown_strategy_is_rejected_by_parser():
    with pytest.raises(SystemExit) as exc:
        cli.main(["import", "x.json", "--strategy", "overwrite"], services=_services())
    assert exc.value.code == 2


def test_s3_status_when_disabled(capsys):
    assert cli.main(["s3-status"], services=_services()) == 0
    assert json.loads(capsys.readouterr().out)["enabled"] is False


def test_s3_commands_require_remote(capsys):
    assert cli.main(["s3-list"], services=_services()) == 2
    assert "not enabled" in capsys.readouterr().err


def test_s3_sync_list_restore_delete(capsys):
    services = _services(remote=True)
    services.exporter._snippets.create(SnippetInput(title="A", content="x"))

    assert cli.main(["s3-sync"], services=services) == 0
    synced = json.loads(capsys.readouterr().out)
    assert synced["key"] == "backups/snipo-backup-2024-01-15-143022.json"

    assert cli.main(["s3-list"], services=services) == 0
    listed = json.loads(capsys.readouterr().out)
    assert [o["key"] for o in listed] == [synced["key"]]

    assert cli.main(["s3-restore", synced["key"]], services=services) == 0
    restored = json.loads(capsys.readouterr().out)
    # same store, merge: nothing new
    assert restored["restored"] == 0

    assert cli.main(["s3-url", synced["key"], "--ttl", "60"], services=services) == 0
    assert capsys.readouterr().out.strip().endswith("ttl=60")

    assert cli.main(["s3-delete", synced["key"]], services=services) == 0
    assert cli.main(["s3-list"], services=services) == 0
    assert json.loads(capsys.readouterr().out.split("\n", 1)[1]) == []


def test_s3_status_when_enabled(capsys):
    assert cli.main(["s3-status"], services=_services(remote=True)) == 0
    assert json.loads(capsys.readouterr().out) == {"enabled": True, "bucket": "snipo", "prefix": "backups/"}
