#!/usr/bin/env python3
"""
Snipo backup CLI - ייצוא, ייבוא וסנכרון גיבויים ל-S3

Usage examples:
  python main.py export --format zip --output ./backup.zip
  python main.py import ./snipo-backup-2024-01-15-143022.json --strategy skip
  python main.py s3-sync --format json --password "$SNIPO_BACKUP_PASSWORD"
  python main.py s3-restore backups/snipo-backup-2024-01-15-143022.json.enc
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from observability import bind_request_id, emit_event, generate_request_id, init_sentry, setup_structlog_logging
from src.application.dto.backup_options import STRATEGIES, STRATEGY_MERGE, ExportOptions, ImportOptions
from src.domain.errors import BackupError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BACKUP_ERROR = 1
EXIT_USAGE = 2

_FORMAT_CHOICES = ("json", "zip", "document", "archive")
_REMOTE_COMMANDS = ("s3-sync", "s3-list", "s3-restore", "s3-delete", "s3-url")


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="snipo-backup",
        description="Export, import and sync Snipo backups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = p.add_subparsers(dest="command", required=True)

    def _password(sp: argparse.ArgumentParser) -> None:
        sp.add_argument(
            "--password",
            default=os.getenv("SNIPO_BACKUP_PASSWORD", ""),
            help="Encrypt/decrypt with this password (default: $SNIPO_BACKUP_PASSWORD)",
        )

    def _strategy(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--strategy", choices=STRATEGIES, default=STRATEGY_MERGE, help="Import strategy (default: merge)")

    sp = sub.add_parser("export", help="Write a backup file")
    sp.add_argument("--format", choices=_FORMAT_CHOICES, default="json")
    sp.add_argument("--output", help="Target path, directory, or '-' for stdout (default: generated name in cwd)")
    _password(sp)

    sp = sub.add_parser("import", help="Import a backup file")
    sp.add_argument("source", help="Backup file path or '-' for stdin")
    _strategy(sp)
    _password(sp)

    sp = sub.add_parser("s3-sync", help="Export and upload to S3")
    sp.add_argument("--format", choices=_FORMAT_CHOICES, default="json")
    _password(sp)

    sub.add_parser("s3-list", help="List remote backups")

    sp = sub.add_parser("s3-restore", help="Download a remote backup and import it")
    sp.add_argument("key")
    _strategy(sp)
    _password(sp)

    sp = sub.add_parser("s3-delete", help="Delete a remote backup")
    sp.add_argument("key")

    sp = sub.add_parser("s3-url", help="Print a presigned download URL")
    sp.add_argument("key")
    sp.add_argument("--ttl", type=int, default=None, help="URL lifetime in seconds")

    sub.add_parser("s3-status", help="Show remote sync configuration")
    return p


def _setup_runtime() -> None:
    from config import config

    setup_structlog_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    init_sentry(config.SENTRY_DSN, config.ENVIRONMENT)


def _read_source(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


def _write_output(content: bytes, filename: str, output: Optional[str]) -> str:
    if output == "-":
        sys.stdout.buffer.write(content)
        sys.stdout.buffer.flush()
        return "-"
    target = Path(output) if output else Path(filename)
    if target.is_dir():
        target = target / filename
    target.write_bytes(content)
    return str(target)


def run(args: argparse.Namespace, services: Any) -> int:
    cmd = args.command

    if cmd == "s3-status":
        if services.remote is None:
            _print_json({"enabled": False, "bucket": "", "prefix": "backups/"})
        else:
            _print_json(services.remote.status())
        return EXIT_OK

    if cmd in _REMOTE_COMMANDS and services.remote is None:
        print("S3 sync is not enabled (set SNIPO_S3_ENABLED=true)", file=sys.stderr)
        return EXIT_USAGE

    if cmd == "export":
        content, filename = services.exporter.export(ExportOptions(format=args.format, password=args.password))
        written = _write_output(content, filename, args.output)
        if written != "-":
            print(written)
        return EXIT_OK

    if cmd == "import":
        data = _read_source(args.source)
        result = services.importer.import_backup(data, ImportOptions(strategy=args.strategy, password=args.password))
        _print_json(result.to_dict())
        return EXIT_OK

    remote = services.remote
    if cmd == "s3-sync":
        _print_json(remote.sync_to_remote(ExportOptions(format=args.format, password=args.password)).to_dict())
    elif cmd == "s3-list":
        _print_json([o.to_dict() for o in remote.list_remote()])
    elif cmd == "s3-restore":
        result = remote.restore_from_remote(args.key, ImportOptions(strategy=args.strategy, password=args.password))
        _print_json(result.to_dict())
    elif cmd == "s3-delete":
        remote.delete_remote(args.key)
        print(f"deleted {args.key}")
    elif cmd == "s3-url":
        print(remote.presigned_download_url(args.key, args.ttl))
    return EXIT_OK


def main(argv: Optional[List[str]] = None, services: Any = None) -> int:
    args = build_parser().parse_args(argv)

    if services is None:
        _setup_runtime()
        from src.infrastructure.composition import get_backup_services

        services = get_backup_services()

    bind_request_id(generate_request_id())
    try:
        return run(args, services)
    except BackupError as e:
        emit_event("backup_cli_failed", severity="error", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_BACKUP_ERROR
    except (ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
