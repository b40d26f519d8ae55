"""
Domain service: serialize a Snapshot to bytes and back.

Two container formats:
- "json" (Document): the Snapshot as one indented JSON document.
- "zip" (Archive): one human-readable entry per snippet file plus a single
  ``metadata.json`` manifest holding the Document form. Only the manifest is
  read back on import.

``decode`` never needs to be told which format it is looking at: it tries the
Document shape first and falls back to opening the bytes as an Archive.
"""

from __future__ import annotations

import json
import zipfile
import zlib
from datetime import datetime
from io import BytesIO
from typing import Optional, Tuple

from src.domain.entities.backup import Snapshot
from src.domain.errors import InvalidFormatError

FORMAT_JSON = "json"
FORMAT_ZIP = "zip"
SUPPORTED_FORMATS = (FORMAT_JSON, FORMAT_ZIP)

_FORMAT_ALIASES = {
    "": FORMAT_JSON,
    "json": FORMAT_JSON,
    "document": FORMAT_JSON,
    "zip": FORMAT_ZIP,
    "archive": FORMAT_ZIP,
}

MANIFEST_NAME = "metadata.json"
ENCRYPTED_SUFFIX = ".enc"
FILENAME_PREFIX = "snipo-backup-"
FILENAME_TIMESTAMP_FORMAT = "%Y-%m-%d-%H%M%S"

# מניפסט גדול מזה נחשב חשוד (zip bomb): נספר בזמן קריאה, לא לפי ה-header
MAX_MANIFEST_SIZE = 256 * 1024 * 1024

MAX_SANITIZED_TITLE = 50
_INVALID_PATH_CHARS = ("/", "\\", ":", "*", "?", '"', "<", ">", "|")

LANGUAGE_EXTENSIONS = {
    "javascript": "js",
    "typescript": "ts",
    "python": "py",
    "go": "go",
    "rust": "rs",
    "java": "java",
    "c": "c",
    "cpp": "cpp",
    "csharp": "cs",
    "php": "php",
    "ruby": "rb",
    "swift": "swift",
    "kotlin": "kt",
    "scala": "scala",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "json": "json",
    "yaml": "yaml",
    "xml": "xml",
    "markdown": "md",
    "sql": "sql",
    "bash": "sh",
    "shell": "sh",
    "powershell": "ps1",
    "dockerfile": "dockerfile",
    "nginx": "conf",
    "toml": "toml",
    "ini": "ini",
    "makefile": "mk",
}


def normalize_format(fmt: Optional[str]) -> str:
    """Map a user-supplied format name to "json" or "zip"; raise ValueError otherwise."""
    key = (fmt or "").strip().lower()
    try:
        return _FORMAT_ALIASES[key]
    except KeyError:
        raise ValueError(
            f"unsupported backup format {fmt!r} (expected one of: {', '.join(SUPPORTED_FORMATS)})"
        ) from None


def sanitize_filename(name: str) -> str:
    """Replace path-hostile characters with '_' and cap the length.

    Two titles that sanitize to the same value share a path inside the
    archive; entries are not disambiguated.
    """
    result = name or ""
    for ch in _INVALID_PATH_CHARS:
        result = result.replace(ch, "_")
    return result[:MAX_SANITIZED_TITLE]


def extension_for_language(language: str) -> str:
    return LANGUAGE_EXTENSIONS.get((language or "").strip().lower(), "txt")


def _safe_zip_path(path: str) -> str:
    """מנקה נתיב ZIP מתווים מסוכנים."""
    # מנע path traversal
    clean = path.replace("\\", "/")
    parts = [p for p in clean.split("/") if p and p != ".."]
    return "/".join(parts)


# ================================================================
#  קידוד
# ================================================================
def encode(snapshot: Snapshot, fmt: str = FORMAT_JSON) -> bytes:
    fmt = normalize_format(fmt)
    if fmt == FORMAT_ZIP:
        return _encode_archive(snapshot)
    return _encode_document(snapshot)


def _encode_document(snapshot: Snapshot) -> bytes:
    return json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2).encode("utf-8")


def _encode_archive(snapshot: Snapshot) -> bytes:
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for snippet in snapshot.snippets:
            folder = sanitize_filename(snippet.title)
            if snippet.files:
                for f in snippet.files:
                    zf.writestr(_safe_zip_path(f"snippets/{folder}/{f.filename}"), f.content)
            else:
                # snippet ישן עם קובץ יחיד
                ext = extension_for_language(snippet.language)
                zf.writestr(_safe_zip_path(f"snippets/{folder}.{ext}"), snippet.content)

        manifest = json.dumps(snapshot.to_dict(), ensure_ascii=False) + "\n"
        zf.writestr(MANIFEST_NAME, manifest.encode("utf-8"))
    return buffer.getvalue()


# ================================================================
#  פענוח
# ================================================================
def decode(data: bytes) -> Tuple[Snapshot, str]:
    """Return (snapshot, detected_format). Raises InvalidFormatError."""
    document_error: Optional[InvalidFormatError] = None
    try:
        return _decode_document(data), FORMAT_JSON
    except InvalidFormatError as exc:
        # JSON תקין אבל לא גיבוי: נשמור את הסיבה למקרה שגם ZIP ייכשל
        document_error = exc
    except (UnicodeDecodeError, json.JSONDecodeError):
        pass

    try:
        zf = zipfile.ZipFile(BytesIO(data), "r")
    except (zipfile.BadZipFile, OSError):
        if document_error is not None:
            raise document_error
        raise InvalidFormatError() from None

    with zf:
        return _decode_archive(zf), FORMAT_ZIP


def _decode_document(data: bytes) -> Snapshot:
    doc = json.loads(data.decode("utf-8"))
    return Snapshot.from_dict(doc)


def _decode_archive(zf: zipfile.ZipFile) -> Snapshot:
    try:
        raw = _read_member_limited(zf, MANIFEST_NAME, MAX_MANIFEST_SIZE)
    except KeyError:
        raise InvalidFormatError(f"archive has no {MANIFEST_NAME}") from None
    except (zipfile.BadZipFile, zlib.error, OSError, RuntimeError, EOFError) as exc:
        raise InvalidFormatError(f"cannot read {MANIFEST_NAME}: {exc}") from exc
    try:
        doc = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidFormatError(f"{MANIFEST_NAME} is not valid JSON") from exc
    return Snapshot.from_dict(doc)


def _read_member_limited(zf: zipfile.ZipFile, name: str, max_bytes: int) -> bytes:
    """קריאה בטוחה של member מה-ZIP; סופר bytes בפועל בזמן קריאה."""
    out = bytearray()
    with zf.open(name, "r") as fp:
        while True:
            chunk = fp.read(64 * 1024)
            if not chunk:
                break
            out.extend(chunk)
            if len(out) > max_bytes:
                raise InvalidFormatError(f"{name} is too large")
    return bytes(out)


# ================================================================
#  עזרים
# ================================================================
def sniff_backup_format(data: bytes) -> str:
    """Classify raw bytes as "json", "zip" or "encrypted" without a password.

    Sealed payloads start with random bytes, so anything longer than 32 bytes
    that is neither a versioned JSON document nor a ZIP is assumed encrypted.
    """
    try:
        doc = json.loads(data.decode("utf-8"))
        if isinstance(doc, dict) and str(doc.get("version") or "").strip():
            return FORMAT_JSON
    except (UnicodeDecodeError, json.JSONDecodeError):
        pass
    if len(data) > 4 and data[:2] == b"PK":
        return FORMAT_ZIP
    if len(data) > 32:
        return "encrypted"
    raise InvalidFormatError()


def backup_filename(fmt: str, encrypted: bool, now: datetime) -> str:
    """snipo-backup-<YYYY-MM-DD-HHMMSS>.<json|zip>[.enc]"""
    ext = normalize_format(fmt)
    name = f"{FILENAME_PREFIX}{now.strftime(FILENAME_TIMESTAMP_FORMAT)}.{ext}"
    if encrypted:
        name += ENCRYPTED_SUFFIX
    return name


def content_type_for(filename: str) -> str:
    if filename.endswith(ENCRYPTED_SUFFIX):
        return "application/octet-stream"
    if filename.endswith(".zip"):
        return "application/zip"
    return "application/json"
