"""
Domain service: validate and normalize snippet input before it is stored.

Pure Python only. Mutates the input in place (trimmed title/description,
lower-cased language, stripped tag names) and returns (field, message) pairs.
"""

from __future__ import annotations

import re
from typing import List, Tuple

from src.domain.entities.library import SnippetInput

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500
MAX_CONTENT_BYTES = 1024 * 1024
MAX_TAG_LENGTH = 50

ALLOWED_LANGUAGES = frozenset(
    {
        "plaintext", "javascript", "typescript", "python", "go", "rust", "java",
        "c", "cpp", "csharp", "php", "ruby", "swift", "kotlin", "scala", "html",
        "css", "scss", "json", "yaml", "xml", "markdown", "sql", "bash", "shell",
        "powershell", "dockerfile", "nginx", "toml", "ini", "makefile", "lua",
        "perl", "r", "haskell", "elixir", "clojure", "graphql", "protobuf",
        "terraform",
    }
)

_TAG_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


def validate_snippet_input(data: SnippetInput) -> List[Tuple[str, str]]:
    errors: List[Tuple[str, str]] = []

    data.title = (data.title or "").strip()
    if not data.title:
        errors.append(("title", "Title is required"))
    elif len(data.title) > MAX_TITLE_LENGTH:
        errors.append(("title", f"Title must be less than {MAX_TITLE_LENGTH} characters"))

    content = data.content or ""
    if not content.strip():
        errors.append(("content", "Content is required"))
    elif len(content.encode("utf-8")) > MAX_CONTENT_BYTES:
        errors.append(("content", "Content must be less than 1MB"))

    data.language = (data.language or "").strip().lower()
    if not data.language:
        data.language = "plaintext"
    elif data.language not in ALLOWED_LANGUAGES:
        errors.append(("language", "Invalid language"))

    data.description = (data.description or "").strip()
    if len(data.description) > MAX_DESCRIPTION_LENGTH:
        errors.append(
            ("description", f"Description must be less than {MAX_DESCRIPTION_LENGTH} characters")
        )

    cleaned: List[str] = []
    for raw in data.tags or []:
        tag = (raw or "").strip()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            errors.append(("tags", f"Tag name must be less than {MAX_TAG_LENGTH} characters"))
        elif not _TAG_RE.match(tag):
            errors.append(
                ("tags", "Tag can only contain letters, numbers, underscores, and hyphens")
            )
        cleaned.append(tag)
    data.tags = cleaned

    return errors
