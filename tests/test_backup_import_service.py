import json
from datetime import datetime, timezone

import pytest

from src.application.dto.backup_options import ExportOptions, ImportOptions
from src.application.services.backup_export_service import BackupExportService
from src.application.services.backup_import_service import BackupImportService
from src.domain.entities.backup import (
    FileRecord,
    FolderRecord,
    SnippetRecord,
    Snapshot,
    TagRecord,
)
from src.domain.entities.library import FolderInput, SnippetInput
from src.domain.errors import (
    AuthenticationFailedError,
    BackupTooLargeError,
    InvalidFormatError,
)
from src.domain.services import backup_cipher, backup_codec
from tests._fakes import make_stores

T = datetime(2024, 1, 15, 14, 30, 22, tzinfo=timezone.utc)


def _importer(stores, **kw):
    snippets, tags, folders = stores
    return BackupImportService(snippets, tags, folders, **kw)


def _payload(snapshot, fmt="json"):
    return backup_codec.encode(snapshot, fmt)


def _snapshot(snippets=(), tags=(), folders=()):
    return Snapshot(
        version="1.0",
        created_at=T,
        snippets=list(snippets),
        tags=list(tags),
        folders=list(folders),
    )


def _snippet(title, content="x = 1", **kw):
    return SnippetRecord(id=f"old-{title}", title=title, content=content, language="python", **kw)


# ---------------------------------------------------------------- tags
def test_tag_import_is_idempotent_under_merge(stores):
    snap = _snapshot(tags=[TagRecord(id=1, name="go", color="#00add8")])
    first = _importer(stores).import_backup(_payload(snap))
    second = _importer(stores).import_backup(_payload(snap))

    assert first.tags_imported == 1
    assert second.tags_imported == 0
    _, tags, _ = stores
    assert [t.name for t in tags.tags] == ["go"]
    assert tags.tags[0].color == "#00add8"


def test_existing_tag_is_matched_by_exact_name_only(stores):
    _, tags, _ = stores
    tags.create("Go", "#000000")
    snap = _snapshot(tags=[TagRecord(id=1, name="go", color="#00add8")])
    result = _importer(stores).import_backup(_payload(snap))
    assert result.tags_imported == 1
    assert sorted(t.name for t in tags.tags) == ["Go", "go"]


def test_padded_tag_name_listed_twice_resolves_to_one_tag(stores):
    snap = _snapshot(
        tags=[TagRecord(id=1, name=" a"), TagRecord(id=2, name=" a")],
        snippets=[_snippet("S", tags=[TagRecord(id=2, name=" a")])],
    )
    result = _importer(stores).import_backup(_payload(snap))

    _, tags, _ = stores
    assert result.errors == []
    assert result.tags_imported == 1
    assert [t.name for t in tags.tags] == ["a"]


def test_padded_folder_name_listed_twice_resolves_to_one_folder(stores):
    snap = _snapshot(folders=[FolderRecord(id=1, name="Work "), FolderRecord(id=2, name="Work ")])
    result = _importer(stores).import_backup(_payload(snap))

    _, _, folders = stores
    assert result.errors == []
    assert result.folders_imported == 1
    assert [f.name for f in folders.folders] == ["Work"]


def test_tag_creation_failure_is_recorded_and_import_continues(stores):
    _, tags, _ = stores
    original = tags.create

    def _create(name, color=""):
        if name == "broken":
            raise RuntimeError("constraint violated")
        return original(name, color)

    tags.create = _create
    snap = _snapshot(
        tags=[TagRecord(id=1, name="broken"), TagRecord(id=2, name="ok")],
        snippets=[_snippet("One")],
    )
    result = _importer(stores).import_backup(_payload(snap))
    assert result.tags_imported == 1
    assert result.snippets_imported == 1
    assert result.errors == ["tag broken: constraint violated"]


# ---------------------------------------------------------------- folders
def test_folder_hierarchy_is_preserved_with_remapped_ids(stores):
    _, _, folders = stores
    # occupy live ids 1..3 so source ids cannot accidentally line up
    for name in ("a", "b", "c"):
        folders.create(FolderInput(name=name))

    snap = _snapshot(
        folders=[
            FolderRecord(id=10, name="P", parent_id=None),
            FolderRecord(id=11, name="C", parent_id=10),
        ]
    )
    result = _importer(stores).import_backup(_payload(snap))

    assert result.folders_imported == 2
    assert result.errors == []
    by_name = {f.name: f for f in folders.folders}
    assert by_name["C"].parent_id == by_name["P"].id
    assert by_name["P"].parent_id is None
    assert by_name["P"].id not in (10, 11)


def test_child_listed_before_parent_still_gets_parent(stores):
    _, _, folders = stores
    snap = _snapshot(
        folders=[
            FolderRecord(id=2, name="Child", parent_id=1),
            FolderRecord(id=1, name="Parent", parent_id=None),
        ]
    )
    _importer(stores).import_backup(_payload(snap))
    by_name = {f.name: f for f in folders.folders}
    assert by_name["Child"].parent_id == by_name["Parent"].id


def test_existing_folder_is_reused_and_not_reparented(stores):
    _, _, folders = stores
    live = folders.create(FolderInput(name="Docs"))
    snap = _snapshot(
        folders=[
            FolderRecord(id=1, name="Top", parent_id=None),
            FolderRecord(id=2, name="Docs", parent_id=1),
        ]
    )
    result = _importer(stores).import_backup(_payload(snap))
    assert result.folders_imported == 1
    by_name = {f.name: f for f in folders.folders}
    assert by_name["Docs"].id == live.id
    assert by_name["Docs"].parent_id is None
    assert "move" not in folders.calls


def test_folder_import_is_idempotent_under_merge(stores):
    snap = _snapshot(
        folders=[
            FolderRecord(id=1, name="P"),
            FolderRecord(id=2, name="C", parent_id=1),
        ]
    )
    _importer(stores).import_backup(_payload(snap))
    again = _importer(stores).import_backup(_payload(snap))
    assert again.folders_imported == 0
    _, _, folders = stores
    assert len(folders.folders) == 2


def test_folder_with_dangling_parent_stays_at_root(stores):
    snap = _snapshot(folders=[FolderRecord(id=5, name="Orphan", parent_id=99)])
    result = _importer(stores).import_backup(_payload(snap))
    _, _, folders = stores
    assert result.errors == []
    assert folders.folders[0].parent_id is None


def test_circular_move_is_recorded_as_folder_error(stores):
    snap = _snapshot(
        folders=[
            FolderRecord(id=1, name="A", parent_id=2),
            FolderRecord(id=2, name="B", parent_id=1),
        ]
    )
    result = _importer(stores).import_backup(_payload(snap))
    assert result.folders_imported == 2
    assert len(result.errors) == 1
    assert result.errors[0].startswith("folder B: ")
    assert "circular" in result.errors[0]


# ---------------------------------------------------------------- snippets
@pytest.mark.parametrize("strategy", ["skip", "merge"])
def test_colliding_title_is_skipped_under_skip_and_merge(stores, strategy):
    snippets, _, _ = stores
    snippets.create(SnippetInput(title="T", content="live"))
    snap = _snapshot(snippets=[_snippet("T", content="from backup")])

    result = _importer(stores).import_backup(_payload(snap), ImportOptions(strategy=strategy))

    assert result.snippets_imported == 0
    assert [s.content for s in snippets.snippets] == ["live"]


def test_replace_clears_store_then_imports(stores):
    snippets, tags, folders = stores
    snippets.create(SnippetInput(title="T", content="live", tags=["old"]))
    folders.create(FolderInput(name="Old folder"))
    snap = _snapshot(snippets=[_snippet("T", content="from backup")])

    result = _importer(stores).import_backup(_payload(snap), ImportOptions(strategy="replace"))

    assert result.snippets_imported == 1
    assert [s.content for s in snippets.snippets] == ["from backup"]
    assert tags.tags == []
    assert folders.folders == []


def test_replace_deletes_before_any_write(stores):
    snippets, tags, folders = stores
    order = []
    for name, store in (("snippets", snippets), ("tags", tags), ("folders", folders)):
        for method in ("delete_all", "create"):
            original = getattr(store, method)

            def _wrapped(*a, _o=original, _n=f"{name}.{method}", **k):
                order.append(_n)
                return _o(*a, **k)

            setattr(store, method, _wrapped)

    snap = _snapshot(
        tags=[TagRecord(id=1, name="t")],
        folders=[FolderRecord(id=1, name="f")],
        snippets=[_snippet("s")],
    )
    _importer(stores).import_backup(_payload(snap), ImportOptions(strategy="replace"))

    assert order[:3] == ["snippets.delete_all", "tags.delete_all", "folders.delete_all"]
    assert "create" not in " ".join(order[:3])
    assert order[3:] == ["tags.create", "folders.create", "snippets.create"]


def test_replace_does_not_clear_when_payload_is_invalid(stores):
    snippets, _, _ = stores
    snippets.create(SnippetInput(title="Keep me", content="x"))
    with pytest.raises(InvalidFormatError):
        _importer(stores).import_backup(b"garbage", ImportOptions(strategy="replace"))
    assert [s.title for s in snippets.snippets] == ["Keep me"]


@pytest.mark.parametrize(
    "folder",
    [{"id": [1], "name": "A"}, {"id": 1, "name": "A", "parent_id": [0]}],
)
def test_replace_does_not_clear_when_record_ids_are_malformed(stores, folder):
    snippets, tags, folders = stores
    snippets.create(SnippetInput(title="Keep me", content="x"))
    tags.create("keep")
    doc = {"version": "1.0", "folders": [folder], "snippets": [{"id": "n", "title": "New"}]}

    with pytest.raises(InvalidFormatError):
        _importer(stores).import_backup(json.dumps(doc).encode(), ImportOptions(strategy="replace"))

    assert [s.title for s in snippets.snippets] == ["Keep me"]
    assert [t.name for t in tags.tags] == ["keep"]
    assert "delete_all" not in tags.calls and "delete_all" not in folders.calls


def test_partial_failure_keeps_valid_snippets(stores):
    snap = _snapshot(
        snippets=[
            _snippet("Valid one"),
            _snippet("", content="no title"),
            _snippet("Valid two"),
        ]
    )
    result = _importer(stores).import_backup(_payload(snap))

    assert result.snippets_imported == 2
    assert len(result.errors) == 1
    assert result.errors[0] == "snippet : title: Title is required"
    snippets, _, _ = stores
    assert [s.title for s in snippets.snippets] == ["Valid one", "Valid two"]


def test_duplicate_titles_inside_one_backup_import_once_under_merge(stores):
    snap = _snapshot(snippets=[_snippet("Dup", content="a"), _snippet("Dup", content="b")])
    result = _importer(stores).import_backup(_payload(snap))
    assert result.snippets_imported == 1
    snippets, _, _ = stores
    assert [s.content for s in snippets.snippets] == ["a"]


def test_snippet_is_linked_to_tags_by_name_and_first_folder(stores):
    tag = TagRecord(id=3, name="cli")
    f1 = FolderRecord(id=20, name="First")
    f2 = FolderRecord(id=21, name="Second")
    snap = _snapshot(
        tags=[tag],
        folders=[f1, f2],
        snippets=[
            _snippet(
                "Tool",
                tags=[tag],
                folders=[f1, f2],
                files=[
                    FileRecord(filename="a.py", content="a", language="python"),
                    FileRecord(filename="b.py", content="b", language="python", sort_order=1),
                ],
            )
        ],
    )
    result = _importer(stores).import_backup(_payload(snap))

    assert result.errors == []
    snippets, tags, folders = stores
    created = snippets.created_inputs[0]
    assert created.tags == ["cli"]
    live_first = next(f for f in folders.folders if f.name == "First")
    assert created.folder_id == live_first.id
    assert [f.filename for f in created.files] == ["a.py", "b.py"]
    # the tag was created by the tag step, not again by the snippet
    assert [t.name for t in tags.tags] == ["cli"]


def test_snippet_tag_missing_from_top_level_is_created_on_write(stores):
    snap = _snapshot(snippets=[_snippet("Lonely", tags=[TagRecord(id=9, name="adhoc")])])
    result = _importer(stores).import_backup(_payload(snap))
    assert result.tags_imported == 0
    _, tags, _ = stores
    assert [t.name for t in tags.tags] == ["adhoc"]
    assert tags.tags[0].color == "#6366f1"


def test_counts_reflect_only_new_records(stores):
    snippets, tags, folders = stores
    tags.create("a", "")
    folders.create(FolderInput(name="F"))
    snap = _snapshot(
        tags=[TagRecord(id=1, name="a"), TagRecord(id=2, name="b")],
        folders=[FolderRecord(id=1, name="F"), FolderRecord(id=2, name="G")],
        snippets=[_snippet("x"), _snippet("y")],
    )
    result = _importer(stores).import_backup(_payload(snap))
    assert (result.snippets_imported, result.tags_imported, result.folders_imported) == (2, 1, 1)


# ---------------------------------------------------------------- payload handling
def test_import_zip_archive(stores):
    snap = _snapshot(snippets=[_snippet("Zipped")])
    result = _importer(stores).import_backup(_payload(snap, "zip"))
    assert result.snippets_imported == 1


def test_encrypted_round_trip_through_export_and_import():
    src = make_stores()
    src[0].create(SnippetInput(title="Secret", content="s3cr3t", tags=["private"]))
    exporter = BackupExportService(*src)
    content, filename = exporter.export(ExportOptions(format="zip", password="pw"))
    assert filename.endswith(".zip.enc")

    dst = make_stores()
    result = _importer(dst).import_backup(content, ImportOptions(password="pw"))
    assert result.snippets_imported == 1
    assert dst[0].snippets[0].content == "s3cr3t"
    assert [t.name for t in dst[1].tags] == ["private"]


def test_wrong_password_raises_and_writes_nothing(stores):
    sealed = backup_cipher.seal(_payload(_snapshot(snippets=[_snippet("x")])), "right")
    with pytest.raises(AuthenticationFailedError):
        _importer(stores).import_backup(sealed, ImportOptions(password="wrong"))
    snippets, _, _ = stores
    assert snippets.snippets == []


def test_encrypted_payload_without_password_is_invalid_format(stores):
    sealed = backup_cipher.seal(_payload(_snapshot()), "pw")
    with pytest.raises(InvalidFormatError):
        _importer(stores).import_backup(sealed)


def test_oversized_payload_is_rejected_before_decoding(stores):
    data = _payload(_snapshot(snippets=[_snippet("x" * 10)]))
    with pytest.raises(BackupTooLargeError):
        _importer(stores, max_backup_size=len(data) - 1).import_backup(data)


def test_import_emits_summary_event(stores, events):
    snap = _snapshot(snippets=[_snippet("x")])
    _importer(stores).import_backup(_payload(snap), ImportOptions(strategy="skip"))
    summary = [e for e in events if e["event"] == "backup_imported"]
    assert summary and summary[0]["strategy"] == "skip" and summary[0]["snippets"] == 1


def test_import_options_reject_unknown_strategy():
    with pytest.raises(ValueError):
        ImportOptions(strategy="overwrite")


def test_document_from_older_exporter_with_string_ids(stores):
    doc = {
        "version": "1.0",
        "created_at": "2024-01-15T14:30:22Z",
        "tags": [{"id": "t-1", "name": "legacy", "color": "#111111", "created_at": "2024-01-01T00:00:00Z"}],
        "folders": [{"id": "f-1", "name": "Inbox", "parent_id": None}],
        "snippets": [
            {
                "id": "abc",
                "title": "Legacy",
                "content": "echo hi",
                "language": "bash",
                "tags": [{"id": "t-1", "name": "legacy"}],
                "folders": [{"id": "f-1", "name": "Inbox"}],
                "files": None,
            }
        ],
    }
    result = _importer(stores).import_backup(json.dumps(doc).encode())
    assert (result.snippets_imported, result.tags_imported, result.folders_imported) == (1, 1, 1)
    snippets, _, folders = stores
    assert snippets.snippets[0].folders[0].name == "Inbox"
