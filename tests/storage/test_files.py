"""Unit tests for FileStore.

No git or network -- a temporary directory stands in for the workspace.
"""

from __future__ import annotations

import os
import stat
from unittest.mock import patch

import pytest

from lemma.storage.errors import FileConflictError, NotFoundError, PathValidationError, StorageIOError
from lemma.storage.files import FileStore


@pytest.fixture
def root(tmp_path):
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def store(root) -> FileStore:
    return FileStore(root)


# ---------------------------------------------------------------------------
# save / get_content
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("path", "content"),
    [
        ("readme.md", b"# Hello"),
        ("docs/api/endpoints.md", b"GET /files"),
        ("empty.txt", b""),
        ("binary.bin", bytes(range(256))),
        ("unicode name é.md", "héllo wörld".encode()),
    ],
)
def test_save_then_get_content(store: FileStore, path: str, content: bytes) -> None:
    store.save(path, content)
    assert store.get_content(path) == content


def test_save_creates_parents(store: FileStore, root) -> None:
    store.save("a/b/c/deep.md", b"deep")
    assert (root / "a" / "b" / "c" / "deep.md").read_bytes() == b"deep"


def test_save_overwrites(store: FileStore) -> None:
    store.save("note.md", b"first version, longer")
    store.save("note.md", b"second")
    assert store.get_content("note.md") == b"second"


def test_save_leaves_no_temp_files(store: FileStore, root) -> None:
    store.save("docs/note.md", b"content")
    assert [p.name for p in (root / "docs").iterdir()] == ["note.md"]


def test_save_failure_keeps_old_content(store: FileStore, root) -> None:
    store.save("note.md", b"original")

    with patch("lemma.storage.files.os.replace", side_effect=OSError(28, "No space left on device")):
        with pytest.raises(StorageIOError):
            store.save("note.md", b"replacement")

    assert store.get_content("note.md") == b"original"
    assert [p.name for p in root.iterdir()] == ["note.md"]


def test_save_onto_directory_conflicts(store: FileStore, root) -> None:
    (root / "docs").mkdir()
    with pytest.raises(FileConflictError):
        store.save("docs", b"x")


def test_save_below_a_file_conflicts(store: FileStore) -> None:
    store.save("note.md", b"x")
    with pytest.raises(FileConflictError):
        store.save("note.md/child.md", b"y")


@pytest.mark.parametrize("path", ["", ".", "docs/.."])
def test_save_to_root_rejected(store: FileStore, path: str) -> None:
    with pytest.raises(PathValidationError):
        store.save(path, b"x")


def test_get_content_missing(store: FileStore) -> None:
    with pytest.raises(NotFoundError):
        store.get_content("nope.md")


def test_get_content_directory(store: FileStore, root) -> None:
    (root / "docs").mkdir()
    with pytest.raises(NotFoundError):
        store.get_content("docs")


def test_get_content_percent_encoded(store: FileStore) -> None:
    store.save("meeting notes.md", b"agenda")
    assert store.get_content("meeting%20notes.md") == b"agenda"


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


def test_delete_file(store: FileStore) -> None:
    store.save("note.md", b"x")
    store.delete("note.md")
    with pytest.raises(NotFoundError):
        store.get_content("note.md")


def test_delete_directory_recursively(store: FileStore, root) -> None:
    store.save("docs/a.md", b"a")
    store.save("docs/sub/b.md", b"b")
    store.delete("docs")
    assert not (root / "docs").exists()


def test_delete_missing(store: FileStore) -> None:
    with pytest.raises(NotFoundError):
        store.delete("ghost.md")


def test_delete_root_rejected(store: FileStore, root) -> None:
    store.save("keep.md", b"x")
    with pytest.raises(PathValidationError):
        store.delete("")
    assert (root / "keep.md").exists()


# ---------------------------------------------------------------------------
# move
# ---------------------------------------------------------------------------


def test_move_file(store: FileStore) -> None:
    store.save("a.md", b"content of a")
    store.move("a.md", "archive/b.md")

    with pytest.raises(NotFoundError):
        store.get_content("a.md")
    assert store.get_content("archive/b.md") == b"content of a"


def test_move_directory(store: FileStore) -> None:
    store.save("docs/a.md", b"a")
    store.move("docs", "manual")
    assert store.get_content("manual/a.md") == b"a"
    assert not store.exists("docs")


def test_move_missing_source(store: FileStore) -> None:
    with pytest.raises(NotFoundError):
        store.move("ghost.md", "b.md")


def test_move_overwrites_by_default(store: FileStore) -> None:
    store.save("a.md", b"new")
    store.save("b.md", b"old")
    store.move("a.md", "b.md")
    assert store.get_content("b.md") == b"new"


def test_move_without_overwrite_conflicts(root) -> None:
    store = FileStore(root, move_overwrite=False)
    store.save("a.md", b"new")
    store.save("b.md", b"old")

    with pytest.raises(FileConflictError):
        store.move("a.md", "b.md")
    assert store.get_content("a.md") == b"new"
    assert store.get_content("b.md") == b"old"

    store.move("a.md", "b.md", overwrite=True)
    assert store.get_content("b.md") == b"new"


def test_move_file_over_directory_conflicts(store: FileStore) -> None:
    store.save("a.md", b"a")
    store.save("docs/x.md", b"x")
    with pytest.raises(FileConflictError):
        store.move("a.md", "docs")


def test_move_directory_into_itself(store: FileStore) -> None:
    store.save("docs/a.md", b"a")
    with pytest.raises(PathValidationError):
        store.move("docs", "docs/inner")


def test_move_same_path_is_noop(store: FileStore) -> None:
    store.save("a.md", b"a")
    store.move("a.md", "./a.md")
    assert store.get_content("a.md") == b"a"


def test_move_root_rejected(store: FileStore) -> None:
    store.save("a.md", b"a")
    with pytest.raises(PathValidationError):
        store.move("", "elsewhere")
    with pytest.raises(PathValidationError):
        store.move("a.md", "")


# ---------------------------------------------------------------------------
# Symlinks and permissions
# ---------------------------------------------------------------------------


def test_delete_symlink_keeps_target(store: FileStore, root) -> None:
    (root / "real.md").write_bytes(b"keep me")
    (root / "alias.md").symlink_to("real.md")

    store.delete("alias.md")

    assert not os.path.lexists(root / "alias.md")
    assert (root / "real.md").read_bytes() == b"keep me"


def test_delete_dangling_symlink(store: FileStore, root) -> None:
    (root / "dangling.md").symlink_to("missing.md")

    store.delete("dangling.md")
    assert not os.path.lexists(root / "dangling.md")


def test_delete_symlink_to_directory_keeps_contents(store: FileStore, root) -> None:
    store.save("real/a.md", b"a")
    (root / "alias").symlink_to("real", target_is_directory=True)

    store.delete("alias")

    assert not os.path.lexists(root / "alias")
    assert (root / "real" / "a.md").read_bytes() == b"a"


def test_move_symlink_renames_the_link(store: FileStore, root) -> None:
    (root / "real.md").write_bytes(b"keep me")
    (root / "alias.md").symlink_to("real.md")

    store.move("alias.md", "renamed.md")

    assert not os.path.lexists(root / "alias.md")
    assert (root / "renamed.md").is_symlink()
    assert os.readlink(root / "renamed.md") == "real.md"
    assert (root / "real.md").read_bytes() == b"keep me"


def test_move_overwrites_symlink_not_its_target(store: FileStore, root) -> None:
    (root / "real.md").write_bytes(b"keep me")
    (root / "alias.md").symlink_to("real.md")
    store.save("new.md", b"new")

    store.move("new.md", "alias.md")

    assert not (root / "alias.md").is_symlink()
    assert (root / "alias.md").read_bytes() == b"new"
    assert (root / "real.md").read_bytes() == b"keep me"


def test_move_symlink_onto_its_target_conflicts(store: FileStore, root) -> None:
    (root / "real.md").write_bytes(b"keep me")
    (root / "alias.md").symlink_to("real.md")

    with pytest.raises(FileConflictError):
        store.move("alias.md", "real.md")
    assert (root / "real.md").read_bytes() == b"keep me"


def test_delete_rejects_symlink_escaping_root(store: FileStore, root, tmp_path) -> None:
    outside = tmp_path / "outside.md"
    outside.write_bytes(b"secret")
    (root / "escape.md").symlink_to(outside)

    with pytest.raises(PathValidationError):
        store.delete("escape.md")
    assert outside.read_bytes() == b"secret"


def test_save_keeps_existing_mode(store: FileStore, root) -> None:
    store.save("run.sh", b"#!/bin/sh\n")
    (root / "run.sh").chmod(0o755)

    store.save("run.sh", b"#!/bin/sh\necho hi\n")

    assert stat.S_IMODE((root / "run.sh").stat().st_mode) == 0o755


def test_save_new_file_mode(store: FileStore, root) -> None:
    store.save("notes.md", b"x")
    assert stat.S_IMODE((root / "notes.md").stat().st_mode) == 0o644


# ---------------------------------------------------------------------------
# Sandbox enforcement
# ---------------------------------------------------------------------------


MALICIOUS = ["../../../etc/passwd", "/etc/shadow", "test/../../../etc/passwd", "..%2f..%2foutside.md"]


@pytest.mark.parametrize("path", MALICIOUS)
def test_every_operation_rejects_escapes(store: FileStore, tmp_path, path: str) -> None:
    store.save("inside.md", b"inside")
    before = sorted(p.name for p in tmp_path.iterdir())

    with pytest.raises(PathValidationError):
        store.get_content(path)
    with pytest.raises(PathValidationError):
        store.save(path, b"pwned")
    with pytest.raises(PathValidationError):
        store.delete(path)
    with pytest.raises(PathValidationError):
        store.move("inside.md", path)
    with pytest.raises(PathValidationError):
        store.move(path, "inside.md")

    assert sorted(p.name for p in tmp_path.iterdir()) == before
    assert store.get_content("inside.md") == b"inside"
    assert store.exists(path) is False
