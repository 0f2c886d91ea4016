"""Path sandbox -- maps untrusted workspace-relative paths onto disk.

Every path a caller hands to the storage engine goes through ``resolve``
before anything touches the filesystem::

    resolve("/data/1/2", "docs/readme.md")   -> /data/1/2/docs/readme.md
    resolve("/data/1/2", "")                 -> /data/1/2
    resolve("/data/1/2", "../../etc/passwd") -> PathValidationError

Steps, in order:

1. Percent-decode (once, strictly).  Decoding happens before validation so
   ``%2e%2e/`` is seen as ``../``.
2. Reject NUL bytes and absolute paths (POSIX, UNC and drive-letter forms).
3. Normalise ``\\`` to ``/`` and lexically clean; reject ``..`` that climbs
   above the root.
4. Canonicalise with ``Path.resolve()`` (follows symlinks) and require the
   result to be the canonical root or one of its descendants.  The last
   step is what catches symlinks pointing out of the sandbox.

``resolve_entry`` runs the same checks but stops short of following the
final component, for callers that unlink or rename a directory entry.
"""

from __future__ import annotations

import posixpath
import re
from pathlib import Path
from urllib.parse import unquote

from lemma.storage.errors import PathValidationError

_MALFORMED_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def decode_path(user_path: str) -> str:
    """Percent-decode *user_path*, rejecting malformed escapes and non-UTF-8 bytes."""
    if "%" not in user_path:
        return user_path
    if _MALFORMED_ESCAPE_RE.search(user_path):
        raise PathValidationError(user_path, "malformed percent-encoding")
    try:
        return unquote(user_path, errors="strict")
    except UnicodeDecodeError:
        raise PathValidationError(user_path, "malformed percent-encoding") from None


def clean_path(user_path: str) -> str:
    """Lexically clean a relative path.

    Returns the forward-slash form with ``.``, ``..`` and repeated separators
    collapsed, or ``""`` for the root.  Raises ``PathValidationError`` for
    absolute paths and for ``..`` escaping the root.
    """
    if "\x00" in user_path:
        raise PathValidationError(user_path, "path contains NUL byte")

    candidate = user_path.replace("\\", "/")
    if candidate.startswith("/") or _DRIVE_RE.match(candidate):
        raise PathValidationError(user_path, "absolute paths are not allowed")
    if not candidate:
        return ""

    normalized = posixpath.normpath(candidate)
    if normalized == ".." or normalized.startswith("../"):
        raise PathValidationError(user_path, "path escapes workspace root")
    return "" if normalized == "." else normalized


def resolve(root: str | Path, user_path: str | None, *, decode: bool = True) -> Path:
    """Resolve *user_path* against *root* and return the canonical absolute path.

    The target does not need to exist.  Raises ``PathValidationError`` if the
    path is malformed or ends up outside *root* after symlink resolution.
    """
    raw = user_path or ""
    if decode:
        raw = decode_path(raw)
    relative = clean_path(raw)

    root_path = Path(root).resolve()
    if not relative:
        return root_path

    try:
        candidate = (root_path / relative).resolve()
    except (OSError, RuntimeError):
        # Symlink loops surface as RuntimeError (<3.13) or OSError.
        raise PathValidationError(raw, "unresolvable path") from None

    try:
        _ = candidate.relative_to(root_path)
    except ValueError:
        raise PathValidationError(raw, "path escapes workspace root") from None
    return candidate


def resolve_entry(root: str | Path, user_path: str | None, *, decode: bool = True) -> Path:
    """Like ``resolve``, but the final component is not followed.

    The whole path is still validated with ``resolve``, so a symlink pointing
    out of *root* is rejected.  The returned path names the directory entry
    itself: for ``alias.md -> real.md`` it is ``<root>/alias.md``.  Use it for
    operations that act on the entry (unlink, rename) rather than its target.
    """
    raw = user_path or ""
    if decode:
        raw = decode_path(raw)
    canonical = resolve(root, raw, decode=False)
    relative = clean_path(raw)
    if not relative:
        return canonical
    parent, name = posixpath.split(relative)
    return resolve(root, parent, decode=False) / name


def relative_path(root: str | Path, absolute: str | Path) -> str:
    """Forward-slash path of *absolute* relative to *root* (``""`` for the root itself)."""
    rel = Path(absolute).relative_to(Path(root).resolve())
    return "" if rel == Path(".") else rel.as_posix()


def is_within(root: str | Path, absolute: str | Path) -> bool:
    """True if the canonical form of *absolute* lies inside the canonical *root*."""
    try:
        _ = Path(absolute).resolve().relative_to(Path(root).resolve())
    except (ValueError, OSError, RuntimeError):
        return False
    return True
