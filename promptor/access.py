"""Resource-access capability and nested access scopes.

A ``ResourceAccessor`` grants read permission for a path for the duration of
one scan or one file read. Scopes nest: a file that cannot be acquired on its
own falls back to its import root, and a root that cannot be acquired falls
back to the durable bookmark stored from the last successful import.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

from .errors import AccessDenied, StaleBookmark
from .logging_setup import get_logger

logger = get_logger(__name__)


class ResourceAccessor(Protocol):
    """Permission capability for filesystem paths plus durable grants."""

    def begin_access(self, path: Path) -> bool: ...

    def end_access(self, path: Path) -> None: ...

    def serialize(self, path: Path) -> bytes: ...

    def resolve(self, blob: bytes) -> tuple[Path, bool]: ...


class BookmarkStore(Protocol):
    """Storage slot for the last durable access grant."""

    def load(self) -> bytes | None: ...

    def save(self, blob: bytes) -> None: ...

    def clear(self) -> None: ...


class LocalResourceAccessor:
    """Accessor for plain local filesystems.

    Access is granted when the path exists and is readable by the current
    process. Bookmarks are small JSON blobs holding the resolved path; a
    bookmark is stale once its folder no longer exists.
    """

    def begin_access(self, path: Path) -> bool:
        try:
            return path.exists() and os.access(path, os.R_OK)
        except OSError:
            return False

    def end_access(self, path: Path) -> None:
        return None

    def serialize(self, path: Path) -> bytes:
        return json.dumps({"path": str(path.resolve())}).encode("utf-8")

    def resolve(self, blob: bytes) -> tuple[Path, bool]:
        try:
            data = json.loads(blob.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError("malformed bookmark") from exc
        raw_path = data.get("path") if isinstance(data, dict) else None
        if not isinstance(raw_path, str) or not raw_path:
            raise ValueError("malformed bookmark")
        path = Path(raw_path)
        return path, not path.is_dir()


class MemoryBookmarkStore:
    """Process-local bookmark slot, used when no config file is wanted."""

    def __init__(self, blob: bytes | None = None) -> None:
        self._blob = blob

    def load(self) -> bytes | None:
        return self._blob

    def save(self, blob: bytes) -> None:
        self._blob = blob

    def clear(self) -> None:
        self._blob = None


def resolve_bookmark(accessor: ResourceAccessor, bookmarks: BookmarkStore | None, root: Path) -> Path:
    """Resolve the stored grant for ``root`` or raise.

    Stale or unreadable grants are discarded so the same dead state is not
    offered again. A grant for a different folder is left in place.
    """
    if bookmarks is None:
        raise AccessDenied(root)
    blob = bookmarks.load()
    if blob is None:
        raise AccessDenied(root)
    try:
        resolved, is_stale = accessor.resolve(blob)
    except (ValueError, OSError) as exc:
        logger.warning("Failed to resolve bookmark for %s: %s", root, exc)
        bookmarks.clear()
        raise StaleBookmark(root) from exc
    if is_stale:
        logger.info("Bookmark for %s is stale; discarding it", resolved)
        bookmarks.clear()
        raise StaleBookmark(resolved)
    if _canonical(resolved) != _canonical(root):
        raise AccessDenied(root)
    return resolved


@contextmanager
def root_access(
    accessor: ResourceAccessor,
    root: Path,
    bookmarks: BookmarkStore | None = None,
) -> Iterator[Path]:
    """Hold access to ``root`` for the body of the ``with`` block.

    Yields the path access was granted on, which is the bookmark-resolved
    path when direct acquisition failed.
    """
    if accessor.begin_access(root):
        try:
            yield root
        finally:
            accessor.end_access(root)
        return

    logger.debug("Direct access to %s refused; trying stored bookmark", root)
    resolved = resolve_bookmark(accessor, bookmarks, root)
    if not accessor.begin_access(resolved):
        raise AccessDenied(root)
    try:
        yield resolved
    finally:
        accessor.end_access(resolved)


@contextmanager
def file_access(
    accessor: ResourceAccessor,
    path: Path,
    root: Path,
    bookmarks: BookmarkStore | None = None,
) -> Iterator[None]:
    """Hold access to one file, falling back to the root scope."""
    if accessor.begin_access(path):
        try:
            yield
        finally:
            accessor.end_access(path)
        return

    logger.debug("Cannot access %s directly; falling back to root scope", path)
    with root_access(accessor, root, bookmarks):
        yield


def _canonical(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path


__all__ = [
    "ResourceAccessor",
    "BookmarkStore",
    "LocalResourceAccessor",
    "MemoryBookmarkStore",
    "resolve_bookmark",
    "root_access",
    "file_access",
]
