"""Filesystem scanning and snapshot-tree construction."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from ..access import BookmarkStore, ResourceAccessor, root_access
from ..errors import ScanWarning
from ..logging_setup import get_logger
from .ignore_policy import ImportSettings
from .types import Node, node_id_for

logger = get_logger(__name__)

PACKAGE_BUNDLE_SUFFIXES = frozenset(
    {
        ".app",
        ".bundle",
        ".framework",
        ".kext",
        ".plugin",
        ".pkg",
        ".playground",
        ".xcodeproj",
        ".xcworkspace",
        ".photoslibrary",
    }
)


@dataclass(frozen=True)
class DirectoryChild:
    """One importable directory child plus the stat data used to filter it."""

    name: str
    path: Path
    is_dir: bool
    file_size: int | None


@dataclass(frozen=True)
class TreeBuildResult:
    """Outcome of one scan.

    ``root`` is ``None`` when the import root itself could not be listed;
    ``error`` then says why. ``warnings`` lists sub-directories that were only
    partially enumerated.
    """

    root: Node | None
    warnings: tuple[ScanWarning, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.root is not None


def safe_file_size(path: Path) -> int | None:
    """Return the size of ``path`` or ``None`` on stat failure."""
    try:
        return int(path.stat().st_size)
    except OSError:
        return None


def _is_directory_link(entry: os.DirEntry) -> bool:
    try:
        return entry.is_symlink() and entry.is_dir(follow_symlinks=True)
    except OSError:
        return False


def list_directory_children(
    directory: Path,
    settings: ImportSettings,
    root: Path | None = None,
) -> tuple[list[DirectoryChild], OSError | None]:
    """List importable children of ``directory`` sorted by name.

    Returns ``(children, scan_error)``. When listing fails part-way the
    children read so far are still returned alongside the error.
    """
    children: list[DirectoryChild] = []
    scan_error: OSError | None = None
    try:
        with os.scandir(directory) as entries:
            for child in entries:
                name = child.name
                if name.startswith("."):
                    continue
                child_path = directory / name

                try:
                    is_dir = child.is_dir(follow_symlinks=False)
                except OSError:
                    is_dir = False
                if is_dir and child_path.suffix.lower() in PACKAGE_BUNDLE_SUFFIXES:
                    continue
                if not is_dir and _is_directory_link(child):
                    continue

                file_size: int | None = None
                if not is_dir:
                    try:
                        file_size = int(child.stat().st_size)
                    except OSError:
                        file_size = None

                if not settings.should_import(child_path, is_dir, file_size, root=root):
                    continue
                children.append(
                    DirectoryChild(
                        name=name,
                        path=child_path,
                        is_dir=is_dir,
                        file_size=file_size,
                    )
                )
    except OSError as exc:
        scan_error = exc

    children.sort(key=lambda item: item.name)
    return children, scan_error


def _root_relative_name(root: Path) -> str:
    return root.name or str(root)


def _build(root: Path, settings: ImportSettings) -> TreeBuildResult:
    try:
        root = root.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        return TreeBuildResult(root=None, error=f"Cannot read {root}: {exc}")
    if not root.is_dir():
        return TreeBuildResult(root=None, error=f"{root} is not a directory")

    warnings: list[ScanWarning] = []

    def build_children(directory: Path, prefix: str) -> tuple[Node, ...]:
        children, scan_error = list_directory_children(directory, settings, root)
        if scan_error is not None:
            warning = ScanWarning(path=directory, reason=str(scan_error.strerror or scan_error))
            logger.warning(warning.message())
            warnings.append(warning)
        return nodes_for(children, prefix)

    def nodes_for(children: list[DirectoryChild], prefix: str) -> tuple[Node, ...]:
        nodes: list[Node] = []
        for child in children:
            relative = f"{prefix}{child.name}"
            if not child.is_dir:
                nodes.append(
                    Node(
                        id=node_id_for(child.path),
                        path=child.path,
                        relative_path=relative,
                        name=child.name,
                        is_directory=False,
                        size=child.file_size,
                    )
                )
                continue

            if settings.include_subfolders:
                grandchildren = build_children(child.path, f"{relative}/")
            else:
                grandchildren = ()
            nodes.append(
                Node(
                    id=node_id_for(child.path),
                    path=child.path,
                    relative_path=relative,
                    name=child.name,
                    is_directory=True,
                    children=grandchildren,
                    children_excluded=not settings.include_subfolders,
                )
            )
        return tuple(nodes)

    # Root listing failures are fatal; nested ones only become warnings.
    root_children, root_error = list_directory_children(root, settings, root)
    if root_error is not None:
        return TreeBuildResult(root=None, error=f"Cannot read {root}: {root_error.strerror or root_error}")

    name = _root_relative_name(root)
    root_node = Node(
        id=node_id_for(root),
        path=root,
        relative_path=name,
        name=name,
        is_directory=True,
        children=nodes_for(root_children, ""),
    )
    return TreeBuildResult(root=root_node, warnings=tuple(warnings))


def build_file_tree(
    root: Path,
    settings: ImportSettings | None = None,
    *,
    accessor: ResourceAccessor | None = None,
    bookmarks: BookmarkStore | None = None,
) -> TreeBuildResult:
    """Scan ``root`` depth-first into a filtered snapshot tree.

    With an ``accessor`` the scan runs inside the root's access scope and
    raises ``AccessDenied`` when that scope cannot be acquired.
    """
    settings = settings or ImportSettings()
    if accessor is None:
        return _build(root, settings)
    with root_access(accessor, root, bookmarks) as granted:
        return _build(granted, settings)


__all__ = [
    "PACKAGE_BUNDLE_SUFFIXES",
    "DirectoryChild",
    "TreeBuildResult",
    "safe_file_size",
    "list_directory_children",
    "build_file_tree",
]
