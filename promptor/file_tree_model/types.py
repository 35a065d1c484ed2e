"""Domain datatypes for filtered file-tree snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

NodeId = str


@dataclass(frozen=True)
class Node:
    """One file or directory entry of an immutable tree snapshot.

    ``children`` is ``None`` for files and a name-sorted tuple for directories.
    ``children_excluded`` marks sub-directories that were listed but not
    descended because sub-folder import is disabled.
    """

    id: NodeId
    path: Path
    relative_path: str
    name: str
    is_directory: bool
    children: tuple["Node", ...] | None = None
    size: int | None = None
    children_excluded: bool = False


class SelectionState(Enum):
    """Tri-state checkbox value shown for a node."""

    OFF = "off"
    ON = "on"
    PARTIAL = "partial"


def node_id_for(path: Path) -> NodeId:
    """Return the stable id used for ``path`` across rescans."""
    return str(path)


__all__ = [
    "NodeId",
    "Node",
    "SelectionState",
    "node_id_for",
]
