"""Domain model for filtered file/directory snapshot trees.

This package contains non-UI tree primitives:
- node datatypes and the tri-state selection value
- the import filter (folder/suffix blocklists, size ceiling)
- filesystem scanning into immutable snapshots
- a flat pre-order arena index over a snapshot
- watch signatures for poll-based change detection
"""

from __future__ import annotations

from .types import Node, NodeId, SelectionState, node_id_for
from .ignore_policy import (
    DEFAULT_IGNORE_FOLDERS,
    DEFAULT_IGNORE_SUFFIXES,
    DEFAULT_MAX_FILE_SIZE,
    ImportSettings,
    parse_folder_list,
    parse_suffix_list,
    should_import,
)
from .fs import DirectoryChild, TreeBuildResult, build_file_tree, list_directory_children, safe_file_size
from .index import TreeIndex
from .watch import build_tree_watch_signature

__all__ = [
    "Node",
    "NodeId",
    "SelectionState",
    "node_id_for",
    "DEFAULT_IGNORE_FOLDERS",
    "DEFAULT_IGNORE_SUFFIXES",
    "DEFAULT_MAX_FILE_SIZE",
    "ImportSettings",
    "parse_folder_list",
    "parse_suffix_list",
    "should_import",
    "DirectoryChild",
    "TreeBuildResult",
    "build_file_tree",
    "list_directory_children",
    "safe_file_size",
    "TreeIndex",
    "build_tree_watch_signature",
]
