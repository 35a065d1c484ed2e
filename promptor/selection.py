"""Tri-state selection and expansion state over one tree snapshot.

Selection flags live in a list parallel to the ``TreeIndex`` arena rather
than on the nodes, so toggles never copy the tree. A directory is selected
exactly when it has children and all of them are selected; a directory with
no children keeps whatever value it was last given.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .file_tree_model import Node, NodeId, SelectionState, TreeIndex


class SelectionModel:
    """Owns the current snapshot, its selection flags, and expanded folders."""

    def __init__(self, root: Node | None = None) -> None:
        self._index = TreeIndex()
        self._flags: list[bool] = []
        self._expanded: set[NodeId] = set()
        self._selection: frozenset[NodeId] = frozenset()
        self.install(root)

    @property
    def root(self) -> Node | None:
        return self._index.root

    @property
    def index(self) -> TreeIndex:
        return self._index

    @property
    def selection(self) -> frozenset[NodeId]:
        """Ids of every selected node, directories included."""
        return self._selection

    @property
    def expansion(self) -> frozenset[NodeId]:
        return frozenset(self._expanded)

    def install(
        self,
        root: Node | None,
        *,
        selection: Iterable[NodeId] = (),
        expansion: Iterable[NodeId] = (),
    ) -> None:
        """Replace the snapshot, carrying forward state for ids that still exist.

        Ids missing from the new snapshot are dropped silently. Directory
        state is recomputed once after the carried flags are applied.
        """
        index = TreeIndex.build(root)
        carried = set(selection)
        self._index = index
        self._flags = [node.id in carried for node in index.nodes]
        self._expanded = {
            node_id
            for node_id in expansion
            if node_id in index and index.node(node_id).is_directory
        }
        self.recompute()

    def node(self, node_id: NodeId) -> Node:
        return self._index.node(node_id)

    def is_selected(self, node_id: NodeId) -> bool:
        return self._flags[self._index.handle(node_id)]

    def is_expanded(self, node_id: NodeId) -> bool:
        return node_id in self._expanded

    def selection_state(self, node_id: NodeId) -> SelectionState:
        """Return ON, OFF, or PARTIAL for checkbox rendering."""
        handle = self._index.handle(node_id)
        if self._flags[handle]:
            return SelectionState.ON
        if self._index.nodes[handle].is_directory:
            subtree = self._index.subtree(handle)
            if any(self._flags[item] for item in subtree[1:]):
                return SelectionState.PARTIAL
        return SelectionState.OFF

    def toggle(self, node_id: NodeId) -> None:
        """Flip a file, or recursively flip a whole directory."""
        handle = self._index.handle(node_id)
        if self._index.nodes[handle].is_directory:
            self.set_recursive(node_id, not self._flags[handle])
            return
        self._flags[handle] = not self._flags[handle]
        self.recompute()

    def set_recursive(self, node_id: NodeId, select: bool) -> None:
        """Set ``select`` on a node and all of its descendants."""
        handle = self._index.handle(node_id)
        for item in self._index.subtree(handle):
            self._flags[item] = select
        self.recompute()

    def recompute(self) -> None:
        """Re-derive directory flags bottom-up and rebuild ``selection``."""
        index = self._index
        flags = self._flags
        # Reverse pre-order visits every child before its parent.
        for handle in range(len(index) - 1, -1, -1):
            child_handles = index.children[handle]
            if index.nodes[handle].is_directory and child_handles:
                flags[handle] = all(flags[child] for child in child_handles)
        self._selection = frozenset(
            node.id for node, selected in zip(index.nodes, flags) if selected
        )

    def clear_all(self) -> None:
        self._flags = [False] * len(self._index)
        self._selection = frozenset()

    def toggle_expansion(self, node_id: NodeId) -> bool:
        """Flip one directory's expanded flag and return the new value."""
        if not self._index.node(node_id).is_directory:
            return False
        if node_id in self._expanded:
            self._expanded.discard(node_id)
            return False
        self._expanded.add(node_id)
        return True

    def toggle_all_expansion(self) -> bool:
        """Expand every directory if any is collapsed, otherwise collapse all.

        Returns whether the tree ended up expanded.
        """
        directory_ids = [self._index.nodes[handle].id for handle in self._index.directory_handles()]
        if any(node_id not in self._expanded for node_id in directory_ids):
            self._expanded = set(directory_ids)
            return True
        self._expanded.clear()
        return False

    def counts(self, node_id: NodeId) -> tuple[int, int]:
        """Return ``(selected_files, total_files)`` within a node's subtree."""
        handle = self._index.handle(node_id)
        selected = 0
        total = 0
        for item in self._index.subtree(handle):
            if self._index.nodes[item].is_directory:
                continue
            total += 1
            if self._flags[item]:
                selected += 1
        return selected, total

    def selected_files(self) -> list[Node]:
        """Selected file nodes ordered by ``relative_path``."""
        files = [
            node
            for node, selected in zip(self._index.nodes, self._flags)
            if selected and not node.is_directory
        ]
        files.sort(key=lambda node: node.relative_path)
        return files

    def file_nodes(self) -> list[Node]:
        return [node for node in self._index.nodes if not node.is_directory]

    def walk(self, *, expanded_only: bool = False) -> Iterator[tuple[Node, int]]:
        """Yield ``(node, depth)`` in display order.

        With ``expanded_only`` the children of collapsed directories are
        skipped; the root's children are always shown.
        """
        index = self._index
        handle = 0
        total = len(index)
        while handle < total:
            node = index.nodes[handle]
            depth = index.depth(handle)
            yield node, depth
            if (
                expanded_only
                and node.is_directory
                and handle != 0
                and node.id not in self._expanded
            ):
                handle = index.ends[handle]
                continue
            handle += 1


__all__ = ["SelectionModel"]
