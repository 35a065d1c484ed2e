"""Flat arena over one tree snapshot.

Nodes are stored in pre-order, so every subtree occupies the contiguous
handle range ``[handle, end(handle))``. Parent and child links are integer
handles and ids map to handles through a dict, which keeps lookups O(1)
without walking the nested ``Node`` structure.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from .types import Node, NodeId


@dataclass(frozen=True)
class TreeIndex:
    """Pre-order node table with parent/child handle links."""

    nodes: tuple[Node, ...] = ()
    parents: tuple[int, ...] = ()
    children: tuple[tuple[int, ...], ...] = ()
    ends: tuple[int, ...] = ()
    positions: Mapping[NodeId, int] = field(default_factory=dict)

    @classmethod
    def build(cls, root: Node | None) -> TreeIndex:
        """Index ``root`` and all of its descendants."""
        if root is None:
            return cls()

        nodes: list[Node] = []
        parents: list[int] = []
        children: list[list[int]] = []
        positions: dict[NodeId, int] = {}

        stack: list[tuple[Node, int]] = [(root, -1)]
        while stack:
            node, parent = stack.pop()
            if node.id in positions:
                raise ValueError(f"duplicate node id in tree: {node.id}")
            handle = len(nodes)
            nodes.append(node)
            parents.append(parent)
            children.append([])
            positions[node.id] = handle
            if parent >= 0:
                children[parent].append(handle)
            if node.children:
                for child in reversed(node.children):
                    stack.append((child, handle))

        ends = [0] * len(nodes)
        for handle in range(len(nodes) - 1, -1, -1):
            child_handles = children[handle]
            ends[handle] = ends[child_handles[-1]] if child_handles else handle + 1

        return cls(
            nodes=tuple(nodes),
            parents=tuple(parents),
            children=tuple(tuple(items) for items in children),
            ends=tuple(ends),
            positions=positions,
        )

    @property
    def root(self) -> Node | None:
        return self.nodes[0] if self.nodes else None

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.positions

    def handle(self, node_id: NodeId) -> int:
        """Return the handle for ``node_id``; raises ``KeyError`` if unknown."""
        return self.positions[node_id]

    def node(self, node_id: NodeId) -> Node:
        return self.nodes[self.positions[node_id]]

    def subtree(self, handle: int) -> range:
        """Handles of ``handle`` and every descendant."""
        return range(handle, self.ends[handle])

    def depth(self, handle: int) -> int:
        depth = 0
        parent = self.parents[handle]
        while parent >= 0:
            depth += 1
            parent = self.parents[parent]
        return depth

    def directory_handles(self) -> Iterator[int]:
        for handle, node in enumerate(self.nodes):
            if node.is_directory:
                yield handle


__all__ = ["TreeIndex"]
