from __future__ import annotations

import unittest
from pathlib import Path

from promptor.file_tree_model import Node, TreeIndex


def _file(root: Path, rel: str) -> Node:
    path = root / rel
    return Node(id=str(path), path=path, relative_path=rel, name=path.name, is_directory=False)


def _dir(root: Path, rel: str, *children: Node) -> Node:
    path = root / rel if rel else root
    return Node(
        id=str(path),
        path=path,
        relative_path=rel or root.name,
        name=path.name,
        is_directory=True,
        children=tuple(children),
    )


ROOT = Path("/proj")
TREE = _dir(
    ROOT,
    "",
    _file(ROOT, "a.txt"),
    _dir(ROOT, "src", _file(ROOT, "src/m.py"), _dir(ROOT, "src/empty")),
    _file(ROOT, "z.txt"),
)


class TreeIndexTests(unittest.TestCase):
    def test_nodes_are_stored_in_pre_order(self) -> None:
        index = TreeIndex.build(TREE)

        self.assertEqual(
            [node.name for node in index.nodes],
            ["proj", "a.txt", "src", "m.py", "empty", "z.txt"],
        )
        self.assertIs(index.root, TREE)
        self.assertEqual(len(index), 6)

    def test_subtree_is_contiguous_range(self) -> None:
        index = TreeIndex.build(TREE)
        src = index.handle("/proj/src")

        self.assertEqual(
            [index.nodes[handle].name for handle in index.subtree(src)],
            ["src", "m.py", "empty"],
        )
        self.assertEqual(list(index.subtree(index.handle("/proj/z.txt"))), [5])
        self.assertEqual(index.subtree(0), range(0, 6))

    def test_parent_and_child_links(self) -> None:
        index = TreeIndex.build(TREE)
        src = index.handle("/proj/src")

        self.assertEqual(index.parents[0], -1)
        self.assertEqual(index.parents[index.handle("/proj/src/m.py")], src)
        self.assertEqual(index.children[0], (1, 2, 5))
        self.assertEqual(index.children[index.handle("/proj/src/empty")], ())

    def test_depth_counts_ancestors(self) -> None:
        index = TreeIndex.build(TREE)

        self.assertEqual(index.depth(0), 0)
        self.assertEqual(index.depth(index.handle("/proj/src")), 1)
        self.assertEqual(index.depth(index.handle("/proj/src/empty")), 2)

    def test_lookup_by_id(self) -> None:
        index = TreeIndex.build(TREE)

        self.assertIn("/proj/a.txt", index)
        self.assertNotIn("/proj/missing.txt", index)
        self.assertEqual(index.node("/proj/src/m.py").relative_path, "src/m.py")
        with self.assertRaises(KeyError):
            index.handle("/proj/missing.txt")

    def test_directory_handles(self) -> None:
        index = TreeIndex.build(TREE)

        self.assertEqual(
            [index.nodes[handle].name for handle in index.directory_handles()],
            ["proj", "src", "empty"],
        )

    def test_empty_index(self) -> None:
        index = TreeIndex.build(None)

        self.assertEqual(len(index), 0)
        self.assertIsNone(index.root)

    def test_duplicate_ids_are_rejected(self) -> None:
        twin = _file(ROOT, "a.txt")

        with self.assertRaises(ValueError):
            TreeIndex.build(_dir(ROOT, "", twin, twin))


if __name__ == "__main__":
    unittest.main()
