"""Tree watch signatures for poll-based change detection.

A signature is a digest over the stat metadata of every importable entry
under a root. Poll loops compare successive signatures to decide whether the
tree may be stale; they never try to work out which file changed.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from .fs import list_directory_children
from .ignore_policy import ImportSettings


def _update_digest(digest, token: str) -> None:
    """Append a token plus separator byte to a hash digest."""
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def _path_stat_signature(path: Path) -> tuple[str, int, int, int]:
    """Return a stable stat tuple describing ``path`` existence and metadata."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0, 0)
    except OSError:
        return ("error", 0, 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size, st.st_mode)


def build_tree_watch_signature(root: Path, settings: ImportSettings | None = None) -> str:
    """Build a digest over the importable structure and file metadata.

    The walk applies the same filters as the tree builder, so edits to
    ignored files (``node_modules``, images, oversized files) leave the
    signature unchanged.
    """
    settings = settings or ImportSettings()
    try:
        root = root.resolve()
    except OSError:
        pass

    digest = hashlib.blake2b(digest_size=20)
    _update_digest(digest, f"root:{root}")
    _update_digest(digest, f"subfolders:{1 if settings.include_subfolders else 0}")

    pending: list[Path] = [root]
    while pending:
        directory = pending.pop()
        stat_state, _mtime, _size, stat_mode = _path_stat_signature(directory)
        _update_digest(digest, f"dir:{directory}:{stat_state}:{stat_mode}")
        if stat_state != "ok":
            continue

        children, scan_error = list_directory_children(directory, settings, root)
        if scan_error is not None:
            _update_digest(digest, "children:error")
        for child in children:
            if child.is_dir:
                _update_digest(digest, f"child_dir:{child.name}")
                if settings.include_subfolders:
                    pending.append(child.path)
                continue
            state, mtime_ns, size, mode = _path_stat_signature(child.path)
            _update_digest(digest, f"child:{child.name}:{state}:{mtime_ns}:{size}:{mode}")

    return digest.hexdigest()


__all__ = ["build_tree_watch_signature"]
