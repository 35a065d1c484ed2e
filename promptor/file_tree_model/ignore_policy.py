"""Import filter: folder blocklist, suffix blocklist, and size ceiling."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path, PurePath

DEFAULT_MAX_FILE_SIZE = 500 * 1024

DEFAULT_IGNORE_SUFFIXES: frozenset[str] = frozenset(
    {
        # binary / media
        ".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".pdf",
        ".mp4", ".mov", ".mp3", ".wav",
        # archives and build artefacts
        ".zip", ".tar", ".gz", ".rar", ".7z",
        ".class", ".jar", ".war", ".ear", ".o", ".a", ".so", ".dylib",
        ".exe", ".dll", ".app", ".bin", ".pyc",
        # editor and OS noise
        ".ds_store", "thumbs.db",
    }
)

DEFAULT_IGNORE_FOLDERS: frozenset[str] = frozenset(
    {
        # VCS and editors
        ".git", ".github", ".svn", ".hg", ".idea", ".vscode",
        # dependency / build output
        "node_modules", "Pods", "Carthage", "target",
        "build", "dist", "out", "deriveddata", ".next", ".parcel-cache",
        # misc
        ".venv", ".mypy_cache", ".gradle", ".terraform",
    }
)


@dataclass(frozen=True)
class ImportSettings:
    """User-adjustable import options.

    ``include_subfolders`` only gates recursion below the import root; the
    root itself is always listed.
    """

    include_subfolders: bool = True
    ignore_suffixes: frozenset[str] = field(default=DEFAULT_IGNORE_SUFFIXES)
    ignore_folders: frozenset[str] = field(default=DEFAULT_IGNORE_FOLDERS)
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def reset_to_defaults(self) -> ImportSettings:
        """Return settings with the built-in lists and limits restored."""
        return ImportSettings()

    def with_changes(self, **changes: object) -> ImportSettings:
        """Return a copy with ``changes`` applied and set fields frozen."""
        for key in ("ignore_suffixes", "ignore_folders"):
            if key in changes:
                changes[key] = frozenset(changes[key])  # type: ignore[arg-type]
        return replace(self, **changes)  # type: ignore[arg-type]

    def should_import(
        self,
        path: Path,
        is_directory: bool,
        size: int | None = None,
        root: Path | None = None,
    ) -> bool:
        """Return whether ``path`` belongs in the tree.

        Rules are checked in order and the first match wins: blocked folder
        name anywhere in the path, blocked suffix, size ceiling.
        """
        if is_directory:
            folders = {name.lower() for name in self.ignore_folders}
            components = _components_below(path, root)
            if any(component.lower() in folders for component in components):
                return False
            return True

        if _suffix_blocked(path, self.ignore_suffixes):
            return False
        if size is not None and size > self.max_file_size:
            return False
        return True


def should_import(
    path: Path,
    is_directory: bool,
    size: int | None,
    settings: ImportSettings | None = None,
    root: Path | None = None,
) -> bool:
    """Functional form of ``ImportSettings.should_import``."""
    return (settings or ImportSettings()).should_import(path, is_directory, size, root=root)


def _components_below(path: Path, root: Path | None) -> tuple[str, ...]:
    """Return path components, relative to ``root`` when ``path`` is under it."""
    if root is not None:
        try:
            return PurePath(path).relative_to(root).parts
        except ValueError:
            pass
    return PurePath(path).parts


def _suffix_blocked(path: Path, suffixes: frozenset[str]) -> bool:
    lowered = {suffix.lower() for suffix in suffixes}
    suffix = path.suffix.lower()
    if suffix and suffix in lowered:
        return True
    return path.name.lower() in lowered


def parse_suffix_list(text: str) -> frozenset[str]:
    """Parse comma-separated suffix input like ``"env, .Class, thumbs.db"``.

    Entries are lowercased. Bare extensions get a single leading dot;
    entries with an inner dot (``thumbs.db``) are kept as whole file names.
    """
    out: set[str] = set()
    for raw in text.split(","):
        token = raw.strip().lower().strip(".")
        if not token:
            continue
        out.add(token if "." in token else "." + token)
    return frozenset(out)


def parse_folder_list(text: str) -> frozenset[str]:
    """Parse comma-separated folder names into a lowercased set."""
    return frozenset(token for token in (raw.strip().lower() for raw in text.split(",")) if token)


__all__ = [
    "DEFAULT_MAX_FILE_SIZE",
    "DEFAULT_IGNORE_SUFFIXES",
    "DEFAULT_IGNORE_FOLDERS",
    "ImportSettings",
    "should_import",
    "parse_suffix_list",
    "parse_folder_list",
]
