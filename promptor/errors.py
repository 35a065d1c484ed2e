"""Error taxonomy for import, access, and assembly failures.

Only access problems abort an operation. Scan and read problems are
localized: they are recorded or reported and the surrounding operation keeps
going with whatever could be read.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class PromptorError(Exception):
    """Base class for all recoverable promptor errors."""


class AccessDenied(PromptorError):
    """Access to a root folder or file could not be acquired."""

    def __init__(self, path: Path, message: str | None = None) -> None:
        self.path = path
        super().__init__(message or f"Cannot access {path}. Please re-select the folder.")


class StaleBookmark(AccessDenied):
    """Stored access grant no longer resolves to a usable folder."""

    def __init__(self, path: Path) -> None:
        super().__init__(path, f"Stored access to {path} is no longer valid. Please re-select the folder.")


class ReadFailure(PromptorError):
    """A selected file could not be read at assembly time."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to read file {path.name}: {reason}")


class TemplateError(PromptorError, ValueError):
    """Template format does not contain exactly one placeholder token."""


@dataclass(frozen=True)
class ScanWarning:
    """Directory that could only be partially enumerated during a scan."""

    path: Path
    reason: str

    def message(self) -> str:
        return f"Could not list {self.path}: {self.reason}"


__all__ = [
    "PromptorError",
    "AccessDenied",
    "StaleBookmark",
    "ReadFailure",
    "TemplateError",
    "ScanWarning",
]
