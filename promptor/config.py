"""Persistent JSON config helpers.

Stores import settings, the current template name, user-defined templates,
and the bookmark blob of the last imported folder. All access is defensive:
malformed or missing config falls back to defaults.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path

from platformdirs import user_config_dir

from .errors import TemplateError
from .file_tree_model import ImportSettings
from .logging_setup import get_logger
from .templates import Template

logger = get_logger(__name__)

APP_NAME = "promptor"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", CONFIG_PATH, exc)
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Write failures are logged and otherwise ignored.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Failed to write config %s: %s", CONFIG_PATH, exc)


def _string_set(value: object) -> frozenset[str] | None:
    if not isinstance(value, list):
        return None
    return frozenset(item for item in value if isinstance(item, str) and item)


def load_import_settings() -> ImportSettings:
    """Load import settings, keeping defaults for missing or invalid keys."""
    defaults = ImportSettings()
    raw = load_config().get("import_settings")
    if not isinstance(raw, dict):
        return defaults

    changes: dict[str, object] = {}
    include_subfolders = raw.get("include_subfolders")
    if isinstance(include_subfolders, bool):
        changes["include_subfolders"] = include_subfolders
    for key in ("ignore_suffixes", "ignore_folders"):
        values = _string_set(raw.get(key))
        if values is not None:
            changes[key] = values
    max_file_size = raw.get("max_file_size")
    if isinstance(max_file_size, int) and not isinstance(max_file_size, bool) and max_file_size > 0:
        changes["max_file_size"] = max_file_size
    return defaults.with_changes(**changes)


def save_import_settings(settings: ImportSettings) -> None:
    config = load_config()
    config["import_settings"] = {
        "include_subfolders": settings.include_subfolders,
        "ignore_suffixes": sorted(settings.ignore_suffixes),
        "ignore_folders": sorted(settings.ignore_folders),
        "max_file_size": settings.max_file_size,
    }
    save_config(config)


def reset_import_settings() -> ImportSettings:
    """Drop persisted import settings and return the built-in defaults."""
    config = load_config()
    config.pop("import_settings", None)
    save_config(config)
    return ImportSettings()


def load_template_name() -> str | None:
    value = load_config().get("template")
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None


def save_template_name(name: str) -> None:
    stripped = str(name).strip()
    if not stripped:
        return
    config = load_config()
    config["template"] = stripped
    save_config(config)


def load_user_templates() -> list[Template]:
    """Load user templates, dropping entries that are malformed or invalid."""
    value = load_config().get("user_templates")
    if not isinstance(value, list):
        return []

    templates: list[Template] = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        name = raw.get("name")
        fmt = raw.get("format")
        if not isinstance(name, str) or not isinstance(fmt, str):
            continue
        try:
            templates.append(Template(name=name, format=fmt))
        except TemplateError as exc:
            logger.warning("Skipping stored template %r: %s", name, exc)
    return templates


def save_user_templates(templates: list[Template]) -> None:
    config = load_config()
    config["user_templates"] = [{"name": template.name, "format": template.format} for template in templates]
    save_config(config)


class ConfigBookmarkStore:
    """Bookmark slot stored base64-encoded under ``last_folder_bookmark``."""

    KEY = "last_folder_bookmark"

    def load(self) -> bytes | None:
        value = load_config().get(self.KEY)
        if not isinstance(value, str) or not value:
            return None
        try:
            return base64.b64decode(value.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError):
            logger.warning("Discarding malformed stored bookmark")
            self.clear()
            return None

    def save(self, blob: bytes) -> None:
        config = load_config()
        config[self.KEY] = base64.b64encode(blob).decode("ascii")
        save_config(config)

    def clear(self) -> None:
        config = load_config()
        if config.pop(self.KEY, None) is not None:
            save_config(config)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "load_config",
    "save_config",
    "load_import_settings",
    "save_import_settings",
    "reset_import_settings",
    "load_template_name",
    "save_template_name",
    "load_user_templates",
    "save_user_templates",
    "ConfigBookmarkStore",
]
