"""Tests for config persistence and input sanitization.

Covers import settings, template choices, and the stored folder bookmark.
Malformed config data must fall back to defaults instead of raising.
"""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from promptor import config
from promptor.file_tree_model import ImportSettings
from promptor.templates import Template


class ImportSettingsConfigTests(unittest.TestCase):
    def test_missing_config_yields_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("promptor.config.CONFIG_PATH", Path(tmp) / "config.json"):
                self.assertEqual(config.load_config(), {})
                self.assertEqual(config.load_import_settings(), ImportSettings())

    def test_import_settings_round_trip(self) -> None:
        settings = ImportSettings().with_changes(
            include_subfolders=False,
            ignore_suffixes={".md", ".lock"},
            ignore_folders={"vendor"},
            max_file_size=1024,
        )
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("promptor.config.CONFIG_PATH", Path(tmp) / "nested" / "config.json"):
                config.save_import_settings(settings)

                self.assertEqual(config.load_import_settings(), settings)
                saved = config.load_config()["import_settings"]
                self.assertEqual(saved["ignore_suffixes"], [".lock", ".md"])  # type: ignore[index]

    def test_invalid_values_keep_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("promptor.config.CONFIG_PATH", Path(tmp) / "config.json"):
                config.save_config(
                    {
                        "import_settings": {
                            "include_subfolders": "yes",
                            "ignore_suffixes": ".md",
                            "ignore_folders": ["docs", 3, ""],
                            "max_file_size": True,
                        }
                    }
                )

                settings = config.load_import_settings()

        self.assertTrue(settings.include_subfolders)
        self.assertEqual(settings.ignore_suffixes, ImportSettings().ignore_suffixes)
        self.assertEqual(settings.ignore_folders, frozenset({"docs"}))
        self.assertEqual(settings.max_file_size, 500 * 1024)

    def test_malformed_json_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text("{not json", encoding="utf-8")
            with mock.patch("promptor.config.CONFIG_PATH", config_path):
                with self.assertLogs("promptor.config", level="WARNING"):
                    self.assertEqual(config.load_config(), {})

    def test_reset_drops_persisted_settings(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("promptor.config.CONFIG_PATH", Path(tmp) / "config.json"):
                config.save_import_settings(ImportSettings(max_file_size=10))
                config.save_template_name("ChatML")

                self.assertEqual(config.reset_import_settings(), ImportSettings())
                self.assertNotIn("import_settings", config.load_config())
                self.assertEqual(config.load_template_name(), "ChatML")


class TemplateConfigTests(unittest.TestCase):
    def test_template_name_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("promptor.config.CONFIG_PATH", Path(tmp) / "config.json"):
                self.assertIsNone(config.load_template_name())
                config.save_template_name("  ChatML ")
                config.save_template_name("   ")

                self.assertEqual(config.load_template_name(), "ChatML")

    def test_user_templates_skip_invalid_entries(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("promptor.config.CONFIG_PATH", Path(tmp) / "config.json"):
                config.save_user_templates([Template("Mine", "## {{files}}")])
                saved = config.load_config()
                saved["user_templates"].extend(  # type: ignore[union-attr]
                    [{"name": "NoToken", "format": "plain"}, {"name": 5, "format": "{{files}}"}, "bad"]
                )
                config.save_config(saved)

                templates = config.load_user_templates()

        self.assertEqual(templates, [Template("Mine", "## {{files}}")])


class BookmarkConfigTests(unittest.TestCase):
    def test_bookmark_round_trip_and_clear(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("promptor.config.CONFIG_PATH", Path(tmp) / "config.json"):
                store = config.ConfigBookmarkStore()
                self.assertIsNone(store.load())

                store.save(b'{"path": "/proj"}')
                self.assertEqual(store.load(), b'{"path": "/proj"}')
                self.assertIsInstance(config.load_config()["last_folder_bookmark"], str)

                store.clear()
                self.assertIsNone(store.load())

    def test_malformed_bookmark_is_discarded(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("promptor.config.CONFIG_PATH", Path(tmp) / "config.json"):
                config.save_config({"last_folder_bookmark": "***"})

                self.assertIsNone(config.ConfigBookmarkStore().load())
                self.assertNotIn("last_folder_bookmark", config.load_config())


if __name__ == "__main__":
    unittest.main()
