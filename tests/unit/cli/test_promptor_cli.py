"""CLI behavior tests.

Verifies how ``promptor.cli.main`` picks the folder, applies selections and
templates, and where it writes the assembled prompt.
"""

from __future__ import annotations

import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from promptor import cli, config


class _CliCase(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.base = Path(tmp.name).resolve()
        self.root = self.base / "proj"
        (self.root / "src").mkdir(parents=True)
        (self.root / "a.txt").write_text("alpha", encoding="utf-8")
        (self.root / "src" / "m.py").write_text("print('m')", encoding="utf-8")
        (self.root / "logo.png").write_bytes(b"\x89PNG")
        config_patch = mock.patch("promptor.config.CONFIG_PATH", self.base / "config" / "config.json")
        config_patch.start()
        self.addCleanup(config_patch.stop)

    def run_cli(self, *argv: str) -> tuple[str, str]:
        with mock.patch("sys.stdout", new_callable=io.StringIO) as out, mock.patch(
            "sys.stderr", new_callable=io.StringIO
        ) as err:
            cli.main(list(argv))
        return out.getvalue(), err.getvalue()


class CliOutputTests(_CliCase):
    def test_selects_every_file_by_default(self) -> None:
        out, _err = self.run_cli(str(self.root))

        self.assertEqual(out, "```a.txt\nalpha\n```\n\n```src/m.py\nprint('m')\n```\n")

    def test_select_limits_output(self) -> None:
        out, _err = self.run_cli(str(self.root), "-s", "src")

        self.assertEqual(out, "```src/m.py\nprint('m')\n```\n")

    def test_unknown_selection_warns(self) -> None:
        out, err = self.run_cli(str(self.root), "-s", "a.txt", "-s", "nope.txt")

        self.assertEqual(out, "```a.txt\nalpha\n```\n")
        self.assertIn("nope.txt", err)

    def test_tree_output_shows_checkboxes_and_counts(self) -> None:
        out, _err = self.run_cli(str(self.root), "--tree", "-s", "a.txt")

        self.assertEqual(
            out.splitlines(),
            ["[-] proj/ (1/2)", "  [x] a.txt", "  [ ] src/ (0/1)", "    [ ] m.py"],
        )

    def test_chatml_template_is_applied_and_remembered(self) -> None:
        out, _err = self.run_cli(str(self.root), "-t", "ChatML", "-s", "a.txt")

        self.assertTrue(out.startswith("<|im_start|>system\n"))
        self.assertIn("```a.txt\nalpha\n```", out)
        self.assertEqual(config.load_template_name(), "ChatML")

    def test_unknown_template_exits(self) -> None:
        with self.assertRaises(SystemExit):
            self.run_cli(str(self.root), "-t", "Nope")

    def test_list_templates(self) -> None:
        out, _err = self.run_cli("--list-templates")

        self.assertEqual(out.splitlines(), ["Default", "ChatML"])

    def test_output_file_and_token_estimate(self) -> None:
        target = self.base / "prompt.md"

        out, err = self.run_cli(str(self.root), "-s", "a.txt", "-o", str(target), "--tokens")

        self.assertEqual(out, "")
        self.assertEqual(target.read_text(encoding="utf-8"), "```a.txt\nalpha\n```")
        self.assertIn("5 tokens", err)

    def test_no_subfolders_limits_to_top_level(self) -> None:
        out, _err = self.run_cli(str(self.root), "--no-subfolders")

        self.assertEqual(out, "```a.txt\nalpha\n```\n")

    def test_ignore_suffixes_override_can_be_saved(self) -> None:
        out, _err = self.run_cli(str(self.root), "--ignore-suffixes", "py,png", "--save-settings")

        self.assertEqual(out, "```a.txt\nalpha\n```\n")
        self.assertEqual(config.load_import_settings().ignore_suffixes, frozenset({".png", ".py"}))


class CliFolderResolutionTests(_CliCase):
    def test_missing_path_exits(self) -> None:
        with self.assertRaises(SystemExit):
            self.run_cli(str(self.base / "missing"))

    def test_file_path_exits(self) -> None:
        with self.assertRaises(SystemExit):
            self.run_cli(str(self.root / "a.txt"))

    def test_without_path_or_bookmark_exits(self) -> None:
        with self.assertRaises(SystemExit):
            self.run_cli()

    def test_without_path_restores_last_folder(self) -> None:
        self.run_cli(str(self.root), "-s", "a.txt")

        out, _err = self.run_cli("-s", "src/m.py")

        self.assertEqual(out, "```src/m.py\nprint('m')\n```\n")

    def test_stale_last_folder_exits(self) -> None:
        self.run_cli(str(self.root), "-s", "a.txt")
        (self.root / "a.txt").unlink()
        (self.root / "src" / "m.py").unlink()
        (self.root / "src").rmdir()
        (self.root / "logo.png").unlink()
        self.root.rmdir()

        with self.assertRaises(SystemExit):
            self.run_cli()
        self.assertIsNone(config.ConfigBookmarkStore().load())


if __name__ == "__main__":
    unittest.main()
