from __future__ import annotations

import unittest

from promptor.errors import TemplateError
from promptor.templates import CHATML_TEMPLATE, DEFAULT_TEMPLATE, PLACEHOLDER, Template, TemplateRegistry


class TemplateTests(unittest.TestCase):
    def test_default_template_is_identity(self) -> None:
        self.assertEqual(DEFAULT_TEMPLATE.render("```a\nb\n```"), "```a\nb\n```")

    def test_render_substitutes_content_verbatim(self) -> None:
        template = Template("Wrap", "before\n{{files}}\nafter")

        self.assertEqual(template.render("x {{files}} y"), "before\nx {{files}} y\nafter")

    def test_chatml_markers(self) -> None:
        rendered = CHATML_TEMPLATE.render("BODY")

        self.assertTrue(rendered.startswith("<|im_start|>system\n"))
        self.assertIn("<|im_start|>user\nBODY\n<|im_end|>", rendered)
        self.assertTrue(rendered.endswith("<|im_start|>assistant"))

    def test_missing_placeholder_is_rejected(self) -> None:
        with self.assertRaises(TemplateError):
            Template("Broken", "no token here")

    def test_repeated_placeholder_is_rejected(self) -> None:
        with self.assertRaises(TemplateError):
            Template("Twice", f"{PLACEHOLDER}{PLACEHOLDER}")

    def test_blank_name_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Template("  ", PLACEHOLDER)


class TemplateRegistryTests(unittest.TestCase):
    def test_builtins_come_first(self) -> None:
        registry = TemplateRegistry([Template("Mine", "# {{files}}")])

        self.assertEqual(registry.names(), ["Default", "ChatML", "Mine"])
        self.assertIn("Mine", registry)
        self.assertEqual(registry.get("Mine").render("x"), "# x")

    def test_unknown_name_raises_key_error(self) -> None:
        with self.assertRaises(KeyError):
            TemplateRegistry().get("Nope")

    def test_builtins_cannot_be_replaced_or_removed(self) -> None:
        registry = TemplateRegistry()

        with self.assertRaises(TemplateError):
            registry.add(Template("Default", "x{{files}}"))
        with self.assertRaises(TemplateError):
            registry.remove("ChatML")

    def test_user_templates_can_be_replaced_and_removed(self) -> None:
        registry = TemplateRegistry([Template("Mine", "a{{files}}")])

        registry.add(Template("Mine", "b{{files}}"))
        self.assertEqual(registry.get("Mine").format, "b{{files}}")
        registry.remove("Mine")

        self.assertEqual(registry.user_templates(), [])
        self.assertNotIn("Mine", registry)


if __name__ == "__main__":
    unittest.main()
