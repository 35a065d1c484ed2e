"""Output templates wrapping the assembled file blocks."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .errors import TemplateError

PLACEHOLDER = "{{files}}"


@dataclass(frozen=True)
class Template:
    """Named format string with exactly one ``{{files}}`` token."""

    name: str
    format: str

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise TemplateError("template name must not be empty")
        count = self.format.count(PLACEHOLDER)
        if count != 1:
            raise TemplateError(
                f"template {self.name!r} must contain {PLACEHOLDER} exactly once (found {count})"
            )

    def render(self, content: str) -> str:
        return self.format.replace(PLACEHOLDER, content, 1)


DEFAULT_TEMPLATE = Template(name="Default", format=PLACEHOLDER)

CHATML_TEMPLATE = Template(
    name="ChatML",
    format=(
        "<|im_start|>system\n"
        "You are a helpful assistant.<|im_end|>\n"
        "<|im_start|>user\n"
        f"{PLACEHOLDER}\n"
        "<|im_end|>\n"
        "<|im_start|>assistant"
    ),
)

BUILTIN_TEMPLATES: tuple[Template, ...] = (DEFAULT_TEMPLATE, CHATML_TEMPLATE)


class TemplateRegistry:
    """Built-in templates followed by user-defined ones, looked up by name.

    User templates may not reuse a built-in name; adding a user template with
    an existing user name replaces it.
    """

    def __init__(self, user_templates: Iterable[Template] = ()) -> None:
        self._builtin = {template.name: template for template in BUILTIN_TEMPLATES}
        self._user: dict[str, Template] = {}
        for template in user_templates:
            self.add(template)

    def __iter__(self) -> Iterator[Template]:
        yield from self._builtin.values()
        yield from self._user.values()

    def __contains__(self, name: object) -> bool:
        return name in self._builtin or name in self._user

    def names(self) -> list[str]:
        return [template.name for template in self]

    def get(self, name: str) -> Template:
        """Return the template called ``name``; raises ``KeyError`` if unknown."""
        if name in self._builtin:
            return self._builtin[name]
        return self._user[name]

    def add(self, template: Template) -> None:
        if template.name in self._builtin:
            raise TemplateError(f"{template.name!r} is a built-in template")
        self._user[template.name] = template

    def remove(self, name: str) -> None:
        if name in self._builtin:
            raise TemplateError(f"{name!r} is a built-in template")
        del self._user[name]

    def user_templates(self) -> list[Template]:
        return list(self._user.values())


__all__ = [
    "PLACEHOLDER",
    "Template",
    "DEFAULT_TEMPLATE",
    "CHATML_TEMPLATE",
    "BUILTIN_TEMPLATES",
    "TemplateRegistry",
]
