"""Plugin directives and fluentd section text.

A `PluginDirective` is a kind tag plus an opaque parameter bag. The kernel does not
know what any kind means; it only knows how to lay a directive out as fluentd
`<section>` text using generic naming and nesting rules.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

INDENT = "  "

_CAMEL_BOUNDARY_1 = re.compile(r"(.)([A-Z][a-z]+)")
_CAMEL_BOUNDARY_2 = re.compile(r"([a-z0-9])([A-Z])")


class DirectiveError(ValueError):
    """A directive item is malformed."""


def to_snake_case(name: str) -> str:
    if name.startswith("@"):
        return name
    s1 = _CAMEL_BOUNDARY_1.sub(r"\1_\2", name)
    return _CAMEL_BOUNDARY_2.sub(r"\1_\2", s1).lower()


@dataclass(frozen=True)
class PluginDirective:
    kind: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.kind, str) or not self.kind.strip():
            raise DirectiveError("PluginDirective.kind must be a non-empty string")
        object.__setattr__(self, "kind", self.kind.strip())
        if self.params is None:
            object.__setattr__(self, "params", {})
        elif not isinstance(self.params, Mapping):
            raise DirectiveError(
                f"directive {self.kind} params must be a mapping (type={type(self.params).__name__})"
            )

    @classmethod
    def from_item(cls, item: Any, *, path: str) -> "PluginDirective":
        """Parse a manifest list item of the form `{kind: {params...}}`."""

        if not isinstance(item, Mapping):
            raise DirectiveError(f"{path} must be a mapping (type={type(item).__name__})")
        if len(item) != 1:
            keys = ", ".join(sorted(str(k) for k in item.keys())) or "<none>"
            raise DirectiveError(f"{path} must contain exactly one plugin kind (got: {keys})")
        ((kind, params),) = item.items()
        if not isinstance(kind, str) or not kind.strip():
            raise DirectiveError(f"{path} plugin kind must be a non-empty string")
        if params is not None and not isinstance(params, Mapping):
            raise DirectiveError(
                f"{path}.{kind} must be a mapping or empty (type={type(params).__name__})"
            )
        return cls(kind=kind, params=dict(params or {}))


@dataclass(frozen=True)
class Section:
    """One fluentd `<name arg>` block with ordered parameters and child sections."""

    name: str
    arg: str | None = None
    params: tuple[tuple[str, str], ...] = ()
    children: tuple["Section", ...] = ()

    def render(self, *, depth: int = 0) -> list[str]:
        pad = INDENT * depth
        head = f"<{self.name} {self.arg}>" if self.arg else f"<{self.name}>"
        lines = [pad + head]
        for key, value in self.params:
            lines.append(f"{pad}{INDENT}{key} {value}")
        for child in self.children:
            lines.extend(child.render(depth=depth + 1))
        lines.append(f"{pad}</{self.name}>")
        return lines


def format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value if value else '""'
    if isinstance(value, (int, float)):
        return str(value)
    raise DirectiveError(f"unsupported parameter value type: {type(value).__name__}")


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def body_from_params(
    params: Mapping[str, Any], *, path: str
) -> tuple[tuple[tuple[str, str], ...], tuple[Section, ...]]:
    """Split a parameter mapping into (scalar params, nested sections).

    Keys are snake_cased. Scalars come first in key order; nested sections follow
    in key order, with list-of-mapping entries kept in list order. A value that is
    already a `Section` is nested as-is.
    """

    scalars: list[tuple[str, str]] = []
    nested: list[tuple[str, list[Section]]] = []

    for raw_key in sorted(params.keys(), key=str):
        value = params[raw_key]
        if not isinstance(raw_key, str) or not raw_key.strip():
            raise DirectiveError(f"{path} parameter keys must be non-empty strings")
        key = to_snake_case(raw_key.strip())
        next_path = f"{path}.{raw_key}"

        if value is None:
            continue
        if isinstance(value, Section):
            nested.append((key, [value]))
        elif _is_scalar(value):
            scalars.append((key, format_scalar(value)))
        elif isinstance(value, Mapping):
            child_params, child_sections = body_from_params(value, path=next_path)
            nested.append((key, [Section(key, params=child_params, children=child_sections)]))
        elif isinstance(value, (list, tuple)):
            if all(_is_scalar(item) for item in value):
                scalars.append((key, ",".join(format_scalar(item) for item in value)))
            elif all(isinstance(item, Mapping) for item in value):
                sections = []
                for idx, item in enumerate(value):
                    child_params, child_sections = body_from_params(item, path=f"{next_path}[{idx}]")
                    sections.append(Section(key, params=child_params, children=child_sections))
                nested.append((key, sections))
            else:
                raise DirectiveError(f"{next_path} mixes scalars and mappings")
        else:
            raise DirectiveError(
                f"{next_path} has unsupported value type: {type(value).__name__}"
            )

    children: list[Section] = []
    for _key, sections in nested:
        children.extend(sections)
    return tuple(scalars), tuple(children)


def render_sections(sections: list[Section] | tuple[Section, ...]) -> str:
    lines: list[str] = []
    for section in sections:
        lines.extend(section.render())
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
