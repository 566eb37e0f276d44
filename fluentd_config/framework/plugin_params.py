"""Directive kind conventions for fluentd.

The kernel lays out parameters generically (camelCase keys to snake_case, mappings
to nested sections). This module supplies what is specific to fluentd plugins:

- the `@type` name for a directive kind when it is not just the snake_cased kind
- per-kind parameter shaping for manifest shapes that do not map 1:1 onto fluentd
  syntax (e.g. `recordTransformer.records`)

Parameter values are not validated against any plugin schema.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from fluentkit.directives import (
    DirectiveError,
    PluginDirective,
    Section,
    body_from_params,
    format_scalar,
    to_snake_case,
)

ParamShaper = Callable[[Mapping[str, Any], str], dict[str, Any]]

# Common manifest fields that fluentd spells as system parameters.
_SYSTEM_PARAMS = {"logLevel": "@log_level", "label": "@label"}


@dataclass(frozen=True)
class PluginKind:
    kind: str
    type_name: str
    shape: ParamShaper | None = None


_PLUGIN_KINDS: dict[str, PluginKind] = {}


def register_plugin_kind(kind: str, *, type_name: str | None = None):
    """Register a kind; usable bare or as a decorator around a param shaper."""

    if not isinstance(kind, str) or not kind.strip():
        raise TypeError("plugin kind must be a non-empty string")
    key = kind.strip()
    if key in _PLUGIN_KINDS:
        raise ValueError(f"Duplicate plugin kind: {key}")
    resolved_type = type_name or to_snake_case(key)
    _PLUGIN_KINDS[key] = PluginKind(kind=key, type_name=resolved_type)

    def decorator(fn: ParamShaper) -> ParamShaper:
        _PLUGIN_KINDS[key] = PluginKind(kind=key, type_name=resolved_type, shape=fn)
        return fn

    return decorator


def plugin_kind(kind: str) -> PluginKind:
    registered = _PLUGIN_KINDS.get(kind)
    if registered is not None:
        return registered
    return PluginKind(kind=kind, type_name=to_snake_case(kind))


def _with_system_params(params: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in params.items():
        out[_SYSTEM_PARAMS.get(key, key)] = value
    return out


def directive_section(
    directive: PluginDirective,
    *,
    name: str,
    arg: str | None = None,
    plugin_id: str | None = None,
) -> Section:
    """Lay one directive out as a fluentd section. Raises DirectiveError on bad params."""

    plugin = plugin_kind(directive.kind)
    params = dict(directive.params)
    if plugin.shape is not None:
        params = plugin.shape(params, directive.kind)
    params = _with_system_params(params)
    for reserved in ("@type", "@id"):
        if reserved in params:
            raise DirectiveError(f"{directive.kind} must not set {reserved} directly")

    scalars, children = body_from_params(params, path=directive.kind)
    head: list[tuple[str, str]] = []
    if plugin_id:
        head.append(("@id", plugin_id))
    head.append(("@type", plugin.type_name))
    return Section(name, arg, tuple(head) + scalars, children)


@register_plugin_kind("recordTransformer")
def _shape_record_transformer(params: Mapping[str, Any], kind: str) -> dict[str, Any]:
    out = dict(params)
    record: dict[str, Any] = {}

    records = out.pop("records", None)
    if records is not None:
        if not isinstance(records, (list, tuple)):
            raise DirectiveError(f"{kind}.records must be a list")
        for idx, item in enumerate(records):
            if not isinstance(item, Mapping) or "key" not in item:
                raise DirectiveError(f"{kind}.records[{idx}] must be a mapping with a key")
            record[str(item["key"])] = item.get("value", "")

    # Shorthand form: a single {key, value} pair at the top level.
    if "key" in out:
        record[str(out.pop("key"))] = out.pop("value", "")
    elif "value" in out:
        raise DirectiveError(f"{kind}.value requires key")

    if record:
        # Record field names are user data: prebuilt so they are not snake_cased.
        try:
            fields = tuple((key, format_scalar(value)) for key, value in record.items())
        except DirectiveError as exc:
            raise DirectiveError(f"{kind}.records: {exc}") from exc
        out["record"] = Section("record", params=fields)
    return out


register_plugin_kind("kafka", type_name="kafka2")
register_plugin_kind("es", type_name="elasticsearch")
register_plugin_kind("stdout")
register_plugin_kind("forward")
register_plugin_kind("http")
register_plugin_kind("grep")
register_plugin_kind("elasticsearch")
register_plugin_kind("loki")
register_plugin_kind("s3")
