"""Reusable configuration-composition kernel.

This package is intentionally independent of `fluentd_config.*`. Object kinds,
manifest field names, status reporting and artifact layout belong to the consuming
application.
"""

from fluentkit.config_namespace import ConfigNamespace
from fluentkit.directives import (
    DirectiveError,
    PluginDirective,
    Section,
    body_from_params,
    format_scalar,
    render_sections,
    to_snake_case,
)
from fluentkit.label_registry import DuplicateLabelError, RoutingLabelRegistry, route_label_for
from fluentkit.selectors import EVERYTHING, LabelSelector, Requirement, SelectorError, parse_selector, select

__all__ = [
    "ConfigNamespace",
    "DirectiveError",
    "DuplicateLabelError",
    "EVERYTHING",
    "LabelSelector",
    "PluginDirective",
    "Requirement",
    "RoutingLabelRegistry",
    "Section",
    "SelectorError",
    "body_from_params",
    "format_scalar",
    "parse_selector",
    "render_sections",
    "route_label_for",
    "select",
    "to_snake_case",
]
