"""Collect the filter/output directives a fragment selects.

For one fragment the aggregator lists matching plugin resources at each scope,
turns every directive into a pre-validated fluentd section, and concatenates them
with namespace-scope entries ahead of cluster-scope entries. Cluster fragments only
ever see cluster-scope resources.

Errors that belong to the fragment (bad selectors, malformed directives) are
returned, not raised. A `ListTransientError` from the store propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from fluentkit.directives import DirectiveError, PluginDirective, Section
from fluentkit.selectors import LabelSelector, SelectorError, parse_selector

from fluentd_config.framework.model import (
    PLUGIN_KINDS,
    ConfigFragment,
    ObjectRef,
    PluginResource,
    Role,
    Scope,
)
from fluentd_config.framework.plugin_params import directive_section
from fluentd_config.framework.ports import ObjectStore

logger = logging.getLogger(__name__)

# Earlier scopes take match precedence in the rendered label section.
SCOPE_PRECEDENCE: tuple[Scope, ...] = ("namespace", "cluster")
ROLES: tuple[Role, ...] = ("filter", "output")
_SECTION_NAMES: dict[Role, str] = {"filter": "filter", "output": "match"}


@dataclass(frozen=True)
class PluginEntry:
    plugin_id: str
    role: Role
    directive: PluginDirective
    source: ObjectRef
    section: Section


@dataclass(frozen=True)
class AggregatedCfgResources:
    filters: tuple[PluginEntry, ...] = ()
    outputs: tuple[PluginEntry, ...] = ()

    def entries(self) -> tuple[PluginEntry, ...]:
        return self.filters + self.outputs


@dataclass(frozen=True)
class CfgRoute:
    """Match criteria the label router uses to send records to one label."""

    label: str
    namespaces: tuple[str, ...] = ()
    labels: tuple[tuple[str, str], ...] = ()
    hosts: tuple[str, ...] = ()
    container_names: tuple[str, ...] = ()


@dataclass
class AggregationResult:
    route: CfgRoute
    resources: AggregatedCfgResources = field(default_factory=AggregatedCfgResources)
    errors: list[str] = field(default_factory=list)
    usable: bool = True


def build_route(fragment: ConfigFragment, *, label: str, namespaces: tuple[str, ...]) -> CfgRoute:
    return CfgRoute(
        label=label,
        namespaces=tuple(sorted(set(namespaces))),
        labels=tuple(sorted(fragment.watched_labels.items())),
        hosts=tuple(sorted(set(fragment.watched_hosts))),
        container_names=tuple(sorted(set(fragment.watched_containers))),
    )


class PluginAggregator:
    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    def collect(
        self,
        scope: Scope,
        role: Role,
        selector: LabelSelector,
        *,
        namespace: str | None = None,
    ) -> list[PluginResource]:
        """List one (scope, role) kind, sorted by identity."""

        kind = PLUGIN_KINDS[(scope, role)]
        listed = self._store.list(kind, selector, namespace if scope == "namespace" else None)
        return sorted(listed, key=lambda res: res.ref.sort_key())

    def aggregate(
        self,
        fragment: ConfigFragment,
        *,
        label: str,
        namespaces: tuple[str, ...],
    ) -> AggregationResult:
        result = AggregationResult(route=build_route(fragment, label=label, namespaces=namespaces))
        owner = fragment.ref.display

        selectors: dict[Role, LabelSelector] = {}
        raw: dict[Role, Any] = {"filter": fragment.filter_selector, "output": fragment.output_selector}
        try:
            for role in ROLES:
                selectors[role] = parse_selector(raw[role], owner=owner, path=f"{role}Selector")
        except SelectorError as exc:
            result.errors.append(str(exc))
            result.usable = False
            return result

        scopes = SCOPE_PRECEDENCE if fragment.scope == "namespace" else ("cluster",)
        collected: dict[Role, list[PluginEntry]] = {role: [] for role in ROLES}
        for role in ROLES:
            for scope in scopes:
                for resource in self.collect(scope, role, selectors[role], namespace=fragment.namespace):
                    collected[role].extend(self._entries_for(fragment, role, resource, result.errors))

        result.resources = AggregatedCfgResources(
            filters=tuple(collected["filter"]),
            outputs=tuple(collected["output"]),
        )
        logger.debug(
            "Aggregated %s: %d filter(s), %d output(s)",
            owner,
            len(result.resources.filters),
            len(result.resources.outputs),
        )
        return result

    def _entries_for(
        self,
        fragment: ConfigFragment,
        role: Role,
        resource: PluginResource,
        errors: list[str],
    ) -> list[PluginEntry]:
        errors.extend(f"{resource.ref.display}: {problem}" for problem in resource.problems)

        scope_name = "cluster" if resource.scope == "cluster" else str(resource.namespace)
        entries: list[PluginEntry] = []
        for idx, directive in enumerate(resource.directives):
            plugin_id = f"{fragment.cfg_id}::{scope_name}::{resource.kind.lower()}::{resource.name}-{idx}"
            try:
                section = directive_section(
                    directive, name=_SECTION_NAMES[role], arg="**", plugin_id=plugin_id
                )
            except DirectiveError as exc:
                errors.append(f"{resource.ref.display}: {exc}")
                continue
            entries.append(
                PluginEntry(
                    plugin_id=plugin_id,
                    role=role,
                    directive=directive,
                    source=resource.ref,
                    section=section,
                )
            )
        return entries
