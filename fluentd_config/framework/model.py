"""Typed views over the fluentd.fluent.io objects the compiler reads.

Objects are built from plain manifest documents (`from_document`). Selectors are
kept raw so that a malformed selector surfaces during a pass, against the object
that carries it, instead of failing the whole load.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, TypeAlias, runtime_checkable

from fluentkit.config_namespace import ConfigNamespace
from fluentkit.directives import DirectiveError, PluginDirective

from fluentd_config.framework.errors import ManifestError

logger = logging.getLogger(__name__)

API_GROUP = "fluentd.fluent.io"
API_VERSION = f"{API_GROUP}/v1alpha1"

AGENT_KIND = "Fluentd"
CLUSTER_CFG_KIND = "ClusterFluentdConfig"
CFG_KIND = "FluentdConfig"
CLUSTER_FILTER_KIND = "ClusterFilter"
FILTER_KIND = "Filter"
CLUSTER_OUTPUT_KIND = "ClusterOutput"
OUTPUT_KIND = "Output"
NAMESPACE_KIND = "Namespace"

Scope = Literal["cluster", "namespace"]
Role = Literal["filter", "output"]

CLUSTER_KINDS = frozenset({CLUSTER_CFG_KIND, CLUSTER_FILTER_KIND, CLUSTER_OUTPUT_KIND, NAMESPACE_KIND})

# (scope, role) -> kind; the aggregator lists plugin resources through this table.
PLUGIN_KINDS: Mapping[tuple[Scope, Role], str] = {
    ("cluster", "filter"): CLUSTER_FILTER_KIND,
    ("cluster", "output"): CLUSTER_OUTPUT_KIND,
    ("namespace", "filter"): FILTER_KIND,
    ("namespace", "output"): OUTPUT_KIND,
}
_ROLE_FIELDS: Mapping[Role, str] = {"filter": "filters", "output": "outputs"}


@dataclass(frozen=True)
class ObjectRef:
    kind: str
    namespace: str | None
    name: str

    @property
    def display(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"

    def sort_key(self) -> tuple[str, str, str]:
        return (self.kind, self.namespace or "", self.name)

    def __str__(self) -> str:
        return self.display


@runtime_checkable
class HasErrorStatus(Protocol):
    ref: ObjectRef

    def set_error(self, message: str | None) -> None: ...


@dataclass
class _StatusMixin:
    error: str | None = field(default=None, init=False)

    def set_error(self, message: str | None) -> None:
        self.error = message or None


@dataclass
class Agent(_StatusMixin):
    name: str = ""
    namespace: str = "default"
    labels: Mapping[str, str] = field(default_factory=dict)
    global_inputs: tuple[PluginDirective, ...] = ()
    input_problems: tuple[str, ...] = ()
    workers: int = 1
    cfg_selector: Any = None

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(AGENT_KIND, self.namespace, self.name)


@dataclass
class ConfigFragment(_StatusMixin):
    kind: str = CFG_KIND
    name: str = ""
    namespace: str | None = None
    labels: Mapping[str, str] = field(default_factory=dict)
    filter_selector: Any = None
    output_selector: Any = None
    watched_namespaces: tuple[str, ...] = ()
    watched_labels: Mapping[str, str] = field(default_factory=dict)
    watched_hosts: tuple[str, ...] = ()
    watched_containers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in (CLUSTER_CFG_KIND, CFG_KIND):
            raise ValueError(f"ConfigFragment.kind must be {CLUSTER_CFG_KIND} or {CFG_KIND}")
        if self.kind == CFG_KIND and not self.namespace:
            raise ValueError(f"{CFG_KIND} {self.name} requires a namespace")
        if self.kind == CLUSTER_CFG_KIND:
            self.namespace = None

    @property
    def scope(self) -> Scope:
        return "cluster" if self.kind == CLUSTER_CFG_KIND else "namespace"

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(self.kind, self.namespace, self.name)

    @property
    def cfg_id(self) -> str:
        if self.scope == "cluster":
            return f"{self.kind}-cluster-{self.name}"
        return f"{self.kind}-{self.namespace}-{self.name}"


@dataclass(frozen=True)
class PluginResource:
    kind: str
    name: str
    namespace: str | None = None
    labels: Mapping[str, str] = field(default_factory=dict)
    directives: tuple[PluginDirective, ...] = ()
    problems: tuple[str, ...] = ()

    @property
    def scope(self) -> Scope:
        return "cluster" if self.kind in CLUSTER_KINDS else "namespace"

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(self.kind, self.namespace, self.name)


@dataclass(frozen=True)
class Namespace:
    name: str
    labels: Mapping[str, str] = field(default_factory=dict)
    namespace: str | None = None

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(NAMESPACE_KIND, None, self.name)


ObjectView: TypeAlias = Agent | ConfigFragment | PluginResource | Namespace


def parse_directives(items: list[Any], *, path: str) -> tuple[tuple[PluginDirective, ...], tuple[str, ...]]:
    """Parse directive items; malformed items become problem strings, the rest survive."""

    good: list[PluginDirective] = []
    problems: list[str] = []
    for idx, item in enumerate(items):
        try:
            good.append(PluginDirective.from_item(item, path=f"{path}[{idx}]"))
        except DirectiveError as exc:
            problems.append(str(exc))
    return tuple(good), tuple(problems)


def _metadata(doc: Mapping[str, Any], *, kind: str) -> tuple[str, str | None, dict[str, str]]:
    meta = doc.get("metadata")
    if not isinstance(meta, Mapping):
        raise ManifestError(f"{kind} document is missing metadata")
    name = meta.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(f"{kind} document has no metadata.name")

    namespace = meta.get("namespace")
    if kind in CLUSTER_KINDS:
        namespace = None
    elif namespace is None:
        namespace = "default"
    elif not isinstance(namespace, str) or not namespace.strip():
        raise ManifestError(f"{kind}/{name} has an invalid metadata.namespace")

    labels = meta.get("labels") or {}
    if not isinstance(labels, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in labels.items()
    ):
        raise ManifestError(f"{kind}/{name} metadata.labels must map strings to strings")
    return name.strip(), namespace.strip() if namespace else None, dict(labels)


def _ignore_unconsumed(spec: ConfigNamespace, *, owner: str) -> None:
    leftover = spec.unconsumed_keys()
    if leftover:
        logger.debug("Ignoring spec fields on %s: %s", owner, ", ".join(leftover))


def from_document(doc: Mapping[str, Any]) -> ObjectView | None:
    """Build a typed object from one manifest document; unknown kinds return None."""

    if not isinstance(doc, Mapping):
        raise ManifestError(f"manifest document must be a mapping (type={type(doc).__name__})")
    kind = doc.get("kind")
    if not isinstance(kind, str):
        raise ManifestError("manifest document has no kind")

    if kind == NAMESPACE_KIND:
        name, _ns, labels = _metadata(doc, kind=kind)
        return Namespace(name=name, labels=labels)

    if kind not in (AGENT_KIND, CLUSTER_CFG_KIND, CFG_KIND, *PLUGIN_KINDS.values()):
        return None

    name, namespace, labels = _metadata(doc, kind=kind)
    owner = f"{kind}/{namespace}/{name}" if namespace else f"{kind}/{name}"
    raw_spec = doc.get("spec") or {}
    if not isinstance(raw_spec, Mapping):
        raise ManifestError(f"{owner} spec must be a mapping")
    spec = ConfigNamespace(dict(raw_spec), path=f"{owner}.spec")

    try:
        if kind == AGENT_KIND:
            inputs, problems = parse_directives(spec.get_list("globalInputs", default=[]), path="globalInputs")
            return Agent(
                name=name,
                namespace=namespace or "default",
                labels=labels,
                global_inputs=inputs,
                input_problems=problems,
                workers=spec.get_int("workers", default=1, min_value=1),
                cfg_selector=spec.get_raw("fluentdCfgSelector", default=None),
            )

        if kind in (CLUSTER_CFG_KIND, CFG_KIND):
            fragment = ConfigFragment(
                kind=kind,
                name=name,
                namespace=namespace,
                labels=labels,
                filter_selector=spec.get_raw("filterSelector", default=None),
                output_selector=spec.get_raw("outputSelector", default=None),
                watched_namespaces=tuple(spec.get_list_str("watchedNamespaces", default=[])),
                watched_labels=spec.get_str_mapping("watchedLabels", default={}),
                watched_hosts=tuple(spec.get_list_str("watchedHosts", default=[])),
                watched_containers=tuple(spec.get_list_str("watchedContainers", default=[])),
            )
            if kind == CFG_KIND and fragment.watched_namespaces:
                logger.debug("Ignoring watchedNamespaces on namespaced %s", owner)
            _ignore_unconsumed(spec, owner=owner)
            return fragment

        role: Role = "filter" if kind in (CLUSTER_FILTER_KIND, FILTER_KIND) else "output"
        field_name = _ROLE_FIELDS[role]
        directives, problems = parse_directives(
            spec.get_list(field_name, default=[]), path=f"{owner}.{field_name}"
        )
        _ignore_unconsumed(spec, owner=owner)
        return PluginResource(
            kind=kind,
            name=name,
            namespace=namespace,
            labels=labels,
            directives=directives,
            problems=problems,
        )
    except (TypeError, ValueError) as exc:
        raise ManifestError(f"{owner}: {exc}") from exc
