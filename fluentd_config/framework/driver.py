"""One compilation pass for one agent.

start -> resolve fragments (cluster, then namespace) -> aggregate each -> render -> done

A pass carries no state into the next one. Everything mutable (the label registry,
the namespace snapshot, the plugin store) lives in a `PassContext` created at the
start of `run_pass` and dropped at the end.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from fluentkit.directives import DirectiveError
from fluentkit.label_registry import DuplicateLabelError, RoutingLabelRegistry, route_label_for
from fluentkit.selectors import LabelSelector, SelectorError, parse_selector

from fluentd_config.framework.aggregator import PluginAggregator
from fluentd_config.framework.errors import PassAbandoned
from fluentd_config.framework.model import (
    CFG_KIND,
    CLUSTER_CFG_KIND,
    Agent,
    ConfigFragment,
    HasErrorStatus,
    ObjectRef,
)
from fluentd_config.framework.plugin_params import directive_section
from fluentd_config.framework.ports import ArtifactPersister, ObjectStore, StatusReporter
from fluentd_config.framework.render import RenderedConfig, render
from fluentd_config.framework.scope import NamespaceScopeResolver
from fluentd_config.framework.store import GlobalPluginStore

logger = logging.getLogger(__name__)

PassOutcome = Literal["rendered", "unchanged", "agent_error"]


def artifact_owner(agent: Agent) -> ObjectRef:
    return ObjectRef("Secret", agent.namespace, f"{agent.name}-config")


@dataclass
class PassContext:
    agent: Agent
    registry: RoutingLabelRegistry
    scopes: NamespaceScopeResolver
    plugins: GlobalPluginStore = field(default_factory=GlobalPluginStore)
    errors: dict[str, str] = field(default_factory=dict)
    visited: list[ConfigFragment] = field(default_factory=list)


@dataclass
class PassResult:
    agent: ObjectRef
    outcome: PassOutcome
    rendered: RenderedConfig | None = None
    labels: tuple[str, ...] = ()
    errors: dict[str, str] = field(default_factory=dict)
    owner: ObjectRef | None = None


class CompilationDriver:
    def __init__(
        self,
        store: ObjectStore,
        reporter: StatusReporter,
        persister: ArtifactPersister | None = None,
    ) -> None:
        self._store = store
        self._reporter = reporter
        self._persister = persister
        self._aggregator = PluginAggregator(store)

    def run_pass(
        self,
        agent: Agent,
        *,
        should_abandon: Callable[[], bool] | None = None,
    ) -> PassResult:
        ctx = PassContext(
            agent=agent,
            registry=RoutingLabelRegistry(),
            scopes=NamespaceScopeResolver(self._store),
        )

        try:
            agent_selector = parse_selector(
                agent.cfg_selector, owner=agent.ref.display, path="fluentdCfgSelector"
            )
        except SelectorError as exc:
            self._report(ctx, agent, [str(exc)])
            return PassResult(agent=agent.ref, outcome="agent_error", errors=dict(ctx.errors))

        self._combine_global_inputs(ctx)

        for fragment in self._fragments(agent_selector):
            self._check_abandon(should_abandon, agent)
            ctx.visited.append(fragment)
            self._compile_fragment(ctx, fragment)

        rendered = render(ctx.plugins, agent.workers)
        self._check_abandon(should_abandon, agent)

        owner = artifact_owner(agent)
        outcome: PassOutcome = "rendered"
        if self._persister is not None:
            changed = self._persister.materialize(owner, rendered.blocks(), controller=agent.ref)
            if changed:
                logger.info(
                    "Main configuration has updated (namespace=%s, fd=%s, secret=%s)",
                    agent.namespace,
                    agent.name,
                    owner.name,
                )
            else:
                outcome = "unchanged"
                logger.debug("Configuration for %s unchanged; skipped write", agent.ref.display)

        self._clear_resolved(ctx)
        return PassResult(
            agent=agent.ref,
            outcome=outcome,
            rendered=rendered,
            labels=ctx.plugins.labels(),
            errors=dict(ctx.errors),
            owner=owner,
        )

    def _fragments(self, agent_selector: LabelSelector) -> list[ConfigFragment]:
        cluster = self._store.list(CLUSTER_CFG_KIND, agent_selector, None)
        namespaced = self._store.list(CFG_KIND, agent_selector, None)
        return sorted(cluster, key=lambda f: f.ref.sort_key()) + sorted(
            namespaced, key=lambda f: f.ref.sort_key()
        )

    def _combine_global_inputs(self, ctx: PassContext) -> None:
        agent = ctx.agent
        problems = list(agent.input_problems)
        valid = []
        for idx, directive in enumerate(agent.global_inputs):
            try:
                directive_section(directive, name="source")
            except DirectiveError as exc:
                problems.append(f"globalInputs[{idx}]: {exc}")
                continue
            valid.append(directive)
        ctx.plugins.combine_global_inputs(valid)
        if problems:
            self._report(ctx, agent, problems)

    def _compile_fragment(self, ctx: PassContext, fragment: ConfigFragment) -> None:
        owner = fragment.ref.display
        label = route_label_for(fragment.cfg_id)
        try:
            ctx.registry.register(label, owner=owner)
        except DuplicateLabelError as exc:
            logger.debug("%s", exc)
            self._report(ctx, fragment, [str(exc)])
            return

        namespaces = ctx.scopes.watched_namespaces(fragment)
        result = self._aggregator.aggregate(fragment, label=label, namespaces=namespaces)
        if result.usable:
            ctx.plugins.with_cfg_resources(label, result.route, result.resources)
        if result.errors:
            self._report(ctx, fragment, result.errors)

    def _report(self, ctx: PassContext, obj: HasErrorStatus, errors: list[str]) -> None:
        message = ",".join(errors)
        obj.set_error(message)
        ctx.errors[obj.ref.display] = message
        logger.warning("Errors on %s: %s", obj.ref.display, message)
        self._patch(obj.ref, message)

    def _clear_resolved(self, ctx: PassContext) -> None:
        """Drop errors left by earlier passes on objects this pass handled cleanly."""

        for obj in [ctx.agent, *ctx.visited]:
            if obj.ref.display not in ctx.errors:
                self._patch(obj.ref, None)

    def _patch(self, ref: ObjectRef, message: str | None) -> None:
        try:
            self._reporter.patch_error(ref, message)
        except Exception as exc:  # best-effort: status patch failures never fail the pass
            logger.warning("Failed to patch status of %s: %s", ref.display, exc)

    @staticmethod
    def _check_abandon(should_abandon: Callable[[], bool] | None, agent: Agent) -> None:
        if should_abandon is not None and should_abandon():
            raise PassAbandoned(f"pass for {agent.ref.display} superseded by a newer trigger")
