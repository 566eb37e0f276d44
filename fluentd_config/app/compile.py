"""Entry points that wire adapters, driver and reconciler together."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

from fluentkit.label_registry import route_label_for
from fluentkit.selectors import SelectorError, parse_selector

from fluentd_config.adapters.manifest_store import ManifestObjectStore, ManifestPathStore
from fluentd_config.adapters.persistence import DirectoryArtifactWriter, SecretManifestWriter
from fluentd_config.adapters.status import LoggingStatusReporter
from fluentd_config.framework.config import CompilerConfig, OutputConfig
from fluentd_config.framework.driver import CompilationDriver, PassResult
from fluentd_config.framework.model import AGENT_KIND, CFG_KIND, CLUSTER_CFG_KIND, Agent
from fluentd_config.framework.ports import ArtifactPersister
from fluentd_config.framework.reconciler import Reconciler, RoundReport
from fluentd_config.framework.scope import NamespaceScopeResolver

logger = logging.getLogger(__name__)


def build_persister(output: OutputConfig) -> ArtifactPersister:
    if output.format == "secret":
        return SecretManifestWriter(output.dir)
    return DirectoryArtifactWriter(output.dir)


def _select_agents(store: ManifestObjectStore, agent: str | None) -> list[Agent]:
    agents = list(store.list(AGENT_KIND))
    if agent is None:
        return agents
    namespace, _, name = agent.rpartition("/")
    picked = [a for a in agents if a.name == name and (not namespace or a.namespace == namespace)]
    if not picked:
        available = ", ".join(f"{a.namespace}/{a.name}" for a in agents) or "<none>"
        raise ValueError(f"Unknown agent: {agent} (available: {available})")
    return picked


def render_manifests(paths: Sequence[str], *, agent: str | None = None) -> list[PassResult]:
    """Run one pass per agent without persisting anything."""

    store = ManifestObjectStore.from_paths(paths)
    driver = CompilationDriver(store, LoggingStatusReporter(store))
    return [driver.run_pass(a) for a in _select_agents(store, agent)]


def compile_once(config: CompilerConfig, *, sleep: Callable[[float], None] = time.sleep) -> RoundReport:
    store = ManifestObjectStore.from_paths(config.manifest_paths)
    reporter = LoggingStatusReporter(store)
    driver = CompilationDriver(store, reporter, build_persister(config.output))
    reconciler = Reconciler(store, driver, retry=config.retry, sleep=sleep)

    report = reconciler.run_round()
    if config.status_report_path:
        reporter.write_report(config.status_report_path)

    logger.info(
        "Compiled %d agent(s): %d written, %d unchanged, %d failed",
        len(report.results) + len(report.failed),
        sum(1 for r in report.results if r.outcome == "rendered"),
        sum(1 for r in report.results if r.outcome == "unchanged"),
        len(report.failed) + sum(1 for r in report.results if r.outcome == "agent_error"),
    )
    return report


def watch(
    config: CompilerConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
    max_polls: int | None = None,
) -> int:
    """Poll the manifest paths and run a coalesced round whenever something changed."""

    store = ManifestPathStore(config.manifest_paths)
    reporter = LoggingStatusReporter(store)
    driver = CompilationDriver(store, reporter, build_persister(config.output))
    reconciler = Reconciler(store, driver, retry=config.retry, sleep=sleep)

    polls = 0
    rounds = 0
    try:
        while max_polls is None or polls < max_polls:
            polls += 1
            for path in store.poll_changes():
                logger.debug("Changed: %s", path)
                reconciler.notify()
            if reconciler.pending:
                reporter.reset()
            report = reconciler.run_pending()
            if report is not None:
                rounds += 1
                if config.status_report_path:
                    reporter.write_report(config.status_report_path)
            sleep(config.watch.poll_interval_seconds)
    except KeyboardInterrupt:
        logger.info("Watch interrupted after %d round(s)", rounds)
    return rounds


def describe_fragments(paths: Sequence[str]) -> list[dict[str, Any]]:
    """Which fragments each agent selects, with routing labels and watched namespaces."""

    store = ManifestObjectStore.from_paths(paths)
    rows: list[dict[str, Any]] = []
    for agent in store.list(AGENT_KIND):
        try:
            selector = parse_selector(agent.cfg_selector, owner=agent.ref.display, path="fluentdCfgSelector")
        except SelectorError as exc:
            rows.append({"agent": agent.ref.display, "error": str(exc)})
            continue
        scopes = NamespaceScopeResolver(store)
        for kind in (CLUSTER_CFG_KIND, CFG_KIND):
            for fragment in store.list(kind, selector):
                rows.append(
                    {
                        "agent": agent.ref.display,
                        "fragment": fragment.ref.display,
                        "label": route_label_for(fragment.cfg_id),
                        "namespaces": list(scopes.watched_namespaces(fragment)),
                    }
                )
    return rows
