"""Level-triggered scheduling of compilation passes.

Notifications only mark work as pending; however many arrive before the next
`run_pending()`, they collapse into one round that recomputes every agent from the
current store contents.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from fluentd_config.framework.driver import CompilationDriver, PassResult
from fluentd_config.framework.errors import ListTransientError, PassAbandoned
from fluentd_config.framework.model import AGENT_KIND, Agent, ObjectRef
from fluentd_config.framework.ports import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    initial_delay_seconds: float = 1.0
    multiplier: float = 2.0
    max_delay_seconds: float = 30.0

    def delays(self) -> list[float]:
        """Sleep before each retry (one fewer than attempts)."""

        out: list[float] = []
        delay = self.initial_delay_seconds
        for _ in range(max(0, self.max_attempts - 1)):
            out.append(min(delay, self.max_delay_seconds))
            delay *= self.multiplier
        return out


@dataclass
class RoundReport:
    results: list[PassResult] = field(default_factory=list)
    failed: list[ObjectRef] = field(default_factory=list)
    abandoned: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and not self.abandoned


class Reconciler:
    def __init__(
        self,
        store: ObjectStore,
        driver: CompilationDriver,
        *,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._driver = driver
        self._retry = retry or RetryPolicy()
        self._sleep = sleep
        self._generation = 0
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def notify(self, ref: ObjectRef | None = None) -> None:
        self._generation += 1
        self._pending = True
        logger.debug("Change notification %s (generation=%d)", ref.display if ref else "<any>", self._generation)

    def run_pending(self) -> RoundReport | None:
        if not self._pending:
            return None
        return self.run_round()

    def run_round(self) -> RoundReport:
        generation = self._generation
        self._pending = False
        report = RoundReport()

        def superseded() -> bool:
            return self._generation != generation

        try:
            agents = self._with_retry("list agents", lambda: self._list_agents())
        except ListTransientError:
            self._pending = True
            report.abandoned = True
            return report

        for agent in agents:
            try:
                result = self._with_retry(
                    agent.ref.display,
                    lambda agent=agent: self._driver.run_pass(agent, should_abandon=superseded),
                )
            except PassAbandoned as exc:
                logger.info("%s; rescheduling", exc)
                self._pending = True
                report.abandoned = True
                return report
            except ListTransientError:
                # Keep the round pending so the next run tries this agent again.
                self._pending = True
                report.failed.append(agent.ref)
                continue
            report.results.append(result)

        return report

    def _list_agents(self) -> list[Agent]:
        return sorted(self._store.list(AGENT_KIND, None, None), key=lambda a: a.ref.sort_key())

    def _with_retry(self, what: str, fn):
        delays = self._retry.delays()
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn()
            except ListTransientError as exc:
                if attempt > len(delays):
                    logger.error("Giving up on %s after %d attempt(s): %s", what, attempt, exc)
                    raise
                delay = delays[attempt - 1]
                logger.warning(
                    "Transient store error for %s (attempt %d/%d): %s; retrying in %.1fs",
                    what,
                    attempt,
                    self._retry.max_attempts,
                    exc,
                    delay,
                )
                self._sleep(delay)
