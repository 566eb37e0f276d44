from fluentd_config.adapters.manifest_store import ManifestObjectStore
from fluentd_config.adapters.status import LoggingStatusReporter
from fluentd_config.framework.driver import CompilationDriver
from fluentd_config.framework.errors import ListTransientError
from fluentd_config.framework.model import AGENT_KIND, CFG_KIND, CLUSTER_CFG_KIND
from fluentd_config.framework.reconciler import Reconciler, RetryPolicy


def _docs():
    return [
        {"kind": "Fluentd", "metadata": {"name": "a", "namespace": "fluent"}, "spec": {}},
        {"kind": "Fluentd", "metadata": {"name": "b", "namespace": "fluent"}, "spec": {}},
        {"kind": "ClusterFluentdConfig", "metadata": {"name": "c"}, "spec": {}},
    ]


class _FlakyStore:
    """Raises ListTransientError for the first `failures[kind]` list calls of a kind."""

    def __init__(self, inner, failures=None, on_list=None):
        self._inner = inner
        self._failures = dict(failures or {})
        self._on_list = on_list
        self.calls = []

    def list(self, kind, selector=None, namespace=None):
        self.calls.append(kind)
        if self._on_list is not None:
            self._on_list(kind)
        remaining = self._failures.get(kind, 0)
        if remaining:
            self._failures[kind] = remaining - 1
            raise ListTransientError(f"{kind} list timed out")
        return self._inner.list(kind, selector, namespace)

    def list_namespaces(self):
        return self._inner.list_namespaces()


def _reconciler(store, sleeps, max_attempts=3):
    driver = CompilationDriver(store, LoggingStatusReporter())
    retry = RetryPolicy(max_attempts=max_attempts, initial_delay_seconds=1.0, multiplier=2.0, max_delay_seconds=3.0)
    return Reconciler(store, driver, retry=retry, sleep=sleeps.append)


def test_retry_policy_delays_are_capped():
    policy = RetryPolicy(max_attempts=5, initial_delay_seconds=1.0, multiplier=2.0, max_delay_seconds=5.0)
    assert policy.delays() == [1.0, 2.0, 4.0, 5.0]
    assert RetryPolicy(max_attempts=1).delays() == []


def test_notifications_coalesce_into_one_round():
    store = _FlakyStore(ManifestObjectStore.from_documents(_docs()))
    sleeps = []
    reconciler = _reconciler(store, sleeps)

    assert reconciler.run_pending() is None
    for _ in range(5):
        reconciler.notify()
    assert reconciler.pending

    report = reconciler.run_pending()

    assert report is not None and report.ok
    assert [r.agent.name for r in report.results] == ["a", "b"]
    assert store.calls.count(AGENT_KIND) == 1
    assert reconciler.run_pending() is None
    assert sleeps == []


def test_transient_list_errors_are_retried_with_backoff():
    store = _FlakyStore(ManifestObjectStore.from_documents(_docs()), failures={AGENT_KIND: 2})
    sleeps = []
    reconciler = _reconciler(store, sleeps)

    report = reconciler.run_round()

    assert report.ok
    assert len(report.results) == 2
    assert sleeps == [1.0, 2.0]


def test_giving_up_on_agent_listing_keeps_round_pending():
    store = _FlakyStore(ManifestObjectStore.from_documents(_docs()), failures={AGENT_KIND: 10})
    sleeps = []
    reconciler = _reconciler(store, sleeps)

    report = reconciler.run_round()

    assert report.abandoned and not report.ok
    assert report.results == []
    assert sleeps == [1.0, 2.0]
    assert reconciler.pending


def test_failing_pass_does_not_block_other_agents():
    # Three failures exhaust agent "a" (3 attempts); agent "b" then lists cleanly.
    store = _FlakyStore(ManifestObjectStore.from_documents(_docs()), failures={CLUSTER_CFG_KIND: 3})
    sleeps = []
    reconciler = _reconciler(store, sleeps)

    report = reconciler.run_round()

    assert [ref.name for ref in report.failed] == ["a"]
    assert [r.agent.name for r in report.results] == ["b"]
    assert sleeps == [1.0, 2.0]
    assert reconciler.pending


def test_newer_notification_abandons_in_flight_round():
    reconciler = None
    fired = []

    def on_list(kind):
        if kind == CFG_KIND and not fired:
            fired.append(kind)
            reconciler.notify()

    store = _FlakyStore(ManifestObjectStore.from_documents(_docs()), on_list=on_list)
    sleeps = []
    reconciler = _reconciler(store, sleeps)

    report = reconciler.run_round()

    assert report.abandoned
    assert report.results == []
    assert reconciler.pending

    follow_up = reconciler.run_pending()
    assert follow_up is not None and follow_up.ok
    assert [r.agent.name for r in follow_up.results] == ["a", "b"]
