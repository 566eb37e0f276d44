from fluentkit.selectors import EVERYTHING
from fluentd_config.adapters.manifest_store import ManifestObjectStore
from fluentd_config.framework.aggregator import SCOPE_PRECEDENCE, PluginAggregator, build_route
from fluentd_config.framework.model import ConfigFragment


def _doc(kind, name, namespace=None, labels=None, spec=None):
    metadata = {"name": name, "labels": labels or {}}
    if namespace:
        metadata["namespace"] = namespace
    return {"kind": kind, "metadata": metadata, "spec": spec or {}}


def _store():
    return ManifestObjectStore.from_documents(
        [
            _doc("ClusterOutput", "c-out", labels={"sink": "x"}, spec={"outputs": [{"stdout": {}}]}),
            _doc("Output", "n-out", "app", labels={"sink": "x"}, spec={"outputs": [{"stdout": {}}, {"http": {"endpoint": "http://h"}}]}),
            _doc("Output", "other-ns", "web", labels={"sink": "x"}, spec={"outputs": [{"stdout": {}}]}),
            _doc("Filter", "n-filter", "app", labels={"f": "1"}, spec={"filters": [{"grep": {}}]}),
            _doc("ClusterFilter", "c-filter", labels={"f": "1"}, spec={"filters": [{"grep": {}}]}),
        ]
    )


def test_namespace_fragment_puts_namespace_entries_before_cluster_entries():
    assert SCOPE_PRECEDENCE == ("namespace", "cluster")
    fragment = ConfigFragment(
        kind="FluentdConfig",
        name="f",
        namespace="app",
        filter_selector={"matchLabels": {"f": "1"}},
        output_selector={"matchLabels": {"sink": "x"}},
    )

    result = PluginAggregator(_store()).aggregate(fragment, label="@l", namespaces=("app",))

    assert result.usable and result.errors == []
    assert [e.plugin_id for e in result.resources.outputs] == [
        "FluentdConfig-app-f::app::output::n-out-0",
        "FluentdConfig-app-f::app::output::n-out-1",
        "FluentdConfig-app-f::cluster::clusteroutput::c-out-0",
    ]
    assert [e.plugin_id for e in result.resources.filters] == [
        "FluentdConfig-app-f::app::filter::n-filter-0",
        "FluentdConfig-app-f::cluster::clusterfilter::c-filter-0",
    ]
    assert [e.role for e in result.resources.entries()] == ["filter", "filter", "output", "output", "output"]
    assert result.resources.outputs[0].section.name == "match"
    assert result.resources.filters[0].section.name == "filter"


def test_cluster_fragment_only_sees_cluster_resources():
    fragment = ConfigFragment(
        kind="ClusterFluentdConfig",
        name="c",
        output_selector={"matchLabels": {"sink": "x"}},
        filter_selector={"matchLabels": {"f": "none"}},
    )

    result = PluginAggregator(_store()).aggregate(fragment, label="@l", namespaces=("app", "web"))

    assert [e.source.display for e in result.resources.outputs] == ["ClusterOutput/c-out"]
    assert result.resources.filters == ()


def test_collect_is_sorted_and_scoped():
    aggregator = PluginAggregator(_store())
    assert [r.name for r in aggregator.collect("namespace", "output", EVERYTHING, namespace="app")] == ["n-out"]
    assert [r.name for r in aggregator.collect("cluster", "output", EVERYTHING, namespace="app")] == ["c-out"]


def test_malformed_selector_makes_fragment_unusable():
    fragment = ConfigFragment(
        kind="FluentdConfig",
        name="bad",
        namespace="app",
        output_selector={"matchExpressions": [{"key": "sink", "operator": "Near"}]},
    )

    result = PluginAggregator(_store()).aggregate(fragment, label="@l", namespaces=("app",))

    assert result.usable is False
    assert len(result.errors) == 1
    assert "invalid selector on FluentdConfig/app/bad" in result.errors[0]
    assert result.resources.entries() == ()


def test_directive_problems_are_reported_but_good_entries_survive():
    store = ManifestObjectStore.from_documents(
        [
            _doc(
                "Output",
                "mixed",
                "app",
                labels={"sink": "x"},
                spec={"outputs": [{"stdout": {}}, {"stdout": {"@type": "evil"}}, "bogus"]},
            )
        ]
    )
    fragment = ConfigFragment(kind="FluentdConfig", name="f", namespace="app", output_selector={})

    result = PluginAggregator(store).aggregate(fragment, label="@l", namespaces=("app",))

    assert result.usable
    assert [e.plugin_id for e in result.resources.outputs] == ["FluentdConfig-app-f::app::output::mixed-0"]
    assert len(result.errors) == 2
    assert all(err.startswith("Output/app/mixed: ") for err in result.errors)


def test_build_route_sorts_and_dedupes_criteria():
    fragment = ConfigFragment(
        kind="ClusterFluentdConfig",
        name="c",
        watched_labels={"b": "2", "a": "1"},
        watched_hosts=("n2", "n1", "n2"),
        watched_containers=("c",),
    )

    route = build_route(fragment, label="@l", namespaces=("web", "app", "web"))

    assert route.namespaces == ("app", "web")
    assert route.labels == (("a", "1"), ("b", "2"))
    assert route.hosts == ("n1", "n2")
    assert route.container_names == ("c",)
