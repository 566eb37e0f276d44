import pytest

from fluentkit.directives import PluginDirective
from fluentd_config.framework.aggregator import AggregatedCfgResources, CfgRoute
from fluentd_config.framework.errors import RenderInvariantError
from fluentd_config.framework.render import (
    APP_KEY,
    BLOCK_KEYS,
    FLUENT_INCLUDE,
    FLUENTD_LOG,
    LOG_KEY,
    MAIN_KEY,
    SYSTEM_KEY,
    render,
    render_system,
)
from fluentd_config.framework.store import GlobalPluginStore


def test_fixed_blocks_are_byte_exact():
    rendered = render(GlobalPluginStore(), 1)
    assert rendered.include == (
        "# includes all files\n"
        "@include /fluentd/etc/system.conf\n"
        "@include /fluentd/etc/app.conf\n"
        "@include /fluentd/etc/log.conf\n"
    )
    assert rendered.log == (
        "# Do not collect fluentd's own logs to avoid infinite loops.\n"
        "<match **>\n"
        "\t@type null\n"
        "\t@id main-no-output\n"
        "</match>\n"
        "<label @FLUENT_LOG>\n"
        "\t<match fluent.*>\n"
        "\t\t@type null\n"
        "\t\t@id main-fluentd-log\n"
        "\t</match>\n"
        "</label>\n"
    )
    assert rendered.include == FLUENT_INCLUDE and rendered.log == FLUENTD_LOG


def test_worker_toggling_only_adds_root_dir():
    single = render_system(1)
    multi = render_system(3)

    assert single == (
        "# Enable RPC endpoint\n"
        "<system>\n"
        "\trpc_endpoint 127.0.0.1:24444\n"
        "\tlog_level info\n"
        "\tworkers 1\n"
        "</system>\n"
    )
    assert multi == (
        "# Enable RPC endpoint\n"
        "<system>\n"
        "\trpc_endpoint 127.0.0.1:24444\n"
        "\tlog_level info\n"
        "\tworkers 3\n"
        "\troot_dir /buffers\n"
        "</system>\n"
    )


@pytest.mark.parametrize("bad", [0, -1, True, "2", None])
def test_invalid_worker_counts_are_invariant_errors(bad):
    with pytest.raises(RenderInvariantError):
        render_system(bad)


def test_empty_store_renders_empty_app_block():
    rendered = render(GlobalPluginStore(), 1)
    assert rendered.main == ""
    assert list(rendered.blocks()) == list(BLOCK_KEYS) == [MAIN_KEY, SYSTEM_KEY, APP_KEY, LOG_KEY]
    assert rendered.blocks()[LOG_KEY] == FLUENTD_LOG


def test_global_inputs_render_as_sources_without_router():
    store = GlobalPluginStore()
    store.combine_global_inputs([PluginDirective("forward", {"port": 24224})])

    assert render(store, 1).main == "<source>\n  @type forward\n  port 24224\n</source>\n"


def test_labels_render_in_lexical_order_with_routes():
    store = GlobalPluginStore()
    store.with_cfg_resources("@b", CfgRoute("@b", namespaces=("app",)), AggregatedCfgResources())
    store.with_cfg_resources(
        "@a",
        CfgRoute("@a", labels=(("team", "x"),), hosts=("n1",), container_names=("c1", "c2")),
        AggregatedCfgResources(),
    )

    main = render(store, 1).main

    assert main == (
        "<match **>\n"
        "  @id main\n"
        "  @type label_router\n"
        "  <route>\n"
        "    @label @a\n"
        "    <match>\n"
        "      labels team:x\n"
        "      hosts n1\n"
        "      container_names c1,c2\n"
        "    </match>\n"
        "  </route>\n"
        "  <route>\n"
        "    @label @b\n"
        "    <match>\n"
        "      namespaces app\n"
        "    </match>\n"
        "  </route>\n"
        "</match>\n"
        "<label @a>\n"
        "</label>\n"
        "<label @b>\n"
        "</label>\n"
    )


def test_render_is_deterministic():
    def build():
        store = GlobalPluginStore()
        store.combine_global_inputs([PluginDirective("forward", {"port": 24224, "bind": "0.0.0.0"})])
        store.with_cfg_resources("@z", CfgRoute("@z"), AggregatedCfgResources())
        store.with_cfg_resources("@y", CfgRoute("@y"), AggregatedCfgResources())
        return render(store, 2)

    assert build() == build()
    assert build().digest() == build().digest()


def test_store_rejects_mismatched_route_label():
    with pytest.raises(ValueError, match=r"route label @x does not match @y"):
        GlobalPluginStore().with_cfg_resources("@y", CfgRoute("@x"), AggregatedCfgResources())


def test_unvalidated_global_input_is_an_invariant_error():
    store = GlobalPluginStore()
    store.combine_global_inputs([PluginDirective("forward", {"@id": "x"})])
    with pytest.raises(RenderInvariantError, match=r"global input 0 was not validated"):
        render(store, 1)


def test_label_without_at_prefix_is_an_invariant_error():
    store = GlobalPluginStore()
    store.with_cfg_resources("nolabel", CfgRoute("nolabel"), AggregatedCfgResources())
    with pytest.raises(RenderInvariantError, match=r"must start with '@'"):
        render(store, 1)
