import pytest

from fluentkit.directives import DirectiveError, PluginDirective, render_sections
from fluentd_config.framework import plugin_params
from fluentd_config.framework.plugin_params import (
    directive_section,
    plugin_kind,
    register_plugin_kind,
)


def _render(kind, params, **kwargs):
    return render_sections([directive_section(PluginDirective(kind, params), **kwargs)])


def test_type_names_follow_registry_or_snake_case():
    assert plugin_kind("kafka").type_name == "kafka2"
    assert plugin_kind("es").type_name == "elasticsearch"
    assert plugin_kind("stdout").type_name == "stdout"
    # Unregistered kinds still render, with the snake_cased kind as @type.
    assert plugin_kind("opensearchData").type_name == "opensearch_data"
    assert plugin_kind("recordTransformer").shape is not None


def test_directive_section_head_is_id_then_type():
    text = _render("es", {"host": "es.svc", "port": 9200}, name="match", arg="**", plugin_id="cfg::cluster::clusteroutput::es-0")
    assert text == (
        "<match **>\n"
        "  @id cfg::cluster::clusteroutput::es-0\n"
        "  @type elasticsearch\n"
        "  host es.svc\n"
        "  port 9200\n"
        "</match>\n"
    )


def test_system_params_are_renamed():
    text = _render("forward", {"logLevel": "debug", "port": 24224}, name="source")
    assert text == (
        "<source>\n"
        "  @type forward\n"
        "  @log_level debug\n"
        "  port 24224\n"
        "</source>\n"
    )


@pytest.mark.parametrize("reserved", ["@type", "@id"])
def test_reserved_params_are_rejected(reserved):
    with pytest.raises(DirectiveError, match=f"must not set {reserved}"):
        directive_section(PluginDirective("stdout", {reserved: "x"}), name="match")


def test_record_transformer_records_keep_field_names():
    text = _render(
        "recordTransformer",
        {
            "enableRuby": True,
            "records": [
                {"key": "kubernetesCluster", "value": "demo"},
                {"key": "tag", "value": "${tag}"},
            ],
        },
        name="filter",
        arg="**",
    )
    assert text == (
        "<filter **>\n"
        "  @type record_transformer\n"
        "  enable_ruby true\n"
        "  <record>\n"
        "    kubernetesCluster demo\n"
        "    tag ${tag}\n"
        "  </record>\n"
        "</filter>\n"
    )


def test_record_transformer_shorthand_key_value():
    text = _render("recordTransformer", {"key": "k", "value": "v"}, name="filter", arg="**")
    assert "  <record>\n    k v\n  </record>\n" in text


@pytest.mark.parametrize(
    ("params", "fragment"),
    [
        ({"records": "k=v"}, "records must be a list"),
        ({"records": [{"value": "v"}]}, "records[0] must be a mapping with a key"),
        ({"value": "v"}, "value requires key"),
    ],
)
def test_record_transformer_rejects_bad_records(params, fragment):
    with pytest.raises(DirectiveError) as excinfo:
        directive_section(PluginDirective("recordTransformer", params), name="filter")
    assert fragment in str(excinfo.value)


def test_register_plugin_kind_rejects_duplicates(monkeypatch):
    monkeypatch.setattr(plugin_params, "_PLUGIN_KINDS", dict(plugin_params._PLUGIN_KINDS))

    register_plugin_kind("datadogLogs", type_name="datadog")
    assert plugin_kind("datadogLogs").type_name == "datadog"
    with pytest.raises(ValueError, match=r"Duplicate plugin kind: datadogLogs"):
        register_plugin_kind("datadogLogs")


def test_module_docstring_is_exposed():
    assert plugin_params.__doc__.startswith("Directive kind conventions for fluentd.")
