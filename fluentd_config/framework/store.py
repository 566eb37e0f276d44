from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from fluentkit.directives import PluginDirective

from fluentd_config.framework.aggregator import AggregatedCfgResources, CfgRoute


@dataclass
class GlobalPluginStore:
    """Everything one agent's `app.conf` is rendered from.

    Holds the agent's global inputs plus, per accepted routing label, the route and
    the aggregated filter/output entries. Labels are read back in lexical order so
    repeated renders of the same input are byte-identical.
    """

    name: str = "main"
    _inputs: list[PluginDirective] = field(default_factory=list)
    _cfgs: dict[str, tuple[CfgRoute, AggregatedCfgResources]] = field(default_factory=dict)

    def combine_global_inputs(self, directives: Iterable[PluginDirective]) -> None:
        self._inputs.extend(directives)

    def with_cfg_resources(self, label: str, route: CfgRoute, resources: AggregatedCfgResources) -> None:
        if route.label != label:
            raise ValueError(f"route label {route.label} does not match {label}")
        self._cfgs[label] = (route, resources)

    @property
    def global_inputs(self) -> tuple[PluginDirective, ...]:
        return tuple(self._inputs)

    def labels(self) -> tuple[str, ...]:
        return tuple(sorted(self._cfgs.keys()))

    def entries(self) -> list[tuple[str, CfgRoute, AggregatedCfgResources]]:
        return [(label, *self._cfgs[label]) for label in self.labels()]
