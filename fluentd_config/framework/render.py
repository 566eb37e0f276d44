"""Render a `GlobalPluginStore` into the four fluentd configuration files.

`fluent.conf`, `system.conf` and `log.conf` are fixed text shared with the fluentd
image; consumers rely on these names and on the include structure byte for byte.
Only `app.conf` depends on the store.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from fluentkit.directives import DirectiveError, Section, render_sections

from fluentd_config.framework.aggregator import CfgRoute
from fluentd_config.framework.errors import RenderInvariantError
from fluentd_config.framework.plugin_params import directive_section
from fluentd_config.framework.store import GlobalPluginStore

MAIN_KEY = "fluent.conf"
SYSTEM_KEY = "system.conf"
APP_KEY = "app.conf"
LOG_KEY = "log.conf"
BLOCK_KEYS: tuple[str, ...] = (MAIN_KEY, SYSTEM_KEY, APP_KEY, LOG_KEY)

FLUENT_INCLUDE = """# includes all files
@include /fluentd/etc/system.conf
@include /fluentd/etc/app.conf
@include /fluentd/etc/log.conf
"""

RPC_ENDPOINT = "127.0.0.1:24444"
LOG_LEVEL = "info"
BUFFER_ROOT_DIR = "/buffers"

FLUENTD_LOG = """# Do not collect fluentd's own logs to avoid infinite loops.
<match **>
\t@type null
\t@id main-no-output
</match>
<label @FLUENT_LOG>
\t<match fluent.*>
\t\t@type null
\t\t@id main-fluentd-log
\t</match>
</label>
"""

ROUTER_ID = "main"


@dataclass(frozen=True)
class RenderedConfig:
    include: str
    system: str
    main: str
    log: str

    def blocks(self) -> dict[str, str]:
        return {
            MAIN_KEY: self.include,
            SYSTEM_KEY: self.system,
            APP_KEY: self.main,
            LOG_KEY: self.log,
        }

    def digest(self) -> str:
        return blocks_digest(self.blocks())


def blocks_digest(blocks: dict[str, str]) -> str:
    hasher = hashlib.sha256()
    for key in sorted(blocks):
        hasher.update(key.encode("utf-8"))
        hasher.update(b"\0")
        hasher.update(blocks[key].encode("utf-8"))
        hasher.update(b"\0")
    return hasher.hexdigest()


def render_system(worker_count: int) -> str:
    if isinstance(worker_count, bool) or not isinstance(worker_count, int) or worker_count < 1:
        raise RenderInvariantError(f"worker count must be a positive int (got {worker_count!r})")

    lines = [
        "# Enable RPC endpoint",
        "<system>",
        f"\trpc_endpoint {RPC_ENDPOINT}",
        f"\tlog_level {LOG_LEVEL}",
        f"\tworkers {worker_count}",
    ]
    if worker_count > 1:
        # Each worker needs its own buffer path; root_dir makes fluentd derive them.
        lines.append(f"\troot_dir {BUFFER_ROOT_DIR}")
    lines.append("</system>")
    return "\n".join(lines) + "\n"


def _route_section(route: CfgRoute) -> Section:
    criteria: list[tuple[str, str]] = []
    if route.namespaces:
        criteria.append(("namespaces", ",".join(route.namespaces)))
    if route.labels:
        criteria.append(("labels", ",".join(f"{k}:{v}" for k, v in route.labels)))
    if route.hosts:
        criteria.append(("hosts", ",".join(route.hosts)))
    if route.container_names:
        criteria.append(("container_names", ",".join(route.container_names)))
    return Section(
        "route",
        params=(("@label", route.label),),
        children=(Section("match", params=tuple(criteria)),),
    )


def render_main(store: GlobalPluginStore) -> str:
    sections: list[Section] = []

    for idx, directive in enumerate(store.global_inputs):
        try:
            sections.append(directive_section(directive, name="source"))
        except DirectiveError as exc:
            raise RenderInvariantError(f"global input {idx} was not validated: {exc}") from exc

    entries = store.entries()
    if entries:
        sections.append(
            Section(
                "match",
                "**",
                params=(("@id", ROUTER_ID), ("@type", "label_router")),
                children=tuple(_route_section(route) for _label, route, _res in entries),
            )
        )

    seen_ids: set[str] = set()
    for label, _route, resources in entries:
        if not label.startswith("@"):
            raise RenderInvariantError(f"routing label must start with '@': {label!r}")
        children: list[Section] = []
        for entry in resources.entries():
            if entry.plugin_id in seen_ids:
                raise RenderInvariantError(f"duplicate plugin @id: {entry.plugin_id}")
            seen_ids.add(entry.plugin_id)
            children.append(entry.section)
        sections.append(Section("label", label, children=tuple(children)))

    return render_sections(sections)


def render(store: GlobalPluginStore, worker_count: int) -> RenderedConfig:
    """Pure: the same (store, worker_count) always yields byte-identical output."""

    return RenderedConfig(
        include=FLUENT_INCLUDE,
        system=render_system(worker_count),
        main=render_main(store),
        log=FLUENTD_LOG,
    )
