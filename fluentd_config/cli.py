from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from .framework.render import BLOCK_KEYS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fluentd-config-compiler", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render agent configuration to stdout")
    render.add_argument("--manifests", nargs="+", required=True, help="Manifest files or directories")
    render.add_argument("--agent", default=None, help="Only this agent (NAME or NAMESPACE/NAME)")
    render.add_argument("--block", choices=BLOCK_KEYS, default=None, help="Only print this block")

    for name, help_text in (
        ("compile", "Compile every agent once and persist the artifacts"),
        ("watch", "Recompile whenever the manifests change"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--config", default=None, help="Settings YAML (overrides config/config.yaml)")
        cmd.add_argument("--manifests", nargs="+", default=None, help="Manifest files or directories")
        cmd.add_argument("--out", default=None, help="Output directory")
        cmd.add_argument("--format", choices=("directory", "secret"), default=None)

    fragments = sub.add_parser("list-fragments", help="List the fragments each agent selects")
    fragments.add_argument("--manifests", nargs="+", required=True)

    return parser


def _load_settings(args: argparse.Namespace):
    from .foundation.config_io import load_config
    from .foundation.logging_utils import setup_operational_logger
    from .framework.config import CompilerConfig

    cfg_dict, _meta = load_config(config_path=args.config)
    overrides: dict = {}
    if args.manifests:
        overrides.setdefault("manifests", {})["paths"] = list(args.manifests)
    if args.out:
        overrides.setdefault("output", {})["dir"] = args.out
    if args.format:
        overrides.setdefault("output", {})["format"] = args.format
    for section, values in overrides.items():
        merged = dict(cfg_dict.get(section) or {})
        merged.update(values)
        cfg_dict[section] = merged

    config, warnings = CompilerConfig.from_dict(cfg_dict)
    logger, _log_file = setup_operational_logger(config.logging.level, config.logging.dir)
    for warning in warnings:
        logger.warning("%s", warning)
    if not config.manifest_paths:
        raise ValueError("No manifest paths configured (manifests.paths or --manifests)")
    return config


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    if args.command == "render":
        from .app.compile import render_manifests

        results = render_manifests(args.manifests, agent=args.agent)
        for result in results:
            if result.rendered is None:
                print(f"# {result.agent.display}: {result.errors.get(result.agent.display, result.outcome)}", file=sys.stderr)
                continue
            blocks = result.rendered.blocks()
            keys = [args.block] if args.block else list(BLOCK_KEYS)
            for key in keys:
                print(f"# ---- {result.agent.display} {key} ----")
                sys.stdout.write(blocks[key])
        return 0 if all(r.outcome != "agent_error" for r in results) else 1

    if args.command == "compile":
        from .app.compile import compile_once

        report = compile_once(_load_settings(args))
        failed = report.failed or any(r.outcome == "agent_error" for r in report.results)
        return 1 if failed else 0

    if args.command == "watch":
        from .app.compile import watch

        watch(_load_settings(args))
        return 0

    if args.command == "list-fragments":
        from .app.compile import describe_fragments

        for row in describe_fragments(args.manifests):
            if "error" in row:
                print(f"{row['agent']}\tERROR\t{row['error']}")
                continue
            namespaces = ",".join(row["namespaces"]) or "<none>"
            print(f"{row['agent']}\t{row['fragment']}\t{row['label']}\t{namespaces}")
        return 0

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
