from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from fluentkit.config_namespace import ConfigNamespace

from fluentd_config.framework.reconciler import RetryPolicy

OutputFormat = Literal["directory", "secret"]
OUTPUT_FORMATS: tuple[str, ...] = ("directory", "secret")
LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class OutputConfig:
    dir: str
    format: OutputFormat = "directory"


@dataclass(frozen=True)
class WatchConfig:
    poll_interval_seconds: float = 2.0


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    dir: str | None = None


@dataclass(frozen=True)
class CompilerConfig:
    manifest_paths: tuple[str, ...]
    output: OutputConfig
    retry: RetryPolicy
    watch: WatchConfig
    logging: LoggingConfig
    status_report_path: str | None = None

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> tuple["CompilerConfig", list[str]]:
        """
        Parse and validate settings, returning (CompilerConfig, warnings).

        Unknown keys are reported as warnings, or raise when `strict: true`.

        Raises:
            ValueError / TypeError: if keys are missing or invalid.
        """

        if not isinstance(cfg, Mapping):
            raise ValueError("Config must be a mapping")

        root = ConfigNamespace(dict(cfg), path="")
        strict = root.get_bool("strict", default=False)

        def normalize_path(value: str) -> str:
            return os.path.abspath(os.path.expandvars(os.path.expanduser(value)))

        manifests = root.namespace("manifests")
        manifest_paths = tuple(normalize_path(p) for p in manifests.get_list_str("paths", default=[]))

        output_ns = root.namespace("output")
        output = OutputConfig(
            dir=normalize_path(output_ns.get_str("dir", default="rendered") or "rendered"),
            format=output_ns.get_str("format", default="directory", choices=OUTPUT_FORMATS),  # type: ignore[arg-type]
        )

        retry_ns = root.namespace("retry")
        retry = RetryPolicy(
            max_attempts=retry_ns.get_int("max_attempts", default=5, min_value=1),
            initial_delay_seconds=retry_ns.get_float("initial_delay_seconds", default=1.0, min_value=0.0),
            multiplier=retry_ns.get_float("multiplier", default=2.0, min_value=1.0),
            max_delay_seconds=retry_ns.get_float("max_delay_seconds", default=30.0, min_value=0.0),
        )

        watch_ns = root.namespace("watch")
        poll = watch_ns.get_float("poll_interval_seconds", default=2.0)
        if poll <= 0:
            raise ValueError(f"watch.poll_interval_seconds must be > 0 (got {poll})")

        logging_ns = root.namespace("logging")
        level = (logging_ns.get_str("level", default="INFO") or "INFO").upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of: {', '.join(LOG_LEVELS)} (got {level!r})")
        log_dir = logging_ns.get_str("dir", default=None)

        status_ns = root.namespace("status")
        report_path = status_ns.get_str("report_path", default=None)

        warnings: list[str] = []
        unknown: list[str] = []
        for ns in (root, manifests, output_ns, retry_ns, watch_ns, logging_ns, status_ns):
            unknown.extend(f"{ns.path}.{key}" if ns.path else key for key in ns.unconsumed_keys())
        if unknown:
            if strict:
                raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
            warnings.append(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")

        return (
            CompilerConfig(
                manifest_paths=manifest_paths,
                output=output,
                retry=retry,
                watch=WatchConfig(poll_interval_seconds=poll),
                logging=LoggingConfig(level=level, dir=normalize_path(log_dir) if log_dir else None),
                status_report_path=normalize_path(report_path) if report_path else None,
            ),
            warnings,
        )
