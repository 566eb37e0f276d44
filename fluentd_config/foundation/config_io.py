from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV_VAR = "FLUENTD_CONFIG_COMPILER_CONFIG"
MANIFEST_SUFFIXES = (".yaml", ".yml")


def find_repo_root(start: str | os.PathLike[str] | None = None) -> str:
    start_path = Path(start or os.getcwd()).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    for candidate in (start_path, *start_path.parents):
        if (candidate / "pyproject.toml").is_file() or (candidate / ".git").exists():
            return str(candidate)

    raise FileNotFoundError(
        f"Cannot locate repo root: searched from {start_path} for pyproject.toml, .git"
    )


def _load_yaml_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def _deep_merge(base: Any, overlay: Any, *, path: str) -> Any:
    if overlay is None:
        return None
    if base is None:
        return overlay

    if isinstance(base, Mapping):
        if not isinstance(overlay, Mapping):
            raise ValueError(
                f"Invalid config overlay merge at {path}: base is mapping but overlay is {type(overlay).__name__}"
            )
        merged: dict[str, Any] = dict(base)
        for key, overlay_value in overlay.items():
            next_path = f"{path}.{key}" if path else str(key)
            merged[key] = (
                _deep_merge(base[key], overlay_value, path=next_path) if key in base else overlay_value
            )
        return merged

    if isinstance(base, (list, tuple)):
        if not isinstance(overlay, (list, tuple)):
            raise ValueError(
                f"Invalid config overlay merge at {path}: base is list but overlay is {type(overlay).__name__}"
            )
        return list(overlay)

    if isinstance(overlay, (Mapping, list, tuple)):
        raise ValueError(
            f"Invalid config overlay merge at {path}: base is {type(base).__name__} but overlay is {type(overlay).__name__}"
        )
    return overlay


def load_config(
    *,
    config_path: str | None = None,
    env_var: str = CONFIG_ENV_VAR,
    config_dir: str | None = None,
    start_dir: str | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load compiler settings, returning (config mapping, load metadata).

    An explicit `config_path` or the env var loads that single file. Otherwise
    `config/config.yaml` under the repo root is loaded and `config/config.local.yaml`
    (when present) is deep-merged over it.
    """

    explicit_path = None
    if config_path is not None:
        explicit_path = str(config_path).strip() or None
    elif env_var:
        explicit_path = os.environ.get(env_var, "").strip() or None

    if explicit_path:
        expanded = os.path.abspath(os.path.expandvars(os.path.expanduser(explicit_path)))
        meta = {
            "mode": "explicit" if config_path is not None else "env",
            "paths": [expanded],
            "env_var": env_var,
            "repo_root": None,
        }
        return _load_yaml_mapping(expanded), meta

    repo_root: str | None = None
    if config_dir is None:
        repo_root = find_repo_root(start_dir)
        config_dir = os.path.join(repo_root, "config")
    base_path = os.path.join(config_dir, "config.yaml")
    local_path = os.path.join(config_dir, "config.local.yaml")

    if not os.path.exists(base_path):
        raise FileNotFoundError(f"Missing base config file: {base_path}")

    cfg = _load_yaml_mapping(base_path)
    loaded = [os.path.abspath(base_path)]
    mode = "base"
    if os.path.exists(local_path):
        cfg = _deep_merge(cfg, _load_yaml_mapping(local_path), path="")
        loaded.append(os.path.abspath(local_path))
        mode = "base+local"

    return cfg, {"mode": mode, "paths": loaded, "env_var": env_var, "repo_root": repo_root}


def expand_manifest_paths(paths: Iterable[str]) -> list[str]:
    """Expand directories into their YAML files (recursively, sorted)."""

    out: list[str] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            out.extend(
                str(p) for p in sorted(path.rglob("*")) if p.is_file() and p.suffix in MANIFEST_SUFFIXES
            )
        elif path.is_file():
            out.append(str(path))
        else:
            raise FileNotFoundError(f"Manifest path does not exist: {raw}")
    return out


def load_manifest_documents(paths: Iterable[str]) -> list[dict[str, Any]]:
    """Load every YAML document from the given files/directories, skipping empty ones."""

    docs: list[dict[str, Any]] = []
    for file_path in expand_manifest_paths(paths):
        try:
            with open(file_path, "r", encoding="utf-8") as handle:
                loaded = list(yaml.safe_load_all(handle))
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {file_path}: {exc}") from exc

        for idx, doc in enumerate(loaded):
            if doc is None:
                continue
            if not isinstance(doc, Mapping):
                raise ValueError(f"Manifest document {idx} in {file_path} must be a mapping")
            if doc.get("kind") == "List" and isinstance(doc.get("items"), list):
                docs.extend(dict(item) for item in doc["items"] if isinstance(item, Mapping))
                continue
            docs.append(dict(doc))
    return docs
