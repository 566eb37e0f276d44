"""Strict mapping reader with consumed-keys enforcement.

Used for both manifest `spec` blocks and compiler settings: every key must be read
by someone, and `assert_consumed()` reports the ones nobody asked for.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable

_MISSING = object()


def _join_path(parent: str, key: str) -> str:
    if not parent:
        return key
    return f"{parent}.{key}"


def _check_bounds(path: str, value: float, min_value: float | None, max_value: float | None) -> None:
    if min_value is not None and value < min_value:
        raise ValueError(f"{path} must be >= {min_value} (got {value})")
    if max_value is not None and value > max_value:
        raise ValueError(f"{path} must be <= {max_value} (got {value})")


@dataclass
class ConfigNamespace:
    data: Mapping[str, Any]
    path: str
    _consumed: set[str] = field(default_factory=set, init=False, repr=False)
    _children: dict[str, "ConfigNamespace"] = field(default_factory=dict, init=False, repr=False)

    def unconsumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(str(k) for k in self.data.keys() if k not in self._consumed))

    def assert_consumed(self) -> None:
        unknown = self.unconsumed_keys()
        if unknown:
            consumed = ", ".join(sorted(self._consumed)) or "<none>"
            raise ValueError(
                f"Unknown config keys under {self.path or '<root>'}: {', '.join(unknown)} "
                f"(consumed: {consumed})"
            )
        for child in self._children.values():
            child.assert_consumed()

    def _key_path(self, key: str) -> str:
        return _join_path(self.path, key)

    def _get_raw(self, key: str, *, default: Any) -> Any:
        if not isinstance(key, str) or not key.strip():
            raise TypeError("ConfigNamespace key must be a non-empty string")
        normalized = key.strip()
        if normalized in self._children:
            raise ValueError(f"{self._key_path(normalized)} already accessed as a nested namespace")
        self._consumed.add(normalized)
        raw = self.data.get(normalized)
        if raw is None:
            # Explicit null behaves like an absent key.
            if default is _MISSING:
                raise ValueError(f"Missing required config key: {self._key_path(normalized)}")
            return default
        return raw

    def namespace(self, key: str, *, required: bool = False) -> "ConfigNamespace":
        normalized = (key or "").strip()
        if not normalized:
            raise TypeError("ConfigNamespace key must be a non-empty string")
        if normalized in self._children:
            return self._children[normalized]

        child_path = self._key_path(normalized)
        self._consumed.add(normalized)
        raw = self.data.get(normalized)
        if raw is None:
            if required:
                raise ValueError(f"Missing required config namespace: {child_path}")
            raw = {}
        if not isinstance(raw, Mapping):
            raise TypeError(f"{child_path} must be a mapping (type={type(raw).__name__})")

        child = ConfigNamespace(dict(raw), path=child_path)
        self._children[normalized] = child
        return child

    def get_raw(self, key: str, *, default: Any = None) -> Any:
        """Return the unparsed value (marked consumed); for opaque sub-structures."""

        return self._get_raw(key, default=default)

    def get_bool(self, key: str, *, default: bool | object = _MISSING) -> bool:
        value = self._get_raw(key, default=default)
        if not isinstance(value, bool):
            raise TypeError(
                f"{self._key_path(key.strip())} must be a boolean (type={type(value).__name__})"
            )
        return value

    def get_int(
        self,
        key: str,
        *,
        default: int | object = _MISSING,
        min_value: int | None = None,
        max_value: int | None = None,
    ) -> int:
        value = self._get_raw(key, default=default)
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(
                f"{self._key_path(key.strip())} must be an int (type={type(value).__name__})"
            )
        _check_bounds(self._key_path(key.strip()), value, min_value, max_value)
        return int(value)

    def get_float(
        self,
        key: str,
        *,
        default: float | object = _MISSING,
        min_value: float | None = None,
        max_value: float | None = None,
    ) -> float:
        value = self._get_raw(key, default=default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(
                f"{self._key_path(key.strip())} must be a float (type={type(value).__name__})"
            )
        _check_bounds(self._key_path(key.strip()), float(value), min_value, max_value)
        return float(value)

    def get_str(
        self,
        key: str,
        *,
        default: str | None | object = _MISSING,
        allow_empty: bool = False,
        choices: Iterable[str] | None = None,
    ) -> str | None:
        raw = self._get_raw(key, default=default)
        if raw is None:
            return None
        path = self._key_path(key.strip())
        if not isinstance(raw, str):
            raise TypeError(f"{path} must be a string (type={type(raw).__name__})")
        value = raw.strip()
        if not value and not allow_empty:
            raise ValueError(f"{path} cannot be empty")
        if choices is not None:
            allowed = sorted({str(item).strip() for item in choices if str(item).strip()})
            if value not in allowed:
                raise ValueError(
                    f"{path} must be one of: {', '.join(allowed) or '<none>'} (got {value!r})"
                )
        return value

    def get_list_str(self, key: str, *, default: list[str] | object = _MISSING) -> list[str]:
        raw = self._get_raw(key, default=default)
        path = self._key_path(key.strip())
        if raw is None:
            return []
        if not isinstance(raw, (list, tuple)):
            raise TypeError(f"{path} must be a list[str] (type={type(raw).__name__})")

        items: list[str] = []
        for idx, item in enumerate(raw):
            if not isinstance(item, str):
                raise TypeError(f"{path}[{idx}] must be a string (type={type(item).__name__})")
            trimmed = item.strip()
            if not trimmed:
                raise ValueError(f"{path}[{idx}] cannot be empty")
            items.append(trimmed)
        return items

    def get_list(self, key: str, *, default: list[Any] | object = _MISSING) -> list[Any]:
        """Return a list of arbitrary items; item validation is left to the caller."""

        raw = self._get_raw(key, default=default)
        if raw is None:
            return []
        if not isinstance(raw, (list, tuple)):
            raise TypeError(
                f"{self._key_path(key.strip())} must be a list (type={type(raw).__name__})"
            )
        return list(raw)

    def get_str_mapping(
        self, key: str, *, default: Mapping[str, str] | object = _MISSING
    ) -> dict[str, str]:
        raw = self._get_raw(key, default=default)
        path = self._key_path(key.strip())
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise TypeError(f"{path} must be a mapping (type={type(raw).__name__})")
        out: dict[str, str] = {}
        for k, v in raw.items():
            if not isinstance(k, str) or not isinstance(v, str):
                raise TypeError(f"{path} must map strings to strings (bad entry: {k!r})")
            out[k] = v
        return out
