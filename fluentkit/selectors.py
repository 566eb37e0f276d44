"""Label selector parsing and evaluation.

Selectors use the Kubernetes `LabelSelector` shape:

    matchLabels: {key: value, ...}
    matchExpressions:
      - {key: ..., operator: In|NotIn|Exists|DoesNotExist, values: [...]}

A missing or empty selector matches everything. Parsing is strict: anything that
Kubernetes would reject raises `SelectorError`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal, Protocol, TypeVar

Operator = Literal["In", "NotIn", "Exists", "DoesNotExist"]
OPERATORS: tuple[str, ...] = ("In", "NotIn", "Exists", "DoesNotExist")

_NAME_RE = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
_DNS_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


class SelectorError(ValueError):
    """A selector could not be parsed. `owner` names the object that carries it."""

    def __init__(self, message: str, *, owner: str) -> None:
        super().__init__(f"invalid selector on {owner}: {message}")
        self.owner = owner
        self.reason = message


class Labeled(Protocol):
    namespace: str | None
    labels: Mapping[str, str]


L = TypeVar("L", bound=Labeled)


@dataclass(frozen=True)
class Requirement:
    key: str
    operator: Operator
    values: tuple[str, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.operator == "Exists":
            return self.key in labels
        if self.operator == "DoesNotExist":
            return self.key not in labels
        if self.operator == "In":
            return self.key in labels and labels[self.key] in self.values
        # NotIn also matches objects without the key.
        return self.key not in labels or labels[self.key] not in self.values


@dataclass(frozen=True)
class LabelSelector:
    match_labels: tuple[tuple[str, str], ...] = ()
    requirements: tuple[Requirement, ...] = ()

    def is_everything(self) -> bool:
        return not self.match_labels and not self.requirements

    def matches(self, labels: Mapping[str, str] | None) -> bool:
        labels = labels or {}
        for key, value in self.match_labels:
            if labels.get(key) != value:
                return False
        return all(req.matches(labels) for req in self.requirements)

    def describe(self) -> str:
        if self.is_everything():
            return "<everything>"
        parts = [f"{key}={value}" for key, value in self.match_labels]
        for req in self.requirements:
            if req.operator == "Exists":
                parts.append(req.key)
            elif req.operator == "DoesNotExist":
                parts.append(f"!{req.key}")
            else:
                op = "in" if req.operator == "In" else "notin"
                parts.append(f"{req.key} {op} ({','.join(req.values)})")
        return ",".join(parts)


EVERYTHING = LabelSelector()


def _validate_key(key: Any, *, owner: str, path: str) -> str:
    if not isinstance(key, str) or not key:
        raise SelectorError(f"{path} label key must be a non-empty string", owner=owner)
    prefix, _, name = key.rpartition("/")
    if "/" in key:
        if not prefix or len(prefix) > 253 or not _DNS_SUBDOMAIN_RE.match(prefix):
            raise SelectorError(f"{path} has invalid label key prefix: {key!r}", owner=owner)
    if len(name) > 63 or not _NAME_RE.match(name):
        raise SelectorError(f"{path} has invalid label key: {key!r}", owner=owner)
    return key


def _validate_value(value: Any, *, owner: str, path: str) -> str:
    if not isinstance(value, str):
        raise SelectorError(
            f"{path} label value must be a string (type={type(value).__name__})", owner=owner
        )
    if value and (len(value) > 63 or not _NAME_RE.match(value)):
        raise SelectorError(f"{path} has invalid label value: {value!r}", owner=owner)
    return value


def _parse_requirement(raw: Any, *, owner: str, path: str) -> Requirement:
    if not isinstance(raw, Mapping):
        raise SelectorError(f"{path} must be a mapping (type={type(raw).__name__})", owner=owner)
    unknown = sorted(str(k) for k in raw.keys() if k not in ("key", "operator", "values"))
    if unknown:
        raise SelectorError(f"{path} has unknown fields: {', '.join(unknown)}", owner=owner)

    key = _validate_key(raw.get("key"), owner=owner, path=f"{path}.key")
    operator = raw.get("operator")
    if operator not in OPERATORS:
        raise SelectorError(
            f"{path}.operator must be one of: {', '.join(OPERATORS)} (got {operator!r})", owner=owner
        )

    raw_values = raw.get("values")
    if raw_values is None:
        raw_values = []
    if not isinstance(raw_values, (list, tuple)):
        raise SelectorError(f"{path}.values must be a list", owner=owner)
    values = tuple(
        _validate_value(item, owner=owner, path=f"{path}.values[{idx}]")
        for idx, item in enumerate(raw_values)
    )

    if operator in ("In", "NotIn") and not values:
        raise SelectorError(f"{path}: operator {operator} requires non-empty values", owner=owner)
    if operator in ("Exists", "DoesNotExist") and values:
        raise SelectorError(f"{path}: operator {operator} must not have values", owner=owner)

    return Requirement(key=key, operator=operator, values=tuple(sorted(set(values))))


def parse_selector(raw: Any, *, owner: str, path: str = "selector") -> LabelSelector:
    """Parse a raw selector mapping into a `LabelSelector`."""

    if raw is None:
        return EVERYTHING
    if isinstance(raw, LabelSelector):
        return raw
    if not isinstance(raw, Mapping):
        raise SelectorError(f"{path} must be a mapping (type={type(raw).__name__})", owner=owner)

    unknown = sorted(str(k) for k in raw.keys() if k not in ("matchLabels", "matchExpressions"))
    if unknown:
        raise SelectorError(f"{path} has unknown fields: {', '.join(unknown)}", owner=owner)

    raw_labels = raw.get("matchLabels") or {}
    if not isinstance(raw_labels, Mapping):
        raise SelectorError(f"{path}.matchLabels must be a mapping", owner=owner)
    match_labels = tuple(
        sorted(
            (
                _validate_key(key, owner=owner, path=f"{path}.matchLabels"),
                _validate_value(value, owner=owner, path=f"{path}.matchLabels.{key}"),
            )
            for key, value in raw_labels.items()
        )
    )

    raw_exprs = raw.get("matchExpressions") or []
    if not isinstance(raw_exprs, (list, tuple)):
        raise SelectorError(f"{path}.matchExpressions must be a list", owner=owner)
    requirements = tuple(
        _parse_requirement(item, owner=owner, path=f"{path}.matchExpressions[{idx}]")
        for idx, item in enumerate(raw_exprs)
    )

    return LabelSelector(match_labels=match_labels, requirements=requirements)


def select(
    selector: LabelSelector,
    candidates: Iterable[L],
    *,
    namespace: str | None = None,
) -> list[L]:
    """Return candidates matching `selector`, optionally confined to one namespace.

    Input order is preserved; callers that need a stable order sort by identity.
    """

    out: list[L] = []
    for item in candidates:
        if namespace is not None and item.namespace != namespace:
            continue
        if selector.matches(item.labels):
            out.append(item)
    return out
