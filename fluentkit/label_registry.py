from __future__ import annotations

import hashlib
from dataclasses import dataclass, field


class DuplicateLabelError(ValueError):
    def __init__(self, label: str, *, owner: str, claimed_by: str) -> None:
        super().__init__(
            f"the current configuration already exists: {label} "
            f"(owner={owner}, claimed_by={claimed_by})"
        )
        self.label = label
        self.owner = owner
        self.claimed_by = claimed_by


def route_label_for(cfg_id: str) -> str:
    """Derive the routing label for a configuration id."""

    if not isinstance(cfg_id, str) or not cfg_id.strip():
        raise ValueError("cfg_id must be a non-empty string")
    return "@" + hashlib.md5(cfg_id.strip().encode("utf-8")).hexdigest()


@dataclass
class RoutingLabelRegistry:
    """Per-pass record of claimed routing labels.

    One instance lives for exactly one compilation pass and is passed explicitly to
    whatever needs it; nothing here is module-global.
    """

    _claims: dict[str, str] = field(default_factory=dict)

    def register(self, label: str, *, owner: str) -> None:
        if not isinstance(label, str) or not label.strip():
            raise ValueError("label must be a non-empty string")
        key = label.strip()

        existing = self._claims.get(key)
        if existing is not None:
            raise DuplicateLabelError(key, owner=owner, claimed_by=existing)
        self._claims[key] = owner

    def owner_of(self, label: str) -> str | None:
        return self._claims.get((label or "").strip())

    def claimed(self) -> tuple[str, ...]:
        return tuple(sorted(self._claims.keys()))

    def __len__(self) -> int:
        return len(self._claims)
