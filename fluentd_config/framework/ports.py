"""Interfaces to the collaborators a compilation pass talks to."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from fluentkit.selectors import LabelSelector

from fluentd_config.framework.model import ObjectRef


class ObjectStore(Protocol):
    def list(
        self,
        kind: str,
        selector: LabelSelector | None = None,
        namespace: str | None = None,
    ) -> Sequence[Any]:
        """List objects of `kind` matching `selector`, optionally in one namespace.

        Raises `ListTransientError` when the store cannot be reached.
        """

    def list_namespaces(self) -> Sequence[str]:
        """Return every current namespace name."""


class StatusReporter(Protocol):
    def patch_error(self, ref: ObjectRef, message: str | None) -> None:
        """Attach `message` to the object's status (None clears it). Best-effort."""


class ArtifactPersister(Protocol):
    def materialize(
        self,
        owner: ObjectRef,
        blocks: Mapping[str, str],
        *,
        controller: ObjectRef,
    ) -> bool:
        """Store `blocks` under `owner`; return False when the content was unchanged."""
