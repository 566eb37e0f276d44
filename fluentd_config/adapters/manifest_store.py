from __future__ import annotations

import dataclasses
import logging
import os
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from fluentkit.selectors import EVERYTHING, LabelSelector, select

from fluentd_config.foundation.config_io import expand_manifest_paths, load_manifest_documents
from fluentd_config.framework.errors import ManifestError
from fluentd_config.framework.model import (
    Agent,
    ConfigFragment,
    Namespace,
    ObjectRef,
    ObjectView,
    from_document,
)

logger = logging.getLogger(__name__)


class ManifestObjectStore:
    """In-memory object store over parsed manifest documents.

    Agents and fragments carry a mutable error field, so `list()` hands out fresh
    copies; a pass never sees errors recorded by an earlier pass.
    """

    def __init__(self, objects: Iterable[ObjectView]) -> None:
        self._by_kind: dict[str, list[ObjectView]] = defaultdict(list)
        self._namespaces: set[str] = set()
        self._statuses: dict[ObjectRef, str | None] = {}

        seen: set[ObjectRef] = set()
        for obj in objects:
            ref = obj.ref
            if ref in seen:
                raise ManifestError(f"Duplicate object: {ref.display}")
            seen.add(ref)

            if isinstance(obj, Namespace):
                self._namespaces.add(obj.name)
            elif obj.namespace:
                self._namespaces.add(obj.namespace)
            self._by_kind[ref.kind].append(obj)

    @classmethod
    def from_documents(cls, docs: Iterable[Mapping[str, Any]]) -> "ManifestObjectStore":
        objects: list[ObjectView] = []
        for doc in docs:
            obj = from_document(doc)
            if obj is None:
                logger.debug("Skipping manifest of unhandled kind %r", doc.get("kind"))
                continue
            objects.append(obj)
        return cls(objects)

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "ManifestObjectStore":
        return cls.from_documents(load_manifest_documents(paths))

    def list(
        self,
        kind: str,
        selector: LabelSelector | None = None,
        namespace: str | None = None,
    ) -> Sequence[Any]:
        matched = select(selector or EVERYTHING, self._by_kind.get(kind, []), namespace=namespace)
        out = [dataclasses.replace(obj) if isinstance(obj, (Agent, ConfigFragment)) else obj for obj in matched]
        return sorted(out, key=lambda obj: obj.ref.sort_key())

    def list_namespaces(self) -> Sequence[str]:
        return sorted(self._namespaces)

    def set_status_error(self, ref: ObjectRef, message: str | None) -> None:
        self._statuses[ref] = message

    def status_error(self, ref: ObjectRef) -> str | None:
        return self._statuses.get(ref)


class ManifestPathStore:
    """Object store backed by manifest files that are re-read when they change.

    `poll_changes()` compares file modification times with the last successful load
    and swaps in a fresh snapshot. A load that fails (e.g. a file caught mid-write)
    keeps the previous snapshot and is retried on the next poll.
    """

    def __init__(self, paths: Iterable[str]) -> None:
        self._paths = tuple(paths)
        self._mtimes: dict[str, float] = {}
        self._snapshot = ManifestObjectStore(())

    def _current_mtimes(self) -> dict[str, float]:
        out: dict[str, float] = {}
        for path in expand_manifest_paths(self._paths):
            try:
                out[path] = os.stat(path).st_mtime
            except FileNotFoundError:
                continue
        return out

    def poll_changes(self) -> list[str]:
        try:
            mtimes = self._current_mtimes()
        except FileNotFoundError as exc:
            logger.error("Manifest path unavailable: %s", exc)
            return []
        changed = sorted(
            path for path in set(mtimes) | set(self._mtimes) if mtimes.get(path) != self._mtimes.get(path)
        )
        if not changed:
            return []
        try:
            snapshot = ManifestObjectStore.from_documents(load_manifest_documents(sorted(mtimes)))
        except ValueError as exc:
            logger.error("Could not load manifests (will retry): %s", exc)
            return []
        self._snapshot = snapshot
        self._mtimes = mtimes
        logger.info("Reloaded manifests (%d changed file(s))", len(changed))
        return changed

    def list(
        self,
        kind: str,
        selector: LabelSelector | None = None,
        namespace: str | None = None,
    ) -> Sequence[Any]:
        return self._snapshot.list(kind, selector, namespace)

    def list_namespaces(self) -> Sequence[str]:
        return self._snapshot.list_namespaces()

    def set_status_error(self, ref: ObjectRef, message: str | None) -> None:
        self._snapshot.set_status_error(ref, message)

    def status_error(self, ref: ObjectRef) -> str | None:
        return self._snapshot.status_error(ref)
