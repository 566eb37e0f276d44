from __future__ import annotations

import logging

from fluentd_config.framework.model import ConfigFragment
from fluentd_config.framework.ports import ObjectStore

logger = logging.getLogger(__name__)


class NamespaceScopeResolver:
    """Resolve the namespaces a fragment watches.

    Create one per pass: the full namespace listing is taken at most once and
    reused for every cluster fragment that leaves `watchedNamespaces` empty.
    """

    def __init__(self, store: ObjectStore) -> None:
        self._store = store
        self._all_namespaces: tuple[str, ...] | None = None

    def all_namespaces(self) -> tuple[str, ...]:
        if self._all_namespaces is None:
            self._all_namespaces = tuple(self._store.list_namespaces())
            logger.debug("Namespace snapshot for this pass: %s", ", ".join(self._all_namespaces) or "<none>")
        return self._all_namespaces

    def watched_namespaces(self, fragment: ConfigFragment) -> tuple[str, ...]:
        if fragment.scope == "namespace":
            return (fragment.namespace or "",)
        if fragment.watched_namespaces:
            return tuple(fragment.watched_namespaces)
        return self.all_namespaces()
