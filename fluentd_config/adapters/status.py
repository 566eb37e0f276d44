from __future__ import annotations

import logging
import os
from typing import Protocol

import yaml

from fluentd_config.framework.model import ObjectRef

logger = logging.getLogger(__name__)


class StatusSink(Protocol):
    def set_status_error(self, ref: ObjectRef, message: str | None) -> None: ...


class LoggingStatusReporter:
    """Status reporter for runs without an API server.

    Keeps the latest error per object, forwards it to an optional sink (e.g. the
    manifest store), and can dump everything as a YAML report.
    """

    def __init__(self, sink: StatusSink | None = None) -> None:
        self._sink = sink
        self._errors: dict[ObjectRef, str] = {}

    def patch_error(self, ref: ObjectRef, message: str | None) -> None:
        if message:
            self._errors[ref] = message
            logger.info("Patched status.errors of %s", ref.display)
        elif self._errors.pop(ref, None) is not None:
            logger.info("Cleared status.errors of %s", ref.display)
        if self._sink is not None:
            self._sink.set_status_error(ref, message)

    def reset(self) -> None:
        """Forget every recorded error; the next round reports from scratch."""

        self._errors.clear()

    def _sorted(self) -> list[tuple[ObjectRef, str]]:
        return sorted(self._errors.items(), key=lambda item: item[0].sort_key())

    def errors(self) -> dict[str, str]:
        return {ref.display: msg for ref, msg in self._sorted()}

    def write_report(self, path: str) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        payload = [
            {
                "kind": ref.kind,
                "namespace": ref.namespace,
                "name": ref.name,
                "status": {"errors": message},
            }
            for ref, message in self._sorted()
        ]
        with open(path, "w", encoding="utf-8") as handle:
            yaml.safe_dump(payload, handle, sort_keys=False)
        logger.debug("Wrote status report (%d object(s)) to %s", len(payload), path)
