"""Artifact writers.

Both writers are idempotent: writing content identical to what is already stored
returns False and touches nothing. A Secret manifest is written to a temporary name
and renamed into place; a block directory is staged whole beside its final location
and swapped in, so a reader never sees a mix of old and new blocks.
"""

from __future__ import annotations

import base64
import logging
import os
import shutil
import tempfile
from collections.abc import Mapping

import yaml

from fluentd_config.framework.model import AGENT_KIND, API_VERSION, ObjectRef
from fluentd_config.framework.render import BLOCK_KEYS, blocks_digest

logger = logging.getLogger(__name__)


def _atomic_write(path: str, content: str) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def _write_text(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(content)


def _swap_directory(directory: str, files: Mapping[str, str]) -> None:
    parent, base = os.path.split(directory)
    os.makedirs(parent, exist_ok=True)
    staging = tempfile.mkdtemp(prefix=f".tmp-{base}-", dir=parent)
    os.chmod(staging, 0o755)
    backup = None
    try:
        for name, content in files.items():
            _write_text(os.path.join(staging, name), content)
        if os.path.isdir(directory):
            backup = f"{staging}.old"
            os.replace(directory, backup)
        os.replace(staging, directory)
    except BaseException:
        if backup is not None and not os.path.exists(directory):
            os.replace(backup, directory)
            backup = None
        shutil.rmtree(staging, ignore_errors=True)
        raise
    finally:
        if backup is not None:
            shutil.rmtree(backup, ignore_errors=True)


def _read_text(path: str) -> str | None:
    try:
        with open(path, "r", encoding="utf-8", newline="") as handle:
            return handle.read()
    except FileNotFoundError:
        return None


def _check_blocks(blocks: Mapping[str, str]) -> None:
    missing = [key for key in BLOCK_KEYS if key not in blocks]
    extra = sorted(set(blocks) - set(BLOCK_KEYS))
    if missing or extra:
        raise ValueError(f"artifact blocks must be exactly {', '.join(BLOCK_KEYS)} (missing={missing}, extra={extra})")


class _FileArtifactWriter:
    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)
        self._digests: dict[ObjectRef, str] = {}

    def _files(self, owner: ObjectRef, blocks: Mapping[str, str], controller: ObjectRef) -> dict[str, str]:
        raise NotImplementedError

    def _store(self, files: Mapping[str, str]) -> None:
        for path, content in files.items():
            _atomic_write(path, content)

    def materialize(self, owner: ObjectRef, blocks: Mapping[str, str], *, controller: ObjectRef) -> bool:
        _check_blocks(blocks)
        digest = blocks_digest(dict(blocks))
        if self._digests.get(owner) == digest:
            return False

        files = self._files(owner, blocks, controller)
        if all(_read_text(path) == content for path, content in files.items()):
            self._digests[owner] = digest
            return False

        self._store(files)
        self._digests[owner] = digest
        logger.debug("Wrote %d file(s) for %s under %s", len(files), owner.display, self.root)
        return True


class DirectoryArtifactWriter(_FileArtifactWriter):
    """Write the four blocks as plain files: <root>/<namespace>/<owner name>/<key>."""

    def owner_dir(self, owner: ObjectRef) -> str:
        return os.path.join(self.root, owner.namespace or "_cluster", owner.name)

    def _files(self, owner: ObjectRef, blocks: Mapping[str, str], controller: ObjectRef) -> dict[str, str]:
        directory = self.owner_dir(owner)
        return {os.path.join(directory, key): blocks[key] for key in BLOCK_KEYS}

    def _store(self, files: Mapping[str, str]) -> None:
        (directory,) = {os.path.dirname(path) for path in files}
        _swap_directory(directory, {os.path.basename(path): content for path, content in files.items()})


class SecretManifestWriter(_FileArtifactWriter):
    """Write one Kubernetes Secret manifest per owner: <root>/<namespace>/<owner name>.yaml."""

    def manifest_path(self, owner: ObjectRef) -> str:
        return os.path.join(self.root, owner.namespace or "_cluster", f"{owner.name}.yaml")

    def _files(self, owner: ObjectRef, blocks: Mapping[str, str], controller: ObjectRef) -> dict[str, str]:
        secret = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {
                "name": owner.name,
                "namespace": owner.namespace,
                "ownerReferences": [
                    {
                        "apiVersion": API_VERSION,
                        "kind": controller.kind or AGENT_KIND,
                        "name": controller.name,
                        "controller": True,
                        "blockOwnerDeletion": True,
                    }
                ],
            },
            "type": "Opaque",
            "data": {
                key: base64.b64encode(blocks[key].encode("utf-8")).decode("ascii") for key in BLOCK_KEYS
            },
        }
        return {self.manifest_path(owner): yaml.safe_dump(secret, sort_keys=False)}
