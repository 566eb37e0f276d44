"""Concrete collaborators for running passes outside a cluster."""

from fluentd_config.adapters.manifest_store import ManifestObjectStore, ManifestPathStore
from fluentd_config.adapters.persistence import DirectoryArtifactWriter, SecretManifestWriter
from fluentd_config.adapters.status import LoggingStatusReporter

__all__ = [
    "DirectoryArtifactWriter",
    "LoggingStatusReporter",
    "ManifestObjectStore",
    "ManifestPathStore",
    "SecretManifestWriter",
]
