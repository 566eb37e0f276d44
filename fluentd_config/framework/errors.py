"""Error taxonomy for compilation passes.

Fragment-scoped errors (`SelectorError`, `DuplicateLabelError`, `DirectiveError`) are
recorded on the offending object and never abort a pass. `ListTransientError` aborts
one agent's pass and is retried. `RenderInvariantError` is a defect and is fatal to
the pass.
"""

from __future__ import annotations

from fluentkit.directives import DirectiveError
from fluentkit.label_registry import DuplicateLabelError
from fluentkit.selectors import SelectorError


class CompilationError(Exception):
    pass


class ListTransientError(CompilationError):
    """The object store is temporarily unavailable."""


class RenderInvariantError(CompilationError, RuntimeError):
    pass


class PassAbandoned(CompilationError):
    """A newer trigger superseded the in-flight pass."""


class ManifestError(ValueError):
    """An input document could not be turned into a typed object."""


__all__ = [
    "CompilationError",
    "DirectiveError",
    "DuplicateLabelError",
    "ListTransientError",
    "ManifestError",
    "PassAbandoned",
    "RenderInvariantError",
    "SelectorError",
]
