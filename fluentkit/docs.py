"""`fluentkit` invariants and boundaries.

This module exists to make repository-wide refactors and boundary tests explicit.

Generic invariants:

1) `fluentkit` must not import `fluentd_config.*`.
2) `fluentkit` provides pure composition primitives: label selectors, the per-pass
   routing label registry, directive/section text layout, and the strict
   `ConfigNamespace` reader.
3) `fluentkit` holds no state across calls. A `RoutingLabelRegistry` is created by
   the caller for one pass and dropped afterwards.
4) `fluentkit` does not define project conventions like:
   - which object kinds exist or how they are listed
   - how a configuration id is built from an object identity
   - which `@type` a directive kind maps to, or how kind-specific params are shaped
   - where rendered text is persisted
"""
