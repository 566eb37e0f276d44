"""Compilation framework for fluentd configuration.

This package holds the parts of a compilation pass that are specific to the
fluentd.fluent.io object kinds: the typed model, scope resolution, aggregation,
the per-agent plugin store, rendering, the pass driver and the reconciler.

Collaborators (object store, status reporting, persistence) are reached only
through the protocols in `fluentd_config.framework.ports`; concrete adapters live
in `fluentd_config.adapters`.

For generic, project-agnostic primitives (selectors, label registry, directive
layout), use `fluentkit`.
"""
