"""Compile Fluentd/FluentdConfig/Filter/Output objects into fluentd configuration."""

__version__ = "0.3.0"
