"""Operational logging setup for the CLI entry points."""

from __future__ import annotations

import logging
import os

LOGGER_NAME = "fluentd_config"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_operational_logger(level: str = "INFO", log_dir: str | None = None) -> tuple[logging.Logger, str | None]:
    """
    Configure the package logger for an operational run.

    Logs go to stderr at `level`; when `log_dir` is given they also go to a UTF-8
    file at DEBUG for traceability.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file: str | None = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, "fluentd-config-compiler.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug("Operational logging initialized (level=%s, file=%s)", level, log_file or "<none>")
    return logger, log_file
