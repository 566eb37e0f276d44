import logging
from pathlib import Path

import pytest

from fluentd_config.foundation.logging_utils import LOGGER_NAME, setup_operational_logger


@pytest.fixture(autouse=True)
def _restore_package_logger():
    logger = logging.getLogger(LOGGER_NAME)
    handlers, propagate, level = list(logger.handlers), logger.propagate, logger.level
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = handlers
    logger.propagate = propagate
    logger.setLevel(level)


def test_operational_logger_writes_debug_to_file(tmp_path: Path):
    logger, log_file = setup_operational_logger("WARNING", str(tmp_path / "logs"))

    logging.getLogger("fluentd_config.framework.driver").debug("Errors on %s: %s", "FluentdConfig/app/f", "x → y")
    for handler in logger.handlers:
        handler.flush()

    assert log_file == str(tmp_path / "logs" / "fluentd-config-compiler.log")
    content = Path(log_file).read_text(encoding="utf-8")
    assert "| DEBUG | Errors on FluentdConfig/app/f: x → y" in content
    assert logger.propagate is False


def test_operational_logger_without_dir_has_only_stream_handler():
    logger, log_file = setup_operational_logger("INFO")

    assert log_file is None
    assert [type(h) for h in logger.handlers] == [logging.StreamHandler]
    assert logger.handlers[0].level == logging.INFO


def test_repeated_setup_does_not_duplicate_handlers():
    setup_operational_logger("INFO")
    logger, _ = setup_operational_logger("INFO")
    assert len(logger.handlers) == 1
