import json
import logging
from pathlib import Path

import pytest

from jap_av_panel.config import Config
from jap_av_panel.logging import JsonFormatter, configure_logging, get_logger

_NAMES = ("jap", "jap.panel", "jap.validation", "jap.device", "jap.api", "jap.api.middleware", "")


@pytest.fixture(autouse=True)
def _restore_logging():
    saved = {}
    for name in _NAMES:
        logger = logging.getLogger(name)
        saved[name] = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for name, (handlers, level, propagate) in saved.items():
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.handlers = handlers
        logger.setLevel(level)
        logger.propagate = propagate


def test_plain_records_are_appended_to_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "panel.log"
    log_file.parent.mkdir()
    log_file.write_text("earlier line\n", encoding="utf-8")
    configure_logging(Config(log_file=log_file))

    get_logger("jap.device").error("Error setting channel: refused")
    for handler in logging.getLogger("jap.device").handlers:
        handler.flush()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "earlier line"
    assert lines[-1].endswith("] [ERROR] Error setting channel: refused")
    assert lines[-1].startswith("[")


def test_subsystem_levels_follow_config(tmp_path: Path) -> None:
    configure_logging(Config(log_level="WARNING", device_log_level="DEBUG", api_log_level="ERROR"))

    assert logging.getLogger("jap.device").level == logging.DEBUG
    assert logging.getLogger("jap.api").level == logging.ERROR
    assert logging.getLogger("jap.panel").level == logging.WARNING


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.LogRecord("jap.device", logging.ERROR, __file__, 1, "call failed %s", ("x",), None)
    record.address = "192.168.8.16"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "ERROR"
    assert payload["logger"] == "jap.device"
    assert payload["message"] == "call failed x"
    assert payload["address"] == "192.168.8.16"
