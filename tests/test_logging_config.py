"""Test unified logging setup.

Test cases:
    - setup_logging() is idempotent (no duplicate handlers)
    - JSON file output carries context fields
    - Human file output carries level and context
    - push_context() / pop_context()
    - Unknown level and rotation mode raise ValueError
    - Size rotation installs a RotatingFileHandler
    - Queue mode forwards records to the listener's sinks
    - set_level(), get_logger(), install_excepthook()
    - Python warnings are routed to the log

Run:
    pytest tests/test_logging_config.py -v
"""

import json
import logging
import logging.handlers
import queue
import sys
import warnings

import pytest

from src.utils import logging_config

pytestmark = pytest.mark.usefixtures("restore_logging")


def _flush():
    for h in logging.getLogger().handlers:
        h.flush()


def test_setup_is_idempotent(tmp_path):
    log_file = str(tmp_path / "run.log")
    logging_config.setup_logging(log_file=log_file, to_stderr=False)
    first = len(logging.getLogger().handlers)
    logging_config.setup_logging(log_file=log_file, to_stderr=False)
    assert len(logging.getLogger().handlers) == first


def test_json_file_has_context(tmp_path):
    log_file = tmp_path / "run.jsonl"
    logging_config.setup_logging(
        log_file=str(log_file), json=True, to_stderr=False, context={"app": "vectorize"}
    )
    logging_config.push_context(image="logo.png")
    logging.getLogger("src.test").info("Traced 3 rings")
    _flush()

    record = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert record["msg"] == "Traced 3 rings"
    assert record["lvl"] == "INFO"
    assert record["app"] == "vectorize"
    assert record["image"] == "logo.png"


def test_human_file_format(tmp_path):
    log_file = tmp_path / "run.log"
    logging_config.setup_logging(log_file=str(log_file), to_stderr=False, context={"job": "a"})
    logging.getLogger("src.test").warning("careful")
    _flush()

    line = log_file.read_text().strip().splitlines()[-1]
    assert "| WARNING  |" in line
    assert "job=a" in line
    assert line.endswith("careful")


def test_pop_context(tmp_path):
    log_file = tmp_path / "run.jsonl"
    logging_config.setup_logging(log_file=str(log_file), json=True, to_stderr=False)
    logging_config.push_context(a=1, b=2)
    logging_config.pop_context(["a"])
    logging.getLogger("src.test").info("x")
    _flush()

    record = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert "a" not in record
    assert record["b"] == 2


def test_unknown_level_raises():
    with pytest.raises(ValueError, match="Unknown log level"):
        logging_config.setup_logging(log_level="LOUD", to_stderr=False)


def test_unknown_rotation_raises(tmp_path):
    with pytest.raises(ValueError, match="rotation mode"):
        logging_config.setup_logging(
            log_file=str(tmp_path / "r.log"), rotate={"mode": "weekly"}, to_stderr=False
        )


def test_size_rotation_handler(tmp_path):
    info = logging_config.setup_logging(
        log_file=str(tmp_path / "r.log"),
        rotate={"mode": "size", "max_bytes": 1024, "backup_count": 2},
        to_stderr=False,
    )
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in info["handlers"])


def test_queue_mode_forwards_to_listener(tmp_path):
    log_file = tmp_path / "q.log"
    q = queue.Queue()
    info = logging_config.setup_logging(log_file=str(log_file), to_stderr=False, queue=q)
    try:
        assert isinstance(info["handlers"][0], logging.handlers.QueueHandler)
        logging.getLogger("src.test").info("through the queue")
    finally:
        info["listener"].stop()
    assert "through the queue" in log_file.read_text()


def test_set_level_and_get_logger():
    logging_config.set_level("debug")
    assert logging.getLogger().level == logging.DEBUG
    assert logging_config.get_logger("src.test") is logging.getLogger("src.test")


def test_excepthook_logs_uncaught(tmp_path):
    log_file = tmp_path / "crash.log"
    logging_config.setup_logging(log_file=str(log_file), to_stderr=False)
    logging_config.install_excepthook()
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        sys.excepthook(*sys.exc_info())
    _flush()

    text = log_file.read_text()
    assert "Uncaught exception" in text
    assert "boom" in text


def test_warnings_routed_to_log(tmp_path):
    log_file = tmp_path / "run.log"
    logging_config.setup_logging(log_file=str(log_file), to_stderr=False)
    warnings.warn_explicit("disk nearly full", UserWarning, "job.py", 7)
    _flush()

    assert logging.getLogger("py.warnings").level == logging.WARNING
    assert "disk nearly full" in log_file.read_text()
