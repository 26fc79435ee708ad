import inspect
import logging
import sys
from uuid import uuid4

import pytest


_SETTING_KEYS = (
    "log_level",
    "log_path",
    "log_retention_days",
    "log_console_enabled",
    "log_file_format",
    "log_rotation",
)


def _flush_loguru(logger_module) -> None:
    complete_result = logger_module.logger.complete()
    if inspect.isawaitable(complete_result):
        iterator = complete_result.__await__()
        while True:
            try:
                next(iterator)
            except StopIteration:
                break


def _latest_log_file(log_dir, pattern):
    files = sorted(log_dir.glob(pattern))
    assert files, f"missing log file pattern: {pattern}"
    return files[-1]


@pytest.fixture()
def configured_logger(tmp_path):
    from autoai.core.config import settings
    import autoai.core.logger as logger_module

    original = {key: getattr(settings, key) for key in _SETTING_KEYS}

    settings.log_level = "INFO"
    settings.log_path = str(tmp_path)
    settings.log_retention_days = 3
    settings.log_console_enabled = False
    settings.log_file_format = "text"
    settings.log_rotation = "00:00"
    logger_module.setup_logger(force=True)

    try:
        yield logger_module, tmp_path
    finally:
        for key, value in original.items():
            setattr(settings, key, value)
        logger_module.setup_logger(force=True)


def test_file_output_written(configured_logger):
    logger_module, log_dir = configured_logger
    message = f"file-output-{uuid4()}"

    logger_module.logger.info(message)
    _flush_loguru(logger_module)

    content = _latest_log_file(log_dir, "app_*.log").read_text(encoding="utf-8")
    assert message in content


def test_error_log_only_receives_errors(configured_logger):
    logger_module, log_dir = configured_logger
    info_message = f"info-{uuid4()}"
    error_message = f"error-{uuid4()}"

    logger_module.logger.info(info_message)
    logger_module.logger.error(error_message)
    _flush_loguru(logger_module)

    content = _latest_log_file(log_dir, "error_*.log").read_text(encoding="utf-8")
    assert error_message in content
    assert info_message not in content


def test_stdlib_httpx_bridged(configured_logger):
    logger_module, log_dir = configured_logger
    message = f"httpx-{uuid4()}"

    logging.getLogger("httpx").info(message)
    _flush_loguru(logger_module)

    content = _latest_log_file(log_dir, "app_*.log").read_text(encoding="utf-8")
    assert message in content


def test_setup_logger_idempotent_when_forced_twice(configured_logger):
    logger_module, log_dir = configured_logger
    message = f"idempotent-{uuid4()}"

    logger_module.setup_logger(force=True)
    logger_module.setup_logger(force=True)
    logger_module.logger.info(message)
    _flush_loguru(logger_module)

    content = _latest_log_file(log_dir, "app_*.log").read_text(encoding="utf-8")
    assert content.count(message) == 1


def test_get_task_logger_reuses_sink(configured_logger):
    logger_module, log_dir = configured_logger
    message = f"task-log-{uuid4()}"

    logger_module.get_task_logger("t1")
    task_logger = logger_module.get_task_logger("t1")
    task_logger.info(message)
    logger_module.logger.info(f"unrelated-{message}")
    _flush_loguru(logger_module)
    logger_module.release_task_logger("t1")

    content = (log_dir / "tasks" / "task_t1.log").read_text(encoding="utf-8")
    assert content.count(message) == 1
    assert f"unrelated-{message}" not in content


def test_console_sink_degrades_when_std_streams_missing(tmp_path, monkeypatch):
    from autoai.core.config import settings
    import autoai.core.logger as logger_module

    original = {key: getattr(settings, key) for key in _SETTING_KEYS}

    monkeypatch.setattr(sys, "stdout", None, raising=False)
    monkeypatch.setattr(sys, "stderr", None, raising=False)
    monkeypatch.setattr(sys, "__stdout__", None, raising=False)
    monkeypatch.setattr(sys, "__stderr__", None, raising=False)

    settings.log_level = "INFO"
    settings.log_path = str(tmp_path)
    settings.log_console_enabled = True
    settings.log_file_format = "text"

    try:
        logger_module.setup_logger(force=True)
        message = f"windowed-log-{uuid4()}"
        logger_module.logger.info(message)
        _flush_loguru(logger_module)

        content = _latest_log_file(tmp_path, "app_*.log").read_text(encoding="utf-8")
        assert message in content
        assert "未检测到可用控制台输出流" in content
    finally:
        monkeypatch.undo()
        for key, value in original.items():
            setattr(settings, key, value)
        logger_module.setup_logger(force=True)
