"""
日志配置模块
"""
import logging
import sys
from pathlib import Path
from typing import Dict

from loguru import logger

from .config import settings

_configured = False
_task_sinks: Dict[str, int] = {}

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


class InterceptHandler(logging.Handler):
    """把标准库 logging（httpx、uvicorn 等）的记录转发到 loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _console_stream():
    for stream in (sys.stdout, sys.__stdout__, sys.stderr, sys.__stderr__):
        if stream is not None:
            return stream
    return None


def setup_logger(force: bool = False):
    """配置日志系统"""
    global _configured
    if _configured and not force:
        return logger

    # 移除默认处理器
    logger.remove()
    _task_sinks.clear()

    log_dir = Path(settings.log_path)
    log_dir.mkdir(parents=True, exist_ok=True)

    console_missing = False
    if settings.log_console_enabled:
        stream = _console_stream()
        if stream is not None:
            logger.add(stream, level=settings.log_level, format=_CONSOLE_FORMAT)
        else:
            console_missing = True

    # 文件输出 - 全局日志
    logger.add(
        log_dir / "app_{time:YYYY-MM-DD}.log",
        level=settings.log_level,
        format=_FILE_FORMAT,
        rotation=settings.log_rotation,
        retention=f"{settings.log_retention_days} days",
        encoding="utf-8",
        serialize=settings.log_file_format == "json",
    )

    # 错误日志单独记录
    logger.add(
        log_dir / "error_{time:YYYY-MM-DD}.log",
        level="ERROR",
        format=_FILE_FORMAT,
        rotation=settings.log_rotation,
        retention=f"{settings.log_retention_days * 2} days",
        encoding="utf-8",
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("httpx", "httpcore", "uvicorn", "uvicorn.error", "uvicorn.access"):
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False

    if console_missing:
        logger.warning("未检测到可用控制台输出流，仅写入文件日志")

    _configured = True
    return logger


def get_task_logger(task_id: str):
    """获取任务专用日志器，同一任务只注册一次文件输出"""
    log_dir = Path(settings.log_path) / "tasks"
    log_dir.mkdir(parents=True, exist_ok=True)

    if task_id not in _task_sinks:
        _task_sinks[task_id] = logger.add(
            log_dir / f"task_{task_id}.log",
            level=settings.log_level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
            encoding="utf-8",
            filter=lambda record: record["extra"].get("task_id") == task_id,
        )
    return logger.bind(task_id=task_id)


def release_task_logger(task_id: str) -> None:
    """任务结束后移除对应的文件输出"""
    sink_id = _task_sinks.pop(task_id, None)
    if sink_id is not None:
        try:
            logger.remove(sink_id)
        except ValueError:
            pass


# 初始化日志系统
logger = setup_logger()
