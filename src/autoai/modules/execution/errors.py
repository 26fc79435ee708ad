"""
执行引擎异常
"""
from __future__ import annotations

from typing import Optional


class TaskBusyError(RuntimeError):
    """已有任务在执行"""


class TaskFailure(Exception):
    """终止任务的硬失败"""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ModelReportedError(TaskFailure):
    pass


class StuckDetectedError(TaskFailure):
    pass


class StepLimitReachedError(TaskFailure):
    pass


class RetryExhaustedError(TaskFailure):
    pass
