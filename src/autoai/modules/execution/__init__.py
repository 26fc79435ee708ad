"""
执行引擎模块
"""
from .engine import EngineConfig, ExecutionEngine, RunOutcome, RunStatus, StepReport, is_stuck
from .errors import (
    ModelReportedError,
    RetryExhaustedError,
    StepLimitReachedError,
    StuckDetectedError,
    TaskBusyError,
    TaskFailure,
)

__all__ = [
    "EngineConfig",
    "ExecutionEngine",
    "RunOutcome",
    "RunStatus",
    "StepReport",
    "is_stuck",
    "ModelReportedError",
    "RetryExhaustedError",
    "StepLimitReachedError",
    "StuckDetectedError",
    "TaskBusyError",
    "TaskFailure",
]
