"""
执行引擎

单步流水线：感知 -> 界面安全检查 -> 决策（含解析/校验）-> 动作安全检查 -> 执行 -> 记录。

循环策略：
- 感知/决策类基础设施失败按固定间隔重试，连续失败达到上限后任务失败
- 动作执行失败不重试，只写入历史供下一轮决策参考
- complete 成功结束；error 失败结束；需要用户确认时停止；
  达到步数上限或最近 N 步动作类型相同（卡死）时失败
- 停止信号只在步与步之间检查，已下发的动作总会执行完
"""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from ...core.config import settings
from ...core.constants import EngineState, SafetyLevel
from ...core.logger import logger
from ...core.perf import TAG_DECISION, TAG_EXECUTION, TAG_PERCEPTION, PerformanceMonitor
from ...models.action import Action, ActionResult, Complete, Error
from ...models.screen import ScreenState
from ...models.task import ActionHistory, TodoList
from ..control.base import ControlError
from ..control.router import BackendRouter
from ..decision.errors import DecisionError
from ..decision.gateway import DecisionGateway
from ..perception.base import PerceptionError
from ..safety.checker import SafetyChecker
from .errors import (
    ModelReportedError,
    RetryExhaustedError,
    StepLimitReachedError,
    StuckDetectedError,
    TaskBusyError,
    TaskFailure,
)

UNKNOWN_APP = "unknown"
MSG_STUCK = "检测到任务可能卡死，连续执行相同动作"
ProgressCallback = Callable[[ActionHistory], Any]
PlanProvider = Callable[[], Optional[TodoList]]


@dataclass(frozen=True)
class EngineConfig:
    max_steps: int = 30
    max_retry: int = 3
    retry_interval_ms: int = 2000
    wait_after_action_ms: int = 1500
    stuck_window: int = 5
    history_window: int = 3
    keep_screen_states: bool = False

    @classmethod
    def from_settings(cls, cfg=None) -> "EngineConfig":
        cfg = cfg or settings
        return cls(
            max_steps=cfg.max_steps,
            max_retry=cfg.max_retry,
            retry_interval_ms=cfg.retry_interval_ms,
            wait_after_action_ms=cfg.wait_after_action_ms,
            stuck_window=cfg.stuck_window,
            history_window=cfg.history_window,
            keep_screen_states=cfg.keep_screen_states,
        )


class RunStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_CONFIRMATION = "needs_confirmation"
    STOPPED = "stopped"


@dataclass(frozen=True)
class RunOutcome:
    status: RunStatus
    message: str
    steps: int
    failure: Optional[TaskFailure] = None

    @property
    def success(self) -> bool:
        return self.status is RunStatus.COMPLETED


@dataclass(frozen=True)
class StepReport:
    """单步结果；界面被阻断时 entry 为空"""
    entry: Optional[ActionHistory] = None
    blocked_result: Optional[ActionResult] = None
    confirmation_reason: str = ""
    screen: Optional[ScreenState] = field(default=None, repr=False)

    @property
    def result(self) -> ActionResult:
        if self.entry is not None:
            return self.entry.result
        return self.blocked_result


def is_stuck(actions: Sequence[Action], window: int) -> bool:
    """最近 window 个动作类型全部相同"""
    if window <= 0 or len(actions) < window:
        return False
    recent = actions[-window:]
    return all(type(a) is type(recent[0]) for a in recent)


class ExecutionEngine:
    def __init__(
        self,
        router: BackendRouter,
        gateway: DecisionGateway,
        safety: SafetyChecker,
        config: Optional[EngineConfig] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ) -> None:
        self.router = router
        self.gateway = gateway
        self.safety = safety
        self.config = config or EngineConfig.from_settings()
        self.monitor = monitor or PerformanceMonitor()
        self._state = EngineState.IDLE
        self._stop_event = asyncio.Event()
        self._log = logger.bind(module="ExecutionEngine")

    @property
    def state(self) -> EngineState:
        return self._state

    def request_stop(self) -> None:
        """在下一步开始前停止；进行中的动作不会被打断"""
        if self._state is EngineState.STEPPING:
            self._log.info("收到停止信号")
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    async def _foreground_app(self, bundle) -> str:
        try:
            return await bundle.backend.current_foreground_app()
        except ControlError as e:
            self._log.warning(f"获取前台应用失败: {e}")
            return UNKNOWN_APP

    async def _perform_step(
        self,
        task: str,
        step: int,
        history: Sequence[ActionHistory],
        plan: Optional[TodoList],
    ) -> StepReport:
        bundle = self.router.resolve()
        app = await self._foreground_app(bundle)

        async with self.monitor.measure(TAG_PERCEPTION):
            state = await bundle.perception.capture(app)

        state_verdict = self.safety.check_state(state)
        if state_verdict.should_block:
            self._log.warning(f"界面安全检查阻断: {state_verdict.reason}")
            return StepReport(
                blocked_result=ActionResult.failure(state_verdict.reason, needs_user_confirmation=True),
                confirmation_reason=state_verdict.reason,
                screen=state,
            )

        recent = list(history)[-self.config.history_window :] if self.config.history_window > 0 else []
        async with self.monitor.measure(TAG_DECISION):
            decision = await self.gateway.decide(task, state, recent, plan)
        action = decision.action
        confirmation_reason = ""

        action_verdict = self.safety.check_action(action, state)
        if action_verdict.should_block:
            self._log.warning(f"动作安全检查阻断: {action_verdict.reason}")
            result = ActionResult.failure(action_verdict.reason, needs_user_confirmation=True)
            confirmation_reason = action_verdict.reason
        else:
            async with self.monitor.measure(TAG_EXECUTION):
                result = await bundle.backend.execute(action)
            if state_verdict.level is SafetyLevel.YELLOW and not result.needs_user_confirmation:
                self._log.info(f"界面需要确认: {state_verdict.reason}")
                result = result.with_confirmation()
                confirmation_reason = state_verdict.reason

        entry = ActionHistory(
            step=step,
            action=action,
            result=result,
            reasoning=decision.reasoning,
            screen_before=state if self.config.keep_screen_states else None,
        )
        return StepReport(entry=entry, confirmation_reason=confirmation_reason, screen=state)

    async def run_single_step(self, task: str, history: Sequence[ActionHistory] = (), step: int = 1) -> StepReport:
        """执行一次完整的受检单步，不应用重试/卡死/步数策略；基础设施失败直接抛出"""
        self._enter()
        try:
            report = await self._perform_step(task, step, history, None)
            if report.entry is not None and not isinstance(report.entry.action, (Complete, Error)):
                await self._sleep_ms(self.config.wait_after_action_ms)
            return report
        finally:
            self._state = EngineState.STOPPED

    def _enter(self) -> None:
        if self._state is EngineState.STEPPING:
            raise TaskBusyError("执行引擎正在运行")
        self._state = EngineState.STEPPING
        self._stop_event.clear()

    async def _sleep_ms(self, duration_ms: int) -> None:
        if duration_ms > 0:
            await asyncio.sleep(duration_ms / 1000)

    async def _wait_retry(self) -> None:
        """重试间隔，可被停止信号提前唤醒"""
        if self.config.retry_interval_ms <= 0:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.config.retry_interval_ms / 1000)
        except asyncio.TimeoutError:
            pass

    @staticmethod
    async def _notify(callback: Optional[ProgressCallback], entry: ActionHistory) -> None:
        if callback is None:
            return
        outcome = callback(entry)
        if inspect.isawaitable(outcome):
            await outcome

    async def run(
        self,
        task: str,
        on_progress: Optional[ProgressCallback] = None,
        start_step: int = 0,
        prior_history: Sequence[ActionHistory] = (),
        plan_provider: Optional[PlanProvider] = None,
    ) -> RunOutcome:
        """
        执行任务循环直到结束

        Args:
            task: 任务描述
            on_progress: 每步记录后的回调（同步或异步）
            start_step: 已完成的步数（恢复任务时继续计数）
            prior_history: 已有的执行记录（恢复任务时参与卡死判断与提示词）

        Returns:
            RunOutcome；硬失败通过 failure 字段携带
        """
        self._enter()
        step = start_step
        entries: List[ActionHistory] = list(prior_history)
        consecutive_failures = 0
        self._log.info(f"开始执行任务: {task}")

        try:
            while True:
                if self._stop_event.is_set():
                    self._log.info(f"任务已停止，共执行 {step} 步")
                    return RunOutcome(RunStatus.STOPPED, "任务已停止", step)

                if step >= self.config.max_steps:
                    return self._fail(StepLimitReachedError(f"达到最大步数限制 ({self.config.max_steps})"), step)

                plan = plan_provider() if plan_provider else None
                try:
                    report = await self._perform_step(task, step + 1, entries, plan)
                except (PerceptionError, DecisionError) as e:
                    consecutive_failures += 1
                    self._log.warning(f"第 {step + 1} 步失败 ({consecutive_failures}/{self.config.max_retry}): {e}")
                    if consecutive_failures >= self.config.max_retry:
                        return self._fail(RetryExhaustedError(str(e), cause=e), step)
                    await self._wait_retry()
                    continue

                consecutive_failures = 0

                if report.entry is None:
                    reason = report.confirmation_reason or report.blocked_result.message
                    return RunOutcome(RunStatus.NEEDS_CONFIRMATION, f"需要用户确认: {reason}", step)

                entry = report.entry
                step = entry.step
                entries.append(entry)
                await self._notify(on_progress, entry)

                action, result = entry.action, entry.result
                if isinstance(action, Complete):
                    self._log.info(f"任务完成: {action.message}")
                    return RunOutcome(RunStatus.COMPLETED, action.message, step)
                if isinstance(action, Error):
                    return self._fail(ModelReportedError(f"AI 主动上报错误: {action.message}"), step)
                if result.needs_user_confirmation:
                    reason = report.confirmation_reason or result.message
                    self._log.info(f"需要用户确认: {reason}")
                    return RunOutcome(RunStatus.NEEDS_CONFIRMATION, f"需要用户确认: {reason}", step)
                if is_stuck([e.action for e in entries], self.config.stuck_window):
                    return self._fail(StuckDetectedError(MSG_STUCK), step)

                await self._sleep_ms(self.config.wait_after_action_ms)
        finally:
            self._state = EngineState.STOPPED

    def _fail(self, failure: TaskFailure, step: int) -> RunOutcome:
        self._log.error(f"任务失败: {failure.message}")
        return RunOutcome(RunStatus.FAILED, failure.message, step, failure=failure)
