"""
控制后端基类

所有后端实现同一能力接口：
- is_ready()
- execute(action) -> ActionResult（不抛异常，执行异常转为失败结果）
- current_foreground_app() -> 包名（失败抛 ControlError）

execute 按动作类型分派到子类的 _click/_swipe/... 钩子；
成功后等待对应的稳定延时再返回，给界面留出响应时间。
"""
from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ...core.constants import ControlMode, SettleDelayMs
from ...core.logger import logger
from ...models.action import (
    Action,
    ActionResult,
    Click,
    Complete,
    Error,
    GoBack,
    Input,
    LongClick,
    OpenApp,
    PressKey,
    RequestUserHelp,
    Swipe,
    Wait,
)
from ..safety.pii import redact_pii
from .status import ConnectionStatus


class ControlError(RuntimeError):
    """控制后端异常"""


@dataclass(frozen=True)
class SettleDelays:
    """每类动作执行成功后的稳定等待（毫秒）"""
    tap_ms: int = SettleDelayMs.SHELL_TAP
    long_press_ms: int = SettleDelayMs.SHELL_TAP
    swipe_ms: int = SettleDelayMs.SHELL_SWIPE
    input_ms: int = SettleDelayMs.SHELL_INPUT
    key_ms: int = SettleDelayMs.SHELL_KEY
    launch_ms: int = SettleDelayMs.LAUNCH

    @classmethod
    def uniform(cls, delay_ms: int, launch_ms: int = SettleDelayMs.LAUNCH) -> "SettleDelays":
        return cls(delay_ms, delay_ms, delay_ms, delay_ms, delay_ms, launch_ms)

    @classmethod
    def none(cls) -> "SettleDelays":
        return cls.uniform(0, 0)

    def for_action(self, action: Action) -> int:
        if isinstance(action, Click):
            return self.tap_ms
        if isinstance(action, LongClick):
            return self.long_press_ms
        if isinstance(action, Swipe):
            return self.swipe_ms
        if isinstance(action, Input):
            return self.input_ms
        if isinstance(action, (PressKey, GoBack)):
            return self.key_ms
        if isinstance(action, OpenApp):
            return self.launch_ms
        return 0


SHELL_DELAYS = SettleDelays()
GESTURE_DELAYS = SettleDelays.uniform(SettleDelayMs.GESTURE)


class ControlBackend(ABC):
    mode: ControlMode

    def __init__(self, delays: Optional[SettleDelays] = None) -> None:
        self.delays = delays or SHELL_DELAYS
        self._log = logger.bind(module=type(self).__name__)

    @abstractmethod
    def is_ready(self) -> bool:
        ...

    def connection_status(self) -> Optional[ConnectionStatus]:
        return None

    @abstractmethod
    async def current_foreground_app(self) -> str:
        """返回前台应用包名，失败抛 ControlError"""

    @abstractmethod
    async def _click(self, action: Click) -> Optional[ActionResult]:
        ...

    @abstractmethod
    async def _long_click(self, action: LongClick) -> Optional[ActionResult]:
        ...

    @abstractmethod
    async def _swipe(self, action: Swipe) -> Optional[ActionResult]:
        ...

    @abstractmethod
    async def _input(self, action: Input) -> Optional[ActionResult]:
        ...

    @abstractmethod
    async def _press_key(self, action: PressKey) -> Optional[ActionResult]:
        ...

    @abstractmethod
    async def _open_app(self, action: OpenApp) -> Optional[ActionResult]:
        ...

    async def _go_back(self, action: GoBack) -> Optional[ActionResult]:
        return await self._press_key(PressKey(code=4, name="back"))

    async def _settle(self, action: Action) -> None:
        delay = self.delays.for_action(action)
        if delay > 0:
            await asyncio.sleep(delay / 1000)

    async def _dispatch(self, action: Action) -> ActionResult:
        # 结构性动作与后端无关
        if isinstance(action, Complete):
            return ActionResult.ok(action.message)
        if isinstance(action, Error):
            return ActionResult.failure(action.message or "AI 上报错误")
        if isinstance(action, RequestUserHelp):
            return ActionResult.failure(action.reason or "需要用户协助", needs_user_confirmation=True)
        if isinstance(action, Wait):
            await asyncio.sleep(max(0, action.duration_ms) / 1000)
            return ActionResult.ok(f"已等待 {action.duration_ms}ms")

        handlers = {
            Click: self._click,
            LongClick: self._long_click,
            Swipe: self._swipe,
            Input: self._input,
            PressKey: self._press_key,
            OpenApp: self._open_app,
            GoBack: self._go_back,
        }
        handler = handlers.get(type(action))
        if handler is None:
            return ActionResult.failure(f"不支持的动作类型: {action.kind}")
        outcome = await handler(action)
        if outcome is not None and not outcome.success:
            return outcome
        await self._settle(action)
        return outcome or ActionResult.ok(f"{action.describe()} 成功")

    async def execute(self, action: Action) -> ActionResult:
        if isinstance(action, Input):
            self._log.info(f"执行: input {redact_pii(action.text)!r}")
        else:
            self._log.info(f"执行: {action.describe()}")
        start = time.perf_counter()
        try:
            result = await self._dispatch(action)
        except Exception as e:
            elapsed = int((time.perf_counter() - start) * 1000)
            self._log.warning(f"动作执行异常: {action.kind}: {e}")
            return ActionResult.failure(f"执行失败: {e}", error=e, execution_time_ms=elapsed)
        elapsed = int((time.perf_counter() - start) * 1000)
        if not result.success:
            self._log.warning(f"动作执行失败: {action.kind}: {result.message}")
        return ActionResult(
            success=result.success,
            message=result.message,
            execution_time_ms=elapsed,
            error=result.error,
            needs_user_confirmation=result.needs_user_confirmation,
        )
