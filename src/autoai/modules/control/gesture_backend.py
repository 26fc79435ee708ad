"""
无障碍手势控制后端

只能触发有限的全局动作（返回/主页/最近任务），其余按键返回失败结果。
"""
from __future__ import annotations

from typing import Optional

from ...core.constants import ControlMode, KeyCode
from ...models.action import ActionResult, Click, Input, LongClick, OpenApp, PressKey, Swipe
from .base import GESTURE_DELAYS, ControlBackend, ControlError, SettleDelays
from .gesture import BridgeError, HttpGestureBridge
from .status import ConnectionStatus

GLOBAL_ACTIONS = {
    KeyCode.BACK: "back",
    KeyCode.HOME: "home",
    KeyCode.APP_SWITCH: "recents",
}


class GestureControlBackend(ControlBackend):
    mode = ControlMode.GESTURE

    def __init__(self, bridge: HttpGestureBridge, delays: Optional[SettleDelays] = None) -> None:
        super().__init__(delays or GESTURE_DELAYS)
        self.bridge = bridge

    def is_ready(self) -> bool:
        return self.bridge.is_ready()

    def connection_status(self) -> ConnectionStatus:
        return self.bridge.status.current

    async def current_foreground_app(self) -> str:
        try:
            package = await self.bridge.foreground_package()
        except BridgeError as e:
            raise ControlError(str(e)) from e
        if not package:
            raise ControlError("无法获取前台应用")
        return package

    async def _click(self, action: Click) -> Optional[ActionResult]:
        await self.bridge.tap(action.x, action.y)
        return None

    async def _long_click(self, action: LongClick) -> Optional[ActionResult]:
        await self.bridge.long_press(action.x, action.y, action.duration_ms)
        return None

    async def _swipe(self, action: Swipe) -> Optional[ActionResult]:
        await self.bridge.swipe(action.from_x, action.from_y, action.to_x, action.to_y, action.duration_ms)
        return None

    async def _input(self, action: Input) -> Optional[ActionResult]:
        await self.bridge.set_text(action.text)
        return None

    async def _press_key(self, action: PressKey) -> Optional[ActionResult]:
        global_action = GLOBAL_ACTIONS.get(action.code)
        if global_action is None:
            return ActionResult.failure(f"无法模拟按键: {action.name or action.code}")
        await self.bridge.global_action(global_action)
        return None

    async def _open_app(self, action: OpenApp) -> Optional[ActionResult]:
        await self.bridge.launch(action.app_id)
        return ActionResult.ok(f"已打开 {action.display_name or action.app_id}")
