"""
特权 Shell 控制后端

通过 ShellChannel 下发 input / monkey / dumpsys 命令。
"""
from __future__ import annotations

import re
import shlex
from typing import List, Optional, Pattern

from ...core.constants import ControlMode
from ...models.action import ActionResult, Click, Input, LongClick, OpenApp, PressKey, Swipe
from .base import SHELL_DELAYS, ControlBackend, ControlError, SettleDelays
from .shell import ShellChannel
from .status import ConnectionStatus

# 按顺序尝试，命中即返回
FOREGROUND_PATTERNS: List[Pattern[str]] = [
    re.compile(r"mCurrentFocus=Window\{[^}]+\s([a-zA-Z0-9._]+)/"),
    re.compile(r"mFocusedApp=AppWindowToken\{[^}]+\s([a-zA-Z0-9._]+)/"),
    re.compile(r"mFocusedApp=ActivityRecord\{[^}]+\s([a-zA-Z0-9._]+)/"),
]

_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("$", "\\$"),
    ("`", "\\`"),
    (" ", "%s"),
    ("&", "%26"),
    ("<", "%3c"),
    (">", "%3e"),
    ("|", "%7c"),
    (";", "%3b"),
)


def escape_input_text(text: str) -> str:
    """转义 `input text` 参数，反斜杠最先处理"""
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def parse_foreground_package(dump: str) -> str:
    """从 dumpsys window 输出中解析前台包名，未命中返回空串"""
    for pattern in FOREGROUND_PATTERNS:
        match = pattern.search(dump or "")
        if match:
            return match.group(1)
    return ""


class ShellControlBackend(ControlBackend):
    mode = ControlMode.SHELL

    def __init__(self, channel: ShellChannel, delays: Optional[SettleDelays] = None) -> None:
        super().__init__(delays or SHELL_DELAYS)
        self.channel = channel

    def is_ready(self) -> bool:
        return self.channel.is_ready()

    def connection_status(self) -> ConnectionStatus:
        return self.channel.status.current

    async def current_foreground_app(self) -> str:
        dump = await self.channel.run("dumpsys window windows")
        package = parse_foreground_package(dump)
        if not package:
            raise ControlError("无法解析前台应用")
        return package

    async def _click(self, action: Click) -> Optional[ActionResult]:
        await self.channel.run(f"input tap {action.x} {action.y}")
        return None

    async def _long_click(self, action: LongClick) -> Optional[ActionResult]:
        # 起止点相同的 swipe 即长按
        await self.channel.run(
            f"input swipe {action.x} {action.y} {action.x} {action.y} {action.duration_ms}"
        )
        return None

    async def _swipe(self, action: Swipe) -> Optional[ActionResult]:
        await self.channel.run(
            f"input swipe {action.from_x} {action.from_y} {action.to_x} {action.to_y} {action.duration_ms}"
        )
        return None

    async def _input(self, action: Input) -> Optional[ActionResult]:
        await self.channel.run(f'input text "{escape_input_text(action.text)}"')
        return None

    async def _press_key(self, action: PressKey) -> Optional[ActionResult]:
        await self.channel.run(f"input keyevent {action.code}")
        return None

    async def _open_app(self, action: OpenApp) -> Optional[ActionResult]:
        out = await self.channel.run(f"monkey -p {shlex.quote(action.app_id)} -c android.intent.category.LAUNCHER 1")
        # monkey 返回码可能为 0 但未真正注入事件
        if "No activities found" in out or "Error" in out:
            return ActionResult.failure(f"无法启动应用: {action.app_id}")
        return ActionResult.ok(f"已打开 {action.display_name or action.app_id}")
