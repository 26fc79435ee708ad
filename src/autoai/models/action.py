"""
动作模型

决策服务可返回的全部动作（封闭集合），以及单次执行结果。
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import ClassVar, Dict, Optional, Type


@dataclass(frozen=True)
class Action:
    kind: ClassVar[str] = ""

    def describe(self) -> str:
        return self.kind


@dataclass(frozen=True)
class Click(Action):
    kind: ClassVar[str] = "click"
    x: int
    y: int

    def describe(self) -> str:
        return f"点击 ({self.x}, {self.y})"


@dataclass(frozen=True)
class LongClick(Action):
    kind: ClassVar[str] = "long_click"
    x: int
    y: int
    duration_ms: int = 1000

    def describe(self) -> str:
        return f"长按 ({self.x}, {self.y}) {self.duration_ms}ms"


@dataclass(frozen=True)
class Swipe(Action):
    kind: ClassVar[str] = "swipe"
    from_x: int
    from_y: int
    to_x: int
    to_y: int
    duration_ms: int = 300

    def describe(self) -> str:
        return f"滑动 ({self.from_x}, {self.from_y}) -> ({self.to_x}, {self.to_y})"


@dataclass(frozen=True)
class Input(Action):
    kind: ClassVar[str] = "input"
    text: str

    def describe(self) -> str:
        return f"输入文本 ({len(self.text)} 字)"


@dataclass(frozen=True)
class PressKey(Action):
    kind: ClassVar[str] = "press_key"
    code: int
    name: str = ""

    def describe(self) -> str:
        return f"按键 {self.name or self.code}"


@dataclass(frozen=True)
class OpenApp(Action):
    kind: ClassVar[str] = "open_app"
    app_id: str
    display_name: str = ""

    def describe(self) -> str:
        return f"打开应用 {self.display_name or self.app_id}"


@dataclass(frozen=True)
class Wait(Action):
    kind: ClassVar[str] = "wait"
    duration_ms: int = 1000

    def describe(self) -> str:
        return f"等待 {self.duration_ms}ms"


@dataclass(frozen=True)
class GoBack(Action):
    kind: ClassVar[str] = "go_back"

    def describe(self) -> str:
        return "返回"


@dataclass(frozen=True)
class Complete(Action):
    kind: ClassVar[str] = "complete"
    message: str = "任务完成"

    def describe(self) -> str:
        return f"完成: {self.message}"


@dataclass(frozen=True)
class Error(Action):
    kind: ClassVar[str] = "error"
    message: str = ""
    recoverable: bool = False

    def describe(self) -> str:
        return f"错误: {self.message}"


@dataclass(frozen=True)
class RequestUserHelp(Action):
    kind: ClassVar[str] = "request_user_help"
    reason: str = ""

    def describe(self) -> str:
        return f"请求协助: {self.reason}"


ACTION_TYPES: Dict[str, Type[Action]] = {
    cls.kind: cls
    for cls in (Click, LongClick, Swipe, Input, PressKey, OpenApp, Wait, GoBack, Complete, Error, RequestUserHelp)
}


@dataclass(frozen=True)
class ActionResult:
    success: bool
    message: str = ""
    execution_time_ms: int = 0
    error: Optional[BaseException] = None
    needs_user_confirmation: bool = False

    @classmethod
    def ok(cls, message: str = "执行成功", execution_time_ms: int = 0) -> "ActionResult":
        return cls(success=True, message=message, execution_time_ms=execution_time_ms)

    @classmethod
    def failure(
        cls,
        message: str,
        error: Optional[BaseException] = None,
        execution_time_ms: int = 0,
        needs_user_confirmation: bool = False,
    ) -> "ActionResult":
        return cls(
            success=False,
            message=message,
            execution_time_ms=execution_time_ms,
            error=error,
            needs_user_confirmation=needs_user_confirmation,
        )

    def with_confirmation(self) -> "ActionResult":
        return replace(self, needs_user_confirmation=True)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "execution_time_ms": self.execution_time_ms,
            "error": str(self.error) if self.error else None,
            "needs_user_confirmation": self.needs_user_confirmation,
        }
