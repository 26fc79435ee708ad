from .action import (
    ACTION_TYPES,
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
from .screen import Rect, ScreenState, UiElement, ViewNode
from .task import ActionHistory, Task, TodoList, TodoStep

__all__ = [
    "ACTION_TYPES",
    "Action",
    "ActionResult",
    "Click",
    "Complete",
    "Error",
    "GoBack",
    "Input",
    "LongClick",
    "OpenApp",
    "PressKey",
    "RequestUserHelp",
    "Swipe",
    "Wait",
    "Rect",
    "ScreenState",
    "UiElement",
    "ViewNode",
    "ActionHistory",
    "Task",
    "TodoList",
    "TodoStep",
]
