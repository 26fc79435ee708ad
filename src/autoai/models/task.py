"""
任务模型

Task 为不可变快照，每次状态变化生成新的快照，只有任务管理器会生成它。
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from ..core.constants import TaskStatus
from .action import Action, ActionResult
from .screen import ScreenState


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ActionHistory:
    step: int
    action: Action
    result: ActionResult
    timestamp: int = field(default_factory=_now_ms)
    reasoning: str = ""
    screen_before: Optional[ScreenState] = None
    screen_after: Optional[ScreenState] = None

    def summary(self, action_text: Optional[str] = None) -> str:
        status = "成功" if self.result.success else "失败"
        text = f"步骤{self.step}: {action_text or self.action.describe()} -> {status}"
        if not self.result.success and self.result.message:
            text += f" ({self.result.message})"
        return text

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "action": self.action.kind,
            "description": self.action.describe(),
            "result": self.result.to_dict(),
            "timestamp": self.timestamp,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class TodoStep:
    description: str
    expected_result: str = ""
    is_completed: bool = False
    is_key_step: bool = False
    completed_at: Optional[int] = None


@dataclass(frozen=True)
class TodoList:
    """任务拆解计划；current_step_index 之前的步骤都已完成"""
    steps: Tuple[TodoStep, ...] = ()
    current_step_index: int = 0

    def __post_init__(self):
        if not 0 <= self.current_step_index <= len(self.steps):
            raise ValueError(f"current_step_index 越界: {self.current_step_index}")
        for step in self.steps[: self.current_step_index]:
            if not step.is_completed:
                raise ValueError("current_step_index 之前存在未完成步骤")

    @classmethod
    def from_descriptions(cls, descriptions: List[str]) -> "TodoList":
        return cls(steps=tuple(TodoStep(description=d) for d in descriptions))

    def current_step(self) -> Optional[TodoStep]:
        if self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None

    def progress(self) -> float:
        if not self.steps:
            return 0.0
        done = sum(1 for step in self.steps if step.is_completed)
        return done / len(self.steps)

    def is_all_completed(self) -> bool:
        return bool(self.steps) and all(step.is_completed for step in self.steps)

    def mark_current_step_completed(self) -> "TodoList":
        current = self.current_step()
        if current is None:
            return self
        steps = list(self.steps)
        steps[self.current_step_index] = replace(current, is_completed=True, completed_at=_now_ms())
        return TodoList(steps=tuple(steps), current_step_index=self.current_step_index + 1)


@dataclass(frozen=True)
class Task:
    description: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: TaskStatus = TaskStatus.PENDING
    created_at: int = field(default_factory=_now_ms)
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    current_step: int = 0
    history: Tuple[ActionHistory, ...] = ()
    result: Optional[str] = None
    error: Optional[str] = None
    plan: Optional[TodoList] = None
    needs_user_confirmation: bool = False

    def evolve(self, **changes) -> "Task":
        return replace(self, **changes)

    def append_history(self, entry: ActionHistory) -> "Task":
        if self.history and entry.step <= self.history[-1].step:
            raise ValueError(f"历史步骤必须递增: {entry.step} <= {self.history[-1].step}")
        return replace(
            self,
            history=self.history + (entry,),
            current_step=max(self.current_step, entry.step),
        )

    def duration_ms(self) -> Optional[int]:
        if self.started_at is None:
            return None
        end = self.completed_at if self.completed_at is not None else _now_ms()
        return end - self.started_at

    def progress(self) -> float:
        if self.plan is not None:
            return self.plan.progress()
        return 1.0 if self.status is TaskStatus.COMPLETED else 0.0

    def recent_actions(self, limit: int) -> List[Action]:
        if limit <= 0:
            return []
        return [entry.action for entry in self.history[-limit:]]

    def to_dict(self, include_history: bool = True) -> dict:
        data = {
            "id": self.id,
            "description": self.description,
            "status": self.status.value,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "current_step": self.current_step,
            "result": self.result,
            "error": self.error,
            "needs_user_confirmation": self.needs_user_confirmation,
            "duration_ms": self.duration_ms(),
            "progress": round(self.progress(), 3),
        }
        if self.plan is not None:
            data["plan"] = {
                "current_step_index": self.plan.current_step_index,
                "steps": [
                    {
                        "description": s.description,
                        "expected_result": s.expected_result,
                        "is_completed": s.is_completed,
                        "is_key_step": s.is_key_step,
                    }
                    for s in self.plan.steps
                ],
            }
        if include_history:
            data["history"] = [entry.to_dict() for entry in self.history]
        return data
