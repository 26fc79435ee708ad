"""
任务生命周期管理

包装执行引擎：
- submit 创建 RUNNING 任务并在后台执行，同一时间只允许一个任务
- 每步记录追加到任务历史并发布新的快照
- pause/cancel 发出停止信号，引擎在下一步开始前停止
- resume 只由调用方显式触发，步数继续累加
"""
from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable, List, Optional

from ...core.constants import TaskStatus
from ...core.logger import get_task_logger, logger, release_task_logger
from ...models.task import ActionHistory, Task, TodoList
from ..decision.errors import DecisionError
from ..execution.engine import ExecutionEngine, RunOutcome, RunStatus
from ..execution.errors import TaskBusyError
from ..perception.base import PerceptionError

COMPLEX_TASK_KEYWORDS = ("并且", "然后", "接着", "之后", "最后", "搜索", "找到", "截图")
TaskListener = Callable[[Task], Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


class TaskManager:
    def __init__(self, engine: ExecutionEngine, history_limit: int = 100) -> None:
        self.engine = engine
        self._current: Optional[Task] = None
        self._runner: Optional[asyncio.Task] = None
        self._history: List[Task] = []
        self._history_limit = history_limit
        self._listeners: List[TaskListener] = []
        self._log = logger.bind(module="TaskManager")

    # ---- 发布 ----

    @property
    def current_task(self) -> Optional[Task]:
        return self._current

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, task: Task) -> Task:
        self._current = task
        for listener in list(self._listeners):
            try:
                outcome = listener(task)
                if inspect.isawaitable(outcome):
                    asyncio.ensure_future(outcome)
            except Exception as e:
                self._log.warning(f"任务监听器异常: {e}")
        return task

    def _archive(self, task: Task) -> None:
        self._history = [t for t in self._history if t.id != task.id]
        self._history.append(task)
        if len(self._history) > self._history_limit:
            del self._history[: len(self._history) - self._history_limit]

    # ---- 提交与执行 ----

    def is_busy(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def submit(self, description: str, plan: Optional[List[str]] = None) -> Task:
        """创建任务并在后台执行，返回初始快照"""
        description = (description or "").strip()
        if not description:
            raise ValueError("任务描述不能为空")
        if self.is_busy():
            raise TaskBusyError("已有任务正在执行")

        now = _now_ms()
        task = Task(
            description=description,
            status=TaskStatus.RUNNING,
            created_at=now,
            started_at=now,
            plan=TodoList.from_descriptions(plan) if plan else None,
        )
        self._publish(task)
        self._log.info(f"任务开始: {task.id} - {description}")
        self._runner = asyncio.ensure_future(self._run(task.id))
        return task

    async def execute_task(self, description: str, plan: Optional[List[str]] = None) -> Task:
        """提交并等待任务结束"""
        self.submit(description, plan)
        return await self.wait()

    async def wait(self) -> Optional[Task]:
        if self._runner is not None:
            await asyncio.shield(self._runner)
        return self._current

    async def _run(self, task_id: str) -> None:
        task = self._current
        if task is None or task.id != task_id:
            return
        # 启动前已被暂停或取消
        if task.status is not TaskStatus.RUNNING:
            self._finish(task_id, RunOutcome(RunStatus.STOPPED, "任务已停止", task.current_step))
            return
        task_log = get_task_logger(task_id)

        async def _on_progress(entry: ActionHistory) -> None:
            current = self._current
            if current is None or current.id != task_id:
                return
            self._publish(current.append_history(entry))
            task_log.info(entry.summary())

        try:
            outcome = await self.engine.run(
                task.description,
                on_progress=_on_progress,
                start_step=task.current_step,
                prior_history=list(task.history),
                plan_provider=lambda: self._current.plan if self._current else None,
            )
        except Exception as e:
            self._log.exception("任务执行异常")
            outcome = RunOutcome(RunStatus.FAILED, str(e) or type(e).__name__, task.current_step)
        finally:
            release_task_logger(task_id)
        self._finish(task_id, outcome)

    def _finish(self, task_id: str, outcome: RunOutcome) -> None:
        current = self._current
        if current is None or current.id != task_id:
            return
        # 已取消的任务保持取消；已暂停的任务只有在引擎因停止信号退出时保持暂停
        if current.status is TaskStatus.CANCELLED:
            self._archive(current)
            self._log.info(f"任务结束: {task_id} 状态={current.status.value}")
            return
        if current.status is TaskStatus.PAUSED and outcome.status is RunStatus.STOPPED:
            self._log.info(f"任务已暂停于第 {current.current_step} 步: {task_id}")
            return

        now = _now_ms()
        if outcome.status is RunStatus.COMPLETED:
            task = current.evolve(status=TaskStatus.COMPLETED, completed_at=now, result=outcome.message)
        elif outcome.status is RunStatus.NEEDS_CONFIRMATION:
            task = current.evolve(
                status=TaskStatus.COMPLETED,
                completed_at=now,
                result=outcome.message,
                needs_user_confirmation=True,
            )
        elif outcome.status is RunStatus.STOPPED:
            task = current.evolve(status=TaskStatus.CANCELLED, completed_at=now)
        else:
            task = current.evolve(
                status=TaskStatus.FAILED,
                completed_at=now,
                error=outcome.message or "任务执行失败",
            )
        self._publish(task)
        self._archive(task)
        self._log.info(f"任务结束: {task_id} 状态={task.status.value}")

    async def execute_single_step(self, description: str) -> Task:
        """只执行一步的任务"""
        if self.is_busy():
            raise TaskBusyError("已有任务正在执行")
        now = _now_ms()
        task = self._publish(Task(description=description, status=TaskStatus.RUNNING, created_at=now, started_at=now))
        self._runner = asyncio.ensure_future(self._run_single_step(task))
        return await self._runner

    async def _run_single_step(self, task: Task) -> Task:
        try:
            report = await self.engine.run_single_step(task.description)
        except (PerceptionError, DecisionError) as e:
            task = task.evolve(status=TaskStatus.FAILED, completed_at=_now_ms(), error=str(e))
        else:
            if report.entry is None:
                task = task.evolve(
                    status=TaskStatus.COMPLETED,
                    completed_at=_now_ms(),
                    result=f"需要用户确认: {report.confirmation_reason or report.blocked_result.message}",
                    needs_user_confirmation=True,
                )
            else:
                result = report.entry.result
                task = task.append_history(report.entry).evolve(completed_at=_now_ms())
                if result.success:
                    task = task.evolve(
                        status=TaskStatus.COMPLETED,
                        result=result.message,
                        needs_user_confirmation=result.needs_user_confirmation,
                    )
                else:
                    task = task.evolve(
                        status=TaskStatus.FAILED,
                        error=result.message,
                        needs_user_confirmation=result.needs_user_confirmation,
                    )
        current = self._current
        if current is not None and current.id == task.id and current.status is TaskStatus.CANCELLED:
            self._archive(current)
            return current
        self._publish(task)
        self._archive(task)
        return task

    # ---- 控制 ----

    def pause(self) -> Optional[Task]:
        task = self._current
        if task is None or task.status is not TaskStatus.RUNNING:
            return None
        self.engine.request_stop()
        self._log.info(f"任务已暂停: {task.id}")
        return self._publish(task.evolve(status=TaskStatus.PAUSED))

    def cancel(self) -> Optional[Task]:
        task = self._current
        if task is None or task.status.is_terminal():
            return None
        self.engine.request_stop()
        cancelled = self._publish(task.evolve(status=TaskStatus.CANCELLED, completed_at=_now_ms()))
        if not self.is_busy():
            self._archive(cancelled)
        self._log.info(f"任务已取消: {task.id}")
        return cancelled

    async def resume(self) -> Task:
        """继续已暂停的任务，沿用已有历史与步数"""
        task = self._current
        if task is None or not task.status.can_resume():
            raise ValueError("没有可恢复的任务")
        # 等待上一轮执行完全退出，期间任务可能已结束
        await self.wait()
        if self._current is None or not self._current.status.can_resume():
            raise ValueError("没有可恢复的任务")
        task = self._publish(self._current.evolve(status=TaskStatus.RUNNING))
        self._log.info(f"任务已恢复: {task.id} 从第 {task.current_step + 1} 步继续")
        self._runner = asyncio.ensure_future(self._run(task.id))
        return task

    # ---- 计划 ----

    def attach_plan(self, steps: List[str]) -> Optional[Task]:
        task = self._current
        if task is None or task.status.is_terminal():
            return None
        return self._publish(task.evolve(plan=TodoList.from_descriptions(steps)))

    def advance_plan(self) -> Optional[Task]:
        task = self._current
        if task is None or task.plan is None:
            return None
        return self._publish(task.evolve(plan=task.plan.mark_current_step_completed()))

    # ---- 历史 ----

    def task_history(self) -> List[Task]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
        self._log.info("任务历史已清空")

    @staticmethod
    def is_complex_task(description: str) -> bool:
        text = description or ""
        return any(keyword in text for keyword in COMPLEX_TASK_KEYWORDS) or len(text) > 20
