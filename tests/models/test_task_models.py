import pytest

from autoai.core.constants import TaskStatus
from autoai.models import (
    ActionHistory,
    ActionResult,
    Click,
    Complete,
    Input,
    Task,
    TodoList,
    TodoStep,
)


def _entry(step: int, action=None) -> ActionHistory:
    return ActionHistory(step=step, action=action or Click(1, 2), result=ActionResult.ok())


def test_todo_list_rejects_out_of_range_index():
    with pytest.raises(ValueError):
        TodoList(steps=(TodoStep("a"),), current_step_index=2)


def test_todo_list_rejects_incomplete_step_before_index():
    with pytest.raises(ValueError):
        TodoList(steps=(TodoStep("a"), TodoStep("b")), current_step_index=1)


def test_todo_list_progress_and_completion():
    plan = TodoList.from_descriptions(["打开设置", "进入 WLAN", "打开开关"])
    assert plan.progress() == 0.0
    assert plan.current_step().description == "打开设置"

    plan = plan.mark_current_step_completed().mark_current_step_completed()
    assert plan.current_step_index == 2
    assert plan.progress() == pytest.approx(2 / 3)
    assert not plan.is_all_completed()

    plan = plan.mark_current_step_completed()
    assert plan.is_all_completed()
    assert plan.current_step() is None
    assert plan.mark_current_step_completed() is plan
    assert plan.steps[0].completed_at is not None


def test_empty_plan_is_not_completed():
    plan = TodoList()
    assert plan.progress() == 0.0
    assert not plan.is_all_completed()


def test_append_history_requires_increasing_steps():
    task = Task(description="打开设置").append_history(_entry(1)).append_history(_entry(2))
    assert task.current_step == 2

    with pytest.raises(ValueError):
        task.append_history(_entry(2))


def test_task_is_immutable_snapshot():
    task = Task(description="打开设置")
    running = task.evolve(status=TaskStatus.RUNNING, started_at=1000)

    assert task.status is TaskStatus.PENDING
    assert running.status is TaskStatus.RUNNING
    assert running.id == task.id


def test_task_recent_actions_and_progress():
    task = Task(description="x")
    for step in range(1, 5):
        task = task.append_history(_entry(step, Click(step, step)))

    assert task.recent_actions(2) == [Click(3, 3), Click(4, 4)]
    assert task.recent_actions(0) == []
    assert task.progress() == 0.0
    assert task.evolve(status=TaskStatus.COMPLETED).progress() == 1.0


def test_task_to_dict_hides_input_text():
    task = Task(description="登录").append_history(_entry(1, Input("13812345678")))
    data = task.to_dict()

    assert data["status"] == "pending"
    assert data["history"][0]["action"] == "input"
    assert "13812345678" not in data["history"][0]["description"]
    assert "history" not in task.to_dict(include_history=False)


def test_duration_uses_completion_time():
    task = Task(description="x", started_at=1000, completed_at=3500)
    assert task.duration_ms() == 2500
    assert Task(description="x").duration_ms() is None


def test_history_summary_includes_failure_message():
    ok = ActionHistory(step=1, action=Complete("done"), result=ActionResult.ok())
    bad = ActionHistory(step=2, action=Click(1, 1), result=ActionResult.failure("超时"))

    assert ok.summary() == "步骤1: 完成: done -> 成功"
    assert bad.summary() == "步骤2: 点击 (1, 1) -> 失败 (超时)"


def test_status_helpers():
    assert TaskStatus.CANCELLED.is_terminal()
    assert not TaskStatus.PAUSED.is_terminal()
    assert TaskStatus.PAUSED.can_resume()
    assert not TaskStatus.COMPLETED.can_resume()
