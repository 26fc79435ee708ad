"""
提示词构建
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from ...models.action import Action, Input
from ...models.screen import ScreenState
from ...models.task import ActionHistory, TodoList

MAX_ELEMENTS = 20
MAX_TEXT_LINES = 15
MAX_HISTORY = 3

SYSTEM_PROMPT = """你是一名专业的 Android 自动化助手，负责读取屏幕截图与控件树信息，规划出最安全、最高效的下一步操作。

## 输出格式
仅输出一个 JSON 对象，不要附带任何解释。示例：
```json
{"action":"click","x":540,"y":1280}
```

## 可用操作
1. 点击控件：`{"action":"click","x":540,"y":1280}`
2. 长按控件：`{"action":"long_click","x":540,"y":1280,"duration":800}`
3. 滑动操作：`{"action":"swipe","from_x":500,"from_y":1500,"to_x":500,"to_y":600,"duration":300}`
4. 输入文本：`{"action":"input","text":"要输入的内容"}`（输入前请先点击输入框）
5. 模拟按键：`{"action":"press_key","key_code":4}`（常用：返回=4，Home=3，最近任务=187）
6. 启动应用：`{"action":"open_app","package":"com.tencent.mm"}`
7. 等待：`{"action":"wait","duration":1500}`（等待界面加载）
8. 返回：`{"action":"go_back"}`
9. 任务完成：`{"action":"complete","message":"说明文字"}`
10. 无法处理：`{"action":"error","message":"原因说明"}`
11. 需要人工介入：`{"action":"request_user_help","reason":"原因说明"}`

## 决策要求
- 仔细阅读提供的控件、文本、历史操作。
- 一次只执行一个动作，必要时先点击再输入。
- 坐标必须在屏幕范围内，优先选择带标签的控件中心坐标。
- 遇到权限弹窗/安全提示，请优先处理。
- 若任务已完成或需要人工介入，请使用 `complete`、`error` 或 `request_user_help` 告知。"""


def format_action(action: Action) -> str:
    """历史动作的一行摘要；输入内容截断到 40 字"""
    if isinstance(action, Input):
        return f"输入文本: {action.text[:40]}"
    return action.describe()


def format_entry(entry: ActionHistory) -> str:
    """带执行结果的历史摘要，失败原因对模型可见"""
    return entry.summary(action_text=format_action(entry.action))


class PromptBuilder:
    def __init__(
        self,
        max_elements: int = MAX_ELEMENTS,
        max_text_lines: int = MAX_TEXT_LINES,
        max_history: int = MAX_HISTORY,
    ) -> None:
        self.max_elements = max_elements
        self.max_text_lines = max_text_lines
        self.max_history = max_history

    def build_system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def build_user_prompt(
        self,
        task: str,
        state: ScreenState,
        history: Sequence[ActionHistory] = (),
        plan: Optional[TodoList] = None,
    ) -> str:
        lines: List[str] = [
            "## 当前任务",
            task,
            "",
            "## 屏幕信息",
            f"前台应用: {state.foreground_app}",
            f"屏幕尺寸: {state.width} x {state.height}",
            "截图已附带，以 data URI 形式提供给模型。",
            "",
        ]

        if plan is not None and plan.steps:
            lines.append(f"## 任务计划（进度 {plan.progress():.0%}）")
            for index, step in enumerate(plan.steps):
                if step.is_completed:
                    marker = "[x]"
                elif index == plan.current_step_index:
                    marker = "[>]"
                else:
                    marker = "[ ]"
                lines.append(f"- {marker} {step.description}")
            lines.append("")

        if state.description.strip():
            lines += ["## 屏幕概览", state.description.strip(), ""]

        elements = state.elements
        if elements:
            lines.append(f"## 重点元素（最多 {self.max_elements} 个）")
            for element in elements[: self.max_elements]:
                label = element.text.strip() or element.accessibility_label.strip() or element.kind
                clickable = "[可点击]" if element.clickable and element.enabled else ""
                cx, cy = element.bounds.center()
                lines.append(f"- {clickable}[{element.kind}] {label} @ ({cx}, {cy})")
            if len(elements) > self.max_elements:
                lines.append(f"… 其余 {len(elements) - self.max_elements} 个元素已省略")
            lines.append("")

        texts = [t for t in state.extracted_text if t.strip()]
        if texts:
            lines.append(f"## 屏幕文本（最多 {self.max_text_lines} 条）")
            lines += [f"- {t}" for t in texts[: self.max_text_lines]]
            if len(texts) > self.max_text_lines:
                lines.append(f"… 其余 {len(texts) - self.max_text_lines} 条文本已省略")
            lines.append("")

        recent = list(history)[-self.max_history :] if self.max_history > 0 else []
        if recent:
            lines.append("## 最近执行的操作")
            lines += [f"- {format_entry(entry)}" for entry in recent]
            lines.append("")

        lines.append("## 决策指令")
        lines.append("请结合截图、控件树与历史操作，输出一个 JSON 对象，描述下一步要执行的动作，不要附加其他文本。")
        return "\n".join(lines)
