import pytest

from autoai.models import (
    ActionHistory,
    ActionResult,
    Click,
    Input,
    OpenApp,
    Rect,
    ScreenState,
    TodoList,
    UiElement,
    ViewNode,
)
from autoai.modules.decision.errors import DecisionError, DecisionErrorKind
from autoai.modules.decision.gateway import DecisionGateway
from autoai.modules.decision.prompt import PromptBuilder, format_action, format_entry
from autoai.modules.decision.service import DecisionService, DecisionServiceError


def _state(**overrides) -> ScreenState:
    values = dict(
        image=None,
        image_encoded="aW1n",
        foreground_app="com.android.launcher3",
        ui_tree=ViewNode(),
        elements=(
            UiElement(
                id=0,
                kind="button",
                text="设置",
                accessibility_label="",
                identifier="",
                bounds=Rect(0, 0, 100, 100),
                clickable=True,
                enabled=True,
                scrollable=False,
                editable=False,
            ),
        ),
        extracted_text=("设置", "相机"),
        description="=== 屏幕概览 ===",
        width=1080,
        height=2400,
    )
    values.update(overrides)
    return ScreenState(**values)


class _DummyService(DecisionService):
    def __init__(self, reply="", exc=None):
        self.reply = reply
        self.exc = exc
        self.calls = []

    async def chat(self, system_prompt, user_prompt, image_base64=None):
        self.calls.append((system_prompt, user_prompt, image_base64))
        if self.exc is not None:
            raise self.exc
        return self.reply

    async def test_connection(self):
        raise NotImplementedError


def test_user_prompt_sections():
    plan = TodoList.from_descriptions(["打开设置", "打开 WLAN"]).mark_current_step_completed()
    history = [
        ActionHistory(step=1, action=Click(1, 1), result=ActionResult.ok()),
        ActionHistory(step=2, action=Click(2, 2), result=ActionResult.failure("点击未生效")),
        ActionHistory(step=3, action=Input("x" * 60), result=ActionResult.ok()),
        ActionHistory(step=4, action=OpenApp("com.android.settings"), result=ActionResult.ok()),
    ]

    prompt = PromptBuilder().build_user_prompt("打开 WLAN", _state(), history, plan)

    assert "## 当前任务\n打开 WLAN" in prompt
    assert "前台应用: com.android.launcher3" in prompt
    assert "屏幕尺寸: 1080 x 2400" in prompt
    assert "- [x] 打开设置" in prompt
    assert "- [>] 打开 WLAN" in prompt
    assert "- [可点击][button] 设置 @ (50, 50)" in prompt
    assert "点击 (1, 1)" not in prompt
    assert "- 步骤2: 点击 (2, 2) -> 失败 (点击未生效)\n" in prompt
    assert f"- 步骤3: 输入文本: {'x' * 40} -> 成功\n" in prompt
    assert prompt.rstrip().endswith("不要附加其他文本。")


def test_user_prompt_truncates_lists():
    texts = tuple(f"t{i}" for i in range(20))
    prompt = PromptBuilder(max_text_lines=15).build_user_prompt("x", _state(extracted_text=texts))

    assert "- t14" in prompt
    assert "- t15" not in prompt
    assert "其余 5 条文本已省略" in prompt


def test_format_action_truncates_input():
    assert format_action(Input("a" * 50)) == "输入文本: " + "a" * 40
    assert format_action(Click(3, 4)) == "点击 (3, 4)"


def test_format_entry_shows_failure_reason():
    failed = ActionHistory(step=5, action=Input("y" * 50), result=ActionResult.failure("输入框未聚焦"))
    assert format_entry(failed) == f"步骤5: 输入文本: {'y' * 40} -> 失败 (输入框未聚焦)"


@pytest.mark.asyncio
async def test_decide_returns_validated_action_with_reasoning():
    service = _DummyService('```json\n{"action":"open_app","package":"com.android.settings","reasoning":"先打开设置"}\n```')
    gateway = DecisionGateway(service)

    decision = await gateway.decide("打开设置", _state())

    assert decision.action == OpenApp("com.android.settings")
    assert decision.reasoning == "先打开设置"
    system_prompt, user_prompt, image = service.calls[0]
    assert "request_user_help" in system_prompt
    assert "打开设置" in user_prompt
    assert image == "aW1n"


@pytest.mark.asyncio
async def test_decide_without_image_sends_none():
    service = _DummyService('{"action":"go_back"}')
    await DecisionGateway(service).decide("x", _state(image_encoded=""))

    assert service.calls[0][2] is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "service, kind",
    [
        (_DummyService(exc=DecisionServiceError("timeout")), DecisionErrorKind.TRANSPORT),
        (_DummyService(reply="  "), DecisionErrorKind.EMPTY),
        (_DummyService(reply="no json"), DecisionErrorKind.PARSE),
        (_DummyService(reply='{"action":"click","x":-5,"y":1}'), DecisionErrorKind.VALIDATION),
    ],
)
async def test_decide_error_kinds(service, kind):
    with pytest.raises(DecisionError) as excinfo:
        await DecisionGateway(service).decide("x", _state())
    assert excinfo.value.kind is kind
