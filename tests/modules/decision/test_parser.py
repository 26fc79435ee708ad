import pytest

from autoai.core.constants import KeyCode
from autoai.models import (
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
from autoai.modules.decision import parser
from autoai.modules.decision.errors import DecisionError, DecisionErrorKind


def test_whole_text_json():
    assert parser.parse('{"action":"click","x":100,"y":200}') == Click(100, 200)


def test_fenced_block_json():
    text = '好的，下一步：\n```json\n{"action": "go_back"}\n```\n以上。'
    assert parser.parse(text) == GoBack()


def test_first_balanced_object_skips_braces_in_strings():
    text = '思考: 先输入 {"action":"input","text":"a}b{c"} 然后再看'
    assert parser.parse(text) == Input("a}b{c")


def test_whole_text_array_falls_through_to_braces():
    data = parser.extract_json('[{"action":"wait"}]')
    assert data == {"action": "wait"}


def test_empty_reply_is_empty_error():
    with pytest.raises(DecisionError) as excinfo:
        parser.extract_json("   ")
    assert excinfo.value.kind is DecisionErrorKind.EMPTY


def test_no_json_is_parse_error():
    with pytest.raises(DecisionError) as excinfo:
        parser.extract_json("我不知道该怎么做")
    assert excinfo.value.kind is DecisionErrorKind.PARSE
    assert str(excinfo.value).startswith("无法解析 AI 响应")
    assert excinfo.value.raw_reply == "我不知道该怎么做"


def test_aliases_and_defaults():
    assert parser.to_action({"type": "swipe", "fromX": 1, "fromY": 2, "toX": 3, "toY": "4"}) == Swipe(1, 2, 3, 4, 300)
    assert parser.to_action({"action": "long_click", "x": 5.7, "y": 6}) == LongClick(5, 6, 1000)
    assert parser.to_action({"action": "wait"}) == Wait(1000)
    assert parser.to_action({"action": "click"}) == Click(0, 0)
    assert parser.to_action({"action": "open_app", "packageName": "com.a", "appName": "A"}) == OpenApp("com.a", "A")
    assert parser.to_action({"action": "COMPLETE"}) == Complete("任务完成")


def test_press_key_by_name():
    action = parser.to_action({"action": "press_key", "key_name": "Back"})
    assert action == PressKey(code=int(KeyCode.BACK), name="Back")


def test_non_numeric_coordinate_is_parse_error():
    with pytest.raises(DecisionError) as excinfo:
        parser.to_action({"action": "click", "x": "left", "y": 1})
    assert excinfo.value.kind is DecisionErrorKind.PARSE

    with pytest.raises(DecisionError):
        parser.to_action({"action": "click", "x": True, "y": 1})


def test_overflowing_number_is_parse_error():
    with pytest.raises(DecisionError) as excinfo:
        parser.parse('{"action":"click","x":1e400,"y":5}')
    assert excinfo.value.kind is DecisionErrorKind.PARSE

    with pytest.raises(DecisionError):
        parser.to_action({"action": "wait", "duration": "inf"})


@pytest.mark.parametrize("data", [{"action": "fly"}, {"x": 1}])
def test_unknown_discriminator_becomes_error_action(data):
    action = parser.to_action(data)
    assert isinstance(action, Error)
    assert action.message.startswith("未知的动作类型")


@pytest.mark.parametrize(
    "action",
    [
        Click(1, 2),
        LongClick(3, 4, 800),
        Swipe(1, 2, 3, 4, 250),
        Input("你好 world"),
        PressKey(187, "recents"),
        OpenApp("com.android.settings", "设置"),
        Wait(1500),
        GoBack(),
        Complete("done"),
        Error("无法继续", recoverable=True),
        RequestUserHelp("需要验证码"),
    ],
)
def test_serialize_then_parse_preserves_action(action):
    assert parser.parse(parser.serialize(action)) == action


@pytest.mark.parametrize(
    "bad, good",
    [
        (Click(-1, 5), Click(1, 5)),
        (LongClick(1, 1, 0), LongClick(1, 1, 10)),
        (Swipe(0, 0, -1, 0), Swipe(0, 0, 1, 0)),
        (Input("  "), Input("a")),
        (PressKey(0), PressKey(4)),
        (OpenApp(""), OpenApp("com.a")),
        (OpenApp("com.x; reboot"), OpenApp("com.x_y.Z9")),
        (OpenApp("com.x$(id)"), OpenApp("com.x")),
        (OpenApp("com.x\nreboot"), OpenApp("com.x")),
        (Wait(0), Wait(1)),
    ],
)
def test_validate(bad, good):
    with pytest.raises(DecisionError) as excinfo:
        parser.validate(bad)
    assert excinfo.value.kind is DecisionErrorKind.VALIDATION
    assert parser.validate(good) is good


def test_terminal_actions_always_valid():
    for action in (GoBack(), Complete(), Error("x"), RequestUserHelp("y")):
        assert parser.validation_error(action) is None


def test_extract_reasoning():
    assert parser.extract_reasoning({"thought": "先返回"}) == "先返回"
    assert parser.extract_reasoning({}) == ""
