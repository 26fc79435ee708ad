import pytest

from autoai.core.constants import SafetyLevel
from autoai.models import Click, Input, Rect, ScreenState, UiElement, ViewNode
from autoai.modules.safety.checker import (
    MSG_CONFIRMATION,
    MSG_PAYMENT,
    MSG_PAYMENT_INPUT,
    MSG_SENSITIVE,
    SafetyChecker,
)
from autoai.modules.safety.pii import contains_sensitive_info, redact_pii


def _button(text: str, clickable: bool = True, enabled: bool = True, element_id: int = 0) -> UiElement:
    return UiElement(
        id=element_id,
        kind="button",
        text=text,
        accessibility_label="",
        identifier="",
        bounds=Rect(0, 0, 10, 10),
        clickable=clickable,
        enabled=enabled,
        scrollable=False,
        editable=False,
    )


def _state(app: str, texts=(), elements=()) -> ScreenState:
    return ScreenState(
        image=None,
        image_encoded="",
        foreground_app=app,
        ui_tree=ViewNode(),
        elements=tuple(elements),
        extracted_text=tuple(texts),
    )


@pytest.fixture()
def checker():
    return SafetyChecker()


def test_payment_scene_blocks(checker):
    state = _state("com.eg.android.AlipayGphone", texts=["确认支付", "¥ 25.00"])

    verdict = checker.check_state(state)

    assert verdict.level is SafetyLevel.RED
    assert verdict.should_block
    assert verdict.reason == MSG_PAYMENT


def test_payment_keyword_in_element_label_counts(checker):
    state = _state("com.tencent.mm", elements=[_button("PAY NOW")])
    assert checker.is_payment_scene(state)


def test_payment_app_match_ignores_case(checker):
    state = _state("com.eg.android.alipaygphone", texts=["确认支付"])
    assert checker.check_state(state).level is SafetyLevel.RED


def test_payment_app_without_keywords_is_green(checker):
    state = _state("com.eg.android.AlipayGphone", texts=["首页", "理财"])
    assert checker.check_state(state).level is SafetyLevel.GREEN


def test_payment_keywords_outside_payment_app_are_not_payment(checker):
    state = _state("com.example.notes", texts=["支付宝使用笔记"])
    assert not checker.is_payment_scene(state)


def test_sensitive_operation_needs_confirmation(checker):
    verdict = checker.check_state(_state("com.android.settings", texts=["恢复出厂设置"]))

    assert verdict.level is SafetyLevel.YELLOW
    assert not verdict.should_block
    assert verdict.needs_confirmation
    assert verdict.reason == MSG_SENSITIVE


def test_confirmation_requires_actionable_element(checker):
    passive = _state("com.tencent.mm", texts=["发送给朋友"], elements=[_button("发送", enabled=False)])
    active = _state("com.tencent.mm", texts=["发送给朋友"], elements=[_button("发送")])

    assert checker.check_state(passive).level is SafetyLevel.GREEN
    verdict = checker.check_state(active)
    assert verdict.level is SafetyLevel.YELLOW
    assert verdict.reason == MSG_CONFIRMATION


def test_red_takes_precedence_over_yellow(checker):
    state = _state("com.eg.android.AlipayGphone", texts=["确认支付", "删除"], elements=[_button("确认")])
    assert checker.check_state(state).level is SafetyLevel.RED


def test_unrelated_screen_is_green(checker):
    assert checker.check_state(_state("com.android.launcher3", texts=["时钟", "相机"])).level is SafetyLevel.GREEN


def test_input_on_payment_scene_is_blocked(checker):
    state = _state("com.eg.android.AlipayGphone", texts=["输入密码"])

    verdict = checker.check_action(Input("123456"), state)

    assert verdict.should_block
    assert verdict.reason == MSG_PAYMENT_INPUT
    assert not checker.check_action(Click(1, 1), state).should_block
    assert not checker.check_action(Input("abc"), _state("com.android.settings")).should_block


@pytest.mark.parametrize(
    "text, expected",
    [
        ("6222 0212 3456 7890 123", True),
        ("11010519491231002X", True),
        ("联系我 13812345678", True),
        ("12812345678", False),
        ("hello world", False),
        ("", False),
    ],
)
def test_contains_sensitive_info(text, expected):
    assert contains_sensitive_info(text) is expected
    assert SafetyChecker.contains_sensitive_info(text) is expected


def test_redact_pii():
    assert redact_pii("13812345678") == "<已脱敏 11 字>"
    assert redact_pii("hello") == "hello"
