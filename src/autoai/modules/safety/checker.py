"""
安全检查

基于规则表的纯函数检查，不产生副作用、不调用外部服务：
- check_state: 支付界面 -> RED 阻断；敏感操作/需确认操作 -> YELLOW 提示确认
- check_action: 支付界面上的输入动作 -> RED 阻断
RED 优先于 YELLOW。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from ...core.constants import SafetyLevel
from ...models.action import Action, Input
from ...models.screen import ScreenState
from .pii import contains_sensitive_info

PAYMENT_KEYWORDS: Tuple[str, ...] = (
    "支付", "付款", "确认支付", "输入密码", "验证码", "pay", "payment",
    "确认订单", "立即购买", "提交订单", "金额", "¥",
)

PAYMENT_APPS: Tuple[str, ...] = (
    "com.eg.android.AlipayGphone",
    "com.tencent.mm",
    "com.unionpay",
    "com.android.vending",
)

SENSITIVE_KEYWORDS: Tuple[str, ...] = (
    "删除", "卸载", "清除数据", "恢复出厂", "格式化",
    "delete", "uninstall", "factory reset", "format",
)

CONFIRMATION_KEYWORDS: Tuple[str, ...] = (
    "发送", "分享", "授权", "允许", "同意", "提交", "确认", "继续",
    "send", "share", "grant", "allow", "agree", "confirm",
)

MSG_PAYMENT = "检测到支付场景，已暂停自动执行，请手动确认支付。"
MSG_SENSITIVE = "检测到潜在敏感操作，请确认是否继续。"
MSG_CONFIRMATION = "当前操作涉及授权或发送信息，请人工确认。"
MSG_PAYMENT_INPUT = "检测到支付界面，禁止自动输入。"


@dataclass(frozen=True)
class SafetyVerdict:
    should_block: bool = False
    reason: str = ""
    level: SafetyLevel = SafetyLevel.GREEN
    needs_confirmation: bool = False

    @classmethod
    def green(cls) -> "SafetyVerdict":
        return cls()

    @classmethod
    def yellow(cls, reason: str) -> "SafetyVerdict":
        return cls(should_block=False, reason=reason, level=SafetyLevel.YELLOW, needs_confirmation=True)

    @classmethod
    def red(cls, reason: str) -> "SafetyVerdict":
        return cls(should_block=True, reason=reason, level=SafetyLevel.RED, needs_confirmation=True)

    def to_dict(self) -> dict:
        return {
            "should_block": self.should_block,
            "reason": self.reason,
            "level": self.level.value,
            "needs_confirmation": self.needs_confirmation,
        }


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def _any_text_contains(texts: Iterable[str], keywords: Iterable[str]) -> bool:
    keywords = tuple(keywords)
    return any(_contains_any(text, keywords) for text in texts if text)


class SafetyChecker:
    def is_payment_scene(self, state: ScreenState) -> bool:
        if not _contains_any(state.foreground_app or "", PAYMENT_APPS):
            return False
        return _any_text_contains(state.all_labels(), PAYMENT_KEYWORDS)

    def has_sensitive_operation(self, state: ScreenState) -> bool:
        return _any_text_contains(state.extracted_text, SENSITIVE_KEYWORDS)

    def needs_confirmation(self, state: ScreenState) -> bool:
        if not _any_text_contains(state.extracted_text, CONFIRMATION_KEYWORDS):
            return False
        for element in state.elements:
            if not (element.clickable and element.enabled):
                continue
            if _any_text_contains((element.text, element.accessibility_label), CONFIRMATION_KEYWORDS):
                return True
        return False

    def check_state(self, state: ScreenState) -> SafetyVerdict:
        if self.is_payment_scene(state):
            return SafetyVerdict.red(MSG_PAYMENT)
        if self.has_sensitive_operation(state):
            return SafetyVerdict.yellow(MSG_SENSITIVE)
        if self.needs_confirmation(state):
            return SafetyVerdict.yellow(MSG_CONFIRMATION)
        return SafetyVerdict.green()

    def check_action(self, action: Action, state: ScreenState) -> SafetyVerdict:
        if isinstance(action, Input) and self.is_payment_scene(state):
            return SafetyVerdict.red(MSG_PAYMENT_INPUT)
        return SafetyVerdict.green()

    @staticmethod
    def contains_sensitive_info(text: str) -> bool:
        return contains_sensitive_info(text)
