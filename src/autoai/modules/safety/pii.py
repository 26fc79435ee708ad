"""
个人敏感信息检测（银行卡号、身份证号、手机号）
"""
from __future__ import annotations

import re

CARD_NUMBER_PATTERN = re.compile(r"\d{16,19}")
ID_CARD_PATTERN = re.compile(r"\d{17}[\dxX]")
PHONE_PATTERN = re.compile(r"1[3-9]\d{9}")

_PATTERNS = (CARD_NUMBER_PATTERN, ID_CARD_PATTERN, PHONE_PATTERN)


def contains_sensitive_info(text: str) -> bool:
    """去掉空格后匹配任一模式即视为包含敏感信息"""
    compact = (text or "").replace(" ", "")
    return any(pattern.search(compact) for pattern in _PATTERNS)


def redact_pii(text: str) -> str:
    """日志脱敏：包含敏感信息时只保留长度"""
    if not text:
        return ""
    if contains_sensitive_info(text):
        return f"<已脱敏 {len(text)} 字>"
    return text
