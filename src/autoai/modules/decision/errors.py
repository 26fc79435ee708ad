"""
决策异常
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class DecisionErrorKind(str, Enum):
    TRANSPORT = "transport"  # 请求失败
    EMPTY = "empty"  # 空回复
    PARSE = "parse"  # 无法解析
    VALIDATION = "validation"  # 校验失败


_PREFIX = {
    DecisionErrorKind.TRANSPORT: "AI 决策失败",
    DecisionErrorKind.EMPTY: "AI 决策失败",
    DecisionErrorKind.PARSE: "无法解析 AI 响应",
    DecisionErrorKind.VALIDATION: "AI 返回的动作无效",
}


class DecisionError(Exception):
    def __init__(self, kind: DecisionErrorKind, detail: str, raw_reply: Optional[str] = None) -> None:
        self.kind = kind
        self.detail = detail
        self.raw_reply = raw_reply
        super().__init__(f"{_PREFIX[kind]}: {detail}")
