"""
动作解析器

将模型返回的文本解析为 Action：
1. 三段式提取 JSON：整段文本 -> ```代码块``` -> 第一个括号配平的 {...}
2. 按 action 字段映射到具体动作，字段兼容 snake_case / camelCase
3. 按动作类型校验字段，校验失败抛 DecisionError（不做静默修正）
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterator, Optional, Tuple

from ...core.constants import KEY_NAMES
from ...core.logger import logger
from ...models.action import (
    Action,
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
from .errors import DecisionError, DecisionErrorKind

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
_APP_ID_PATTERN = re.compile(r"[A-Za-z0-9_.]+")
_log = logger.bind(module="ActionParser")

DEFAULT_LONG_CLICK_MS = 1000
DEFAULT_SWIPE_MS = 300
DEFAULT_WAIT_MS = 1000


def _first_balanced_object(text: str) -> Optional[str]:
    """返回第一个括号配平的 {...}，跳过字符串字面量中的括号"""
    start = text.find("{")
    while start >= 0:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            ch = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def _candidates(text: str) -> Iterator[Tuple[str, str]]:
    stripped = text.strip()
    yield "whole", stripped
    for match in _FENCE_PATTERN.finditer(text):
        yield "fenced", match.group(1).strip()
    braces = _first_balanced_object(text)
    if braces:
        yield "braces", braces


def extract_json(text: str) -> Dict[str, Any]:
    """依次尝试三种提取方式，第一个解析为 JSON 对象的候选胜出"""
    if not text or not text.strip():
        raise DecisionError(DecisionErrorKind.EMPTY, "响应为空", raw_reply=text)
    tried = []
    for stage, candidate in _candidates(text):
        tried.append(stage)
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(data, dict):
            return data
    preview = text.strip().replace("\n", " ")[:120]
    raise DecisionError(
        DecisionErrorKind.PARSE,
        f"未找到有效的 JSON 对象（尝试: {', '.join(tried)}）: {preview}",
        raw_reply=text,
    )


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _int(data: Dict[str, Any], default: int, *keys: str) -> int:
    value = _pick(data, *keys)
    if value is None:
        return default
    if isinstance(value, bool):
        raise DecisionError(DecisionErrorKind.PARSE, f"字段 {keys[0]} 不是数字: {value!r}")
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError) as e:
        raise DecisionError(DecisionErrorKind.PARSE, f"字段 {keys[0]} 不是数字: {value!r}") from e


def _str(data: Dict[str, Any], default: str, *keys: str) -> str:
    value = _pick(data, *keys)
    if value is None:
        return default
    return str(value)


def _parse_press_key(data: Dict[str, Any]) -> PressKey:
    name = _str(data, "", "key_name", "keyName", "key", "name")
    code = _int(data, 0, "key_code", "keyCode", "code")
    if code == 0 and name:
        code = int(KEY_NAMES.get(name.strip().lower(), 0))
    return PressKey(code=code, name=name)


def to_action(data: Dict[str, Any]) -> Action:
    kind = _pick(data, "action", "type")
    kind_text = str(kind).strip().lower() if kind is not None else ""

    if kind_text == Click.kind:
        return Click(x=_int(data, 0, "x"), y=_int(data, 0, "y"))
    if kind_text == LongClick.kind:
        return LongClick(
            x=_int(data, 0, "x"),
            y=_int(data, 0, "y"),
            duration_ms=_int(data, DEFAULT_LONG_CLICK_MS, "duration", "duration_ms", "durationMs"),
        )
    if kind_text == Swipe.kind:
        return Swipe(
            from_x=_int(data, 0, "from_x", "fromX"),
            from_y=_int(data, 0, "from_y", "fromY"),
            to_x=_int(data, 0, "to_x", "toX"),
            to_y=_int(data, 0, "to_y", "toY"),
            duration_ms=_int(data, DEFAULT_SWIPE_MS, "duration", "duration_ms", "durationMs"),
        )
    if kind_text == Input.kind:
        return Input(text=_str(data, "", "text"))
    if kind_text == PressKey.kind:
        return _parse_press_key(data)
    if kind_text == OpenApp.kind:
        return OpenApp(
            app_id=_str(data, "", "package", "package_name", "packageName", "app_id", "appId"),
            display_name=_str(data, "", "app_name", "appName", "display_name", "displayName"),
        )
    if kind_text == Wait.kind:
        return Wait(duration_ms=_int(data, DEFAULT_WAIT_MS, "duration", "duration_ms", "durationMs"))
    if kind_text == GoBack.kind:
        return GoBack()
    if kind_text == Complete.kind:
        return Complete(message=_str(data, "任务完成", "message"))
    if kind_text == Error.kind:
        return Error(message=_str(data, "未知错误", "message"), recoverable=bool(data.get("recoverable", False)))
    if kind_text == RequestUserHelp.kind:
        return RequestUserHelp(reason=_str(data, "需要用户协助", "reason", "message"))

    _log.warning(f"未知的动作类型: {kind}")
    return Error(message=f"未知的动作类型: {kind}")


def to_payload(action: Action) -> Dict[str, Any]:
    """序列化为与提示词中示例一致的 JSON 结构"""
    payload: Dict[str, Any] = {"action": action.kind}
    if isinstance(action, Click):
        payload.update(x=action.x, y=action.y)
    elif isinstance(action, LongClick):
        payload.update(x=action.x, y=action.y, duration=action.duration_ms)
    elif isinstance(action, Swipe):
        payload.update(
            from_x=action.from_x,
            from_y=action.from_y,
            to_x=action.to_x,
            to_y=action.to_y,
            duration=action.duration_ms,
        )
    elif isinstance(action, Input):
        payload["text"] = action.text
    elif isinstance(action, PressKey):
        payload["key_code"] = action.code
        if action.name:
            payload["key_name"] = action.name
    elif isinstance(action, OpenApp):
        payload["package"] = action.app_id
        if action.display_name:
            payload["app_name"] = action.display_name
    elif isinstance(action, Wait):
        payload["duration"] = action.duration_ms
    elif isinstance(action, (Complete, Error)):
        payload["message"] = action.message
        if isinstance(action, Error):
            payload["recoverable"] = action.recoverable
    elif isinstance(action, RequestUserHelp):
        payload["reason"] = action.reason
    return payload


def serialize(action: Action) -> str:
    return json.dumps(to_payload(action), ensure_ascii=False)


def parse(text: str) -> Action:
    return to_action(extract_json(text))


def validation_error(action: Action) -> Optional[str]:
    """返回校验失败原因，通过返回 None"""
    if isinstance(action, (Click, LongClick)):
        if action.x < 0 or action.y < 0:
            return f"坐标不能为负: ({action.x}, {action.y})"
        if isinstance(action, LongClick) and action.duration_ms <= 0:
            return f"长按时长必须大于 0: {action.duration_ms}"
        return None
    if isinstance(action, Swipe):
        if min(action.from_x, action.from_y, action.to_x, action.to_y) < 0:
            return "滑动坐标不能为负"
        if action.duration_ms <= 0:
            return f"滑动时长必须大于 0: {action.duration_ms}"
        return None
    if isinstance(action, Input):
        return None if action.text.strip() else "输入文本为空"
    if isinstance(action, PressKey):
        return None if action.code > 0 else f"无效的按键码: {action.code}"
    if isinstance(action, OpenApp):
        if not action.app_id.strip():
            return "应用包名为空"
        if not _APP_ID_PATTERN.fullmatch(action.app_id):
            return f"应用包名不合法: {action.app_id}"
        return None
    if isinstance(action, Wait):
        return None if action.duration_ms > 0 else f"等待时长必须大于 0: {action.duration_ms}"
    return None


def validate(action: Action) -> Action:
    reason = validation_error(action)
    if reason is not None:
        raise DecisionError(DecisionErrorKind.VALIDATION, reason)
    return action


def extract_reasoning(data: Dict[str, Any]) -> str:
    return _str(data, "", "reasoning", "reason_text", "thought", "thinking")
