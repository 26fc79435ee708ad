"""
uiautomator dump XML 解析
"""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET

from ...models.screen import Rect, ViewNode
from .base import PerceptionError

_BOUNDS_PATTERN = re.compile(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]")


def parse_bounds(value: str) -> Rect:
    match = _BOUNDS_PATTERN.search(value or "")
    if not match:
        return Rect()
    left, top, right, bottom = (int(v) for v in match.groups())
    return Rect(left, top, right, bottom)


def _flag(element: ET.Element, name: str, default: bool = False) -> bool:
    value = element.get(name)
    if value is None:
        return default
    return value.strip().lower() == "true"


def _to_node(element: ET.Element) -> ViewNode:
    kind = element.get("class") or ""
    return ViewNode(
        kind=kind,
        text=element.get("text") or "",
        accessibility_label=element.get("content-desc") or "",
        identifier=element.get("resource-id") or "",
        bounds=parse_bounds(element.get("bounds") or ""),
        clickable=_flag(element, "clickable"),
        focusable=_flag(element, "focusable"),
        enabled=_flag(element, "enabled", True),
        checkable=_flag(element, "checkable"),
        checked=_flag(element, "checked"),
        scrollable=_flag(element, "scrollable"),
        editable="EditText" in kind,
        children=tuple(_to_node(child) for child in element if child.tag == "node"),
    )


def parse_hierarchy(xml_text: str) -> ViewNode:
    """解析 <hierarchy> 文档；多个顶层节点时包一层虚拟根"""
    text = (xml_text or "").strip()
    start = text.find("<")
    if start < 0:
        raise PerceptionError("控件树为空")
    try:
        root = ET.fromstring(text[start:])
    except ET.ParseError as e:
        raise PerceptionError(f"控件树解析失败: {e}") from e

    if root.tag == "node":
        return _to_node(root)
    nodes = [_to_node(child) for child in root if child.tag == "node"]
    if not nodes:
        raise PerceptionError("控件树没有节点")
    if len(nodes) == 1:
        return nodes[0]
    return ViewNode(kind="hierarchy", children=tuple(nodes))
