"""
屏幕状态模型

一次感知周期得到的不可变快照：截图、控件树以及派生的元素列表与摘要。
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class Rect:
    left: int = 0
    top: int = 0
    right: int = 0
    bottom: int = 0

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    def center(self) -> Tuple[int, int]:
        return (self.left + self.right) // 2, (self.top + self.bottom) // 2

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def to_list(self) -> list:
        return [self.left, self.top, self.right, self.bottom]


@dataclass(frozen=True)
class ViewNode:
    """控件树节点，子节点只由父节点持有，没有反向引用"""
    kind: str = ""
    text: str = ""
    accessibility_label: str = ""
    identifier: str = ""
    bounds: Rect = field(default_factory=Rect)
    clickable: bool = False
    focusable: bool = False
    enabled: bool = True
    checkable: bool = False
    checked: bool = False
    scrollable: bool = False
    editable: bool = False
    children: Tuple["ViewNode", ...] = ()

    def walk(self) -> Iterator["ViewNode"]:
        """深度优先（先序）遍历，显式栈避免深树递归"""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def count(self) -> int:
        return sum(1 for _ in self.walk())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewNode":
        """从桥接服务返回的 JSON 结构构造，后序显式栈避免深树递归"""
        stack = [(data, False)]
        built: List["ViewNode"] = []
        while stack:
            item, expanded = stack.pop()
            children = item.get("children") or []
            if not expanded:
                stack.append((item, True))
                stack.extend((child, False) for child in reversed(children))
                continue
            start = len(built) - len(children)
            node = cls._from_fields(item, tuple(built[start:]))
            del built[start:]
            built.append(node)
        return built[0]

    @classmethod
    def _from_fields(cls, data: Dict[str, Any], children: Tuple["ViewNode", ...]) -> "ViewNode":
        bounds = data.get("bounds") or [0, 0, 0, 0]
        if isinstance(bounds, dict):
            rect = Rect(
                int(bounds.get("left", 0)),
                int(bounds.get("top", 0)),
                int(bounds.get("right", 0)),
                int(bounds.get("bottom", 0)),
            )
        else:
            values = [int(v) for v in list(bounds)[:4]]
            values += [0] * (4 - len(values))
            rect = Rect(*values)
        kind = str(data.get("kind") or data.get("class") or data.get("className") or "")
        return cls(
            kind=kind,
            text=str(data.get("text") or ""),
            accessibility_label=str(
                data.get("accessibility_label") or data.get("content_desc") or data.get("contentDescription") or ""
            ),
            identifier=str(data.get("identifier") or data.get("resource_id") or data.get("viewId") or ""),
            bounds=rect,
            clickable=bool(data.get("clickable", False)),
            focusable=bool(data.get("focusable", False)),
            enabled=bool(data.get("enabled", True)),
            checkable=bool(data.get("checkable", False)),
            checked=bool(data.get("checked", False)),
            scrollable=bool(data.get("scrollable", False)),
            editable=bool(data.get("editable", False)) or "EditText" in kind,
            children=children,
        )


@dataclass(frozen=True)
class UiElement:
    """扁平化、带编号的可交互元素；编号只在同一快照内有效"""
    id: int
    kind: str
    text: str
    accessibility_label: str
    identifier: str
    bounds: Rect
    clickable: bool
    enabled: bool
    scrollable: bool
    editable: bool

    def label(self) -> str:
        return self.text or self.accessibility_label or self.identifier


@dataclass(frozen=True)
class ScreenState:
    image: Any
    image_encoded: str
    foreground_app: str
    ui_tree: ViewNode
    elements: Tuple[UiElement, ...] = ()
    extracted_text: Tuple[str, ...] = ()
    description: str = ""
    timestamp: float = field(default_factory=time.time)
    width: int = 0
    height: int = 0

    def all_labels(self) -> Iterator[str]:
        """屏幕上所有文本：提取文本 + 元素文本/描述"""
        yield from self.extracted_text
        for element in self.elements:
            if element.text:
                yield element.text
            if element.accessibility_label:
                yield element.accessibility_label

    def find_element(self, element_id: int) -> Optional[UiElement]:
        for element in self.elements:
            if element.id == element_id:
                return element
        return None
