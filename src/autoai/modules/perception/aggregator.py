"""
感知聚合器

将截图与控件树融合为 ScreenState：
1. 截图 + 控件树，任一失败则整体失败（不产生只有截图或只有控件树的快照）
2. 深度优先展开控件树为带编号的 UiElement 列表
3. 生成给提示词使用的有损文字摘要
"""
from __future__ import annotations

import time
from typing import List, Sequence, Tuple

from ...core.logger import logger
from ...models.screen import ScreenState, UiElement, ViewNode
from .base import PerceptionError, ScreenCapture, ViewTreeReader

MAX_TEXT_LINES = 20
MAX_CLICKABLE_ELEMENTS = 15

# 按顺序匹配类名关键字（忽略大小写）
KIND_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("button", "button"),
    ("edittext", "input"),
    ("textview", "text"),
    ("imageview", "image"),
    ("checkbox", "checkbox"),
    ("switch", "switch"),
    ("listview", "list"),
    ("recyclerview", "list"),
)


def should_include(node: ViewNode) -> bool:
    if node.clickable and node.enabled:
        return True
    if node.text.strip():
        return True
    if node.accessibility_label.strip():
        return True
    return node.editable


def classify(node: ViewNode) -> str:
    name = node.kind.lower()
    for keyword, category in KIND_KEYWORDS:
        if keyword in name:
            return category
    if node.scrollable:
        return "scrollable"
    if node.clickable:
        return "clickable"
    return "other"


def flatten(root: ViewNode) -> Tuple[UiElement, ...]:
    elements: List[UiElement] = []
    for node in root.walk():
        if not should_include(node):
            continue
        elements.append(
            UiElement(
                id=len(elements),
                kind=classify(node),
                text=node.text,
                accessibility_label=node.accessibility_label,
                identifier=node.identifier,
                bounds=node.bounds,
                clickable=node.clickable,
                enabled=node.enabled,
                scrollable=node.scrollable,
                editable=node.editable,
            )
        )
    return tuple(elements)


def extract_text(root: ViewNode) -> Tuple[str, ...]:
    texts: List[str] = []
    for node in root.walk():
        if node.text.strip():
            texts.append(node.text.strip())
        if node.accessibility_label.strip():
            texts.append(node.accessibility_label.strip())
    return tuple(texts)


def _element_label(element: UiElement) -> str:
    return element.text.strip() or element.accessibility_label.strip() or element.kind


def describe(elements: Sequence[UiElement], texts: Sequence[str]) -> str:
    lines = [
        "=== 屏幕概览 ===",
        f"可交互元素：{len(elements)} 个",
        f"文本片段：{len(texts)} 条",
        "",
    ]

    non_empty = [t for t in texts if t.strip()]
    if non_empty:
        lines.append("=== 屏幕文本 ===")
        lines.extend(f"• {t}" for t in non_empty[:MAX_TEXT_LINES])
        if len(non_empty) > MAX_TEXT_LINES:
            lines.append(f"• …… 其余 {len(non_empty) - MAX_TEXT_LINES} 条文本已省略")
        lines.append("")

    clickable = [e for e in elements if e.clickable and e.enabled]
    if clickable:
        lines.append("=== 可点击元素 ===")
        for element in clickable[:MAX_CLICKABLE_ELEMENTS]:
            cx, cy = element.bounds.center()
            lines.append(f"• [{element.kind}] {_element_label(element)} @ ({cx}, {cy})")
        if len(clickable) > MAX_CLICKABLE_ELEMENTS:
            lines.append(f"• …… 其余 {len(clickable) - MAX_CLICKABLE_ELEMENTS} 个元素已省略")

    return "\n".join(lines).strip()


class PerceptionAggregator:
    def __init__(
        self,
        capture: ScreenCapture,
        tree_reader: ViewTreeReader,
        max_size_kb: int = 500,
    ) -> None:
        self.capture_source = capture
        self.tree_reader = tree_reader
        self.max_size_kb = max_size_kb
        self._log = logger.bind(module="PerceptionAggregator")

    async def capture(self, foreground_app: str) -> ScreenState:
        """
        生成一次屏幕快照

        Raises:
            PerceptionError: 截图或控件树任一失败
        """
        self._log.debug(f"开始生成屏幕状态，当前前台应用：{foreground_app}")
        try:
            raw = await self.capture_source.capture()
            tree = await self.tree_reader.read()
            encoded = await self.capture_source.encode(raw, self.max_size_kb)
        except PerceptionError as e:
            self._log.warning(f"生成屏幕状态失败: {e}")
            raise
        except Exception as e:
            self._log.exception("生成屏幕状态异常")
            raise PerceptionError(f"生成屏幕状态失败: {e}") from e

        elements = flatten(tree)
        texts = extract_text(tree)
        return ScreenState(
            image=raw.pixels,
            image_encoded=encoded,
            foreground_app=foreground_app,
            ui_tree=tree,
            elements=elements,
            extracted_text=texts,
            description=describe(elements, texts),
            timestamp=time.time(),
            width=raw.width,
            height=raw.height,
        )

    def find_elements(self, state: ScreenState, query: str) -> List[UiElement]:
        if not query.strip():
            return []
        needle = query.lower()
        return [
            e
            for e in state.elements
            if needle in e.text.lower() or needle in e.accessibility_label.lower() or needle in e.identifier.lower()
        ]
