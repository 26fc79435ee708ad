"""
基于无障碍桥接服务的截图与控件树读取
"""
from __future__ import annotations

from ...models.screen import ViewNode
from ..control.gesture import BridgeError, HttpGestureBridge
from .base import PerceptionError, ScreenCapture, ViewTreeReader


class BridgeScreenCapture(ScreenCapture):
    def __init__(self, bridge: HttpGestureBridge, quality: int = 80) -> None:
        super().__init__(quality)
        self.bridge = bridge

    async def _capture_raw(self) -> bytes:
        try:
            return await self.bridge.screenshot()
        except BridgeError as e:
            raise PerceptionError(f"截图失败: {e}") from e


class BridgeViewTreeReader(ViewTreeReader):
    def __init__(self, bridge: HttpGestureBridge) -> None:
        self.bridge = bridge

    async def read(self) -> ViewNode:
        try:
            data = await self.bridge.view_tree()
        except BridgeError as e:
            raise PerceptionError(f"控件树读取失败: {e}") from e
        try:
            return ViewNode.from_dict(data)
        except (TypeError, ValueError) as e:
            raise PerceptionError(f"控件树格式错误: {e}") from e
