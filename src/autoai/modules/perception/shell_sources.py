"""
基于 Shell 通道的截图与控件树读取
"""
from __future__ import annotations

from ...models.screen import ViewNode
from ..control.shell import ShellChannel, ShellError
from .base import PerceptionError, ScreenCapture, ViewTreeReader
from .view_tree import parse_hierarchy


class ShellScreenCapture(ScreenCapture):
    def __init__(self, channel: ShellChannel, quality: int = 80) -> None:
        super().__init__(quality)
        self.channel = channel

    async def _capture_raw(self) -> bytes:
        try:
            return await self.channel.run_binary(["screencap", "-p"])
        except ShellError as e:
            raise PerceptionError(f"截图失败: {e}") from e


class ShellViewTreeReader(ViewTreeReader):
    def __init__(self, channel: ShellChannel, dump_dir: str = "/data/local/tmp/autoai") -> None:
        self.channel = channel
        self.dump_path = f"{dump_dir.rstrip('/')}/window_dump.xml"
        self._dump_dir = dump_dir

    async def read(self) -> ViewNode:
        try:
            await self.channel.run(f"mkdir -p {self._dump_dir}")
            await self.channel.run(f"uiautomator dump {self.dump_path}")
            xml_text = await self.channel.run(f"cat {self.dump_path}")
        except ShellError as e:
            raise PerceptionError(f"控件树读取失败: {e}") from e
        finally:
            try:
                await self.channel.run(f"rm -f {self.dump_path}")
            except ShellError:
                pass
        return parse_hierarchy(xml_text)
