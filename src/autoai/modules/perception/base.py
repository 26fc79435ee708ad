"""
感知能力接口

- ScreenCapture: 截图（子类实现 _capture_raw 返回 PNG/JPEG 字节），解码为 RawImage，
  并提供有损压缩编码 encode(raw, max_size_kb)
- ViewTreeReader: 读取控件树根节点
"""
from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass

import cv2
import numpy as np

from ...core.thread_pool import run_in_compute
from ...models.screen import ViewNode


class PerceptionError(Exception):
    """截图或控件树读取失败"""


@dataclass(frozen=True)
class RawImage:
    pixels: np.ndarray  # BGR

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


def decode_image(data: bytes) -> RawImage:
    if not data:
        raise PerceptionError("截图数据为空")
    buffer = np.frombuffer(data, dtype=np.uint8)
    pixels = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if pixels is None:
        raise PerceptionError("截图解码失败")
    return RawImage(pixels=pixels)


def encode_jpeg(raw: RawImage, max_size_kb: int = 500, quality: int = 80) -> str:
    """JPEG 压缩：超出大小上限时每次降低 10 个质量点，最低到 10，返回 base64"""
    limit = max(1, int(max_size_kb)) * 1024
    quality = max(10, min(100, int(quality)))
    while True:
        ok, buf = cv2.imencode(".jpg", raw.pixels, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
        if not ok:
            raise PerceptionError("图像编码失败")
        data = buf.tobytes()
        if len(data) <= limit or quality <= 10:
            break
        quality -= 10
    return base64.b64encode(data).decode("ascii")


class ScreenCapture(ABC):
    """截图基类"""

    def __init__(self, quality: int = 80) -> None:
        self.quality = quality

    @abstractmethod
    async def _capture_raw(self) -> bytes:
        """
        原始截图实现

        Returns:
            图像数据（PNG 或 JPEG）
        """

    async def capture(self) -> RawImage:
        """
        截取屏幕并解码

        Raises:
            PerceptionError: 截图失败
        """
        try:
            data = await self._capture_raw()
        except PerceptionError:
            raise
        except Exception as e:
            raise PerceptionError(f"截图失败: {e}") from e
        return await run_in_compute(decode_image, data)

    async def encode(self, raw: RawImage, max_size_kb: int = 500) -> str:
        return await run_in_compute(encode_jpeg, raw, max_size_kb, self.quality)


class ViewTreeReader(ABC):
    @abstractmethod
    async def read(self) -> ViewNode:
        """读取控件树，失败抛 PerceptionError"""
