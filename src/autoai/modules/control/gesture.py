"""
无障碍手势桥接客户端

设备端运行无障碍伴生服务，通过 HTTP 暴露手势、文本、全局动作、
前台应用、控件树和截图接口。本模块封装这些接口。
"""
from __future__ import annotations

from typing import Any, Dict, Literal, Optional

import httpx
from pydantic import BaseModel, Field

from ...core.constants import ConnectionState
from ...core.logger import logger
from .status import StatusChannel


class BridgeError(RuntimeError):
    """桥接服务请求失败"""


class BridgeStatusReply(BaseModel):
    connected: bool = False
    service_enabled: bool = False
    detail: str = ""


class BridgeReply(BaseModel):
    ok: bool = False
    message: str = ""


class GestureRequest(BaseModel):
    type: Literal["tap", "long_press", "swipe"]
    x: int = 0
    y: int = 0
    to_x: Optional[int] = None
    to_y: Optional[int] = None
    duration_ms: int = Field(default=100, gt=0)


class TextRequest(BaseModel):
    text: str


class GlobalActionRequest(BaseModel):
    action: Literal["back", "home", "recents"]


class LaunchRequest(BaseModel):
    package: str


class ForegroundReply(BaseModel):
    package: str = ""


class TreeReply(BaseModel):
    root: Optional[Dict[str, Any]] = None


class HttpGestureBridge:
    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._timeout = max(1.0, float(timeout or 15))
        self._transport = transport
        self.status = StatusChannel("gesture")
        self._log = logger.bind(module="HttpGestureBridge")

    def configured(self) -> bool:
        return bool(self._base_url)

    def _url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self._base_url}{path}"

    async def _send(self, method: str, path: str, json_data: Optional[dict] = None) -> httpx.Response:
        if not self.configured():
            raise BridgeError("GESTURE_BRIDGE_URL 未配置")
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method=method, url=self._url(path), json=json_data)
        except httpx.HTTPError as e:
            raise BridgeError(f"桥接服务请求失败: {e}") from e
        if response.status_code >= 400:
            raise BridgeError(f"{response.status_code}: {response.text[:200]}")
        return response

    async def _request(self, method: str, path: str, json_data: Optional[dict] = None) -> Dict[str, Any]:
        response = await self._send(method, path, json_data)
        try:
            payload = response.json()
        except ValueError as e:
            raise BridgeError(f"桥接服务返回非 JSON: {response.text[:200]}") from e
        if not isinstance(payload, dict):
            raise BridgeError("桥接服务返回格式错误")
        return payload

    async def _command(self, path: str, body: BaseModel) -> BridgeReply:
        reply = BridgeReply.model_validate(await self._request("POST", path, body.model_dump(exclude_none=True)))
        if not reply.ok:
            raise BridgeError(reply.message or f"桥接服务拒绝执行: {path}")
        return reply

    async def fetch_status(self) -> BridgeStatusReply:
        return BridgeStatusReply.model_validate(await self._request("GET", "/status"))

    async def tap(self, x: int, y: int) -> BridgeReply:
        return await self._command("/gesture", GestureRequest(type="tap", x=x, y=y))

    async def long_press(self, x: int, y: int, duration_ms: int) -> BridgeReply:
        return await self._command("/gesture", GestureRequest(type="long_press", x=x, y=y, duration_ms=duration_ms))

    async def swipe(self, from_x: int, from_y: int, to_x: int, to_y: int, duration_ms: int) -> BridgeReply:
        return await self._command(
            "/gesture",
            GestureRequest(type="swipe", x=from_x, y=from_y, to_x=to_x, to_y=to_y, duration_ms=duration_ms),
        )

    async def set_text(self, text: str) -> BridgeReply:
        return await self._command("/text", TextRequest(text=text))

    async def global_action(self, action: str) -> BridgeReply:
        return await self._command("/global", GlobalActionRequest(action=action))

    async def launch(self, package: str) -> BridgeReply:
        return await self._command("/launch", LaunchRequest(package=package))

    async def foreground_package(self) -> str:
        return ForegroundReply.model_validate(await self._request("GET", "/foreground")).package

    async def view_tree(self) -> Dict[str, Any]:
        reply = TreeReply.model_validate(await self._request("GET", "/tree"))
        if not reply.root:
            raise BridgeError("无法获取根节点")
        return reply.root

    async def screenshot(self) -> bytes:
        response = await self._send("GET", "/screenshot")
        if not response.content:
            raise BridgeError("截图数据为空")
        return response.content

    def is_ready(self) -> bool:
        return self.status.current.is_ready

    async def initialize(self) -> bool:
        """显式探测伴生服务，结果发布到 status"""
        self.status.publish(ConnectionState.CONNECTING)
        try:
            reply = await self.fetch_status()
        except BridgeError as e:
            self.status.publish(ConnectionState.DISCONNECTED, str(e))
            return False
        if not reply.service_enabled:
            self.status.publish(ConnectionState.PERMISSION_DENIED, reply.detail or "无障碍服务未开启")
            return False
        if not reply.connected:
            self.status.publish(ConnectionState.DISCONNECTED, reply.detail)
            return False
        self.status.publish(ConnectionState.CONNECTED)
        return True

    async def shutdown(self) -> None:
        self.status.publish(ConnectionState.DISCONNECTED, "已关闭")
