"""
决策服务（OpenAI 兼容的多模态对话接口）
"""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ...core.logger import logger

HEALTH_SYSTEM_PROMPT = "你是一个用于健康检查的助手，只需判断服务是否可用。"
HEALTH_USER_PROMPT = "请仅回复“OK”。"
PREVIEW_LIMIT = 64


class DecisionServiceError(RuntimeError):
    """决策服务请求失败"""


@dataclass(frozen=True)
class ConnectionDiagnostics:
    latency_ms: int
    response_preview: str
    model: str = ""

    def to_dict(self) -> dict:
        return {
            "latency_ms": self.latency_ms,
            "response_preview": self.response_preview,
            "model": self.model,
        }


class DecisionService(ABC):
    @abstractmethod
    async def chat(self, system_prompt: str, user_prompt: str, image_base64: Optional[str] = None) -> str:
        """返回模型原始文本回复，传输失败抛 DecisionServiceError"""

    @abstractmethod
    async def test_connection(self) -> ConnectionDiagnostics:
        ...


class OpenAICompatibleService(DecisionService):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._api_key = api_key or ""
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._timeout = max(3.0, float(timeout or 60))
        self._transport = transport
        self._log = logger.bind(module="DecisionService")

    def configured(self) -> bool:
        return bool(self._base_url and self._api_key)

    def _url(self) -> str:
        return f"{self._base_url}/v1/chat/completions"

    @staticmethod
    def _user_content(user_prompt: str, image_base64: Optional[str]) -> Any:
        if not image_base64:
            return user_prompt
        return [
            {"type": "text", "text": user_prompt},
            {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_base64}"}},
        ]

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self._base_url:
            raise DecisionServiceError("DECISION_BASE_URL 未配置")
        if not self._api_key:
            raise DecisionServiceError("DECISION_API_KEY 未配置")
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url(), json=body, headers=headers)
        except httpx.HTTPError as e:
            raise DecisionServiceError(f"决策服务请求失败: {e}") from e
        try:
            payload = response.json()
        except ValueError:
            payload = {"detail": response.text}
        if response.status_code >= 400:
            error = payload.get("error") if isinstance(payload, dict) else None
            detail = (error or {}).get("message") if isinstance(error, dict) else None
            raise DecisionServiceError(f"{response.status_code}: {detail or response.text[:200]}")
        if not isinstance(payload, dict):
            raise DecisionServiceError("决策服务返回格式错误")
        return payload

    @staticmethod
    def _extract_text(payload: Dict[str, Any]) -> str:
        choices = payload.get("choices") or []
        if not choices:
            return ""
        first = choices[0] if isinstance(choices, list) else None
        if not isinstance(first, dict):
            raise DecisionServiceError("决策服务返回格式错误")
        message = first.get("message") or {}
        if not isinstance(message, dict):
            raise DecisionServiceError("决策服务返回格式错误")
        content = message.get("content")
        if isinstance(content, list):
            return "".join(part.get("text", "") for part in content if isinstance(part, dict))
        return str(content or "")

    async def chat(self, system_prompt: str, user_prompt: str, image_base64: Optional[str] = None) -> str:
        return await self.chat_text(
            system_prompt,
            user_prompt,
            image_base64=image_base64,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    async def chat_text(
        self,
        system_prompt: str,
        user_prompt: str,
        image_base64: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": self._user_content(user_prompt, image_base64)},
            ],
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
        }
        payload = await self._post(body)
        text = self._extract_text(payload)
        self._log.debug(f"决策服务回复 {len(text)} 字")
        return text

    async def test_connection(self) -> ConnectionDiagnostics:
        start = time.perf_counter()
        text = await self.chat_text(
            HEALTH_SYSTEM_PROMPT,
            HEALTH_USER_PROMPT,
            temperature=min(max(self.temperature, 0.0), 1.0),
            max_tokens=min(max(self.max_tokens, 16), 512),
        )
        latency = int((time.perf_counter() - start) * 1000)
        if not text.strip():
            raise DecisionServiceError("决策服务返回空内容")
        self._log.info(f"决策服务连通性检测成功: {latency}ms")
        return ConnectionDiagnostics(
            latency_ms=latency,
            response_preview=text.strip()[:PREVIEW_LIMIT],
            model=self.model,
        )
