import json

import httpx
import pytest

from autoai.models import ScreenState, ViewNode
from autoai.modules.decision.errors import DecisionError, DecisionErrorKind
from autoai.modules.decision.gateway import DecisionGateway
from autoai.modules.decision.service import DecisionServiceError, OpenAICompatibleService


def _service(handler, **kwargs) -> OpenAICompatibleService:
    values = dict(
        base_url="https://llm.example.com/",
        api_key="sk-test",
        model="vision-model",
        transport=httpx.MockTransport(handler),
    )
    values.update(kwargs)
    return OpenAICompatibleService(**values)


def _reply(content) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


@pytest.mark.asyncio
async def test_chat_sends_image_as_data_uri():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return _reply('{"action":"go_back"}')

    text = await _service(handler).chat("sys", "user", "QUJD")

    assert text == '{"action":"go_back"}'
    assert seen["url"] == "https://llm.example.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    body = seen["body"]
    assert body["model"] == "vision-model"
    assert body["messages"][0] == {"role": "system", "content": "sys"}
    image_part = body["messages"][1]["content"][1]
    assert image_part["image_url"]["url"] == "data:image/jpeg;base64,QUJD"


@pytest.mark.asyncio
async def test_chat_joins_content_parts():
    def handler(request: httpx.Request) -> httpx.Response:
        return _reply([{"type": "text", "text": "{\"action\":"}, {"type": "text", "text": "\"wait\"}"}])

    assert await _service(handler).chat("s", "u") == '{"action":"wait"}'


@pytest.mark.asyncio
async def test_http_error_surfaces_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "invalid api key"}})

    with pytest.raises(DecisionServiceError, match="401: invalid api key"):
        await _service(handler).chat("s", "u")


@pytest.mark.asyncio
async def test_missing_key_is_rejected_before_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("should not send")

    with pytest.raises(DecisionServiceError, match="DECISION_API_KEY"):
        await _service(handler, api_key="").chat("s", "u")


@pytest.mark.asyncio
async def test_connection_diagnostics_clamp_parameters():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return _reply("OK" * 50)

    diagnostics = await _service(handler, temperature=1.7, max_tokens=4).test_connection()

    assert seen["body"]["temperature"] == 1.0
    assert seen["body"]["max_tokens"] == 16
    assert diagnostics.response_preview == ("OK" * 50)[:64]
    assert diagnostics.model == "vision-model"
    assert diagnostics.latency_ms >= 0


@pytest.mark.asyncio
async def test_connection_empty_reply_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return _reply("")

    with pytest.raises(DecisionServiceError):
        await _service(handler).test_connection()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"choices": [{"message": "oops"}]},
        {"choices": ["oops"]},
        {"choices": {"message": {"content": "x"}}},
    ],
)
async def test_malformed_choices_raise_service_error(payload):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    with pytest.raises(DecisionServiceError, match="决策服务返回格式错误"):
        await _service(handler).chat("s", "u")


@pytest.mark.asyncio
async def test_malformed_choices_become_transport_decision_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": "oops"}]})

    state = ScreenState(image=None, image_encoded="", foreground_app="x", ui_tree=ViewNode())
    with pytest.raises(DecisionError) as exc_info:
        await DecisionGateway(_service(handler)).decide("x", state)
    assert exc_info.value.kind is DecisionErrorKind.TRANSPORT
