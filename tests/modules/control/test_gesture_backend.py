import json

import httpx
import pytest

from autoai.core.constants import ConnectionState, KeyCode
from autoai.models import Click, GoBack, Input, OpenApp, PressKey, Swipe
from autoai.modules.control.base import ControlError, SettleDelays
from autoai.modules.control.gesture import BridgeError, HttpGestureBridge
from autoai.modules.control.gesture_backend import GestureControlBackend


class _BridgeRecorder:
    def __init__(self, replies=None):
        self.requests = []
        self.replies = replies or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))
        reply = self.replies.get(request.url.path)
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply if reply is not None else {"ok": True})


def _backend(recorder) -> GestureControlBackend:
    bridge = HttpGestureBridge("http://bridge.local/", transport=httpx.MockTransport(recorder))
    return GestureControlBackend(bridge, SettleDelays.none())


@pytest.mark.asyncio
async def test_gestures_are_posted_to_bridge():
    recorder = _BridgeRecorder()
    backend = _backend(recorder)

    assert (await backend.execute(Click(10, 20))).success
    assert (await backend.execute(Swipe(1, 2, 3, 4, 250))).success
    assert (await backend.execute(Input("你好"))).success
    assert (await backend.execute(GoBack())).success

    assert recorder.requests == [
        ("POST", "/gesture", {"type": "tap", "x": 10, "y": 20, "duration_ms": 100}),
        ("POST", "/gesture", {"type": "swipe", "x": 1, "y": 2, "to_x": 3, "to_y": 4, "duration_ms": 250}),
        ("POST", "/text", {"text": "你好"}),
        ("POST", "/global", {"action": "back"}),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "code, expected",
    [(KeyCode.BACK, "back"), (KeyCode.HOME, "home"), (KeyCode.APP_SWITCH, "recents")],
)
async def test_mapped_keys_use_global_actions(code, expected):
    recorder = _BridgeRecorder()

    result = await _backend(recorder).execute(PressKey(int(code)))

    assert result.success
    assert recorder.requests == [("POST", "/global", {"action": expected})]


@pytest.mark.asyncio
async def test_unmapped_key_fails_without_request():
    recorder = _BridgeRecorder()

    result = await _backend(recorder).execute(PressKey(int(KeyCode.VOLUME_UP), "volume_up"))

    assert not result.success
    assert result.message == "无法模拟按键: volume_up"
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_bridge_rejection_becomes_failed_result():
    recorder = _BridgeRecorder(replies={"/launch": {"ok": False, "message": "应用未安装"}})

    result = await _backend(recorder).execute(OpenApp("com.missing"))

    assert not result.success
    assert "应用未安装" in result.message
    assert isinstance(result.error, BridgeError)


@pytest.mark.asyncio
async def test_foreground_app():
    ok = _backend(_BridgeRecorder(replies={"/foreground": {"package": "com.android.settings"}}))
    empty = _backend(_BridgeRecorder(replies={"/foreground": {"package": ""}}))
    broken = _backend(_BridgeRecorder(replies={"/foreground": httpx.Response(500, text="boom")}))

    assert await ok.current_foreground_app() == "com.android.settings"
    with pytest.raises(ControlError):
        await empty.current_foreground_app()
    with pytest.raises(ControlError, match="500"):
        await broken.current_foreground_app()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply, state, ready",
    [
        ({"connected": True, "service_enabled": True}, ConnectionState.CONNECTED, True),
        ({"connected": True, "service_enabled": False}, ConnectionState.PERMISSION_DENIED, False),
        ({"connected": False, "service_enabled": True, "detail": "离线"}, ConnectionState.DISCONNECTED, False),
    ],
)
async def test_bridge_initialize_publishes_status(reply, state, ready):
    bridge = HttpGestureBridge("http://bridge.local", transport=httpx.MockTransport(_BridgeRecorder({"/status": reply})))
    backend = GestureControlBackend(bridge)

    assert await bridge.initialize() is ready
    assert bridge.status.current.state is state
    assert backend.is_ready() is ready
    assert backend.connection_status() is bridge.status.current


@pytest.mark.asyncio
async def test_bridge_without_url_is_disconnected():
    bridge = HttpGestureBridge("")

    assert await bridge.initialize() is False
    assert bridge.status.current.state is ConnectionState.DISCONNECTED
    assert "GESTURE_BRIDGE_URL" in bridge.status.current.detail
