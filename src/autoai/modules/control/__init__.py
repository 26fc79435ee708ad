"""
控制后端模块
"""
from .base import ControlBackend, ControlError, SettleDelays
from .gesture import BridgeError, HttpGestureBridge
from .gesture_backend import GestureControlBackend
from .preferences import ControlPreferences
from .router import BackendRouter, ControlBundle, UnavailableBackend
from .shell import ShellChannel, ShellError
from .shell_backend import ShellControlBackend
from .status import ConnectionStatus, StatusChannel

__all__ = [
    "ControlBackend",
    "ControlError",
    "SettleDelays",
    "BridgeError",
    "HttpGestureBridge",
    "GestureControlBackend",
    "ControlPreferences",
    "BackendRouter",
    "ControlBundle",
    "UnavailableBackend",
    "ShellChannel",
    "ShellError",
    "ShellControlBackend",
    "ConnectionStatus",
    "StatusChannel",
]
