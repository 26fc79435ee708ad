"""
感知模块
"""
from .aggregator import PerceptionAggregator
from .base import PerceptionError, RawImage, ScreenCapture, ViewTreeReader
from .bridge_sources import BridgeScreenCapture, BridgeViewTreeReader
from .shell_sources import ShellScreenCapture, ShellViewTreeReader

__all__ = [
    "PerceptionAggregator",
    "PerceptionError",
    "RawImage",
    "ScreenCapture",
    "ViewTreeReader",
    "BridgeScreenCapture",
    "BridgeViewTreeReader",
    "ShellScreenCapture",
    "ShellViewTreeReader",
]
