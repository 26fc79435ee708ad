"""
组件装配

settings -> 偏好/通道/桥接 -> 后端与感知 -> 路由 -> 决策 -> 引擎 -> 任务管理
"""
from __future__ import annotations

from dataclasses import dataclass

from .core.config import Settings
from .core.constants import ControlMode
from .core.logger import logger
from .core.perf import PerformanceMonitor
from .core.thread_pool import shutdown_pools
from .modules.control import (
    BackendRouter,
    ControlPreferences,
    GestureControlBackend,
    HttpGestureBridge,
    ShellChannel,
    ShellControlBackend,
)
from .modules.decision import DecisionGateway, OpenAICompatibleService
from .modules.execution import EngineConfig, ExecutionEngine
from .modules.perception import (
    BridgeScreenCapture,
    BridgeViewTreeReader,
    PerceptionAggregator,
    ShellScreenCapture,
    ShellViewTreeReader,
)
from .modules.safety import SafetyChecker
from .modules.task import TaskManager


@dataclass
class AppContainer:
    settings: Settings
    preferences: ControlPreferences
    shell: ShellChannel
    bridge: HttpGestureBridge
    router: BackendRouter
    decision_service: OpenAICompatibleService
    gateway: DecisionGateway
    safety: SafetyChecker
    monitor: PerformanceMonitor
    engine: ExecutionEngine
    manager: TaskManager

    async def startup(self) -> None:
        """显式建立两个控制通道"""
        shell_ok = await self.shell.initialize()
        bridge_ok = await self.bridge.initialize()
        logger.info(f"控制通道初始化完成: shell={shell_ok} gesture={bridge_ok}")

    async def shutdown(self) -> None:
        self.manager.cancel()
        await self.shell.shutdown()
        await self.bridge.shutdown()
        shutdown_pools()


def build_container(cfg: Settings) -> AppContainer:
    preferences = ControlPreferences(cfg.control_prefs_path, ControlMode.parse(cfg.control_mode))

    shell = ShellChannel(cfg.adb_path, cfg.device_serial, cfg.shell_timeout_sec)
    bridge = HttpGestureBridge(cfg.gesture_bridge_url, cfg.gesture_bridge_timeout_sec)

    backends = {
        ControlMode.SHELL: ShellControlBackend(shell),
        ControlMode.GESTURE: GestureControlBackend(bridge),
    }
    perceptions = {
        ControlMode.SHELL: PerceptionAggregator(
            ShellScreenCapture(shell, cfg.image_quality),
            ShellViewTreeReader(shell, cfg.dump_dir),
            cfg.image_max_size_kb,
        ),
        ControlMode.GESTURE: PerceptionAggregator(
            BridgeScreenCapture(bridge, cfg.image_quality),
            BridgeViewTreeReader(bridge),
            cfg.image_max_size_kb,
        ),
    }
    router = BackendRouter(preferences, backends, perceptions)

    service = OpenAICompatibleService(
        base_url=cfg.decision_base_url,
        api_key=cfg.decision_api_key,
        model=cfg.decision_model,
        temperature=cfg.decision_temperature,
        max_tokens=cfg.decision_max_tokens,
        timeout=cfg.decision_timeout_sec,
    )
    gateway = DecisionGateway(service)
    safety = SafetyChecker()
    monitor = PerformanceMonitor()
    engine = ExecutionEngine(
        router,
        gateway,
        safety,
        config=EngineConfig.from_settings(cfg),
        monitor=monitor,
    )
    manager = TaskManager(engine)

    return AppContainer(
        settings=cfg,
        preferences=preferences,
        shell=shell,
        bridge=bridge,
        router=router,
        decision_service=service,
        gateway=gateway,
        safety=safety,
        monitor=monitor,
        engine=engine,
        manager=manager,
    )
