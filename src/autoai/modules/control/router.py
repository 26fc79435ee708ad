"""
控制后端路由

按持久化的控制方式选择后端；所选后端未就绪时返回空对象后端，
其执行结果始终是"未就绪"失败，调用方无需判空。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional

from ...core.constants import ControlMode
from ...core.logger import logger
from ...models.action import Action, ActionResult
from .base import ControlBackend, ControlError, SettleDelays
from .preferences import ControlPreferences

if TYPE_CHECKING:
    from ..perception.aggregator import PerceptionAggregator


class UnavailableBackend(ControlBackend):
    """未就绪时的空对象后端"""

    def __init__(self, mode: ControlMode, reason: str) -> None:
        super().__init__(SettleDelays.none())
        self.mode = mode
        self.reason = reason

    @property
    def message(self) -> str:
        return f"{self.mode.label}未就绪: {self.reason}"

    def is_ready(self) -> bool:
        return False

    async def current_foreground_app(self) -> str:
        raise ControlError(self.message)

    async def execute(self, action: Action) -> ActionResult:
        self._log.warning(f"{self.message}，忽略动作 {action.kind}")
        return ActionResult.failure(self.message, error=ControlError(self.message))

    async def _unavailable(self, action: Action) -> Optional[ActionResult]:
        return ActionResult.failure(self.message)

    _click = _long_click = _swipe = _input = _press_key = _open_app = _unavailable


@dataclass(frozen=True)
class ControlBundle:
    mode: ControlMode
    backend: ControlBackend
    perception: PerceptionAggregator

    @property
    def ready(self) -> bool:
        return self.backend.is_ready()


class BackendRouter:
    def __init__(
        self,
        preferences: ControlPreferences,
        backends: Dict[ControlMode, ControlBackend],
        perceptions: Dict[ControlMode, PerceptionAggregator],
    ) -> None:
        missing = [m.value for m in ControlMode if m not in backends or m not in perceptions]
        if missing:
            raise ValueError(f"缺少控制方式: {', '.join(missing)}")
        self.preferences = preferences
        self._backends = dict(backends)
        self._perceptions = dict(perceptions)
        self._unavailable: Dict[ControlMode, UnavailableBackend] = {}
        self._log = logger.bind(module="BackendRouter")

    def backend_for(self, mode: ControlMode) -> ControlBackend:
        return self._backends[mode]

    def _unready_reason(self, mode: ControlMode) -> str:
        status = self._backends[mode].connection_status()
        if status is None:
            return "未连接"
        return status.detail or status.state.value

    def _null_backend(self, mode: ControlMode, reason: str) -> UnavailableBackend:
        # 每种模式只保留一个，原因变化时重建
        backend = self._unavailable.get(mode)
        if backend is None or backend.reason != reason:
            backend = UnavailableBackend(mode, reason)
            self._unavailable[mode] = backend
            self._log.warning(backend.message)
        return backend

    def resolve(self) -> ControlBundle:
        mode = self.preferences.get_mode()
        backend = self._backends[mode]
        if not backend.is_ready():
            backend = self._null_backend(mode, self._unready_reason(mode))
        return ControlBundle(mode=mode, backend=backend, perception=self._perceptions[mode])

    def statuses(self) -> Dict[str, dict]:
        result = {}
        for mode, backend in self._backends.items():
            result[mode.value] = {
                "label": mode.label,
                "ready": backend.is_ready(),
                "reason": "" if backend.is_ready() else self._unready_reason(mode),
            }
        return result
