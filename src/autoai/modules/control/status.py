"""
后端连接状态

每个控制通道持有一个 StatusChannel，只有通道自身写入，其余模块只读或订阅。
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, List

from ...core.constants import ConnectionState
from ...core.logger import logger

StatusListener = Callable[["ConnectionStatus"], None]


@dataclass(frozen=True)
class ConnectionStatus:
    state: ConnectionState = ConnectionState.UNINITIALIZED
    detail: str = ""
    updated_at: float = field(default_factory=time.time)

    @property
    def is_ready(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "detail": self.detail,
            "ready": self.is_ready,
            "updated_at": self.updated_at,
        }


class StatusChannel:
    """单写者状态发布点"""

    def __init__(self, name: str) -> None:
        self.name = name
        self._current = ConnectionStatus()
        self._listeners: List[StatusListener] = []
        self._log = logger.bind(module=f"StatusChannel[{name}]")

    @property
    def current(self) -> ConnectionStatus:
        return self._current

    def publish(self, state: ConnectionState, detail: str = "") -> ConnectionStatus:
        status = ConnectionStatus(state=state, detail=detail)
        previous = self._current
        self._current = status
        if previous.state is not state:
            self._log.info(f"连接状态变化: {previous.state.value} -> {state.value} {detail}".rstrip())
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                self._log.warning(f"状态监听器异常: {e}")
        return status

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self._current)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
