"""
控制方式偏好（YAML 持久化）
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml

from ...core.constants import ControlMode
from ...core.logger import logger


class ControlPreferences:
    """读取/保存当前控制方式；文件缺失、损坏或取值未知时回退到默认值"""

    def __init__(self, path: str, default_mode: ControlMode = ControlMode.GESTURE) -> None:
        self._path = Path(path)
        self._default = default_mode
        self._log = logger.bind(module="ControlPreferences")

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Optional[dict]:
        if not self._path.exists():
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            self._log.warning(f"控制偏好读取失败，使用默认值: {e}")
            return None
        return data if isinstance(data, dict) else None

    def get_mode(self) -> ControlMode:
        data = self._load() or {}
        return ControlMode.parse(data.get("control_mode"), self._default)

    def set_mode(self, mode: ControlMode) -> ControlMode:
        mode = ControlMode.parse(mode, self._default)
        data = self._load() or {}
        data["control_mode"] = mode.value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False)
        self._log.info(f"控制方式已切换: {mode.value}")
        return mode
