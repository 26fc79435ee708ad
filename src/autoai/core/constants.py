"""
常量和枚举定义
"""
from enum import Enum, IntEnum


class TaskStatus(str, Enum):
    """任务状态"""
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)

    def can_resume(self) -> bool:
        return self is TaskStatus.PAUSED


class SafetyLevel(str, Enum):
    """安全等级"""
    GREEN = "green"  # 放行
    YELLOW = "yellow"  # 需要确认
    RED = "red"  # 阻断


class ControlMode(str, Enum):
    """控制方式"""
    GESTURE = "gesture"  # 无障碍手势
    SHELL = "shell"  # 特权 shell

    @property
    def label(self) -> str:
        return _CONTROL_MODE_LABELS[self]

    @classmethod
    def parse(cls, value, default: "ControlMode" = None) -> "ControlMode":
        """宽松解析，未知值回退到默认"""
        fallback = default or cls.GESTURE
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for mode in cls:
            if mode.value == text:
                return mode
        return fallback


_CONTROL_MODE_LABELS = {
    ControlMode.GESTURE: "无障碍手势",
    ControlMode.SHELL: "Shell 命令",
}


class EngineState(str, Enum):
    """执行引擎状态"""
    IDLE = "idle"
    STEPPING = "stepping"
    STOPPED = "stopped"


class ConnectionState(str, Enum):
    """后端连接状态"""
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    PERMISSION_DENIED = "permission_denied"
    ERROR = "error"


class KeyCode(IntEnum):
    """Android 按键码"""
    HOME = 3
    BACK = 4
    VOLUME_UP = 24
    VOLUME_DOWN = 25
    POWER = 26
    ENTER = 66
    DELETE = 67
    MENU = 82
    SEARCH = 84
    APP_SWITCH = 187


# 按键名称 -> 按键码
KEY_NAMES = {
    "back": KeyCode.BACK,
    "home": KeyCode.HOME,
    "recents": KeyCode.APP_SWITCH,
    "recent": KeyCode.APP_SWITCH,
    "app_switch": KeyCode.APP_SWITCH,
    "enter": KeyCode.ENTER,
    "delete": KeyCode.DELETE,
    "del": KeyCode.DELETE,
    "menu": KeyCode.MENU,
    "search": KeyCode.SEARCH,
    "volume_up": KeyCode.VOLUME_UP,
    "volume_down": KeyCode.VOLUME_DOWN,
    "power": KeyCode.POWER,
}


# 执行后等待（毫秒）
class SettleDelayMs(IntEnum):
    SHELL_TAP = 300
    SHELL_SWIPE = 500
    SHELL_INPUT = 320
    SHELL_KEY = 200
    GESTURE = 360
    LAUNCH = 2000
