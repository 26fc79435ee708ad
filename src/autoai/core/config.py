"""
核心配置模块
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """系统配置"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # 日志
    log_level: str = Field(default="INFO")
    log_path: str = Field(default="./logs")
    log_retention_days: int = Field(default=3)
    log_console_enabled: bool = Field(default=True)
    log_file_format: str = Field(default="text")  # text|json
    log_rotation: str = Field(default="00:00")

    # 设备
    adb_path: str = Field(default="adb")
    device_serial: str = Field(default="")
    shell_timeout_sec: float = Field(default=15.0)
    dump_dir: str = Field(default="/data/local/tmp/autoai")

    # 控制方式
    control_mode: str = Field(default="gesture")  # gesture|shell
    control_prefs_path: str = Field(default="./data/control.yaml")
    gesture_bridge_url: str = Field(default="http://127.0.0.1:8765")
    gesture_bridge_timeout_sec: float = Field(default=15.0)

    # 决策服务（OpenAI 兼容接口）
    decision_base_url: str = Field(default="https://api.siliconflow.cn/")
    decision_api_key: str = Field(default="")
    decision_model: str = Field(default="Qwen/Qwen2.5-VL-7B-Instruct")
    decision_temperature: float = Field(default=0.3)
    decision_max_tokens: int = Field(default=2000)
    decision_timeout_sec: float = Field(default=60.0)

    # 执行引擎
    max_steps: int = Field(default=30)
    max_retry: int = Field(default=3)
    retry_interval_ms: int = Field(default=2000)
    wait_after_action_ms: int = Field(default=1500)
    stuck_window: int = Field(default=5)
    history_window: int = Field(default=3)
    keep_screen_states: bool = Field(default=False)

    # 截图编码
    image_max_size_kb: int = Field(default=500)
    image_quality: int = Field(default=80)

    # Web服务
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=9002)

    # 线程池，<=0 时自动计算
    io_thread_pool_size: int = Field(default=0)


# 全局配置实例
settings = Settings()
