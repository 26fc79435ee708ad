"""
特权 Shell 通道

基于 adb 提供设备级命令执行：
- run(command) -> stdout 文本
- run_binary(args) -> exec-out 原始字节（截图）
- ping() -> 通道是否可用

阻塞的 subprocess 调用通过 run_in_device_io 放到设备专属单线程池，
同一设备的命令串行执行。
"""
from __future__ import annotations

import subprocess
from typing import List, Optional

from ...core.constants import ConnectionState
from ...core.logger import logger
from ...core.thread_pool import run_in_device_io
from .status import StatusChannel


class ShellError(RuntimeError):
    pass


class ShellChannel:
    def __init__(self, adb_path: str = "adb", serial: str = "", timeout: float = 15.0) -> None:
        self.adb = adb_path
        self.serial = serial
        self.timeout = timeout
        self.status = StatusChannel("shell")
        self._log = logger.bind(module="ShellChannel")

    @property
    def io_key(self) -> str:
        return f"shell:{self.serial or 'default'}"

    def _base_args(self) -> List[str]:
        args = [self.adb]
        if self.serial:
            args += ["-s", self.serial]
        return args

    def _run(self, args: List[str], timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        try:
            cp = subprocess.run(
                [*self._base_args(), *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError as e:
            raise ShellError(f"找不到 ADB 可执行文件: {self.adb}") from e
        except subprocess.TimeoutExpired as e:
            raise ShellError(f"命令执行超时: {' '.join(args)}") from e
        return cp

    def run_sync(self, command: str, timeout: Optional[float] = None) -> str:
        cp = self._run(["shell", command], timeout=timeout)
        if cp.returncode != 0:
            err = (cp.stderr or b"").decode(errors="ignore").strip()
            raise ShellError(err or f"命令返回码 {cp.returncode}: {command}")
        return (cp.stdout or b"").decode("utf-8", errors="ignore")

    def run_binary_sync(self, args: List[str], timeout: Optional[float] = None) -> bytes:
        cp = self._run(["exec-out", *args], timeout=timeout)
        if cp.returncode != 0:
            err = (cp.stderr or b"").decode(errors="ignore").strip()
            raise ShellError(err or f"命令返回码 {cp.returncode}: {' '.join(args)}")
        return cp.stdout or b""

    async def run(self, command: str, timeout: Optional[float] = None) -> str:
        self._log.debug(f"shell: {command}")
        return await run_in_device_io(self.io_key, self.run_sync, command, timeout)

    async def run_binary(self, args: List[str], timeout: Optional[float] = None) -> bytes:
        return await run_in_device_io(self.io_key, self.run_binary_sync, args, timeout)

    async def ping(self) -> bool:
        try:
            out = await self.run("echo ok", timeout=5.0)
        except ShellError as e:
            self._log.warning(f"shell 通道不可用: {e}")
            return False
        return out.strip() == "ok"

    def is_ready(self) -> bool:
        return self.status.current.is_ready

    async def initialize(self) -> bool:
        """显式建立连接，结果发布到 status"""
        self.status.publish(ConnectionState.CONNECTING)
        try:
            out = await self.run("id", timeout=5.0)
        except ShellError as e:
            self.status.publish(ConnectionState.DISCONNECTED, str(e))
            return False
        if "uid=" not in out:
            self.status.publish(ConnectionState.ERROR, out.strip()[:120])
            return False
        # uid=0 为 root，uid=2000 为 shell，均具备 input/uiautomator 权限
        if "uid=0" in out or "uid=2000" in out:
            self.status.publish(ConnectionState.CONNECTED)
            return True
        self.status.publish(ConnectionState.PERMISSION_DENIED, out.strip()[:120])
        return False

    async def shutdown(self) -> None:
        self.status.publish(ConnectionState.DISCONNECTED, "已关闭")
