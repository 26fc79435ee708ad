"""
任务管理模块
"""
from .manager import TaskManager

__all__ = ["TaskManager"]
