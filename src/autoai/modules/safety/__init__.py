"""
安全检查模块
"""
from .checker import SafetyChecker, SafetyVerdict
from .pii import contains_sensitive_info, redact_pii

__all__ = ["SafetyChecker", "SafetyVerdict", "contains_sensitive_info", "redact_pii"]
