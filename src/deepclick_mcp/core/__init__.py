"""
核心模块

包含配置管理与 DeepClick 上游 API 客户端。
"""

from .config_manager import ConfigManager
from .upstream_client import DeepClickClient, UpstreamError

__all__ = [
    "ConfigManager",
    "DeepClickClient",
    "UpstreamError",
]
