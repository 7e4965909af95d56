"""
配置管理器

负责加载、验证和管理网关配置。
支持多种配置源：文件、环境变量、命令行参数等。
"""

import json
import os
import logging
from typing import Dict, Any, Optional, Union
from pathlib import Path
import yaml
from pydantic import BaseModel, ValidationError, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class ServerConfig(BaseModel):
    """服务器配置"""
    host: str = "0.0.0.0"
    port: int = 8787
    debug: bool = False


class SessionConfig(BaseModel):
    """SSE 会话配置"""
    heartbeat_interval: float = Field(default=15.0, gt=0)
    session_timeout: float = Field(default=300.0, gt=0)
    messages_path: str = "/messages"
    # None 表示只在新连接建立时清理过期会话
    sweep_interval: Optional[float] = Field(default=None, gt=0)


class UpstreamConfig(BaseModel):
    """DeepClick 上游 API 配置"""
    base_url: str = "https://console-api-test.deepclick.com/api/console"
    timeout: float = Field(default=30.0, gt=0)
    lang: str = "zh-CN"
    captcha_code: str = "Hmo2FGG"


class AppConfig(BaseSettings):
    """应用配置"""
    server: ServerConfig = ServerConfig()
    session: SessionConfig = SessionConfig()
    upstream: UpstreamConfig = UpstreamConfig()

    model_config = SettingsConfigDict(
        env_prefix="DEEPCLICK_MCP_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )


class ConfigManager:
    """配置管理器"""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        初始化配置管理器

        Args:
            config_path: 配置文件路径
        """
        self.config_path = config_path
        self._config: Optional[AppConfig] = None
        self._raw_config: Dict[str, Any] = {}

        # 默认配置文件搜索路径
        self.default_config_paths = [
            "config/config.json",
            "config/config.yaml",
            "config/config.yml",
            "/etc/deepclick_mcp/config.json",
            "/etc/deepclick_mcp/config.yaml",
            os.path.expanduser("~/.deepclick_mcp/config.json"),
            os.path.expanduser("~/.deepclick_mcp/config.yaml"),
        ]

        self.load_config()

    def load_config(self) -> None:
        """加载配置"""
        try:
            self._load_file_config()
            self._validate_config()
            logger.info("配置加载成功")

        except FileNotFoundError:
            raise
        except Exception as e:
            logger.error(f"配置加载失败: {e}")
            self._config = AppConfig()
            logger.warning("使用默认配置")

    def _load_file_config(self) -> None:
        """加载文件配置"""
        config_file = self._find_config_file()

        if not config_file:
            logger.debug("未找到配置文件，将使用默认配置")
            return

        with open(config_file, 'r', encoding='utf-8') as f:
            if config_file.suffix.lower() in ['.yaml', '.yml']:
                self._raw_config = yaml.safe_load(f) or {}
            else:
                self._raw_config = json.load(f)

        logger.info(f"从文件加载配置: {config_file}")

    def _find_config_file(self) -> Optional[Path]:
        """查找配置文件"""
        if self.config_path:
            config_path = Path(self.config_path)
            if config_path.exists():
                return config_path
            raise FileNotFoundError(f"指定的配置文件不存在: {config_path}")

        for path_str in self.default_config_paths:
            path = Path(path_str)
            if path.exists():
                return path

        return None

    def _validate_config(self) -> None:
        """验证配置"""
        try:
            self._config = AppConfig(**self._raw_config)
        except ValidationError as e:
            logger.error(f"配置验证失败: {e}")
            raise

    def get_config(self) -> AppConfig:
        """获取配置对象"""
        if self._config is None:
            raise RuntimeError("配置未初始化")
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取配置值

        Args:
            key: 配置键，支持点号分隔的嵌套键
            default: 默认值

        Returns:
            配置值
        """
        value: Any = self.get_config()
        for k in key.split('.'):
            if not hasattr(value, k):
                return default
            value = getattr(value, k)
        return value

    def set(self, key: str, value: Any) -> None:
        """
        设置配置值（运行时，不会持久化）

        Args:
            key: 配置键
            value: 配置值
        """
        keys = key.split('.')
        config_dict = self.get_config().model_dump()

        current = config_dict
        for k in keys[:-1]:
            current = current.setdefault(k, {})
        current[keys[-1]] = value

        try:
            self._config = AppConfig(**config_dict)
            logger.info(f"运行时配置已更新: {key} = {value}")
        except ValidationError as e:
            logger.error(f"配置更新失败: {e}")
            raise

    def get_server_config(self) -> ServerConfig:
        """获取服务器配置"""
        return self.get_config().server

    def get_session_config(self) -> SessionConfig:
        """获取会话配置"""
        return self.get_config().session

    def get_upstream_config(self) -> UpstreamConfig:
        """获取上游 API 配置"""
        return self.get_config().upstream

    def is_debug_mode(self) -> bool:
        """是否为调试模式"""
        return self.get_config().server.debug

    def get_log_level(self) -> str:
        """获取日志级别"""
        return "DEBUG" if self.is_debug_mode() else "INFO"

    def __repr__(self) -> str:
        if self._config:
            return f"ConfigManager(server={self._config.server.host}:{self._config.server.port})"
        return "ConfigManager(未初始化)"
