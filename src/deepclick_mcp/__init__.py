"""
DeepClick MCP 网关

符合 Model Context Protocol (MCP) 规范的协议转换网关。
通过 Server-Sent Events (SSE) 与 HTTP POST 两种传输暴露 JSON-RPC 工具调用，
并把校验后的调用转发到 DeepClick 控制台 API。
"""

__version__ = "1.0.0"
__author__ = "DeepClick MCP Team"
__license__ = "MIT"
__description__ = "DeepClick 推广链接管理的 MCP 协议网关"

import logging

from .core.config_manager import ConfigManager
from .core.upstream_client import DeepClickClient
from .protocols.mcp_server import MCPServer, create_server
from .protocols.rpc_dispatcher import RPCDispatcher
from .protocols.session_registry import SessionRegistry

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "__description__",
    "ConfigManager",
    "DeepClickClient",
    "MCPServer",
    "RPCDispatcher",
    "SessionRegistry",
    "create_server",
]
