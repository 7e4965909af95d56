"""
协议模块

实现 MCP (Model Context Protocol) 的 JSON-RPC 分发与两种传输。
包含：
- 会话注册表
- SSE 推送传输
- 请求关联器
- RPC 分发器
- MCP 网关服务器
"""

from .session_registry import SessionRegistry, StreamSink
from .sse_handler import StreamTransport
from .request_correlator import RequestCorrelator
from .rpc_dispatcher import RPCDispatcher
from .mcp_server import MCPServer

__all__ = [
    "SessionRegistry",
    "StreamSink",
    "StreamTransport",
    "RequestCorrelator",
    "RPCDispatcher",
    "MCPServer",
]
