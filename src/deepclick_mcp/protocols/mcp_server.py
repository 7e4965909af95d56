"""
MCP 网关服务器

基于 FastAPI 暴露两种传输：SSE 推送（/sse + /messages）与 HTTP 直连（/mcp）。
两者共用同一个 RPC 分发器，把工具调用转发到 DeepClick 上游 API。
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..core.config_manager import ConfigManager
from ..core.upstream_client import DeepClickClient
from .message_parser import ParseError, create_parse_error_response, parse_body
from .request_correlator import RequestCorrelator, SessionNotFoundError
from .rpc_dispatcher import PROTOCOL_VERSION, RPCDispatcher, SERVER_NAME
from .session_registry import SessionRegistry
from .sse_handler import SESSION_HEADER, StreamTransport
from .tool_schemas import MCP_TOOLS

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Session-Id",
}


class PreflightCORSMiddleware(CORSMiddleware):
    """浏览器预检请求一律以 204 和固定的 CORS 头应答，不校验请求头列表"""

    def preflight_response(self, request_headers) -> Response:
        return Response(status_code=204, headers=CORS_HEADERS)


def render_description(messages_path: str) -> str:
    """生成首页的服务说明文本"""
    lines = [
        "DeepClick MCP Gateway",
        "",
        f"服务名称: {SERVER_NAME}",
        f"版本: {__version__}",
        f"协议版本: MCP {PROTOCOL_VERSION}",
        "传输方式: HTTP POST + SSE (Server-Sent Events)",
        "",
        "可用工具:",
    ]
    for tool in MCP_TOOLS:
        schema = tool["inputSchema"]
        required = schema.get("required", [])
        optional = [name for name in schema["properties"] if name not in required]
        signature = ", ".join(required + [f"{name}?" for name in optional])
        lines.append(f"  - {tool['name']}({signature}): {tool['description']}")
    lines += [
        "",
        "端点:",
        "  GET  /sse - 建立 SSE 连接（响应头 X-Session-Id 返回会话 ID）",
        f"  POST {messages_path} - SSE 消息端点（需要 X-Session-Id 头）",
        "  POST /mcp - HTTP POST 模式的 JSON-RPC 请求处理",
        "",
        "使用流程: 先调用 get_deepclick_token 获取 Token，再用 Token 调用其他工具。",
    ]
    return "\n".join(lines) + "\n"


class MCPServer:
    """MCP 网关服务器"""

    def __init__(self, config_manager: ConfigManager,
                 client: Optional[DeepClickClient] = None,
                 registry: Optional[SessionRegistry] = None):
        """
        初始化服务器

        Args:
            config_manager: 配置管理器
            client: DeepClick 上游客户端，默认按配置创建
            registry: 会话注册表，默认按配置创建
        """
        self.config_manager = config_manager
        self.config = config_manager.get_config()
        session_config = self.config.session

        if registry is None:
            registry = SessionRegistry(session_timeout=session_config.session_timeout)
        self.registry = registry
        self.client = client if client is not None else DeepClickClient(self.config.upstream)
        self.dispatcher = RPCDispatcher(self.client)
        self.transport = StreamTransport(
            self.registry,
            messages_path=session_config.messages_path,
            heartbeat_interval=session_config.heartbeat_interval,
        )
        self.correlator = RequestCorrelator(self.registry, self.transport, self.dispatcher)

        self.app = FastAPI(
            title="DeepClick MCP Gateway",
            description="DeepClick 推广链接管理的 MCP 协议网关",
            version=__version__,
            lifespan=self._lifespan,
        )

        self._setup_cors()
        self._register_routes()

        logger.info("MCP 服务器初始化完成")

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        sweeper = None
        interval = self.config.session.sweep_interval
        if interval:
            sweeper = asyncio.create_task(self._sweep_task(interval))
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
            self.registry.close_all()

    async def _sweep_task(self, interval: float) -> None:
        """后台定期清理过期会话"""
        while True:
            await asyncio.sleep(interval)
            try:
                self.registry.sweep()
            except Exception as e:
                logger.error(f"会话清理任务异常: {e}")

    def _setup_cors(self) -> None:
        """设置CORS"""
        self.app.add_middleware(
            PreflightCORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "X-Session-Id"],
            expose_headers=["X-Session-Id"],
        )

    def _register_routes(self) -> None:
        """注册路由"""
        messages_path = self.config.session.messages_path

        @self.app.exception_handler(StarletteHTTPException)
        async def not_found_handler(request: Request, exc: StarletteHTTPException):
            if exc.status_code in (404, 405):
                return JSONResponse({"error": "未找到该端点"}, status_code=404)
            return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

        @self.app.options("/{path:path}")
        async def preflight(path: str):
            """CORS 预检"""
            return Response(status_code=204, headers=CORS_HEADERS)

        @self.app.get("/")
        async def index():
            """服务说明"""
            return PlainTextResponse(render_description(messages_path))

        @self.app.get("/health")
        async def health_check():
            """健康检查"""
            return {
                "status": "healthy",
                "version": __version__,
                "timestamp": time.time(),
                "active_sessions": len(self.registry),
            }

        @self.app.get("/sse")
        async def sse_connect():
            """建立 SSE 连接"""
            return await self.transport.open_stream()

        @self.app.post(messages_path)
        async def sse_message(request: Request):
            """SSE 消息端点：同步确认，结果通过 SSE 推送"""
            session_id = request.headers.get(SESSION_HEADER)
            if not session_id:
                return JSONResponse({"error": "缺少 X-Session-Id 头"}, status_code=400)

            try:
                ack = await self.correlator.handle(session_id, await request.body())
            except SessionNotFoundError:
                logger.warning(f"未找到会话: {session_id}")
                return JSONResponse({"error": "会话不存在或已过期"}, status_code=404)
            except ParseError as e:
                logger.warning(f"SSE 消息解析失败 [{session_id}]: {e}")
                return JSONResponse(create_parse_error_response(), status_code=400)
            except Exception as e:
                logger.error(f"处理 SSE 消息错误: {e}")
                return JSONResponse({"error": str(e) or "未知错误"}, status_code=500)

            return JSONResponse(ack, status_code=202)

        @self.app.post("/mcp")
        async def mcp_message(request: Request):
            """HTTP 直连：同步返回 JSON-RPC 响应"""
            try:
                message = parse_body(await request.body())
            except ParseError as e:
                logger.warning(f"请求处理错误: {e}")
                return JSONResponse(create_parse_error_response(), status_code=400)

            return JSONResponse(await self.dispatcher.dispatch(message))

        logger.info("API 路由注册完成")

    def get_app(self) -> FastAPI:
        """获取 FastAPI 应用实例"""
        return self.app


def create_server(config_manager: Optional[ConfigManager] = None) -> MCPServer:
    """
    创建 MCP 网关服务器实例

    Args:
        config_manager: 配置管理器

    Returns:
        MCP 网关服务器实例
    """
    return MCPServer(config_manager or ConfigManager())
