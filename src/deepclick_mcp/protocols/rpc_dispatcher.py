"""
RPC 分发器

解析 JSON-RPC 请求信封、校验协议版本并按方法名路由到固定的处理器。
SSE 与 HTTP 直连两种传输共用同一个分发器。
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from .. import __version__
from ..core.upstream_client import DeepClickClient
from .message_parser import (
    JSONRPC_VERSION,
    InvalidRequestError,
    MCPErrorCodes,
    create_error_response,
    create_response,
    extract_id,
    validate_request_structure,
)
from .tool_schemas import (
    MCP_TOOLS,
    ArgumentValidationError,
    CreateLinkArgs,
    GetDomainsArgs,
    GetTokenArgs,
    ListLinksArgs,
    ToolArguments,
    validate_arguments,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "deepclick-mcp-gateway"
SERVER_VERSION = __version__

ToolHandler = Callable[[Any], Awaitable[Any]]


class RPCDispatcher:
    """JSON-RPC 分发器，不保存跨调用的状态"""

    def __init__(self, client: Optional[DeepClickClient] = None):
        """
        初始化分发器

        Args:
            client: DeepClick 上游客户端
        """
        self.client = client if client is not None else DeepClickClient()
        self.tool_handlers: Dict[str, Tuple[Type[ToolArguments], ToolHandler]] = {
            "create_promotional_link": (CreateLinkArgs, self._create_promotional_link),
            "list_promotional_links": (ListLinksArgs, self._list_promotional_links),
            "get_deepclick_token": (GetTokenArgs, self._get_deepclick_token),
            "get_available_domains": (GetDomainsArgs, self._get_available_domains),
        }

    async def dispatch(self, message: Any) -> Dict[str, Any]:
        """
        处理一条 JSON-RPC 请求

        Args:
            message: 已解码的请求体

        Returns:
            响应或错误信封，本方法不会抛出异常
        """
        request_id = extract_id(message)

        if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
            return create_error_response(
                request_id,
                MCPErrorCodes.INVALID_REQUEST,
                "无效的请求：JSON-RPC 版本必须是 2.0",
            )

        try:
            validate_request_structure(message)
        except InvalidRequestError as e:
            return create_error_response(request_id, MCPErrorCodes.INVALID_REQUEST, str(e))

        method = message["method"]
        params = message.get("params") or {}

        try:
            if method == "initialize":
                return create_response(request_id, self._initialize_result())
            elif method == "tools/list":
                return create_response(request_id, {"tools": MCP_TOOLS})
            elif method == "tools/call":
                return await self._handle_tools_call(request_id, params)
            else:
                return create_error_response(
                    request_id,
                    MCPErrorCodes.METHOD_NOT_FOUND,
                    f"未知方法: {method}",
                )

        except Exception as e:
            logger.error(f"MCP 请求处理错误 [{method}]: {e}")
            return create_error_response(
                request_id,
                MCPErrorCodes.INTERNAL_ERROR,
                str(e) or "内部错误",
            )

    def _initialize_result(self) -> Dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": {
                "name": SERVER_NAME,
                "version": SERVER_VERSION,
            },
            "capabilities": {
                "tools": {},
            },
        }

    async def _handle_tools_call(self, request_id: Any, params: Dict[str, Any]) -> Dict[str, Any]:
        """处理工具调用请求"""
        tool_name = params.get("name")
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}

        entry = self.tool_handlers.get(tool_name) if isinstance(tool_name, str) else None
        if entry is None:
            return create_error_response(
                request_id,
                MCPErrorCodes.METHOD_NOT_FOUND,
                f"未知工具: {tool_name}",
            )

        model, handler = entry
        try:
            validated = validate_arguments(model, arguments)
        except ArgumentValidationError as e:
            logger.info(f"工具参数验证失败 [{tool_name}]: {e.details}")
            return create_error_response(
                request_id,
                MCPErrorCodes.INVALID_PARAMS,
                str(e),
                e.details,
            )

        logger.info(f"调用工具: {tool_name}")
        result = await handler(validated)

        return create_response(request_id, {
            "content": [
                {
                    "type": "text",
                    "text": json.dumps(result, ensure_ascii=False, indent=2),
                }
            ]
        })

    async def _create_promotional_link(self, args: CreateLinkArgs) -> Any:
        return await self.client.create_promotional_link(args.token, args.name, args.domain_id)

    async def _list_promotional_links(self, args: ListLinksArgs) -> Any:
        return await self.client.list_promotional_links(
            args.token,
            page_num=args.page_num,
            page_size=args.page_size,
            link_name=args.link_name,
            link_id=args.link_id,
            app_name=args.app_name,
            app_id=args.app_id,
        )

    async def _get_deepclick_token(self, args: GetTokenArgs) -> Any:
        return await self.client.get_token(args.email)

    async def _get_available_domains(self, args: GetDomainsArgs) -> Any:
        return await self.client.get_domains(args.token)
