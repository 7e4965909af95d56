"""
请求关联器

把带会话 ID 的带外 POST 请求关联到对应的推送通道：同步分发，异步推送结果。
POST 的确认响应与推送是否送达无关，RPC 结果只能从 SSE 流中观察到。
"""

import logging
from typing import Any, Dict, Union

from .message_parser import parse_body
from .rpc_dispatcher import RPCDispatcher
from .session_registry import SessionRegistry
from .sse_handler import StreamTransport

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    """会话不存在或已过期"""

    def __init__(self, session_id: str):
        super().__init__(f"会话不存在或已过期: {session_id}")
        self.session_id = session_id


class RequestCorrelator:
    """请求关联器"""

    def __init__(self, registry: SessionRegistry, transport: StreamTransport,
                 dispatcher: RPCDispatcher):
        self.registry = registry
        self.transport = transport
        self.dispatcher = dispatcher

    async def handle(self, session_id: str, raw_body: Union[str, bytes]) -> Dict[str, Any]:
        """
        处理一条关联到会话的请求

        Args:
            session_id: 会话 ID
            raw_body: 原始请求体

        Returns:
            确认响应体

        Raises:
            SessionNotFoundError: 会话不存在，此时不会调用分发器
            ParseError: 请求体不是合法的 JSON
        """
        if self.registry.get(session_id) is None:
            raise SessionNotFoundError(session_id)

        message = parse_body(raw_body)
        return await self.deliver(session_id, message)

    async def deliver(self, session_id: str, message: Any) -> Dict[str, Any]:
        """分发已解码的请求并把结果推送到会话"""
        response = await self.dispatcher.dispatch(message)

        # 分发期间会话可能已被清理，send 会重新确认
        self.transport.send(session_id, response)
        return {"status": "sent"}
