"""
SSE 推送传输

为每个会话建立服务器推送通道：握手事件、定期心跳以及异步投递的响应消息。
"""

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Dict

from fastapi.responses import StreamingResponse
from sse_starlette import ServerSentEvent

from .session_registry import SessionRegistry, StreamSink

logger = logging.getLogger(__name__)

SESSION_HEADER = "x-session-id"


def encode_event(**kwargs: Any) -> bytes:
    """编码一个 SSE 帧，以空行结束"""
    return ServerSentEvent(sep="\n", **kwargs).encode()


class StreamTransport:
    """SSE 推送传输"""

    def __init__(self, registry: SessionRegistry, messages_path: str = "/messages",
                 heartbeat_interval: float = 15.0):
        """
        初始化推送传输

        Args:
            registry: 会话注册表
            messages_path: 握手事件中告知客户端的消息端点路径
            heartbeat_interval: 心跳间隔（秒）
        """
        self.registry = registry
        self.messages_path = messages_path
        self.heartbeat_interval = heartbeat_interval

    def open_session(self) -> str:
        """
        注册会话、写入握手帧并启动心跳

        顺带清理一次过期会话。

        Returns:
            新会话 ID
        """
        sink = StreamSink()
        session_id = self.registry.create(sink)
        sink.write(encode_event(event="endpoint", data=self.messages_path))

        session = self.registry.get(session_id)
        session.heartbeat = asyncio.create_task(self._heartbeat(session_id, sink))

        self.registry.sweep()
        return session_id

    async def open_stream(self) -> StreamingResponse:
        """建立 SSE 连接，会话 ID 通过响应头返回"""
        session_id = self.open_session()
        sink = self.registry.get(session_id).sink

        return StreamingResponse(
            self.event_stream(session_id, sink),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Session-Id": session_id,
            },
        )

    async def event_stream(self, session_id: str, sink: StreamSink) -> AsyncGenerator[bytes, None]:
        """
        生成响应体

        客户端断开时生成器被终止，会话随即从注册表移除。
        """
        try:
            async for chunk in sink.chunks():
                yield chunk
        finally:
            sink.close()
            self.registry.remove(session_id)

    async def _heartbeat(self, session_id: str, sink: StreamSink) -> None:
        """定期发送注释帧保持连接，写入失败时停止"""
        frame = encode_event(comment="heartbeat")
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                sink.write(frame)
            except Exception as e:
                logger.debug(f"心跳写入失败，停止心跳 [{session_id}]: {e}")
                return
            self.registry.touch(session_id)

    def send(self, session_id: str, payload: Dict[str, Any]) -> bool:
        """
        尽力投递一条消息

        投递前重新确认会话与通道仍然有效；失败只记录日志，不重试也不向调用方抛出。

        Args:
            session_id: 会话 ID
            payload: 要推送的 JSON-RPC 信封

        Returns:
            是否写入成功（仅供参考）
        """
        session = self.registry.get(session_id)
        if session is None:
            logger.warning(f"会话不存在或已过期，丢弃消息 [{session_id}]")
            return False

        try:
            session.sink.write(encode_event(data=json.dumps(payload, ensure_ascii=False)))
        except Exception as e:
            logger.error(f"发送 SSE 消息失败 [{session_id}]: {e}")
            return False

        self.registry.touch(session_id)
        return True
