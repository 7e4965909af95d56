"""
SSE 会话注册表

进程内的活跃推送会话表。注册表独占会话的生命周期：创建、心跳刷新、
过期清理和显式关闭。时钟与会话 ID 生成器均可注入，便于确定性测试。
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class SinkClosedError(RuntimeError):
    """向已关闭的输出通道写入数据"""


class StreamSink:
    """基于 asyncio.Queue 的字节块输出通道"""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, chunk: bytes) -> None:
        """
        写入一个字节块（非阻塞）

        Raises:
            SinkClosedError: 通道已关闭
        """
        if self._closed:
            raise SinkClosedError("输出通道已关闭")
        self._queue.put_nowait(chunk)

    def close(self) -> None:
        """关闭通道，重复调用无副作用"""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def chunks(self) -> AsyncIterator[bytes]:
        """按写入顺序产出字节块，通道关闭后结束"""
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk


@dataclass
class Session:
    """推送会话"""
    id: str
    sink: StreamSink
    last_activity: float
    created_at: float
    heartbeat: Optional[asyncio.Task] = field(default=None, repr=False)

    def cancel_heartbeat(self) -> None:
        if self.heartbeat is not None and not self.heartbeat.done():
            self.heartbeat.cancel()


def generate_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


class SessionRegistry:
    """会话注册表"""

    def __init__(self, session_timeout: float = 300.0,
                 clock: Callable[[], float] = time.monotonic,
                 id_factory: Callable[[], str] = generate_session_id):
        """
        初始化会话注册表

        Args:
            session_timeout: 空闲超时时间（秒）
            clock: 返回当前时间（秒）的时钟
            id_factory: 会话 ID 生成器
        """
        self.session_timeout = session_timeout
        self.clock = clock
        self.id_factory = id_factory
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def create(self, sink: StreamSink, heartbeat: Optional[asyncio.Task] = None) -> str:
        """
        注册新会话

        Args:
            sink: 会话的输出通道
            heartbeat: 心跳定时任务

        Returns:
            新会话 ID
        """
        session_id = self.id_factory()
        while session_id in self._sessions:
            session_id = self.id_factory()

        now = self.clock()
        self._sessions[session_id] = Session(
            id=session_id,
            sink=sink,
            last_activity=now,
            created_at=now,
            heartbeat=heartbeat,
        )
        logger.info(f"创建 SSE 会话: {session_id}")
        return session_id

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def touch(self, session_id: str) -> None:
        """刷新最后活动时间，会话不存在时忽略"""
        session = self._sessions.get(session_id)
        if session is None:
            return
        session.last_activity = max(session.last_activity, self.clock())

    def remove(self, session_id: str) -> Optional[Session]:
        """删除会话记录，重复删除不报错"""
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.cancel_heartbeat()
            logger.info(f"移除 SSE 会话: {session_id}")
        return session

    def sweep(self, now: Optional[float] = None, timeout: Optional[float] = None) -> List[str]:
        """
        清理空闲超时的会话

        关闭输出通道属于尽力而为，失败只记录日志。

        Args:
            now: 当前时间，默认取注册表时钟
            timeout: 空闲超时，默认取注册表配置

        Returns:
            被清理的会话 ID 列表
        """
        now = self.clock() if now is None else now
        timeout = self.session_timeout if timeout is None else timeout

        expired = [
            session_id for session_id, session in self._sessions.items()
            if now - session.last_activity > timeout
        ]

        for session_id in expired:
            session = self._sessions.pop(session_id)
            session.cancel_heartbeat()
            try:
                session.sink.close()
            except Exception as e:
                logger.warning(f"关闭过期会话通道失败 [{session_id}]: {e}")

        if expired:
            logger.info(f"清理了 {len(expired)} 个过期会话")
        return expired

    def close_all(self) -> None:
        """关闭全部会话（进程退出时调用）"""
        for session_id in list(self._sessions):
            session = self._sessions.pop(session_id)
            session.cancel_heartbeat()
            try:
                session.sink.close()
            except Exception as e:
                logger.warning(f"关闭会话通道失败 [{session_id}]: {e}")
