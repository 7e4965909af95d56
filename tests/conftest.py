from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, List

import httpx
import pytest

from deepclick_mcp.core.config_manager import UpstreamConfig
from deepclick_mcp.core.upstream_client import DeepClickClient
from deepclick_mcp.protocols.session_registry import SessionRegistry, SinkClosedError, StreamSink


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSink:
    """Records written chunks; behaves like StreamSink for writers."""

    def __init__(self) -> None:
        self.chunks: List[bytes] = []
        self.closed = False

    def write(self, chunk: bytes) -> None:
        if self.closed:
            raise SinkClosedError("closed")
        self.chunks.append(chunk)

    def close(self) -> None:
        self.closed = True

    def data_frames(self) -> List[Any]:
        frames = []
        for chunk in self.chunks:
            text = chunk.decode()
            if text.startswith("data: "):
                frames.append(json.loads(text[len("data: "):].strip()))
        return frames


class ExplodingSink(FakeSink):
    def close(self) -> None:
        raise OSError("peer already gone")


async def read_frames(sink: StreamSink, count: int) -> List[bytes]:
    chunks = sink.chunks()
    return [await asyncio.wait_for(chunks.__anext__(), timeout=1.0) for _ in range(count)]


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> DeepClickClient:
    return DeepClickClient(
        UpstreamConfig(base_url="https://upstream.test/api/console"),
        transport=httpx.MockTransport(handler),
    )


def rpc(method: str, params: Any = None, request_id: Any = 1) -> dict:
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> SessionRegistry:
    counter = iter(range(1, 10_000))
    return SessionRegistry(
        session_timeout=300.0,
        clock=clock,
        id_factory=lambda: f"session_{next(counter)}",
    )
