from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from deepclick_mcp.core.upstream_client import UpstreamError, UpstreamResponseError

from .conftest import make_client


@pytest.mark.asyncio
async def test_create_link_posts_fixed_template_with_bearer_token() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"code": 0, "data": {"id": 99}})

    client = make_client(handler)

    result = await client.create_promotional_link("tok", "spring sale", 12)

    (request,) = seen
    body = json.loads(request.content)
    assert request.method == "POST"
    assert request.url.path == "/api/console/ad/link/create"
    assert request.headers["authorization"] == "Bearer tok"
    assert request.headers["dc-lang"] == "zh-CN"
    assert body["link"]["name"] == "spring sale"
    assert body["link"]["domain_id"] == 12
    assert body["sub_push"] is None
    assert result == {"code": 0, "data": {"id": 99}}


@pytest.mark.asyncio
async def test_get_token_sends_captcha_without_authorization() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": {"token": "abc"}})

    client = make_client(handler)

    await client.get_token("lisi@qiliangjia.com")

    (request,) = seen
    assert request.url.path == "/api/console/account/register_by_captcha"
    assert "authorization" not in request.headers
    assert json.loads(request.content) == {
        "captcha_code": "Hmo2FGG",
        "email": "lisi@qiliangjia.com",
        "register_from": 0,
    }


@pytest.mark.asyncio
async def test_get_domains_maps_custom_domain() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"cape_type": [1, 2]}
        return httpx.Response(200, json={"data": {"items": [
            {"id": 1, "custom_domain": "a.example.com", "status": 1},
            {"id": 2, "custom_domain": "b.example.com"},
        ]}})

    client = make_client(handler)

    assert await client.get_domains("tok") == [
        {"id": 1, "domain": "a.example.com"},
        {"id": 2, "domain": "b.example.com"},
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"data": None}, {"data": {}}, {"data": {"items": None}}])
async def test_get_domains_without_items_returns_empty_list(payload) -> None:
    client = make_client(lambda request: httpx.Response(200, json=payload))

    assert await client.get_domains("tok") == []


@pytest.mark.asyncio
async def test_list_links_rejects_unexpected_shape() -> None:
    client = make_client(lambda request: httpx.Response(200, json={"data": {"items": "nope"}}))

    with pytest.raises(UpstreamResponseError):
        await client.list_promotional_links("tok")


@pytest.mark.asyncio
async def test_non_2xx_carries_status_and_body() -> None:
    client = make_client(lambda request: httpx.Response(401, text="token expired"))

    with pytest.raises(UpstreamError) as exc_info:
        await client.create_promotional_link("tok", "x", 1)

    assert exc_info.value.status_code == 401
    assert exc_info.value.body == "token expired"
    assert "401 token expired" in str(exc_info.value)


@pytest.mark.asyncio
async def test_network_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)

    with pytest.raises(UpstreamError) as exc_info:
        await client.get_token("a@b.cn")

    assert exc_info.value.status_code is None
    assert "connection refused" in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_json_success_body_is_response_error() -> None:
    client = make_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

    with pytest.raises(UpstreamResponseError):
        await client.get_token("a@b.cn")
