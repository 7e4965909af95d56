"""
DeepClick 上游 API 客户端

封装四个固定的 DeepClick 控制台接口，每个工具调用恰好对应一次上游请求。
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from .config_manager import UpstreamConfig

logger = logging.getLogger(__name__)


class UpstreamError(RuntimeError):
    """上游返回非 2xx 状态或网络请求失败"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UpstreamResponseError(UpstreamError):
    """上游响应结构不符合预期"""


class LinkItem(BaseModel):
    id: Optional[Any] = None
    name: Optional[str] = None
    promotion_link: Optional[str] = None


class DomainItem(BaseModel):
    id: Optional[Any] = None
    custom_domain: Optional[str] = None


class LinkListData(BaseModel):
    items: Optional[List[LinkItem]] = None


class DomainListData(BaseModel):
    items: Optional[List[DomainItem]] = None


class LinkListResponse(BaseModel):
    data: Optional[LinkListData] = None


class DomainListResponse(BaseModel):
    data: Optional[DomainListData] = None


def build_link_payload(name: str, domain_id: int) -> Dict[str, Any]:
    """构建创建推广链接的请求体（除名称和域名外均为预设值）"""
    return {
        "link": {
            "id": None,
            "name": name,
            "icon_url": "https://image.deepclick.com/uploads/129_20251216080422_926.png",
            "jump_url": "https://console-test-deepclick.qiliangjia.one/promotional-link/link-detail",
            "channel_id": "4",
            "attribution_type": 3,
            "szy_pixels": [],
            "app_id": 1013087208491520,
            "app_type": 2,
            "app_name": "44444",
            "campaign_id": 340179456,
            "first_type": 1,
            "re_target_type": 2,
            "domain_id": domain_id,
            "is_ad_report": 0,
            "remark": "123",
            "partner": 1,
            "cape_type": 2,
            "ad_template_type": 0,
            "complaint_setting": {
                "logic": "and",
                "conditions": [{"field": "", "op": "gt", "value": None}],
            },
            "complaint_set": 0,
            "url_start_type": "",
            "campaign_name": "0105_page_1",
            "back_assets": {
                "feed_info": None,
                "multi_image_info": None,
                "pure_video_info": None,
                "custom_page_info": {
                    "action_btn": "徒步徒步",
                    "image_urls": [
                        "https://image.deepclick.com/uploads/883_20260105095556_333",
                        "https://image.deepclick.com/uploads/289_20260105095556_221",
                    ],
                    "parameters": {
                        "button_color": "linear-gradient(270deg, #0c65ff 0%, #6d00fc 46.15%, #ff003c 100%)",
                        "button_is_floating": True,
                    },
                },
            },
            "back_template_type": 4,
            "back_style_id": 7,
        },
        "sub_push": None,
    }


class DeepClickClient:
    """DeepClick 控制台 API 客户端"""

    def __init__(self, config: Optional[UpstreamConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        初始化客户端

        Args:
            config: 上游配置
            transport: 自定义 httpx 传输层（测试时注入 MockTransport）
        """
        self.config = config or UpstreamConfig()
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            transport=self.transport,
        )

    def _auth_headers(self, token: str) -> Dict[str, str]:
        return {
            "accept": "application/json, text/plain, */*",
            "authorization": f"Bearer {token}",
            "content-type": "application/json",
            "dc-lang": self.config.lang,
        }

    async def _post(self, path: str, body: Dict[str, Any],
                    headers: Dict[str, str], failure: str) -> Any:
        try:
            async with self._client() as client:
                response = await client.post(path, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"上游请求异常 POST {path}: {e}")
            raise UpstreamError(f"{failure}: {e}") from e

        if not response.is_success:
            logger.warning(f"上游返回 {response.status_code} POST {path}")
            raise UpstreamError(
                f"{failure}: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamResponseError(
                f"{failure}: 响应不是合法的 JSON",
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def create_promotional_link(self, token: str, name: str, domain_id: int) -> Any:
        """创建推广链接，返回上游原始响应"""
        return await self._post(
            "/ad/link/create",
            build_link_payload(name, domain_id),
            self._auth_headers(token),
            "DeepClick API 请求失败",
        )

    async def list_promotional_links(self, token: str, page_num: int = 1, page_size: int = 10,
                                     link_name: str = "", link_id: str = "",
                                     app_name: str = "", app_id: str = "") -> List[Dict[str, Any]]:
        """
        查询推广链接列表

        Returns:
            简化后的链接列表，每项包含 id、name、promotion_link

        Raises:
            UpstreamResponseError: 响应中缺少 data.items
        """
        payload = await self._post(
            "/ad/linkAd/list",
            {
                "page_num": page_num,
                "page_size": page_size,
                "link_name": link_name,
                "link_id": link_id,
                "app_name": app_name,
                "app_id": app_id,
            },
            self._auth_headers(token),
            "DeepClick API 请求失败",
        )

        try:
            parsed = LinkListResponse.model_validate(payload)
        except ValidationError as e:
            raise UpstreamResponseError(f"推广链接列表响应格式错误: {e}") from e

        if parsed.data is None or parsed.data.items is None:
            raise UpstreamResponseError("推广链接列表响应缺少 data.items")

        return [item.model_dump() for item in parsed.data.items]

    async def get_token(self, email: str) -> Any:
        """通过邮箱换取 Bearer Token"""
        return await self._post(
            "/account/register_by_captcha",
            {
                "captcha_code": self.config.captcha_code,
                "email": email,
                "register_from": 0,
            },
            {"accept": "*/*", "content-type": "application/json"},
            "获取 Token 失败",
        )

    async def get_domains(self, token: str) -> List[Dict[str, Any]]:
        """获取可用域名列表，响应中没有域名时返回空列表"""
        payload = await self._post(
            "/data_dropdown/domain",
            {"cape_type": [1, 2]},
            self._auth_headers(token),
            "获取域名列表失败",
        )

        try:
            parsed = DomainListResponse.model_validate(payload)
        except ValidationError as e:
            raise UpstreamResponseError(f"域名列表响应格式错误: {e}") from e

        if parsed.data is None or not parsed.data.items:
            return []

        return [{"id": item.id, "domain": item.custom_domain} for item in parsed.data.items]
