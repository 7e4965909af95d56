"""
消息解析器

负责解析和验证 JSON-RPC 2.0 消息信封，并构建响应信封。
"""

import json
import math
import logging
from typing import Dict, Any, Optional, Union
import jsonschema

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


class MCPErrorCodes:
    """JSON-RPC 错误代码"""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class ParseError(ValueError):
    """请求体不是合法的 JSON"""


class InvalidRequestError(ValueError):
    """请求信封结构不合法"""


REQUEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "jsonrpc": {"type": "string", "enum": [JSONRPC_VERSION]},
        "id": {"type": ["string", "number", "null"]},
        "method": {"type": "string"},
        "params": {"type": ["object", "null"]},
    },
    "required": ["jsonrpc", "method"],
}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"不支持的 JSON 常量: {name}")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"数值超出范围: {text}")
    return value


def parse_body(raw_message: Union[str, bytes]) -> Any:
    """
    解析请求体

    只接受标准 JSON：NaN、Infinity 以及溢出为无穷大的数值都视为解析失败。

    Args:
        raw_message: 原始请求体

    Returns:
        解码后的 JSON 值（不保证是对象）

    Raises:
        ParseError: JSON 解析失败
    """
    try:
        return json.loads(
            raw_message,
            parse_constant=_reject_constant,
            parse_float=_finite_float,
        )
    except ValueError as e:
        raise ParseError(f"JSON 解析失败: {e}") from e


def validate_request_structure(message: Dict[str, Any]) -> None:
    """
    验证请求信封结构

    Raises:
        InvalidRequestError: 结构验证失败
    """
    try:
        jsonschema.validate(message, REQUEST_SCHEMA)
    except jsonschema.ValidationError as e:
        raise InvalidRequestError(f"请求结构验证失败: {e.message}") from e


def extract_id(message: Any) -> Optional[Union[str, int, float]]:
    """提取可回显的请求 ID，无法识别时返回 None"""
    if not isinstance(message, dict):
        return None
    request_id = message.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, (str, int, float)):
        return None
    return request_id


def create_response(request_id: Any, result: Any) -> Dict[str, Any]:
    """创建成功响应"""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "result": result,
    }


def create_error_response(request_id: Any, error_code: int, error_message: str,
                          error_data: Optional[Any] = None) -> Dict[str, Any]:
    """
    创建错误响应

    Args:
        request_id: 请求ID
        error_code: 错误代码
        error_message: 错误消息
        error_data: 错误数据

    Returns:
        错误响应信封
    """
    error: Dict[str, Any] = {
        "code": error_code,
        "message": error_message,
    }

    if error_data is not None:
        error["data"] = error_data

    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": error,
    }


def create_parse_error_response() -> Dict[str, Any]:
    """创建解析错误响应，ID 固定为 null"""
    return create_error_response(None, MCPErrorCodes.PARSE_ERROR, "解析错误")

