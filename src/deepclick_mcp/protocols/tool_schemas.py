"""
工具定义与参数模型

MCP 工具目录（协议可见的契约）以及每个工具的参数校验模型。
"""

from typing import Any, ClassVar, Dict, List, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

TOKEN_DESCRIPTION = "DeepClick API Token（通过 get_deepclick_token 获取）"


def integral_float_to_int(value: Any) -> Any:
    """把 5.0 这类整数值浮点数转换为 int，其余输入原样返回"""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class ArgumentValidationError(ValueError):
    """工具参数校验失败，details 描述每个违规字段"""

    def __init__(self, details: Dict[str, Any]):
        super().__init__("参数验证失败")
        self.details = details


class ToolArguments(BaseModel):
    """工具参数基类：严格类型，忽略未声明的字段"""
    model_config = ConfigDict(strict=True, extra="ignore")

    # (字段, pydantic 错误类型) -> 提示文本
    error_messages: ClassVar[Dict[tuple, str]] = {}


class CreateLinkArgs(ToolArguments):
    token: str = Field(min_length=1)
    name: str = Field(min_length=1)
    domain_id: int = Field(gt=0)

    @field_validator("domain_id", mode="before")
    @classmethod
    def accept_integral_float(cls, value: Any) -> Any:
        return integral_float_to_int(value)

    error_messages: ClassVar[Dict[tuple, str]] = {
        ("token", "string_too_short"): "Token 不能为空",
        ("name", "string_too_short"): "推广链接名称不能为空",
        ("domain_id", "greater_than"): "域名 ID 必须是正整数",
    }


class ListLinksArgs(ToolArguments):
    token: str = Field(min_length=1)
    page_num: int = Field(default=1, gt=0)
    page_size: int = Field(default=10, gt=0, le=100)
    link_name: str = ""
    link_id: str = ""
    app_name: str = ""
    app_id: str = ""

    @field_validator("page_num", "page_size", mode="before")
    @classmethod
    def accept_integral_float(cls, value: Any) -> Any:
        return integral_float_to_int(value)

    error_messages: ClassVar[Dict[tuple, str]] = {
        ("token", "string_too_short"): "Token 不能为空",
        ("page_num", "greater_than"): "页码必须是正整数",
        ("page_size", "greater_than"): "每页数量必须是正整数",
        ("page_size", "less_than_equal"): "每页最多 100 条",
    }


class GetTokenArgs(ToolArguments):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    error_messages: ClassVar[Dict[tuple, str]] = {
        ("email", "string_pattern_mismatch"): "邮箱格式不正确",
    }


class GetDomainsArgs(ToolArguments):
    token: str = Field(min_length=1)

    error_messages: ClassVar[Dict[tuple, str]] = {
        ("token", "string_too_short"): "Token 不能为空",
    }


def format_validation_errors(model: Type[ToolArguments], error: ValidationError) -> Dict[str, Any]:
    """
    把 pydantic 校验错误转换为按字段嵌套的错误树

    每个节点都带有 "_errors" 列表，根节点收集不属于具体字段的错误。

    Args:
        model: 参数模型
        error: pydantic 校验异常

    Returns:
        错误树，例如 {"_errors": [], "domain_id": {"_errors": ["Field required"]}}
    """
    tree: Dict[str, Any] = {"_errors": []}

    for item in error.errors():
        loc = item.get("loc", ())
        node = tree
        for part in loc:
            node = node.setdefault(str(part), {"_errors": []})

        field = str(loc[0]) if loc else ""
        message = model.error_messages.get((field, item.get("type")), item.get("msg"))
        node["_errors"].append(message)

    return tree


def validate_arguments(model: Type[ToolArguments], arguments: Any) -> ToolArguments:
    """
    按模型校验工具参数，缺省字段填充默认值

    Raises:
        ArgumentValidationError: 参数不合法（报告全部违规字段）
    """
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        raise ArgumentValidationError(format_validation_errors(model, e)) from e


MCP_TOOLS: List[Dict[str, Any]] = [
    {
        "name": "create_promotional_link",
        "description": "在 DeepClick 平台上创建新的推广链接（其他参数已预设）",
        "inputSchema": {
            "type": "object",
            "properties": {
                "token": {"type": "string", "description": TOKEN_DESCRIPTION},
                "name": {"type": "string", "description": "推广链接名称"},
                "domain_id": {
                    "type": "number",
                    "description": "域名 ID（从 get_available_domains 获取的域名列表中选择）",
                },
            },
            "required": ["token", "name", "domain_id"],
        },
    },
    {
        "name": "list_promotional_links",
        "description": "查询 DeepClick 平台上的推广链接列表",
        "inputSchema": {
            "type": "object",
            "properties": {
                "token": {"type": "string", "description": TOKEN_DESCRIPTION},
                "page_num": {"type": "number", "description": "页码（默认 1）"},
                "page_size": {"type": "number", "description": "每页数量（默认 10，最多 100）"},
                "link_name": {"type": "string", "description": "链接名称（用于搜索，可选）"},
                "link_id": {"type": "string", "description": "链接 ID（用于搜索，可选）"},
                "app_name": {"type": "string", "description": "应用名称（用于搜索，可选）"},
                "app_id": {"type": "string", "description": "应用 ID（用于搜索，可选）"},
            },
            "required": ["token"],
        },
    },
    {
        "name": "get_deepclick_token",
        "description": "通过邮箱获取 DeepClick API 的 Bearer Token",
        "inputSchema": {
            "type": "object",
            "properties": {
                "email": {
                    "type": "string",
                    "description": "用户邮箱地址, 格式为: <用户名拼音>@qiliangjia.com",
                },
            },
            "required": ["email"],
        },
    },
    {
        "name": "get_available_domains",
        "description": "获取 DeepClick 平台上可用的域名列表",
        "inputSchema": {
            "type": "object",
            "properties": {
                "token": {"type": "string", "description": TOKEN_DESCRIPTION},
            },
            "required": ["token"],
        },
    },
]

TOOL_NAMES = [tool["name"] for tool in MCP_TOOLS]
