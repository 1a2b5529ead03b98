"""通用模型：camelCase 基类与错误响应"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    对外 JSON 使用 camelCase（sourceUrl / createdAt），Python 侧使用 snake_case

    populate_by_name=True：请求体同时接受 camelCase 与 snake_case 字段名
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """统一错误响应，只包含对客户端安全的通用信息"""
    error: str = Field(description="错误信息")


class MessageResponse(BaseModel):
    message: str
