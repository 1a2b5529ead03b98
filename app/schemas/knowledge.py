"""知识条目相关的请求/响应模型"""

from datetime import datetime
from typing import Any

from pydantic import Field

from app.schemas.common import CamelModel


class KnowledgeItemCreate(CamelModel):
    """
    创建知识条目请求

    字段均为宽松类型，具体的必填/格式校验在服务层完成，
    以便返回明确的 400 错误信息。

    示例:
    ```json
    {
        "title": "RAG 笔记",
        "content": "检索增强生成先检索再生成……",
        "type": "note",
        "tags": ["AI", "rag"],
        "sourceUrl": "https://example.com/rag"
    }
    ```
    """
    title: str | None = Field(default=None, description="标题（必填）")
    content: str | None = Field(default=None, description="正文（必填）")
    type: str | None = Field(default=None, description="类型：note / link / insight，默认 note")
    tags: Any = Field(default=None, description="标签列表，会被规范化")
    source_url: str | None = Field(default=None, description="可选：来源链接（http/https）")


class KnowledgeItemUpdate(CamelModel):
    """
    部分更新请求

    只有请求体中出现的字段才会被更新（通过 model_fields_set 判断）。
    """
    title: str | None = None
    content: str | None = None
    type: str | None = None
    tags: Any = None
    source_url: str | None = None
    summary: str | None = None


class KnowledgeItemResponse(CamelModel):
    """知识条目（不包含向量）"""
    id: str
    title: str
    content: str
    type: str
    tags: list[str]
    source_url: str | None = None
    summary: str | None = None
    created_at: datetime
    updated_at: datetime


class KnowledgeItemEnvelope(CamelModel):
    data: KnowledgeItemResponse


class KnowledgeListResponse(CamelModel):
    """知识条目分页列表"""
    data: list[KnowledgeItemResponse]
    count: int = Field(description="满足过滤条件的总数")
    page: int
    limit: int
    total_pages: int


class SimilarItem(CamelModel):
    item: KnowledgeItemResponse
    similarity: float = Field(description="余弦相似度（1 - 余弦距离）")


class SimilarItemsResponse(CamelModel):
    data: list[SimilarItem]
