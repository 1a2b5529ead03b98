"""AI 接口（问答、摘要、打标签）相关的请求/响应模型"""

from pydantic import Field

from app.schemas.common import CamelModel
from app.schemas.knowledge import KnowledgeItemResponse


class QueryRequest(CamelModel):
    """
    知识库问答请求

    示例:
    ```json
    {"question": "我之前记录过哪些关于 RAG 的内容？"}
    ```
    """
    question: str | None = Field(default=None, description="自然语言问题（最多 500 字符）")


class QueryResponse(CamelModel):
    answer: str
    sources: list[KnowledgeItemResponse] = Field(default_factory=list)
    confidence: float = Field(description="粗粒度置信度：0 / 0.3 / 0.85")


class PublicSource(CamelModel):
    """公开接口的来源投影，不包含原文和标签"""
    id: str
    title: str
    type: str
    summary: str | None = None


class PublicQueryResponse(CamelModel):
    answer: str
    sources: list[PublicSource] = Field(default_factory=list)


class SummarizeRequest(CamelModel):
    content: str | None = Field(default=None, description="待摘要内容（最多 20000 字符）")


class SummarizeResponse(CamelModel):
    summary: str


class AutoTagRequest(CamelModel):
    title: str | None = Field(default=None, description="可选：标题")
    content: str | None = Field(default=None, description="正文（最多 20000 字符）")


class AutoTagResponse(CamelModel):
    tags: list[str]
