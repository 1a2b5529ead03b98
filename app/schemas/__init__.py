"""
数据模式层 (Schemas)

使用 Pydantic 定义 API 的请求和响应模型：
- 自动数据验证
- 自动生成 OpenAPI 文档
- 对外字段统一使用 camelCase
"""

from app.schemas.ai import (
    AutoTagRequest,
    AutoTagResponse,
    PublicQueryResponse,
    PublicSource,
    QueryRequest,
    QueryResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from app.schemas.common import CamelModel, ErrorResponse, MessageResponse
from app.schemas.internal import KnowledgeListParams
from app.schemas.knowledge import (
    KnowledgeItemCreate,
    KnowledgeItemEnvelope,
    KnowledgeItemResponse,
    KnowledgeItemUpdate,
    KnowledgeListResponse,
    SimilarItem,
    SimilarItemsResponse,
)

__all__ = [
    "AutoTagRequest",
    "AutoTagResponse",
    "CamelModel",
    "ErrorResponse",
    "KnowledgeItemCreate",
    "KnowledgeItemEnvelope",
    "KnowledgeItemResponse",
    "KnowledgeItemUpdate",
    "KnowledgeListParams",
    "KnowledgeListResponse",
    "MessageResponse",
    "PublicQueryResponse",
    "PublicSource",
    "QueryRequest",
    "QueryResponse",
    "SimilarItem",
    "SimilarItemsResponse",
    "SummarizeRequest",
    "SummarizeResponse",
]
