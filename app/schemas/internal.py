"""
服务层内部参数模型

定义 Service 层函数的参数对象，与 API Schema 解耦。
路由层负责把查询字符串解析、校验成这里的对象。

使用示例：
    from app.schemas.internal import KnowledgeListParams

    params = KnowledgeListParams(search="rag", tags=["ai"], page=2)
    items, count = await list_items(session, params)
"""

from pydantic import BaseModel, Field

from app.services.validation import KnowledgeItemType, KnowledgeSortField, SortOrder


class KnowledgeListParams(BaseModel):
    """知识条目列表查询参数"""

    search: str = Field(
        default="",
        description="关键词（对标题/正文/摘要做不区分大小写的子串匹配）"
    )
    type: KnowledgeItemType | None = Field(
        default=None,
        description="按类型精确过滤"
    )
    tags: list[str] = Field(
        default_factory=list,
        description="必须同时包含的全部标签"
    )
    sort_by: KnowledgeSortField = Field(
        default="createdAt",
        description="排序字段"
    )
    sort_order: SortOrder = Field(
        default="desc",
        description="排序方向"
    )
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
