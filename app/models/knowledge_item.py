"""
知识条目模型 (KnowledgeItem)

系统中唯一的持久化实体：用户记录的笔记、链接或洞见。

数据流向：
    创建/更新 → 生成摘要（尽力而为）→ 生成向量（尽力而为）→ 入库
                                                    │
                                                    └── embedding 列单独写入

注意：
    embedding vector(384) 列存在于同一张表中，但不在 ORM 中映射，
    只通过 app.infra.vector_store_pg.PgVectorIndex 的原生 SQL 访问。
"""

from uuid import uuid4

from sqlalchemy import Index, String, Text, text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import TimestampMixin


class KnowledgeItem(TimestampMixin, Base):
    """
    知识条目表

    字段说明：
    - id: 唯一标识（UUID），服务端生成，不可修改
    - title / content: 去除首尾空白后非空
    - type: note / link / insight，默认 note
    - tags: 规范化后的标签（小写、去重、最多 20 个）
    - source_url: 可选，仅允许 http/https 绝对地址
    - summary: AI 生成的摘要，生成失败时为空

    summary 为空既可能表示"尚未生成"，也可能表示"生成失败"，
    数据层不区分这两种情况。
    """
    __tablename__ = "knowledge_items"
    __table_args__ = (
        Index("ix_knowledge_items_tags", "tags", postgresql_using="gin"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    type: Mapped[str] = mapped_column(
        String(20),
        default="note",
        server_default="note",
        nullable=False,
        index=True,
    )

    # PostgreSQL TEXT[]，标签过滤使用 @>（包含全部）
    tags: Mapped[list[str]] = mapped_column(
        ARRAY(Text),
        default=list,
        server_default=text("'{}'"),
        nullable=False,
    )

    source_url: Mapped[str | None] = mapped_column(Text)

    summary: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<KnowledgeItem(id={self.id}, type={self.type}, title='{self.title[:20]}')>"
