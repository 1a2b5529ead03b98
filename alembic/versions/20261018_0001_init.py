"""
初始数据库迁移脚本

创建知识条目表 knowledge_items：
- 结构化字段（标题、正文、类型、标签、来源链接、摘要、时间戳）
- embedding vector(384) 向量列（需要 pgvector 扩展）
- 标签 GIN 索引（@> 包含查询）
- 向量 HNSW 索引（余弦距离）

Revision ID: 20261018_0001
Revises: 无（初始迁移）
Create Date: 2026-10-18 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# 迁移版本标识
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIM = 384


def upgrade() -> None:
    """升级：安装 pgvector 扩展并创建知识条目表"""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "knowledge_items",
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=20), server_default="note", nullable=False),
        sa.Column("tags", postgresql.ARRAY(sa.Text()), server_default=sa.text("'{}'"), nullable=False),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_knowledge_items_type", "knowledge_items", ["type"])
    op.create_index(
        "ix_knowledge_items_tags",
        "knowledge_items",
        ["tags"],
        postgresql_using="gin",
    )

    # vector 类型不在 SQLAlchemy 中声明，使用原生 SQL
    op.execute(f"ALTER TABLE knowledge_items ADD COLUMN embedding vector({EMBEDDING_DIM})")
    op.execute(
        """
        CREATE INDEX idx_knowledge_items_embedding
        ON knowledge_items
        USING hnsw (embedding vector_cosine_ops) WITH (m = 16, ef_construction = 64)
        """
    )


def downgrade() -> None:
    """降级：删除知识条目表（保留 pgvector 扩展）"""
    op.execute("DROP INDEX IF EXISTS idx_knowledge_items_embedding")
    op.drop_index("ix_knowledge_items_tags", table_name="knowledge_items")
    op.drop_index("ix_knowledge_items_type", table_name="knowledge_items")
    op.drop_table("knowledge_items")
