"""
PostgreSQL pgvector 向量索引

knowledge_items.embedding 列的唯一访问入口：
- 表结构：安装扩展、补齐 vector(384) 列、创建 HNSW 索引
- 写入：创建/更新条目后单独写入向量（ORM 不映射 vector 类型）
- 检索：按余弦距离排序的最近邻查询

其他模块只通过 nearest_neighbors / set_embedding 这两个窄接口使用向量能力，
不直接拼接向量 SQL。
"""

import logging
from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from app.config import get_settings
from app.exceptions import VectorStoreError
from app.infra.embeddings import to_pgvector_literal

logger = logging.getLogger(__name__)


@dataclass
class VectorHit:
    """最近邻命中记录"""
    item_id: str
    distance: float

    @property
    def similarity(self) -> float:
        """余弦相似度 = 1 - 余弦距离"""
        return 1 - self.distance


class PgVectorIndex:
    """
    pgvector 向量索引

    与 knowledge_items 共用一张表，向量列名固定为 embedding。
    """

    TABLE = "knowledge_items"

    def __init__(self, dim: int) -> None:
        self.dim = dim

    async def ensure_schema(self, conn: AsyncConnection) -> None:
        """确保 pgvector 扩展、embedding 列和 HNSW 索引存在（幂等）"""
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.execute(text(f"""
            ALTER TABLE {self.TABLE}
            ADD COLUMN IF NOT EXISTS embedding vector({self.dim})
        """))
        await conn.execute(text(f"""
            CREATE INDEX IF NOT EXISTS idx_{self.TABLE}_embedding
            ON {self.TABLE}
            USING hnsw (embedding vector_cosine_ops) WITH (m = 16, ef_construction = 64)
        """))
        logger.info(f"向量列已就绪: {self.TABLE}.embedding vector({self.dim})")

    async def set_embedding(
        self,
        session: AsyncSession,
        item_id: str,
        embedding: list[float],
    ) -> None:
        """
        写入（覆盖）条目的向量

        不提交事务，由调用方与结构化字段的写入一起提交。
        """
        if len(embedding) != self.dim:
            raise VectorStoreError(f"向量维度错误: 期望 {self.dim}，实际 {len(embedding)}")

        await session.execute(
            text(f"""
                UPDATE {self.TABLE}
                SET embedding = CAST(:embedding AS vector)
                WHERE id = :item_id
            """),
            {"embedding": to_pgvector_literal(embedding), "item_id": item_id},
        )

    async def nearest_neighbors(
        self,
        session: AsyncSession,
        vector: list[float],
        limit: int,
        exclude_id: str | None = None,
    ) -> list[VectorHit]:
        """
        最近邻查询

        Args:
            vector: 查询向量
            limit: 返回数量
            exclude_id: 可选，排除的条目 ID（"查找与该条目相似的条目"场景）

        Returns:
            VectorHit 列表（按余弦距离升序），不包含没有向量的条目
        """
        conditions = ["embedding IS NOT NULL"]
        params: dict = {"embedding": to_pgvector_literal(vector), "limit": limit}
        if exclude_id is not None:
            conditions.append("id != :exclude_id")
            params["exclude_id"] = exclude_id

        result = await session.execute(
            text(f"""
                SELECT id, embedding <=> CAST(:embedding AS vector) AS distance
                FROM {self.TABLE}
                WHERE {" AND ".join(conditions)}
                ORDER BY distance
                LIMIT :limit
            """),
            params,
        )
        return [VectorHit(item_id=row[0], distance=float(row[1])) for row in result.fetchall()]


@lru_cache(maxsize=1)
def get_vector_index() -> PgVectorIndex:
    """获取向量索引单例"""
    return PgVectorIndex(dim=get_settings().embedding_dim)
