"""
pgvector 向量索引单元测试

测试 app/infra/vector_store_pg.py：
- 写入向量的维度校验
- 最近邻 SQL 构造与结果映射
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from app.exceptions import VectorStoreError
from app.infra.vector_store_pg import PgVectorIndex, VectorHit


@pytest.fixture
def index():
    return PgVectorIndex(dim=4)


class TestPgVectorIndex:
    @pytest.mark.asyncio
    async def test_set_embedding_rejects_wrong_dimension(self, index):
        session = AsyncMock()

        with pytest.raises(VectorStoreError):
            await index.set_embedding(session, "item-1", [0.1, 0.2])

        session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_set_embedding(self, index):
        session = AsyncMock()

        await index.set_embedding(session, "item-1", [0.1, 0.2, 0.3, 0.4])

        stmt, params = session.execute.call_args.args
        assert "UPDATE knowledge_items" in str(stmt)
        assert params == {"embedding": "[0.1,0.2,0.3,0.4]", "item_id": "item-1"}
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nearest_neighbors_excludes_item(self, index):
        result = MagicMock()
        result.fetchall.return_value = [("a", 0.05), ("b", 0.25)]
        session = AsyncMock()
        session.execute = AsyncMock(return_value=result)

        hits = await index.nearest_neighbors(session, [1.0, 0.0, 0.0, 0.0], 5, exclude_id="self")

        stmt, params = session.execute.call_args.args
        sql = str(stmt)
        assert "embedding IS NOT NULL" in sql
        assert "id != :exclude_id" in sql
        assert "ORDER BY distance" in sql
        assert params["exclude_id"] == "self"
        assert params["limit"] == 5
        assert hits == [VectorHit("a", 0.05), VectorHit("b", 0.25)]
        assert hits[0].similarity == pytest.approx(0.95)

    @pytest.mark.asyncio
    async def test_nearest_neighbors_without_exclusion(self, index):
        result = MagicMock()
        result.fetchall.return_value = []
        session = AsyncMock()
        session.execute = AsyncMock(return_value=result)

        assert await index.nearest_neighbors(session, [0.0] * 4, 3) == []

        stmt, params = session.execute.call_args.args
        assert "exclude_id" not in str(stmt)
        assert "exclude_id" not in params
