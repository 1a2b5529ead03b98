"""
知识库问答服务单元测试

测试 app/services/rag.py 的核心流程：
- 向量检索路径
- 向量不可用时降级为关键词检索
- 没有候选条目时不调用 LLM
- 公开模式的来源投影
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.exceptions import EmbeddingError, LLMError
from app.infra.vector_store_pg import VectorHit
from app.models import KnowledgeItem
from app.services.enrichment import AnswerResult, EmbeddingResult
from app.services.rag import NO_RESULTS_ANSWER, PUBLIC_NO_RESULTS_ANSWER, answer_question

EMBEDDING = [0.2] * 384


class TestAnswerQuestion:
    """测试问答流程"""

    @pytest.fixture
    def mock_session(self):
        return AsyncMock()

    @pytest.fixture
    def enrichment(self):
        service = MagicMock()
        service.embed = AsyncMock(return_value=EmbeddingResult(embedding=EMBEDDING))
        service.answer = AsyncMock(
            return_value=AnswerResult(answer="RAG retrieves first [Source 1].", confidence=0.85)
        )
        return service

    @pytest.fixture
    def vector_index(self):
        index = MagicMock()
        index.nearest_neighbors = AsyncMock(return_value=[
            VectorHit(item_id="a", distance=0.1),
            VectorHit(item_id="b", distance=0.2),
        ])
        return index

    @pytest.fixture
    def items(self):
        return [
            KnowledgeItem(id="a", title="RAG", content="Retrieval augmented generation", type="note"),
            KnowledgeItem(id="b", title="Vectors", content="Embeddings", type="insight"),
        ]

    @pytest.mark.asyncio
    @patch("app.services.rag.keyword_search")
    @patch("app.services.rag.get_items_by_ids")
    async def test_vector_path(
        self, mock_get_items, mock_keyword, mock_session, enrichment, vector_index, items
    ):
        mock_get_items.return_value = items

        result = await answer_question(mock_session, "What is RAG?", enrichment, vector_index)

        assert result.retrieval == "vector"
        assert result.answer == "RAG retrieves first [Source 1]."
        assert result.confidence == 0.85
        assert [s.id for s in result.sources] == ["a", "b"]
        vector_index.nearest_neighbors.assert_awaited_once_with(mock_session, EMBEDDING, 5)
        mock_get_items.assert_awaited_once_with(mock_session, ["a", "b"])
        mock_keyword.assert_not_awaited()
        enrichment.answer.assert_awaited_once_with("What is RAG?", items)

    @pytest.mark.asyncio
    @patch("app.services.rag.keyword_search")
    async def test_keyword_fallback_when_embedding_fails(
        self, mock_keyword, mock_session, enrichment, vector_index, items
    ):
        enrichment.embed.side_effect = EmbeddingError("model missing")
        mock_keyword.return_value = items[:1]

        result = await answer_question(mock_session, "RAG", enrichment, vector_index)

        assert result.retrieval == "keyword"
        assert [s.id for s in result.sources] == ["a"]
        mock_keyword.assert_awaited_once_with(mock_session, "RAG", 5)
        vector_index.nearest_neighbors.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("app.services.rag.get_items_by_ids")
    async def test_no_candidates_short_circuits(
        self, mock_get_items, mock_session, enrichment, vector_index
    ):
        vector_index.nearest_neighbors.return_value = []
        mock_get_items.return_value = []

        result = await answer_question(mock_session, "Unknown topic", enrichment, vector_index)

        assert result.answer == NO_RESULTS_ANSWER
        assert result.sources == []
        assert result.confidence == 0
        assert result.retrieval == "none"
        enrichment.answer.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("app.services.rag.keyword_search")
    async def test_public_no_candidates_message(
        self, mock_keyword, mock_session, enrichment, vector_index
    ):
        enrichment.embed.side_effect = EmbeddingError("down")
        mock_keyword.return_value = []

        result = await answer_question(mock_session, "q", enrichment, vector_index, public=True)

        assert result.answer == PUBLIC_NO_RESULTS_ANSWER
        enrichment.answer.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("app.services.rag.get_public_sources_by_ids")
    @patch("app.services.rag.get_items_by_ids")
    async def test_public_uses_projection(
        self, mock_get_items, mock_public_sources, mock_session, enrichment, vector_index, items
    ):
        mock_get_items.return_value = items
        projection = [
            MagicMock(id="a", title="RAG", type="note", summary=None),
            MagicMock(id="b", title="Vectors", type="insight", summary="short"),
        ]
        mock_public_sources.return_value = projection

        result = await answer_question(mock_session, "q", enrichment, vector_index, public=True)

        mock_public_sources.assert_awaited_once_with(mock_session, ["a", "b"])
        assert result.sources == projection

    @pytest.mark.asyncio
    @patch("app.services.rag.get_items_by_ids")
    async def test_answer_failure_propagates(
        self, mock_get_items, mock_session, enrichment, vector_index, items
    ):
        mock_get_items.return_value = items
        enrichment.answer.side_effect = LLMError("quota exceeded")

        with pytest.raises(LLMError):
            await answer_question(mock_session, "q", enrichment, vector_index)
