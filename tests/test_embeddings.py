"""
Embedding 模块单元测试

测试 app/infra/embeddings.py 的功能：
- to_pgvector_literal
- EmbeddingService.embed 的维度校验和错误包装
- 本地模型懒加载只发生一次
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.config import Settings
from app.exceptions import EmbeddingError
from app.infra.embeddings import EmbeddingService, to_pgvector_literal


class FakeArray(list):
    """模拟 numpy 数组的 tolist()"""

    def tolist(self):
        return list(self)


@pytest.fixture
def local_settings():
    return Settings(embedding_provider="local", embedding_dim=384)


class TestPgvectorLiteral:
    def test_format(self):
        assert to_pgvector_literal([0.1, 2, -3.5]) == "[0.1,2.0,-3.5]"

    def test_empty(self):
        assert to_pgvector_literal([]) == "[]"


class TestEmbeddingService:
    """测试 Embedding 服务"""

    @pytest.mark.asyncio
    async def test_local_embedding(self, local_settings):
        service = EmbeddingService(local_settings)
        fake_model = MagicMock()
        fake_model.encode.return_value = FakeArray([0.05] * 384)

        with patch("sentence_transformers.SentenceTransformer", return_value=fake_model) as mock_cls:
            vec = await service.embed("什么是 RAG？")
            await service.embed("第二次调用")

        assert len(vec) == 384
        assert all(isinstance(x, float) for x in vec)
        # 模型只加载一次
        mock_cls.assert_called_once_with("sentence-transformers/all-MiniLM-L6-v2")
        assert fake_model.encode.call_args.kwargs["normalize_embeddings"] is True

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, local_settings):
        service = EmbeddingService(local_settings)

        with patch.object(service, "_dispatch", AsyncMock(return_value=[0.1] * 128)):
            with pytest.raises(EmbeddingError):
                await service.embed("text")

    @pytest.mark.asyncio
    async def test_provider_failure_wrapped(self, local_settings):
        service = EmbeddingService(local_settings)

        with patch.object(service, "_dispatch", AsyncMock(side_effect=ConnectionError("down"))):
            with pytest.raises(EmbeddingError) as exc_info:
                await service.embed("text")

        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_missing_api_key_raises(self):
        settings = Settings(embedding_provider="openai", openai_api_key=None, embedding_dim=384)
        service = EmbeddingService(settings)

        with pytest.raises(EmbeddingError):
            await service.embed("text")

    @pytest.mark.asyncio
    async def test_ollama_embedding(self):
        settings = Settings(embedding_provider="ollama", embedding_model="all-minilm", embedding_dim=384)
        service = EmbeddingService(settings)

        with patch.object(service, "_ollama_embedding", AsyncMock(return_value=[0.2] * 384)) as mock_ollama:
            vec = await service.embed("text")

        mock_ollama.assert_awaited_once_with("text")
        assert vec == [0.2] * 384
