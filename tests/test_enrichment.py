"""
AI 增强服务单元测试

测试 app/services/enrichment.py：
- 摘要 / 标签 / 问答的 prompt 构造与结果解析
- 置信度启发式
- best_effort 的 computed / skipped 区分
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from app.services.enrichment import (
    HIGH_CONFIDENCE,
    LOW_CONFIDENCE,
    EnrichmentService,
    best_effort,
    build_answer_context,
    confidence_for,
)


class Source:
    def __init__(self, title, content, summary=None):
        self.title = title
        self.content = content
        self.summary = summary


@pytest.fixture
def embedder():
    mock = MagicMock()
    mock.embed = AsyncMock(return_value=[0.1] * 384)
    return mock


class TestConfidence:
    """测试置信度启发式"""

    @pytest.mark.parametrize(
        "answer",
        [
            "I could not find anything about that.",
            "There is No Information on this topic.",
            "I cannot answer based on these notes.",
        ],
    )
    def test_negative_phrases_low_confidence(self, answer):
        assert confidence_for(answer) == LOW_CONFIDENCE == 0.3

    def test_default_high_confidence(self):
        assert confidence_for("RAG retrieves then generates [Source 1].") == HIGH_CONFIDENCE == 0.85


class TestAnswerContext:
    def test_prefers_summary_over_content(self):
        context = build_answer_context([
            Source("A", "long content A", summary="short A"),
            Source("B", "content B"),
        ])
        assert context == "[Source 1] A\nshort A\n\n---\n\n[Source 2] B\ncontent B"

    def test_empty_sources(self):
        assert build_answer_context([]) == ""


class TestEnrichmentService:
    """测试 AI 增强服务"""

    @pytest.mark.asyncio
    async def test_summarize_trims_output(self, embedder):
        chat = AsyncMock(return_value="  A short summary.  \n")
        service = EnrichmentService(embedder, chat=chat)

        result = await service.summarize("Some content")

        assert result.summary == "A short summary."
        prompt = chat.call_args.args[0]
        assert "Some content" in prompt
        assert "2-3 sentences" in prompt

    @pytest.mark.asyncio
    async def test_auto_tag_parses_comma_list(self, embedder):
        chat = AsyncMock(return_value="JavaScript, Web Development , , tutorial\n")
        service = EnrichmentService(embedder, chat=chat)

        result = await service.auto_tag("content", title="JS basics")

        assert result.tags == ["javascript", "web development", "tutorial"]
        prompt = chat.call_args.args[0]
        assert "Title: JS basics" in prompt
        assert "Content: content" in prompt

    @pytest.mark.asyncio
    async def test_auto_tag_without_title(self, embedder):
        chat = AsyncMock(return_value="a, b")
        service = EnrichmentService(embedder, chat=chat)

        await service.auto_tag("content")

        assert "Title: \n" in chat.call_args.args[0]

    @pytest.mark.asyncio
    async def test_embed_knowledge_item_joins_title_and_content(self, embedder):
        service = EnrichmentService(embedder, chat=AsyncMock())

        result = await service.embed_knowledge_item("Title", "Body")

        embedder.embed.assert_awaited_once_with("Title\n\nBody")
        assert len(result.embedding) == 384

    @pytest.mark.asyncio
    async def test_answer_builds_context_and_confidence(self, embedder):
        chat = AsyncMock(return_value="  Based on [Source 1], RAG retrieves first. ")
        service = EnrichmentService(embedder, chat=chat)

        result = await service.answer("What is RAG?", [Source("RAG", "content", "summary")])

        assert result.answer == "Based on [Source 1], RAG retrieves first."
        assert result.confidence == HIGH_CONFIDENCE
        prompt = chat.call_args.args[0]
        assert "[Source 1] RAG\nsummary" in prompt
        assert "Question: What is RAG?" in prompt

    @pytest.mark.asyncio
    async def test_errors_propagate(self, embedder):
        chat = AsyncMock(side_effect=RuntimeError("model down"))
        service = EnrichmentService(embedder, chat=chat)

        with pytest.raises(RuntimeError):
            await service.summarize("content")


class TestBestEffort:
    @pytest.mark.asyncio
    async def test_computed(self):
        async def ok():
            return "value"

        outcome = await best_effort("测试", ok())

        assert outcome.computed
        assert not outcome.skipped
        assert outcome.value == "value"

    @pytest.mark.asyncio
    async def test_skipped_on_failure(self):
        async def boom():
            raise RuntimeError("down")

        outcome = await best_effort("测试", boom())

        assert outcome.skipped
        assert outcome.value is None
        assert isinstance(outcome.error, RuntimeError)
