"""
AI 增强服务

围绕外部模型的四类操作，彼此独立、除外部调用外无副作用：
- summarize：生成 2-3 句摘要
- auto_tag：生成 3-5 个小写标签
- embed / embed_knowledge_item：生成 384 维向量
- answer：基于检索到的条目回答问题，并给出粗粒度置信度

所有操作都不重试、不覆盖超时，异常直接抛给调用方，由调用方决定是否致命：
创建/更新流程中失败会被吞掉（字段留空），相似推荐中失败则直接返回 500。
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Generic, Protocol, TypeVar

from app.infra.embeddings import EmbeddingService, get_embedding_service
from app.infra.llm import chat_completion

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUMMARIZE_PROMPT = """You are a helpful assistant that creates concise summaries.
Summarize the following content in 2-3 sentences, capturing the key points:

{content}

Respond with only the summary, no additional text."""

AUTO_TAG_PROMPT = """You are a helpful assistant that generates relevant tags for knowledge management.
Based on the title and content below, suggest 3-5 relevant tags that would help categorize and find this content later.

Title: {title}
Content: {content}

Respond with only the tags as a comma-separated list (e.g., "javascript, web development, tutorial").
Use lowercase, keep tags concise (1-3 words each)."""

ANSWER_PROMPT = """You are a helpful assistant that answers questions based on a user's personal knowledge base.
Use the following knowledge base entries to answer the question. If you cannot find relevant information, say so clearly.

Knowledge Base:
{context}

Question: {question}

Provide a clear, concise answer based on the knowledge base. If the answer comes from specific sources, mention which ones."""

SOURCE_SEPARATOR = "\n\n---\n\n"

# 置信度启发式：回答中出现以下短语视为"没找到答案"
# 这是占位实现而非模型给出的概率，保持两档取值以兼容既有行为
NEGATIVE_ANSWER_PHRASES = ("not find", "no information", "cannot answer")
LOW_CONFIDENCE = 0.3
HIGH_CONFIDENCE = 0.85


class AnswerSource(Protocol):
    """问答上下文所需的最小条目结构"""
    title: str
    content: str
    summary: str | None


@dataclass
class SummaryResult:
    summary: str


@dataclass
class TagResult:
    tags: list[str]


@dataclass
class EmbeddingResult:
    embedding: list[float]


@dataclass
class AnswerResult:
    answer: str
    confidence: float


@dataclass
class EnrichmentOutcome(Generic[T]):
    """
    尽力而为的增强结果

    区分"已计算"（value 有值）与"因失败跳过"（error 有值）。
    持久化时两者都落为可空字段，这里保留区别用于日志和调用方判断。
    """
    value: T | None = None
    error: Exception | None = field(default=None, repr=False)

    @property
    def computed(self) -> bool:
        return self.error is None and self.value is not None

    @property
    def skipped(self) -> bool:
        return not self.computed


async def best_effort(label: str, operation: Awaitable[T]) -> EnrichmentOutcome[T]:
    """执行一次增强操作，失败时记录日志并返回 skipped 结果"""
    try:
        return EnrichmentOutcome(value=await operation)
    except Exception as e:
        logger.error(f"{label} 失败，跳过: {e}")
        return EnrichmentOutcome(error=e)


def confidence_for(answer: str) -> float:
    """两档置信度：包含否定短语为 0.3，否则 0.85"""
    lowered = answer.lower()
    if any(phrase in lowered for phrase in NEGATIVE_ANSWER_PHRASES):
        return LOW_CONFIDENCE
    return HIGH_CONFIDENCE


def build_answer_context(sources: Sequence[AnswerSource]) -> str:
    """拼接问答上下文：每个来源使用标题 + 摘要（无摘要时用原文）"""
    parts = [
        f"[Source {index}] {source.title}\n{source.summary or source.content}"
        for index, source in enumerate(sources, 1)
    ]
    return SOURCE_SEPARATOR.join(parts)


class EnrichmentService:
    """AI 增强服务，持有 Embedding 服务和 LLM 调用函数"""

    def __init__(
        self,
        embedder: EmbeddingService,
        chat: Callable[..., Awaitable[str]] = chat_completion,
    ) -> None:
        self._embedder = embedder
        self._chat = chat

    async def summarize(self, content: str) -> SummaryResult:
        raw = await self._chat(SUMMARIZE_PROMPT.format(content=content))
        return SummaryResult(summary=raw.strip())

    async def auto_tag(self, content: str, title: str = "") -> TagResult:
        """生成标签，不与已有标签去重（由调用方合并）"""
        raw = await self._chat(AUTO_TAG_PROMPT.format(title=title, content=content))
        tags = [tag.strip().lower() for tag in raw.strip().split(",")]
        return TagResult(tags=[tag for tag in tags if tag])

    async def embed(self, text: str) -> EmbeddingResult:
        return EmbeddingResult(embedding=await self._embedder.embed(text))

    async def embed_knowledge_item(self, title: str, content: str) -> EmbeddingResult:
        return await self.embed(f"{title}\n\n{content}")

    async def answer(self, question: str, sources: Sequence[AnswerSource]) -> AnswerResult:
        """
        基于来源条目回答问题

        置信度不是模型给出的概率，只是对回答文本的模式匹配。
        """
        prompt = ANSWER_PROMPT.format(context=build_answer_context(sources), question=question)
        answer = (await self._chat(prompt)).strip()
        return AnswerResult(answer=answer, confidence=confidence_for(answer))


@lru_cache(maxsize=1)
def get_enrichment_service() -> EnrichmentService:
    """获取 AI 增强服务实例（单例）"""
    return EnrichmentService(embedder=get_embedding_service())
