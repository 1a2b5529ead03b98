"""
知识库问答服务 (Retrieval-Augmented Generation)

流程：
1. 生成问题向量（失败时记录日志并降级）
2. 有向量 → pgvector 最近邻检索 5 条；无向量 → 标题/正文关键词检索 5 条
3. 没有候选条目 → 直接返回固定文案，不调用 LLM
4. 以候选条目为上下文调用 LLM 生成回答
5. 按候选顺序重新读取来源条目（公开接口只返回 id/title/type/summary 投影）
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from app.infra.logging import RequestTimer
from app.infra.vector_store_pg import PgVectorIndex
from app.services.enrichment import EnrichmentService, best_effort
from app.services.knowledge import (
    KEYWORD_SEARCH_LIMIT,
    get_items_by_ids,
    get_public_sources_by_ids,
    keyword_search,
)

logger = logging.getLogger(__name__)

RetrievalMode = Literal["vector", "keyword", "none"]

CANDIDATE_LIMIT = 5

NO_RESULTS_ANSWER = (
    "I couldn't find any relevant information in your knowledge base. "
    "Try adding more content or rephrasing your question."
)
PUBLIC_NO_RESULTS_ANSWER = "No relevant information found."


@dataclass
class BrainAnswer:
    answer: str
    sources: list[Any] = field(default_factory=list)
    confidence: float = 0.0
    retrieval: RetrievalMode = "none"


async def _retrieve_candidates(
    session: AsyncSession,
    question: str,
    enrichment: EnrichmentService,
    vector_index: PgVectorIndex,
    timer: RequestTimer,
) -> tuple[list, RetrievalMode]:
    embedding = await best_effort("生成问题向量", enrichment.embed(question))
    timer.mark("embedding")

    if embedding.computed:
        hits = await vector_index.nearest_neighbors(
            session, embedding.value.embedding, CANDIDATE_LIMIT
        )
        candidates = await get_items_by_ids(session, [hit.item_id for hit in hits])
        mode: RetrievalMode = "vector"
    else:
        # 向量不可用时降级为关键词检索；向量检索结果为空时不再降级
        candidates = await keyword_search(session, question, KEYWORD_SEARCH_LIMIT)
        mode = "keyword"
    timer.mark("retrieval")
    return candidates, mode


async def answer_question(
    session: AsyncSession,
    question: str,
    enrichment: EnrichmentService,
    vector_index: PgVectorIndex,
    public: bool = False,
) -> BrainAnswer:
    """
    基于知识库回答问题

    Args:
        question: 已校验（非空、长度合法）的问题
        public: 公开接口模式，来源只返回投影字段，且使用更简短的无结果文案

    Raises:
        LLMError: 生成回答失败（由路由层转换为 500）
    """
    timer = RequestTimer()
    candidates, mode = await _retrieve_candidates(
        session, question, enrichment, vector_index, timer
    )

    if not candidates:
        logger.info(f"问答: 未检索到相关条目 (retrieval={mode}, public={public})")
        return BrainAnswer(
            answer=PUBLIC_NO_RESULTS_ANSWER if public else NO_RESULTS_ANSWER,
            retrieval="none",
        )

    result = await enrichment.answer(question, candidates)
    timer.mark("generation")

    if public:
        sources = await get_public_sources_by_ids(
            session, [candidate.id for candidate in candidates]
        )
    else:
        # 候选条目本身就是完整条目，按候选顺序直接返回
        sources = candidates

    logger.info(
        f"问答完成: retrieval={mode}, sources={len(sources)}, "
        f"confidence={result.confidence}, metrics={timer.get_metrics()}"
    )
    return BrainAnswer(
        answer=result.answer,
        sources=sources,
        confidence=result.confidence,
        retrieval=mode,
    )
