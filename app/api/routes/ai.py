"""
AI 接口

- POST /ai/query     : 基于个人知识库问答（返回完整来源条目和置信度）
- POST /ai/summarize : 为任意文本生成摘要
- POST /ai/auto-tag  : 为任意文本生成标签建议

三个接口都受限流保护；与创建/更新流程不同，这里模型调用失败直接返回 500。
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db_session, get_enrichment, get_vector_store, rate_limit
from app.infra.vector_store_pg import PgVectorIndex
from app.schemas import (
    AutoTagRequest,
    AutoTagResponse,
    KnowledgeItemResponse,
    QueryRequest,
    QueryResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from app.services.enrichment import EnrichmentService
from app.services.rag import answer_question
from app.services.validation import MAX_CONTENT_LENGTH, MAX_QUESTION_LENGTH

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai")


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "VALIDATION_ERROR", "detail": message},
    )


def _server_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "AI_FAILED", "detail": message},
    )


def _require_content(raw: str | None) -> str:
    content = (raw or "").strip()
    if not content:
        raise _bad_request("Content is required")
    if len(content) > MAX_CONTENT_LENGTH:
        raise _bad_request("Content is too long")
    return content


@router.post(
    "/query",
    response_model=QueryResponse,
    dependencies=[Depends(rate_limit("ai:query", "rate_limit_ai_query"))],
)
async def query_knowledge(
    payload: QueryRequest,
    db: AsyncSession = Depends(get_db_session),
    enrichment: EnrichmentService = Depends(get_enrichment),
    vector_index: PgVectorIndex = Depends(get_vector_store),
):
    """
    知识库问答

    没有检索到任何条目时直接返回固定文案（confidence=0），不调用 LLM。
    """
    question = (payload.question or "").strip()
    if not question:
        raise _bad_request("Question is required")
    if len(question) > MAX_QUESTION_LENGTH:
        raise _bad_request("Question is too long")

    try:
        result = await answer_question(db, question, enrichment, vector_index)
    except Exception as e:
        logger.error(f"知识库问答失败: {e}", exc_info=True)
        raise _server_error("Failed to process query")

    return QueryResponse(
        answer=result.answer,
        sources=[KnowledgeItemResponse.model_validate(source) for source in result.sources],
        confidence=result.confidence,
    )


@router.post(
    "/summarize",
    response_model=SummarizeResponse,
    dependencies=[Depends(rate_limit("ai:summarize", "rate_limit_ai_summarize"))],
)
async def summarize(
    payload: SummarizeRequest,
    enrichment: EnrichmentService = Depends(get_enrichment),
):
    content = _require_content(payload.content)
    try:
        result = await enrichment.summarize(content)
    except Exception as e:
        logger.error(f"生成摘要失败: {e}", exc_info=True)
        raise _server_error("Failed to generate summary")
    return SummarizeResponse(summary=result.summary)


@router.post(
    "/auto-tag",
    response_model=AutoTagResponse,
    dependencies=[Depends(rate_limit("ai:auto-tag", "rate_limit_ai_auto_tag"))],
)
async def auto_tag(
    payload: AutoTagRequest,
    enrichment: EnrichmentService = Depends(get_enrichment),
):
    """生成标签建议（不写入任何条目，由客户端决定是否采用）"""
    content = _require_content(payload.content)
    title = (payload.title or "").strip()
    try:
        result = await enrichment.auto_tag(content, title)
    except Exception as e:
        logger.error(f"生成标签失败: {e}", exc_info=True)
        raise _server_error("Failed to generate tags")
    return AutoTagResponse(tags=result.tags)
