"""
公开问答接口

无需认证的只读问答，限流更严格（10 次/分钟）。
来源只返回 id / title / type / summary，不暴露原文、标签和置信度。
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db_session, get_enrichment, get_vector_store, rate_limit
from app.infra.vector_store_pg import PgVectorIndex
from app.schemas import PublicQueryResponse, PublicSource
from app.services.enrichment import EnrichmentService
from app.services.rag import answer_question
from app.services.validation import MAX_QUESTION_LENGTH

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public")


@router.get(
    "/brain/query",
    response_model=PublicQueryResponse,
    dependencies=[Depends(rate_limit("public:brain-query", "rate_limit_public_query"))],
)
async def public_brain_query(
    q: str | None = Query(None, description="自然语言问题（最多 500 字符）"),
    db: AsyncSession = Depends(get_db_session),
    enrichment: EnrichmentService = Depends(get_enrichment),
    vector_index: PgVectorIndex = Depends(get_vector_store),
):
    question = (q or "").strip()
    if not question:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "VALIDATION_ERROR", "detail": "Query parameter 'q' is required"},
        )
    if len(question) > MAX_QUESTION_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "VALIDATION_ERROR", "detail": "Question is too long"},
        )

    try:
        result = await answer_question(db, question, enrichment, vector_index, public=True)
    except Exception as e:
        logger.error(f"公开问答失败: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "AI_FAILED", "detail": "Failed to process query"},
        )

    return PublicQueryResponse(
        answer=result.answer,
        sources=[PublicSource.model_validate(source) for source in result.sources],
    )
