"""
知识条目管理接口

提供知识条目的 CRUD 操作和相似条目推荐。
写操作和相似推荐受限流保护；创建/更新时同步生成摘要和向量（失败不影响写入）。
"""

import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db_session, get_enrichment, get_vector_store, rate_limit
from app.exceptions import EmbeddingError, KnowledgeNotFoundError, KnowledgeValidationError
from app.infra.vector_store_pg import PgVectorIndex
from app.schemas import (
    KnowledgeItemCreate,
    KnowledgeItemEnvelope,
    KnowledgeItemResponse,
    KnowledgeItemUpdate,
    KnowledgeListParams,
    KnowledgeListResponse,
    MessageResponse,
    SimilarItem,
    SimilarItemsResponse,
)
from app.services.enrichment import EnrichmentService
from app.services.knowledge import (
    create_knowledge_item,
    delete_knowledge_item,
    find_similar_items,
    get_item,
    list_items,
    update_knowledge_item,
)
from app.services.validation import (
    is_known_sort_field,
    is_known_sort_order,
    is_known_type,
    parse_bounded_int,
    parse_tag_filter,
)

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND_MESSAGE = "Knowledge item not found"


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "NOT_FOUND", "detail": NOT_FOUND_MESSAGE},
    )


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "VALIDATION_ERROR", "detail": message},
    )


def _server_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "INTERNAL_ERROR", "detail": message},
    )


@router.get("/knowledge", response_model=KnowledgeListResponse)
async def list_knowledge_items(
    search: str | None = Query(None, description="关键词"),
    type: str | None = Query(None, description="类型过滤：note / link / insight"),
    tags: str | None = Query(None, description="逗号分隔的标签，需全部包含"),
    sort_by: str | None = Query(None, alias="sortBy", description="createdAt / updatedAt / title"),
    sort_order: str | None = Query(None, alias="sortOrder", description="asc / desc"),
    page: str | None = Query(None, description="页码，默认 1"),
    limit: str | None = Query(None, description="每页数量，默认 50，最大 100"),
    db: AsyncSession = Depends(get_db_session),
):
    """
    列出知识条目

    page / limit 无法解析时使用默认值，越界时截断，不会报错；
    枚举类参数（type / sortBy / sortOrder）非法时返回 400。
    """
    if type and not is_known_type(type):
        raise _bad_request("Invalid type filter")
    if sort_by and not is_known_sort_field(sort_by):
        raise _bad_request("Invalid sortBy field")
    if sort_order and not is_known_sort_order(sort_order):
        raise _bad_request("Invalid sortOrder value")

    params = KnowledgeListParams(
        search=search or "",
        type=type or None,
        tags=parse_tag_filter(tags),
        sort_by=sort_by or "createdAt",
        sort_order=sort_order or "desc",
        page=parse_bounded_int(page, 1, 1, 100_000),
        limit=parse_bounded_int(limit, 50, 1, 100),
    )

    try:
        items, count = await list_items(db, params)
    except Exception as e:
        logger.error(f"查询知识条目列表失败: {e}", exc_info=True)
        raise _server_error("Failed to fetch knowledge items")

    return KnowledgeListResponse(
        data=[KnowledgeItemResponse.model_validate(item) for item in items],
        count=count,
        page=params.page,
        limit=params.limit,
        total_pages=math.ceil(count / params.limit),
    )


@router.post(
    "/knowledge",
    response_model=KnowledgeItemEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("knowledge:create", "rate_limit_knowledge_create"))],
)
async def create_item(
    payload: KnowledgeItemCreate,
    db: AsyncSession = Depends(get_db_session),
    enrichment: EnrichmentService = Depends(get_enrichment),
    vector_index: PgVectorIndex = Depends(get_vector_store),
):
    """
    创建知识条目

    返回前同步生成摘要和向量；AI 服务不可用时条目照常创建，摘要为空。
    """
    try:
        result = await create_knowledge_item(db, payload, enrichment, vector_index)
    except KnowledgeValidationError as e:
        raise _bad_request(str(e))
    except Exception as e:
        logger.error(f"创建知识条目失败: {e}", exc_info=True)
        raise _server_error("Failed to create knowledge item")

    return KnowledgeItemEnvelope(data=KnowledgeItemResponse.model_validate(result.item))


@router.get("/knowledge/{item_id}", response_model=KnowledgeItemEnvelope)
async def get_knowledge_item(
    item_id: str,
    db: AsyncSession = Depends(get_db_session),
):
    try:
        item = await get_item(db, item_id)
    except Exception as e:
        logger.error(f"查询知识条目失败: id={item_id}, error={e}", exc_info=True)
        raise _server_error("Failed to fetch knowledge item")

    if item is None:
        raise _not_found()
    return KnowledgeItemEnvelope(data=KnowledgeItemResponse.model_validate(item))


@router.patch(
    "/knowledge/{item_id}",
    response_model=KnowledgeItemEnvelope,
    dependencies=[Depends(rate_limit("knowledge:update", "rate_limit_knowledge_update"))],
)
async def update_item(
    item_id: str,
    payload: KnowledgeItemUpdate,
    db: AsyncSession = Depends(get_db_session),
    enrichment: EnrichmentService = Depends(get_enrichment),
    vector_index: PgVectorIndex = Depends(get_vector_store),
):
    """
    部分更新知识条目

    正文变化时重新生成摘要，标题或正文变化时重新生成向量；
    只改标签等其他字段不会触发 AI 调用。
    """
    try:
        result = await update_knowledge_item(db, item_id, payload, enrichment, vector_index)
    except KnowledgeNotFoundError:
        raise _not_found()
    except KnowledgeValidationError as e:
        raise _bad_request(str(e))
    except Exception as e:
        logger.error(f"更新知识条目失败: id={item_id}, error={e}", exc_info=True)
        raise _server_error("Failed to update knowledge item")

    return KnowledgeItemEnvelope(data=KnowledgeItemResponse.model_validate(result.item))


@router.delete(
    "/knowledge/{item_id}",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit("knowledge:delete", "rate_limit_knowledge_delete"))],
)
async def delete_item(
    item_id: str,
    db: AsyncSession = Depends(get_db_session),
):
    try:
        await delete_knowledge_item(db, item_id)
    except KnowledgeNotFoundError:
        raise _not_found()
    except Exception as e:
        logger.error(f"删除知识条目失败: id={item_id}, error={e}", exc_info=True)
        raise _server_error("Failed to delete knowledge item")

    return MessageResponse(message="Knowledge item deleted successfully")


@router.get(
    "/knowledge/{item_id}/similar",
    response_model=SimilarItemsResponse,
    dependencies=[Depends(rate_limit("knowledge:similar", "rate_limit_knowledge_similar"))],
)
async def similar_items(
    item_id: str,
    limit: str | None = Query(None, description="返回数量，默认 5，范围 1-20"),
    db: AsyncSession = Depends(get_db_session),
    enrichment: EnrichmentService = Depends(get_enrichment),
    vector_index: PgVectorIndex = Depends(get_vector_store),
):
    """
    相似条目推荐

    以条目当前内容实时生成向量；向量生成失败时返回 500（不降级为关键词检索）。
    """
    top_k = parse_bounded_int(limit, 5, 1, 20)
    try:
        matches = await find_similar_items(db, item_id, top_k, enrichment, vector_index)
    except KnowledgeNotFoundError:
        raise _not_found()
    except EmbeddingError:
        raise _server_error("Failed to generate embedding for similarity search")
    except Exception as e:
        logger.error(f"查询相似条目失败: id={item_id}, error={e}", exc_info=True)
        raise _server_error("Failed to find similar items")

    return SimilarItemsResponse(
        data=[
            SimilarItem(
                item=KnowledgeItemResponse.model_validate(match.item),
                similarity=match.similarity,
            )
            for match in matches
        ]
    )
