"""
知识条目服务

结构化查询（ORM）与创建/更新/相似推荐流程：

创建：校验 → 生成摘要（尽力而为）→ 生成向量（尽力而为）→ 写入条目 → 单独写入向量
更新：只改请求中出现的字段；正文变化才重新摘要，标题或正文变化才重新生成向量；
     增强失败不影响结构化字段的更新，旧摘要/旧向量保持不变（允许陈旧）
删除：硬删除
相似：以条目当前标题+正文重新生成向量，查询最近邻（向量生成失败直接报错，无降级）

并发更新同一条目时为"最后写入者胜"，不做乐观锁。
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import EmbeddingError, KnowledgeNotFoundError, KnowledgeValidationError
from app.infra.vector_store_pg import PgVectorIndex
from app.models import KnowledgeItem
from app.schemas.internal import KnowledgeListParams
from app.schemas.knowledge import KnowledgeItemCreate, KnowledgeItemUpdate
from app.services.enrichment import (
    EmbeddingResult,
    EnrichmentOutcome,
    EnrichmentService,
    SummaryResult,
    best_effort,
)
from app.services.validation import is_known_type, is_safe_url, normalize_tags

logger = logging.getLogger(__name__)

KEYWORD_SEARCH_LIMIT = 5

SORT_COLUMNS = {
    "createdAt": KnowledgeItem.created_at,
    "updatedAt": KnowledgeItem.updated_at,
    "title": KnowledgeItem.title,
}


@dataclass
class KnowledgeWriteResult:
    """创建/更新结果，附带本次增强的执行情况（未触发的增强为 None）"""
    item: KnowledgeItem
    summary: EnrichmentOutcome[SummaryResult] | None = None
    embedding: EnrichmentOutcome[EmbeddingResult] | None = None


@dataclass
class SimilarMatch:
    item: KnowledgeItem
    similarity: float


# ==================== 结构化查询 ====================


async def get_item(session: AsyncSession, item_id: str) -> KnowledgeItem | None:
    result = await session.execute(select(KnowledgeItem).where(KnowledgeItem.id == item_id))
    return result.scalar_one_or_none()


async def get_items_by_ids(session: AsyncSession, item_ids: Sequence[str]) -> list[KnowledgeItem]:
    """按 ID 批量获取条目，结果顺序与 item_ids 一致（不存在的 ID 被忽略）"""
    if not item_ids:
        return []
    result = await session.execute(select(KnowledgeItem).where(KnowledgeItem.id.in_(item_ids)))
    by_id = {item.id: item for item in result.scalars().all()}
    return [by_id[item_id] for item_id in item_ids if item_id in by_id]


async def get_public_sources_by_ids(session: AsyncSession, item_ids: Sequence[str]) -> list:
    """
    公开接口使用的来源投影：只查询 id / title / type / summary

    不加载原文和标签，避免公开接口泄露私有内容。
    """
    if not item_ids:
        return []
    result = await session.execute(
        select(
            KnowledgeItem.id,
            KnowledgeItem.title,
            KnowledgeItem.type,
            KnowledgeItem.summary,
        ).where(KnowledgeItem.id.in_(item_ids))
    )
    by_id = {row.id: row for row in result.all()}
    return [by_id[item_id] for item_id in item_ids if item_id in by_id]


def _apply_filters(stmt: Select, params: KnowledgeListParams) -> Select:
    if params.search:
        stmt = stmt.where(
            or_(
                KnowledgeItem.title.icontains(params.search, autoescape=True),
                KnowledgeItem.content.icontains(params.search, autoescape=True),
                KnowledgeItem.summary.icontains(params.search, autoescape=True),
            )
        )
    if params.type:
        stmt = stmt.where(KnowledgeItem.type == params.type)
    if params.tags:
        # ARRAY @> ARRAY：包含全部标签
        stmt = stmt.where(KnowledgeItem.tags.contains(params.tags))
    return stmt


def build_list_query(params: KnowledgeListParams) -> tuple[Select, Select]:
    """
    构建列表查询

    Returns:
        (count 语句, 分页语句)
    """
    count_stmt = _apply_filters(select(func.count()).select_from(KnowledgeItem), params)

    sort_column = SORT_COLUMNS[params.sort_by]
    ordering = sort_column.asc() if params.sort_order == "asc" else sort_column.desc()
    page_stmt = (
        _apply_filters(select(KnowledgeItem), params)
        .order_by(ordering, KnowledgeItem.id)
        .offset(params.offset)
        .limit(params.limit)
    )
    return count_stmt, page_stmt


async def list_items(
    session: AsyncSession,
    params: KnowledgeListParams,
) -> tuple[list[KnowledgeItem], int]:
    """按过滤/排序/分页条件列出条目，返回 (当前页条目, 总数)"""
    count_stmt, page_stmt = build_list_query(params)
    count = (await session.execute(count_stmt)).scalar_one()
    items = list((await session.execute(page_stmt)).scalars().all())
    return items, count


async def keyword_search(
    session: AsyncSession,
    term: str,
    limit: int = KEYWORD_SEARCH_LIMIT,
) -> list[KnowledgeItem]:
    """关键词检索（标题/正文不区分大小写子串匹配），向量不可用时的降级路径"""
    result = await session.execute(
        select(KnowledgeItem)
        .where(
            or_(
                KnowledgeItem.title.icontains(term, autoescape=True),
                KnowledgeItem.content.icontains(term, autoescape=True),
            )
        )
        .limit(limit)
    )
    return list(result.scalars().all())


# ==================== 写入流程 ====================


async def _write_embedding(
    session: AsyncSession,
    vector_index: PgVectorIndex,
    item_id: str,
    outcome: EnrichmentOutcome[EmbeddingResult],
) -> EnrichmentOutcome[EmbeddingResult]:
    """
    在 SAVEPOINT 中写入向量

    向量写入失败只回滚 SAVEPOINT，结构化字段的写入不受影响。
    """
    if not outcome.computed:
        return outcome
    try:
        async with session.begin_nested():
            await vector_index.set_embedding(session, item_id, outcome.value.embedding)
    except Exception as e:
        logger.error(f"写入向量失败，跳过: item={item_id}, error={e}")
        return EnrichmentOutcome(error=e)
    return outcome


def _validate_create(payload: KnowledgeItemCreate) -> dict:
    title = (payload.title or "").strip()
    content = (payload.content or "").strip()
    item_type = payload.type or "note"
    source_url = (payload.source_url or "").strip()

    if not title:
        raise KnowledgeValidationError("Title is required")
    if not content:
        raise KnowledgeValidationError("Content is required")
    if not is_known_type(item_type):
        raise KnowledgeValidationError("Invalid knowledge type")
    if source_url and not is_safe_url(source_url):
        raise KnowledgeValidationError("Source URL must be a valid http(s) URL")

    return {
        "title": title,
        "content": content,
        "type": item_type,
        "tags": normalize_tags(payload.tags),
        "source_url": source_url or None,
    }


async def create_knowledge_item(
    session: AsyncSession,
    payload: KnowledgeItemCreate,
    enrichment: EnrichmentService,
    vector_index: PgVectorIndex,
) -> KnowledgeWriteResult:
    """
    创建知识条目

    摘要和向量在返回前同步生成，任一失败都只记录日志，条目照常创建。

    Raises:
        KnowledgeValidationError: 必填字段缺失、类型未知或来源 URL 不安全
    """
    values = _validate_create(payload)

    summary = await best_effort(
        "生成摘要", enrichment.summarize(values["content"])
    )
    embedding = await best_effort(
        "生成向量", enrichment.embed_knowledge_item(values["title"], values["content"])
    )

    item = KnowledgeItem(
        **values,
        summary=summary.value.summary if summary.computed else None,
    )
    session.add(item)
    # 先插入条目，向量列通过原生 SQL 单独写入
    await session.flush()
    embedding = await _write_embedding(session, vector_index, item.id, embedding)

    await session.commit()
    await session.refresh(item)

    logger.info(
        f"创建知识条目: id={item.id}, type={item.type}, "
        f"summary={'ok' if summary.computed else 'skipped'}, "
        f"embedding={'ok' if embedding.computed else 'skipped'}"
    )
    return KnowledgeWriteResult(item=item, summary=summary, embedding=embedding)


def _collect_changes(payload: KnowledgeItemUpdate) -> dict:
    """只处理请求体中出现的字段"""
    provided = payload.model_fields_set
    changes: dict = {}

    if "title" in provided:
        title = (payload.title or "").strip()
        if not title:
            raise KnowledgeValidationError("Title cannot be empty")
        changes["title"] = title

    if "content" in provided:
        content = (payload.content or "").strip()
        if not content:
            raise KnowledgeValidationError("Content cannot be empty")
        changes["content"] = content

    if "type" in provided:
        if not is_known_type(payload.type):
            raise KnowledgeValidationError("Invalid knowledge type")
        changes["type"] = payload.type

    if "tags" in provided:
        changes["tags"] = normalize_tags(payload.tags)

    if "source_url" in provided:
        source_url = (payload.source_url or "").strip()
        if source_url and not is_safe_url(source_url):
            raise KnowledgeValidationError("Source URL must be a valid http(s) URL")
        changes["source_url"] = source_url or None

    if "summary" in provided:
        changes["summary"] = (payload.summary or "").strip() or None

    if not changes:
        raise KnowledgeValidationError("No valid fields provided for update")
    return changes


async def update_knowledge_item(
    session: AsyncSession,
    item_id: str,
    payload: KnowledgeItemUpdate,
    enrichment: EnrichmentService,
    vector_index: PgVectorIndex,
) -> KnowledgeWriteResult:
    """
    部分更新知识条目

    Raises:
        KnowledgeNotFoundError: 条目不存在
        KnowledgeValidationError: 字段非法或没有可更新的字段
    """
    item = await get_item(session, item_id)
    if item is None:
        raise KnowledgeNotFoundError(item_id)

    changes = _collect_changes(payload)

    next_title = changes.get("title", item.title)
    next_content = changes.get("content", item.content)
    content_changed = next_content != item.content
    embedding_input_changed = content_changed or next_title != item.title

    summary = None
    if content_changed:
        summary = await best_effort("重新生成摘要", enrichment.summarize(next_content))
        # 仅在成功时覆盖摘要（包括覆盖请求中显式传入的 summary）
        if summary.computed:
            changes["summary"] = summary.value.summary

    embedding = None
    if embedding_input_changed:
        embedding = await best_effort(
            "重新生成向量", enrichment.embed_knowledge_item(next_title, next_content)
        )

    for key, value in changes.items():
        setattr(item, key, value)
    await session.flush()

    if embedding is not None:
        embedding = await _write_embedding(session, vector_index, item.id, embedding)

    await session.commit()
    await session.refresh(item)

    logger.info(f"更新知识条目: id={item.id}, fields={sorted(changes)}")
    return KnowledgeWriteResult(item=item, summary=summary, embedding=embedding)


async def delete_knowledge_item(session: AsyncSession, item_id: str) -> None:
    """
    硬删除知识条目（向量列随行一起删除）

    Raises:
        KnowledgeNotFoundError: 条目不存在
    """
    item = await get_item(session, item_id)
    if item is None:
        raise KnowledgeNotFoundError(item_id)

    await session.delete(item)
    await session.commit()
    logger.info(f"删除知识条目: id={item_id}")


async def find_similar_items(
    session: AsyncSession,
    item_id: str,
    limit: int,
    enrichment: EnrichmentService,
    vector_index: PgVectorIndex,
) -> list[SimilarMatch]:
    """
    查找与指定条目相似的条目

    使用条目当前的标题+正文重新生成查询向量，而不是读取已存储的（可能陈旧的）向量。

    Raises:
        KnowledgeNotFoundError: 条目不存在
        EmbeddingError: 查询向量生成失败（此处没有降级路径）
    """
    item = await get_item(session, item_id)
    if item is None:
        raise KnowledgeNotFoundError(item_id)

    try:
        query = await enrichment.embed_knowledge_item(item.title, item.content)
    except EmbeddingError:
        raise
    except Exception as e:
        raise EmbeddingError("Failed to generate embedding") from e

    hits = await vector_index.nearest_neighbors(
        session, query.embedding, limit, exclude_id=item.id
    )

    items = {candidate.id: candidate for candidate in await get_items_by_ids(session, [h.item_id for h in hits])}
    return [
        SimilarMatch(item=items[hit.item_id], similarity=hit.similarity)
        for hit in hits
        if hit.item_id in items
    ]
