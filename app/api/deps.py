"""
API 依赖注入函数

这个模块定义了所有 API 路由共用的依赖项。
FastAPI 的依赖注入系统会自动调用这些函数，并将结果注入到路由处理函数中；
测试中通过 app.dependency_overrides 替换数据库会话、限流器、AI 增强服务和向量索引。

使用示例：
    @router.post(
        "/knowledge",
        dependencies=[Depends(rate_limit("knowledge:create", "rate_limit_knowledge_create"))],
    )
    async def create_item(
        db=Depends(get_db_session),              # 自动获取数据库会话
        enrichment=Depends(get_enrichment),      # AI 增强服务
    ):
        pass
"""

from fastapi import Depends, HTTPException, Request, status

from app.config import Settings, get_settings
from app.db.session import get_db
from app.exceptions import RateLimitExceeded
from app.infra.rate_limit import FixedWindowRateLimiter, get_client_ip, get_rate_limiter
from app.infra.vector_store_pg import PgVectorIndex, get_vector_index
from app.services.enrichment import EnrichmentService, get_enrichment_service

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


def rate_limit(scope: str, limit_setting: str):
    """
    限流依赖工厂

    Args:
        scope: 限流范围（如 "knowledge:create"），与客户端 IP 组成计数键
        limit_setting: Settings 中保存该范围窗口内最大请求数的字段名

    限流检查在请求体校验之前执行，被拒绝的请求不会进入业务逻辑。
    """

    async def _enforce(
        request: Request,
        limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
        settings: Settings = Depends(get_settings),
    ) -> None:
        try:
            limiter.enforce(
                scope,
                get_client_ip(request.headers),
                getattr(settings, limit_setting),
                settings.rate_limit_window_seconds * 1000,
            )
        except RateLimitExceeded as e:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={"code": "RATE_LIMITED", "detail": RATE_LIMIT_MESSAGE},
                headers={"Retry-After": str(e.retry_after)},
            )

    return _enforce


def get_enrichment() -> EnrichmentService:
    return get_enrichment_service()


def get_vector_store() -> PgVectorIndex:
    return get_vector_index()


# 重新导出数据库会话获取函数，方便路由模块导入
get_db_session = get_db
