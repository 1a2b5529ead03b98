"""
数据库会话管理

这个模块负责：
1. 创建数据库引擎（连接池）
2. 提供异步会话工厂
3. 实现 FastAPI 依赖注入的数据库会话获取函数

使用方式（在 FastAPI 路由中）：
    from app.db.session import get_db

    @router.get("/knowledge/{item_id}")
    async def get_item(item_id: str, db: AsyncSession = Depends(get_db)):
        ...
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings
from app.db.base import Base

settings = get_settings()

# ==================== 创建数据库引擎 ====================
engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,     # 取连接前先探活，避免使用已断开的连接
    pool_size=10,
    max_overflow=20,
    pool_timeout=30,
    pool_recycle=1800,      # 防止数据库端超时断开
)

# ==================== 创建会话工厂 ====================
# expire_on_commit=False：提交后仍可读取对象属性，便于直接序列化响应
SessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取数据库会话（FastAPI 依赖注入函数）

    每个请求使用独立的会话，请求结束后自动关闭。

    Yields:
        AsyncSession: 异步数据库会话对象
    """
    async with SessionLocal() as session:
        yield session


async def init_models() -> None:
    """
    初始化数据库表（仅开发/测试环境使用）

    先安装 pgvector 扩展并创建 ORM 表，再由向量索引补齐 embedding 列和 HNSW 索引。
    生产环境应该使用 Alembic 进行数据库迁移。
    """
    from app import models  # noqa: F401
    from app.infra.vector_store_pg import get_vector_index

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await get_vector_index().ensure_schema(conn)
