"""
Alembic 迁移环境配置

负责配置数据库迁移的运行环境，支持：
- 离线模式：生成 SQL 脚本
- 在线模式：通过 asyncpg 异步连接直接执行迁移

注意事项：
- 导入 app.models 确保 knowledge_items 模型被注册
- embedding 向量列不在 ORM 元数据中，autogenerate 不会感知它，需要手写迁移
- 数据库 URL 优先从环境变量 DATABASE_URL 读取
"""

from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from app import models  # noqa: F401 - 确保所有模型被导入和注册
from app.config import get_settings
from app.db.base import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """获取数据库连接 URL，优先使用环境变量"""
    return os.getenv("DATABASE_URL") or get_settings().database_url


def include_object(object_, name, type_, reflected, compare_to) -> bool:
    """autogenerate 时忽略手工维护的向量列和 HNSW 索引"""
    if type_ == "column" and name == "embedding":
        return False
    if type_ == "index" and name == "idx_knowledge_items_embedding":
        return False
    return True


def run_migrations_offline() -> None:
    """离线模式：不连接数据库，仅生成 SQL 脚本"""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    """执行迁移操作（同步函数，被 run_sync 调用）"""
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_url()

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,  # 迁移完成后立即释放连接
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """在线模式：连接到实际数据库执行迁移"""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
