"""
SQLAlchemy ORM 基类定义

knowledge_items 表通过 Base.metadata 注册，开发环境启动时据此建表，
生产环境的表结构以 Alembic 迁移为准。
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """声明式基类"""
    pass
