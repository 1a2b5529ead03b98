"""
数据库模块

- base.py    : SQLAlchemy 声明式基类
- session.py : 异步引擎、会话工厂与 FastAPI 依赖

使用 SQLAlchemy 2.0 + asyncpg 实现完全异步的数据库操作。
向量列（pgvector）不经过 ORM 映射，由 app.infra.vector_store_pg 通过原生 SQL 读写。
"""
