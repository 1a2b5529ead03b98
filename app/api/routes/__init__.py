"""
API 路由汇总

将所有子路由注册到主路由器，统一对外暴露。

路由模块说明：
- health.py    : 健康检查接口
- knowledge.py : 知识条目管理（CRUD、相似推荐）
- ai.py        : AI 接口（问答、摘要、打标签）
- public.py    : 公开问答接口
"""

from fastapi import APIRouter

from app.api.routes import ai, health, knowledge, public

# 主路由器，包含所有 API 端点
api_router = APIRouter()

# 注册各子路由，tags 用于 API 文档分组
api_router.include_router(health.router, tags=["health"])
api_router.include_router(knowledge.router, tags=["knowledge"])
api_router.include_router(ai.router, tags=["ai"])
api_router.include_router(public.router, tags=["public"])
