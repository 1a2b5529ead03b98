"""
数据模型层 (ORM Models)

- KnowledgeItem: 知识条目（笔记 / 链接 / 洞见），唯一的持久化实体
"""

from app.models.knowledge_item import KnowledgeItem

__all__ = [
    "KnowledgeItem",
]
