"""
输入校验工具

纯函数、无状态，供路由层和服务层共同使用：
- 枚举值校验（条目类型、排序字段、排序方向）
- 分页参数解析（永不抛异常，越界时截断）
- 来源 URL 安全校验（只允许 http/https，防止 javascript:/data: 链接注入）
- 标签规范化
"""

import re
from typing import Any, Literal, get_args
from urllib.parse import urlsplit

KnowledgeItemType = Literal["note", "link", "insight"]
KnowledgeSortField = Literal["createdAt", "updatedAt", "title"]
SortOrder = Literal["asc", "desc"]

KNOWLEDGE_ITEM_TYPES: tuple[str, ...] = get_args(KnowledgeItemType)
KNOWLEDGE_SORT_FIELDS: tuple[str, ...] = get_args(KnowledgeSortField)
SORT_ORDERS: tuple[str, ...] = get_args(SortOrder)

MAX_TAGS = 20
MAX_CONTENT_LENGTH = 20_000
MAX_QUESTION_LENGTH = 500

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def is_known_type(value: Any) -> bool:
    return value in KNOWLEDGE_ITEM_TYPES


def is_known_sort_field(value: Any) -> bool:
    return value in KNOWLEDGE_SORT_FIELDS


def is_known_sort_order(value: Any) -> bool:
    return value in SORT_ORDERS


def parse_bounded_int(raw: str | None, fallback: int, min_value: int, max_value: int) -> int:
    """
    解析可选的整数参数

    - 缺失、空串或无法解析 → fallback
    - 取字符串开头的整数部分（"12abc" → 12，"1.9" → 1）
    - 结果截断到 [min_value, max_value]
    """
    if not raw:
        return fallback
    match = _LEADING_INT_RE.match(raw)
    if not match:
        return fallback
    return min(max(int(match.group(1)), min_value), max_value)


def is_safe_url(value: Any) -> bool:
    """只接受带主机名的 http/https 绝对地址"""
    if not isinstance(value, str) or not value:
        return False
    if any(ch.isspace() for ch in value):
        return False
    try:
        parts = urlsplit(value)
        # 访问 port 会校验端口格式，非法端口抛 ValueError
        parts.port
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.hostname)


def normalize_tags(raw: Any) -> list[str]:
    """
    规范化标签列表

    非列表输入返回空列表；忽略非字符串元素；去除首尾空白并转小写；
    丢弃空串；保留首次出现的顺序去重；最多保留 MAX_TAGS 个。
    """
    if not isinstance(raw, list):
        return []

    normalized = (tag.strip().lower() for tag in raw if isinstance(tag, str))
    # dict 保持插入顺序，用于有序去重
    unique = dict.fromkeys(tag for tag in normalized if tag)
    return list(unique)[:MAX_TAGS]


def parse_tag_filter(raw: str | None) -> list[str]:
    """解析列表接口的 tags 查询参数（逗号分隔）"""
    if not raw:
        return []
    return [tag.strip().lower() for tag in raw.split(",") if tag.strip()]
