"""
限流模块

固定窗口计数器，按 "scope:客户端IP" 计数，用于保护高成本接口（AI 调用、写操作）。

局限：
- 计数保存在进程内存中，只保证单进程内的限流效果，多实例部署需要外部共享计数
- 客户端 IP 来自 X-Forwarded-For / X-Real-IP 请求头，可被伪造，只适合作为软性防滥用手段
"""

import logging
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import lru_cache

from app.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT_IP = "unknown"


def get_client_ip(headers: Mapping[str, str]) -> str:
    """
    推断客户端 IP

    优先取 X-Forwarded-For 的第一个地址，其次 X-Real-IP，否则返回 "unknown"。
    """
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return UNKNOWN_CLIENT_IP


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float  # 毫秒时间戳


class FixedWindowRateLimiter:
    """
    内存固定窗口限流器

    - 窗口内首次请求：count=1，reset_at=now+window_ms
    - 窗口内后续请求：未达上限则计数 +1，达到上限则拒绝
    - 窗口过期后下一次请求透明地开启新窗口
    - 每次调用顺带清理过期条目，限制内存增长

    enforce 内部没有 await，在单线程事件循环中天然原子，无需加锁。
    """

    def __init__(self, clock: Callable[[], float] = _now_ms) -> None:
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.reset_at <= now]
        for key in expired:
            del self._entries[key]

    def enforce(self, scope: str, client_ip: str, max_requests: int, window_ms: int) -> None:
        """
        放行或拒绝一次请求

        Raises:
            RateLimitExceeded: 超过窗口内最大请求数，retry_after 为距窗口重置的秒数（向上取整）
        """
        now = self._clock()
        self._sweep(now)

        key = f"{scope}:{client_ip}"
        current = self._entries.get(key)

        if current is None or current.reset_at <= now:
            self._entries[key] = RateLimitEntry(count=1, reset_at=now + window_ms)
            return

        if current.count >= max_requests:
            retry_after = math.ceil((current.reset_at - now) / 1000)
            logger.warning(f"触发限流: key={key}, retry_after={retry_after}s")
            raise RateLimitExceeded(retry_after=retry_after)

        current.count += 1


@lru_cache(maxsize=1)
def get_rate_limiter() -> FixedWindowRateLimiter:
    """获取限流器实例（进程级单例）"""
    logger.info("使用内存固定窗口限流器（单实例模式）")
    return FixedWindowRateLimiter()
