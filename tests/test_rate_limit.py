"""
限流模块单元测试

测试 app/infra/rate_limit.py：
- 客户端 IP 推断
- 固定窗口计数、拒绝与窗口重置
- Retry-After 计算
- 过期条目清理
"""

import pytest

from app.exceptions import RateLimitExceeded
from app.infra.rate_limit import FixedWindowRateLimiter, get_client_ip


class FakeClock:
    """可手动推进的毫秒时钟"""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class TestGetClientIp:
    def test_forwarded_for_first_entry(self):
        headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1", "x-real-ip": "10.0.0.2"}
        assert get_client_ip(headers) == "203.0.113.7"

    def test_real_ip_fallback(self):
        assert get_client_ip({"x-real-ip": "198.51.100.3"}) == "198.51.100.3"

    def test_unknown_when_missing(self):
        assert get_client_ip({}) == "unknown"

    def test_blank_forwarded_for_falls_through(self):
        assert get_client_ip({"x-forwarded-for": " , 10.0.0.1", "x-real-ip": "198.51.100.3"}) == "198.51.100.3"


class TestFixedWindowRateLimiter:
    """测试固定窗口限流器"""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def limiter(self, clock):
        return FixedWindowRateLimiter(clock=clock)

    def test_allows_up_to_max_requests(self, limiter):
        for _ in range(3):
            limiter.enforce("ai:query", "1.1.1.1", 3, 60_000)

        with pytest.raises(RateLimitExceeded):
            limiter.enforce("ai:query", "1.1.1.1", 3, 60_000)

    def test_retry_after_rounds_up(self, limiter, clock):
        limiter.enforce("ai:query", "1.1.1.1", 1, 60_000)
        clock.advance(59_500)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.enforce("ai:query", "1.1.1.1", 1, 60_000)
        assert exc_info.value.retry_after == 1

    def test_retry_after_full_window(self, limiter):
        limiter.enforce("ai:query", "1.1.1.1", 1, 60_000)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.enforce("ai:query", "1.1.1.1", 1, 60_000)
        assert exc_info.value.retry_after == 60

    def test_rejected_request_does_not_extend_window(self, limiter, clock):
        limiter.enforce("s", "ip", 1, 10_000)
        clock.advance(5_000)
        with pytest.raises(RateLimitExceeded):
            limiter.enforce("s", "ip", 1, 10_000)

        # 窗口从第一次请求开始计算
        clock.advance(5_000)
        limiter.enforce("s", "ip", 1, 10_000)

    def test_window_resets_after_expiry(self, limiter, clock):
        limiter.enforce("s", "ip", 1, 1_000)
        clock.advance(1_000)
        # 过期后透明地开启新窗口
        limiter.enforce("s", "ip", 1, 1_000)

    def test_scopes_are_independent(self, limiter):
        limiter.enforce("knowledge:create", "ip", 1, 60_000)
        limiter.enforce("knowledge:update", "ip", 1, 60_000)

        with pytest.raises(RateLimitExceeded):
            limiter.enforce("knowledge:create", "ip", 1, 60_000)

    def test_clients_are_independent(self, limiter):
        limiter.enforce("s", "1.1.1.1", 1, 60_000)
        limiter.enforce("s", "2.2.2.2", 1, 60_000)

        with pytest.raises(RateLimitExceeded):
            limiter.enforce("s", "2.2.2.2", 1, 60_000)

    def test_sweeps_expired_entries(self, limiter, clock):
        limiter.enforce("s", "1.1.1.1", 5, 1_000)
        limiter.enforce("s", "2.2.2.2", 5, 1_000)
        assert len(limiter) == 2

        clock.advance(2_000)
        limiter.enforce("s", "3.3.3.3", 5, 1_000)
        assert len(limiter) == 1
