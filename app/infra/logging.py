"""
结构化日志配置

提供 JSON 格式的结构化日志，支持请求追踪和可观测性。

功能：
- JSON 格式输出，便于日志聚合（ELK/Loki）
- 请求 ID 追踪（X-Request-ID）
- 客户端 IP 关联（用于排查限流问题）
- 分阶段耗时记录

使用示例：
    from app.infra.logging import setup_logging, get_logger

    # 应用启动时配置
    setup_logging()

    # 获取 logger
    logger = get_logger(__name__)
    logger.info("问答完成", extra={"retrieval": "vector", "sources": 3})
"""

import logging
import sys
import json
import time
from datetime import datetime, timezone
from typing import Any
from contextvars import ContextVar

from app.config import get_settings

# 请求上下文变量
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
client_ip_var: ContextVar[str | None] = ContextVar("client_ip", default=None)


def get_request_id() -> str | None:
    """获取当前请求 ID"""
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    """设置当前请求 ID"""
    request_id_var.set(request_id)


def get_client_ip() -> str | None:
    """获取当前请求的客户端 IP"""
    return client_ip_var.get()


def set_client_ip(client_ip: str) -> None:
    """设置当前请求的客户端 IP"""
    client_ip_var.set(client_ip)


class JSONFormatter(logging.Formatter):
    """
    JSON 格式日志格式化器

    输出格式：
    {
        "timestamp": "2024-01-01T00:00:00.000Z",
        "level": "INFO",
        "logger": "app.services.rag",
        "message": "问答完成",
        "request_id": "abc123",
        "client_ip": "203.0.113.7",
        "extra": {...}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            log_data["request_id"] = request_id

        client_ip = get_client_ip()
        if client_ip:
            log_data["client_ip"] = client_ip

        # 添加源代码位置（仅 DEBUG 级别）
        if record.levelno <= logging.DEBUG:
            log_data["location"] = f"{record.pathname}:{record.lineno}"

        # 添加 extra 字段（排除标准字段）
        standard_attrs = {
            "name", "msg", "args", "created", "filename", "funcName",
            "levelname", "levelno", "lineno", "module", "msecs",
            "pathname", "process", "processName", "relativeCreated",
            "stack_info", "exc_info", "exc_text", "thread", "threadName",
            "taskName", "message",
        }
        extra = {
            k: v for k, v in record.__dict__.items()
            if k not in standard_attrs and not k.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    控制台友好的日志格式化器（开发环境）

    输出格式：
    2024-01-01 00:00:00 INFO [request_id] logger_name - message
    """

    COLORS = {
        "DEBUG": "\033[36m",     # 青色
        "INFO": "\033[32m",      # 绿色
        "WARNING": "\033[33m",   # 黄色
        "ERROR": "\033[31m",     # 红色
        "CRITICAL": "\033[35m",  # 紫色
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname
        color = self.COLORS.get(level, "")

        parts = [f"{timestamp} {color}{level:8}{self.RESET}"]

        request_id = get_request_id()
        if request_id:
            parts.append(f"[{request_id[:8]}]")

        parts.append(f"{record.name} -")
        parts.append(record.getMessage())

        result = " ".join(parts)

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def setup_logging(
    level: str | None = None,
    json_format: bool | None = None,
) -> None:
    """
    配置应用日志

    Args:
        level: 日志级别（DEBUG/INFO/WARNING/ERROR），默认从配置读取
        json_format: 是否使用 JSON 格式，默认生产环境使用 JSON
    """
    settings = get_settings()

    if level is None:
        level = settings.log_level
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_format is None:
        json_format = settings.log_json
    if json_format is None:
        json_format = settings.environment not in ("dev", "development", "test")

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # 降低第三方库日志级别
    for noisy_logger in (
        "uvicorn.access",
        "uvicorn.error",
        "httpx",
        "httpcore",
        "sqlalchemy.engine",
        "sentence_transformers",
    ):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logging.getLogger("app").setLevel(log_level)


def get_logger(name: str) -> logging.Logger:
    """
    获取 logger 实例

    Args:
        name: logger 名称，通常使用 __name__
    """
    return logging.getLogger(name)


class RequestTimer:
    """
    请求计时器，用于记录各阶段耗时

    使用示例：
        timer = RequestTimer()
        # ... 生成问题向量
        timer.mark("embedding")
        # ... 检索候选条目
        timer.mark("retrieval")
        metrics = timer.get_metrics()
        # {"total_ms": 150, "embedding_ms": 50, "retrieval_ms": 100}
    """

    def __init__(self):
        self.start_time = time.perf_counter()
        self.marks: list[tuple[str, float]] = []
        self._last_mark = self.start_time

    def mark(self, name: str) -> None:
        """记录一个时间点（与上一个时间点之间的耗时归到 name 阶段）"""
        now = time.perf_counter()
        self.marks.append((name, now - self._last_mark))
        self._last_mark = now

    def get_metrics(self) -> dict[str, float]:
        """
        获取耗时指标

        Returns:
            包含各阶段耗时的字典（毫秒）
        """
        total = time.perf_counter() - self.start_time
        metrics = {"total_ms": round(total * 1000, 2)}
        for name, duration in self.marks:
            metrics[f"{name}_ms"] = round(duration * 1000, 2)
        return metrics
