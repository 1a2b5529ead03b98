class EmbeddingError(Exception):
    """向量化错误"""


class VectorStoreError(Exception):
    """向量存储错误"""


class LLMError(Exception):
    """LLM 调用错误"""


class KnowledgeValidationError(Exception):
    """知识条目输入校验错误（消息可直接返回给客户端）"""


class KnowledgeNotFoundError(Exception):
    """知识条目不存在"""


class RateLimitExceeded(Exception):
    """触发限流，retry_after 为建议等待秒数"""

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")
        self.retry_after = retry_after
