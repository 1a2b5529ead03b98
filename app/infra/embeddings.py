"""
文本向量化模块 (Embeddings)

将文本转换为固定 384 维的向量，用于相似条目推荐和问答检索。

支持的 Embedding 提供者：
- local：进程内 sentence-transformers（默认 all-MiniLM-L6-v2，mean pooling + L2 归一化）
- Ollama（远程部署同一模型，如 all-minilm）
- OpenAI 兼容 API（需保证输出维度为 384）

本地模型在首次调用时懒加载，整个进程只加载一次，进程退出前不释放。

使用示例：
    from app.infra.embeddings import get_embedding_service

    embedder = get_embedding_service()
    vec = await embedder.embed("什么是 RAG？")
"""

import asyncio
import logging
import threading
from functools import lru_cache

import httpx
from openai import AsyncOpenAI

from app.config import OPENAI_COMPATIBLE_PROVIDERS, Settings, get_settings
from app.exceptions import EmbeddingError

logger = logging.getLogger(__name__)


def to_pgvector_literal(embedding: list[float]) -> str:
    """将向量转换为 pgvector 文本格式：[0.1,0.2,...]"""
    return "[" + ",".join(str(float(x)) for x in embedding) + "]"


class EmbeddingService:
    """
    Embedding 服务

    显式的服务对象，通过 get_embedding_service() 获取进程级单例，
    或在测试中直接构造后注入。
    """

    def __init__(self, settings: Settings) -> None:
        self._config = settings.get_embedding_config()
        self.dim = settings.embedding_dim
        self._model = None
        self._model_lock = threading.Lock()
        self._client: AsyncOpenAI | None = None

    @property
    def provider(self) -> str:
        return self._config["provider"]

    def _load_local_model(self):
        """懒加载 sentence-transformers 模型（双重检查，保证只加载一次）"""
        if self._model is None:
            with self._model_lock:
                if self._model is None:
                    from sentence_transformers import SentenceTransformer

                    logger.info(f"加载本地 Embedding 模型: {self._config['model']}")
                    self._model = SentenceTransformer(self._config["model"])
        return self._model

    def _encode_local(self, text: str) -> list[float]:
        model = self._load_local_model()
        vector = model.encode(text, normalize_embeddings=True, convert_to_numpy=True)
        return vector.tolist()

    async def _ollama_embedding(self, text: str) -> list[float]:
        """通过 Ollama API 获取 Embedding"""
        url = f"{self._config['base_url']}/api/embeddings"

        async with httpx.AsyncClient(timeout=60.0) as client:
            response = await client.post(
                url,
                json={"model": self._config["model"], "prompt": text},
            )
            response.raise_for_status()
            return response.json()["embedding"]

    async def _openai_compatible_embedding(self, text: str) -> list[float]:
        """通过 OpenAI 兼容 API 获取 Embedding"""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._config.get("api_key") or "dummy",
                base_url=self._config.get("base_url"),
                timeout=60.0,
            )
        response = await self._client.embeddings.create(
            model=self._config["model"],
            input=text,
        )
        return response.data[0].embedding

    async def _dispatch(self, text: str) -> list[float]:
        provider = self.provider

        if provider == "local":
            # 模型推理是 CPU 密集操作，放到线程池避免阻塞事件循环
            return await asyncio.to_thread(self._encode_local, text)

        elif provider == "ollama":
            return await self._ollama_embedding(text)

        elif provider in OPENAI_COMPATIBLE_PROVIDERS:
            if not self._config.get("api_key"):
                raise RuntimeError(f"{provider.upper()}_API_KEY 未配置，无法生成 Embedding")
            return await self._openai_compatible_embedding(text)

        else:
            raise RuntimeError(f"未知 Embedding 提供者: {provider}")

    async def embed(self, text: str) -> list[float]:
        """
        获取单个文本的 Embedding 向量

        Raises:
            EmbeddingError: 模型加载、推理、远程调用失败或维度不匹配
        """
        try:
            vector = [float(x) for x in await self._dispatch(text)]
            if len(vector) != self.dim:
                raise ValueError(f"Embedding 维度不匹配: 期望 {self.dim}，实际 {len(vector)}")
            return vector
        except Exception as e:
            logger.error(f"Embedding 生成失败 ({self.provider}): {e}")
            raise EmbeddingError("Failed to generate embedding") from e


@lru_cache(maxsize=1)
def get_embedding_service() -> EmbeddingService:
    """获取 Embedding 服务实例（单例）"""
    return EmbeddingService(get_settings())
