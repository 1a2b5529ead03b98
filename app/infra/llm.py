"""
LLM 客户端模块

用于摘要生成、自动打标签和知识库问答，支持多种 LLM 提供商：
- Gemini (Google，默认 gemini-2.5-flash)
- Ollama (本地模型：qwen3, llama3 等)
- OpenAI 及兼容协议的提供商（Qwen / Kimi / DeepSeek / 智谱 / SiliconFlow）

所有调用均不做自动重试，失败时记录日志并抛出 LLMError，由调用方决定是否致命。

使用示例：
    from app.infra.llm import chat_completion

    response = await chat_completion(
        prompt="总结以下内容",
        temperature=0.3,
        max_tokens=500,
    )
"""

import logging
from functools import lru_cache
from typing import Any

import httpx
from openai import AsyncOpenAI

from app.config import OPENAI_COMPATIBLE_PROVIDERS, get_settings
from app.exceptions import LLMError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=8)
def _get_openai_compatible_client(
    api_key: str | None, base_url: str | None, timeout: float
) -> AsyncOpenAI:
    """获取 OpenAI 兼容客户端"""
    return AsyncOpenAI(
        api_key=api_key or "dummy",
        base_url=base_url,
        timeout=timeout,
    )


async def chat_completion(
    prompt: str,
    system_prompt: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> str:
    """
    调用 LLM 进行对话补全

    Args:
        prompt: 用户输入
        system_prompt: 系统提示词
        temperature: 温度参数（0-2）
        max_tokens: 最大生成 token 数

    Returns:
        str: LLM 生成的回复（未做 strip）

    Raises:
        LLMError: 提供商未配置或调用失败
    """
    settings = get_settings()
    config = settings.get_llm_config()
    provider = config["provider"]
    timeout = settings.llm_timeout_seconds

    if temperature is None:
        temperature = settings.llm_temperature
    if max_tokens is None:
        max_tokens = settings.llm_max_tokens

    try:
        if provider == "gemini":
            if not config.get("api_key"):
                raise ValueError("GEMINI_API_KEY 未配置")
            return await _gemini_chat(prompt, system_prompt, config, temperature, max_tokens, timeout)

        elif provider == "ollama":
            return await _ollama_chat(prompt, system_prompt, config, temperature, max_tokens, timeout)

        elif provider in OPENAI_COMPATIBLE_PROVIDERS:
            if not config.get("api_key"):
                raise ValueError(f"{provider.upper()}_API_KEY 未配置")
            return await _openai_compatible_chat(
                prompt, system_prompt, config, temperature, max_tokens, timeout
            )

        else:
            raise ValueError(f"未知的 LLM 提供者: {provider}")

    except Exception as e:
        logger.error(f"LLM 调用失败 ({provider}): {e}")
        raise LLMError(f"LLM call failed ({provider})") from e


def _build_messages(prompt: str, system_prompt: str | None) -> list[dict[str, str]]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


async def _ollama_chat(
    prompt: str,
    system_prompt: str | None,
    config: dict[str, Any],
    temperature: float,
    max_tokens: int,
    timeout: float,
) -> str:
    """Ollama Chat API"""
    url = f"{config['base_url']}/api/chat"

    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(
            url,
            json={
                "model": config["model"],
                "messages": _build_messages(prompt, system_prompt),
                "stream": False,
                "options": {
                    "temperature": temperature,
                    "num_predict": max_tokens,
                },
            },
        )
        response.raise_for_status()
        return response.json()["message"]["content"]


async def _openai_compatible_chat(
    prompt: str,
    system_prompt: str | None,
    config: dict[str, Any],
    temperature: float,
    max_tokens: int,
    timeout: float,
) -> str:
    """OpenAI 兼容 API Chat"""
    client = _get_openai_compatible_client(config.get("api_key"), config.get("base_url"), timeout)

    response = await client.chat.completions.create(
        model=config["model"],
        messages=_build_messages(prompt, system_prompt),
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return response.choices[0].message.content or ""


async def _gemini_chat(
    prompt: str,
    system_prompt: str | None,
    config: dict[str, Any],
    temperature: float,
    max_tokens: int,
    timeout: float,
) -> str:
    """Gemini API Chat"""
    url = f"{config['base_url']}/models/{config['model']}:generateContent"

    payload: dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        },
    }
    if system_prompt:
        payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(
            url,
            params={"key": config["api_key"]},
            json=payload,
        )
        response.raise_for_status()
        result = response.json()
        parts = result["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)
