# src/Blockwright/llm.py

import math
import time
from typing import Any, cast

import httpx
import orjson
import structlog

# Import the official OpenAI library and its specific error types
from openai import APIError as OpenAIError
from openai import AsyncOpenAI

from Blockwright.config import Settings
from Blockwright.metrics import inc_counter, observe_histogram

log = structlog.get_logger()


def normalize_ollama_url(url: str) -> str:
    base = url.rstrip("/")
    # Accept either base (http://host:11434) or explicit chat endpoint (/api/chat)
    if base.endswith("/api/chat"):
        return base
    if base.endswith("/api"):
        return f"{base}/chat"
    return f"{base}/api/chat"


def normalize_openai_url(url: str) -> str:
    base = url.rstrip("/")
    # The SDK appends /chat/completions itself; drop full endpoint paths
    for suffix in ("/chat/completions", "/api/chat", "/api"):
        if base.endswith(suffix):
            base = base[: -len(suffix)]
            break
    if not base.endswith("/v1"):
        base = f"{base}/v1"
    return base


def reply_text(payload: Any) -> str:
    """Pull the reply text out of a chat-completion style payload.

    Accepts a bare string, ``choices[0].message.content``, ``choices[0].text``,
    ``choices[0].delta.content``, ``choices[0].content``, an Ollama
    ``message.content`` or a top-level ``text``.
    """
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        first = choices[0]
        for candidate in (
            (first.get("message") or {}).get("content"),
            first.get("text"),
            (first.get("delta") or {}).get("content"),
            first.get("content"),
        ):
            if isinstance(candidate, str) and candidate:
                return candidate
        return ""
    message = payload.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    text = payload.get("text")
    return text if isinstance(text, str) else ""


class LLMClient:
    """
    An asynchronous client for the text-generation service.

    Two providers are supported, configured via settings:
    1. 'openai': Uses the official `openai` library against any
                 OpenAI-compatible endpoint (GPT4All, llama.cpp server, OpenAI).
    2. 'ollama': Uses a direct `httpx` client against an Ollama instance.

    Errors never escape ``generate_response``; callers get ``None`` instead.
    """

    def __init__(self, settings: Settings):
        self.provider = settings.llm_api_provider
        self.model_name = settings.llm_model_name
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        timeout = settings.llm_timeout_seconds

        if not settings.llm_api_url:
            raise ValueError("LLMClient requires llm_api_url to be set in configuration.")
        self._client: Any

        if self.provider == "ollama":
            self.api_url = normalize_ollama_url(settings.llm_api_url)
            headers = {"Content-Type": "application/json"}
            self._client = httpx.AsyncClient(timeout=timeout, headers=headers)

        elif self.provider == "openai":
            self.api_url = normalize_openai_url(settings.llm_api_url)
            api_key = settings.llm_api_key.get_secret_value() if settings.llm_api_key else None
            self._client = AsyncOpenAI(
                base_url=self.api_url,
                # Local endpoints ignore the key but the SDK insists on one
                api_key=api_key or "not-needed",
                max_retries=2,
                timeout=timeout,
            )
        else:
            raise ValueError(f"Unsupported LLM provider: {self.provider}")

        log.info(
            "llm.client.initialized",
            provider=self.provider,
            model=self.model_name,
            url=self.api_url,
        )

    async def generate_response(
        self,
        messages: list[dict],
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str | None:
        """Return the stripped reply text, or None on any failure."""
        full_prompt: list[dict] = []
        if system_prompt:
            full_prompt.append({"role": "system", "content": system_prompt})
        full_prompt.extend(messages)
        temp = self.temperature if temperature is None else temperature
        prompt_chars = sum(len(str(m.get("content", ""))) for m in full_prompt)

        log.info(
            "llm.call.initiated",
            provider=self.provider,
            model=self.model_name,
            prompt_approx_chars=prompt_chars,
        )
        start = time.perf_counter()
        status = "success"
        try:
            if isinstance(self._client, httpx.AsyncClient):  # Ollama provider
                data = {
                    "model": self.model_name,
                    "messages": full_prompt,
                    "stream": False,
                    "options": {"temperature": temp, "num_predict": self.max_tokens},
                }
                httpx_resp = await self._client.post(self.api_url, content=orjson.dumps(data))
                httpx_resp.raise_for_status()
                content = reply_text(httpx_resp.json())

            else:  # OpenAI provider
                oa_resp = await self._client.chat.completions.create(
                    model=self.model_name,
                    messages=cast(Any, full_prompt),
                    temperature=temp,
                    max_tokens=self.max_tokens,
                )
                content = reply_text(oa_resp.model_dump())

            if not content or not content.strip():
                status = "empty_content"
                log.warning("llm.call.empty", provider=self.provider)
                return None
            return content.strip()

        except OpenAIError as e:
            status = "api_error"
            log.error(
                "llm.call.api_error",
                error=str(e),
                status_code=getattr(e, "status_code", None),
            )
            return None
        except httpx.HTTPError as e:
            status = "request_error"
            log.error("llm.call.request_error", url=self.api_url, error=str(e))
            return None
        except Exception as e:
            status = "processing_error"
            log.error("llm.call.processing_error", error=str(e), provider=self.provider)
            return None
        finally:
            dur_ms = math.trunc((time.perf_counter() - start) * 1000)
            inc_counter(f"llm.call.{status}")
            observe_histogram("llm.call.ms", dur_ms)
            log.info(
                "llm.call.completed",
                provider=self.provider,
                model=self.model_name,
                duration_ms=dur_ms,
                status=status,
            )

    async def close(self):
        """Gracefully close the underlying HTTP client."""
        if not getattr(self, "_client", None):
            return
        try:
            if isinstance(self._client, httpx.AsyncClient):
                await self._client.aclose()
            else:
                await self._client.close()
        finally:
            log.info("llm.client.closed")
