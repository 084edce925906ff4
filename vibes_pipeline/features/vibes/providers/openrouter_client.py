"""
OpenRouter client for vision-capable chat completions.

OpenRouter speaks the OpenAI wire format, so this wraps ``AsyncOpenAI`` with
the SDK's own retries disabled and applies the backfill retry policy itself:
429 honours Retry-After, 5xx and network failures back off exponentially, a
timeout fails immediately and anything else is not retried.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from vibes_pipeline.config import settings
from vibes_pipeline.features.vibes.domain.models import RawResponse, UsageInfo
from vibes_pipeline.features.vibes.errors import (
    ConfigurationError,
    ProviderError,
    ProviderTimeoutError,
)
from vibes_pipeline.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_VIBES_MODEL = "qwen/qwen3-vl-8b-instruct"
FALLBACK_PRICING_MODEL = "openai/gpt-4o-mini"

# USD per 1M tokens
MODEL_PRICING: dict[str, dict[str, float]] = {
    "qwen/qwen3-vl-8b-instruct": {"input": 0.064, "output": 0.4},
    "qwen/qwen2.5-vl-32b-instruct": {"input": 0.2, "output": 0.6},
    "meta-llama/llama-3.2-11b-vision-instruct": {"input": 0.05, "output": 0.05},
    "google/gemma-3-27b-it:free": {"input": 0.0, "output": 0.0},
    "openai/gpt-4o-mini": {"input": 0.15, "output": 0.6},
    "openai/gpt-4o": {"input": 2.5, "output": 10.0},
    "anthropic/claude-3-haiku": {"input": 0.25, "output": 1.25},
    "anthropic/claude-3-sonnet": {"input": 3.0, "output": 15.0},
}

JSON_OBJECT = {"type": "json_object"}

Sleep = Callable[[float], Awaitable[None]]


def calculate_usage(
    prompt_tokens: int, completion_tokens: int, total_tokens: int | None, model: str
) -> UsageInfo:
    """Price token counts with the model's rate, or the fallback rate if unlisted."""
    pricing = MODEL_PRICING.get(model) or MODEL_PRICING[FALLBACK_PRICING_MODEL]
    cost = (prompt_tokens / 1_000_000) * pricing["input"] + (
        completion_tokens / 1_000_000
    ) * pricing["output"]
    return UsageInfo(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens if total_tokens is not None else prompt_tokens + completion_tokens,
        estimated_cost_usd=cost,
    )


def create_vision_message(
    prompt: str, image_urls: list[str], detail: str = "low"
) -> dict[str, Any]:
    """User message carrying the prompt text followed by one part per image."""
    content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
    for url in image_urls:
        content.append({"type": "image_url", "image_url": {"url": url, "detail": detail}})
    return {"role": "user", "content": content}


class OpenRouterClient:
    """Async chat-completions client with the backfill retry policy."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_after_default: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        api_key = api_key or settings.OPENROUTER_API_KEY
        if not api_key:
            raise ConfigurationError("OPENROUTER_API_KEY not configured in settings")

        self.model = model or settings.OPENROUTER_MODEL or DEFAULT_VIBES_MODEL
        self.timeout = timeout if timeout is not None else settings.OPENROUTER_TIMEOUT_SECONDS
        self.max_retries = (
            max_retries if max_retries is not None else settings.OPENROUTER_MAX_RETRIES
        )
        self.retry_after_default = (
            retry_after_default
            if retry_after_default is not None
            else settings.OPENROUTER_RETRY_AFTER_DEFAULT_SECONDS
        )
        self._sleep = sleep

        headers = {"X-Title": settings.OPENROUTER_APP_TITLE}
        if settings.OPENROUTER_APP_URL:
            headers["HTTP-Referer"] = settings.OPENROUTER_APP_URL

        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or settings.OPENROUTER_BASE_URL,
            timeout=self.timeout,
            max_retries=0,
            default_headers=headers,
            http_client=http_client,
        )

        logger.info(
            "OpenRouter client initialized",
            model=self.model,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )

    async def close(self) -> None:
        await self.client.close()

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        response_format: dict[str, str] | None = JSON_OBJECT,
        model: str | None = None,
    ) -> tuple[RawResponse, UsageInfo]:
        """
        Send one chat completion, retrying transient failures.

        Returns:
            The response payload and the usage billed for the successful call.
            Rejected attempts (429, 5xx) are not billed and add no usage.

        Raises:
            ProviderTimeoutError: request exceeded the timeout (never retried)
            ProviderError: non-retryable status, or retries exhausted
        """
        model = model or self.model
        request: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            request["response_format"] = response_format

        attempt = 0
        while True:
            started = time.perf_counter()
            try:
                response = await self.client.chat.completions.create(**request)

            except openai.RateLimitError as e:
                if attempt >= self.max_retries:
                    raise ProviderError(
                        f"Rate limited after {attempt + 1} attempts", status=429, retryable=True
                    ) from e
                wait_time = self._retry_after(e.response)
                logger.warning(
                    "OpenRouter rate limited, retrying",
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    wait_time=wait_time,
                )

            except openai.APITimeoutError as e:
                logger.warning("OpenRouter request timed out", model=model, timeout=self.timeout)
                raise ProviderTimeoutError() from e

            except openai.APIConnectionError as e:
                if attempt >= self.max_retries:
                    raise ProviderError(f"Request failed: {e}", retryable=True) from e
                wait_time = float(2**attempt)
                logger.warning(
                    "OpenRouter network error, retrying",
                    attempt=attempt + 1,
                    wait_time=wait_time,
                    error=str(e),
                )

            except openai.APIStatusError as e:
                status = e.status_code
                if status < 500:
                    logger.error("OpenRouter client error (not retrying)", status=status)
                    raise ProviderError(
                        f"OpenRouter API error: {status} - {e.message}", status=status
                    ) from e
                if attempt >= self.max_retries:
                    raise ProviderError(
                        f"OpenRouter API error: {status} after {attempt + 1} attempts",
                        status=status,
                        retryable=True,
                    ) from e
                wait_time = float(2**attempt)
                logger.warning(
                    "OpenRouter server error, retrying",
                    status=status,
                    attempt=attempt + 1,
                    wait_time=wait_time,
                )

            else:
                return self._finish(response, model, started)

            await self._sleep(wait_time)
            attempt += 1

    def _retry_after(self, response: httpx.Response | None) -> float:
        raw = response.headers.get("retry-after") if response is not None else None
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return self.retry_after_default
        return value if value >= 0 else self.retry_after_default

    def _finish(self, response, model: str, started: float) -> tuple[RawResponse, UsageInfo]:
        resolved_model = getattr(response, "model", None) or model
        raw_usage = response.usage
        usage = calculate_usage(
            raw_usage.prompt_tokens if raw_usage else 0,
            raw_usage.completion_tokens if raw_usage else 0,
            raw_usage.total_tokens if raw_usage else 0,
            model,
        )

        choice = response.choices[0] if response.choices else None
        raw = RawResponse(
            content=choice.message.content if choice else None,
            model=resolved_model,
            finish_reason=choice.finish_reason if choice else None,
        )

        logger.debug(
            "OpenRouter completion",
            model=resolved_model,
            total_tokens=usage.total_tokens,
            cost_usd=round(usage.estimated_cost_usd, 6),
            latency_ms=int((time.perf_counter() - started) * 1000),
        )
        return raw, usage
