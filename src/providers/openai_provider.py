"""
OpenAI-compatible Provider Implementation

Chat completions against any endpoint that speaks the OpenAI API
(OpenAI itself, Azure-style gateways, vLLM, LM Studio, OpenRouter, ...).

Usage:
    provider = OpenAIProvider(
        model="gpt-4o",
        base_url="https://api.openai.com/v1",
        api_key="sk-...",
    )
    text = await provider.complete("Explain quantum computing")
"""

import logging
from datetime import datetime
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from utils.retry import TRANSIENT_EXCEPTIONS, RetryConfig

from .base import (
    BaseProvider,
    GenerationConfig,
    GenerationMetrics,
    GenerationResponse,
    Message,
    ProviderFactory,
    ProviderType,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseProvider):
    """
    Provider for OpenAI-compatible chat completion endpoints.

    The SDK's own retries are disabled; BaseProvider applies the
    configured retry policy instead.
    """

    retryable_exceptions = TRANSIENT_EXCEPTIONS + (
        openai.APIConnectionError,  # includes APITimeoutError
        openai.RateLimitError,
        openai.InternalServerError,
    )

    def __init__(
        self,
        model: str,
        config: Optional[GenerationConfig] = None,
        timeout: Optional[float] = 120.0,
        retry: Optional[RetryConfig] = None,
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "",
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Args:
            model: Model name sent with every request.
            config: Sampling overrides.
            timeout: Per-attempt timeout in seconds.
            retry: Retry policy for transient failures.
            base_url: API base URL.
            api_key: API key. Local servers usually accept any value.
            client: Pre-built client (tests).
        """
        super().__init__(model, config, timeout, retry)
        self.base_url = base_url
        # The SDK refuses an empty key; keyless local servers accept a placeholder
        self._client = client or AsyncOpenAI(
            api_key=api_key or "EMPTY",
            base_url=base_url or None,
            max_retries=0,
        )

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    async def _chat(
        self,
        messages: List[Message],
        config: GenerationConfig,
    ) -> GenerationResponse:
        kwargs = {}
        if config.temperature is not None:
            kwargs["temperature"] = config.temperature
        if config.max_tokens is not None:
            kwargs["max_tokens"] = config.max_tokens
        if config.seed is not None:
            kwargs["seed"] = config.seed

        logger.debug(f"Calling chat.completions.create with model={self.model}")
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            **kwargs,
        )

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
        completion_tokens = getattr(usage, "completion_tokens", 0) or 0

        return GenerationResponse(
            text=text,
            model=self.model,
            provider=self.provider_type,
            metrics=GenerationMetrics(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            timestamp=datetime.now(),
        )

    async def health_check(self) -> bool:
        """Check if the endpoint answers a model listing."""
        try:
            await self._client.models.list()
            return True
        except openai.OpenAIError as e:
            logger.warning(f"OpenAI-compatible health check failed for {self.base_url}: {e}")
            return False


# Register with factory
ProviderFactory.register("openai", OpenAIProvider)
