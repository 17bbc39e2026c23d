"""
Ollama Provider Implementation

Local model inference via the Ollama API, for benchmarking a locally served
target (or judge) model.

Usage:
    provider = OllamaProvider(model="qwen2.5:32b", base_url="http://localhost:11434")
    text = await provider.complete("Explain quantum computing")
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from ollama import AsyncClient, ResponseError

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

DEFAULT_HOST = "http://localhost:11434"


class OllamaProvider(BaseProvider):
    """
    Ollama provider for local inference.

    Connects to an Ollama server (default: http://localhost:11434).
    The api_key argument is accepted for a uniform endpoint config and ignored.
    """

    retryable_exceptions = TRANSIENT_EXCEPTIONS + (httpx.TransportError,)

    def __init__(
        self,
        model: str,
        config: Optional[GenerationConfig] = None,
        timeout: Optional[float] = 120.0,
        retry: Optional[RetryConfig] = None,
        base_url: str = DEFAULT_HOST,
        api_key: str = "",
        client: Optional[AsyncClient] = None,
    ):
        """
        Args:
            model: Ollama model name (e.g., "qwen2.5:32b", "llama3.2:3b").
            config: Sampling overrides.
            timeout: Per-attempt timeout in seconds.
            retry: Retry policy for transient failures.
            base_url: Ollama server URL.
            api_key: Unused.
            client: Pre-built client (tests).
        """
        super().__init__(model, config, timeout, retry)
        self.host = base_url or DEFAULT_HOST
        self._client = client or AsyncClient(host=self.host)

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OLLAMA

    async def _chat(
        self,
        messages: List[Message],
        config: GenerationConfig,
    ) -> GenerationResponse:
        options: Dict[str, Any] = {}
        if config.temperature is not None:
            options["temperature"] = config.temperature
        if config.max_tokens is not None:
            options["num_predict"] = config.max_tokens
        if config.seed is not None:
            options["seed"] = config.seed

        response = await self._client.chat(
            model=self.model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            options=options or None,
            stream=False,
        )

        message = getattr(response, "message", None)
        text = (getattr(message, "content", None) or "") if message is not None else ""

        return GenerationResponse(
            text=text,
            model=self.model,
            provider=self.provider_type,
            metrics=self._extract_metrics(response),
            timestamp=datetime.now(),
        )

    async def health_check(self) -> bool:
        """Check if the Ollama server is reachable."""
        try:
            await self._client.list()
            return True
        except (ResponseError, httpx.HTTPError, ConnectionError) as e:
            logger.warning(f"Ollama health check failed: {e}")
            return False

    def _extract_metrics(self, response: Any) -> GenerationMetrics:
        """Extract token counts and duration from an Ollama response."""
        prompt_tokens = getattr(response, "prompt_eval_count", None) or 0
        completion_tokens = getattr(response, "eval_count", None) or 0
        # Ollama returns durations in nanoseconds
        total_ns = getattr(response, "total_duration", None) or 0

        return GenerationMetrics(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            total_duration_ms=total_ns / 1_000_000,
        )


# Register with factory
ProviderFactory.register("ollama", OllamaProvider)
