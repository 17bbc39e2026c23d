"""
Base Provider Abstraction Layer

Defines the interface that all model endpoint providers implement.
A provider wraps one configured endpoint (base URL, key, model name) and
exposes a single-turn chat completion call.

Usage:
    from src.providers import ProviderFactory

    provider = ProviderFactory.from_endpoint(endpoint_config)
    text = await provider.complete("What is 2+2?")
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple, Type

from utils.exceptions import ConfigError, ProviderError
from utils.retry import TRANSIENT_EXCEPTIONS, RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)


class ProviderType(Enum):
    """Supported model provider types."""

    OPENAI = auto()  # Any OpenAI-compatible chat completions endpoint
    OLLAMA = auto()


@dataclass
class GenerationConfig:
    """Sampling overrides. Unset fields are not sent to the endpoint."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    seed: Optional[int] = None


@dataclass
class GenerationMetrics:
    """Performance metrics from a generation request."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    total_duration_ms: float = 0.0
    attempts: int = 1


@dataclass
class GenerationResponse:
    """Response from a generation request."""

    text: str
    model: str
    provider: ProviderType
    metrics: GenerationMetrics = field(default_factory=GenerationMetrics)
    timestamp: datetime = field(default_factory=datetime.now)
    raw_response: Optional[Dict[str, Any]] = None


@dataclass
class Message:
    """A single message in a conversation."""

    role: str  # "system", "user", "assistant"
    content: str


class BaseProvider(ABC):
    """
    Abstract base class for model providers.

    Subclasses implement:
    - _chat(): one raw chat request, raising on any failure
    - health_check(): connectivity test

    The base class adds the per-attempt timeout, the retry policy and the
    conversion of exhausted failures into ProviderError. Instances hold no
    per-request state beyond counters, so one provider can serve many
    concurrent calls.
    """

    # Exceptions worth another attempt; subclasses extend with SDK types
    retryable_exceptions: Tuple[Type[BaseException], ...] = TRANSIENT_EXCEPTIONS

    def __init__(
        self,
        model: str,
        config: Optional[GenerationConfig] = None,
        timeout: Optional[float] = 120.0,
        retry: Optional[RetryConfig] = None,
    ):
        """
        Args:
            model: Model name/identifier.
            config: Sampling overrides applied to every request.
            timeout: Per-attempt timeout in seconds (None = unbounded).
            retry: Retry policy for transient failures.
        """
        if not model:
            raise ConfigError(f"{type(self).__name__} requires a model name")
        self.model = model
        self.config = config or GenerationConfig()
        self.timeout = timeout
        self.retry = retry or RetryConfig()
        self._request_count = 0
        self._total_tokens = 0

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Return the provider type enum."""
        ...

    @abstractmethod
    async def _chat(
        self,
        messages: List[Message],
        config: GenerationConfig,
    ) -> GenerationResponse:
        """Send one chat request. Must raise on transport or API errors."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the endpoint is reachable and working.

        Returns:
            True if healthy, False otherwise.
        """
        ...

    async def generate_chat(
        self,
        messages: List[Message],
        config: Optional[GenerationConfig] = None,
    ) -> GenerationResponse:
        """
        Send a conversation with timeout and retry.

        Raises:
            ProviderError: If the call still fails after the retry policy.
        """
        cfg = config or self.config
        attempts = 0

        def _count_retry(exc: BaseException, attempt: int) -> None:
            nonlocal attempts
            attempts = attempt

        start = time.perf_counter()
        try:
            response = await retry_with_backoff(
                self._chat,
                messages,
                cfg,
                config=self.retry,
                timeout=self.timeout,
                retryable_exceptions=self.retryable_exceptions,
                on_retry=_count_retry,
            )
        except Exception as e:
            logger.error(f"{self.provider_type.name} request to {self.model} failed: {e}")
            raise ProviderError(
                f"{self.provider_type.name} request to model '{self.model}' failed: "
                f"{type(e).__name__}: {e}",
                model=self.model,
                attempts=attempts + 1,
            ) from e

        response.metrics.attempts = attempts + 1
        if not response.metrics.total_duration_ms:
            response.metrics.total_duration_ms = (time.perf_counter() - start) * 1000
        self._record_request(response)
        return response

    async def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
    ) -> GenerationResponse:
        """Send a single user-role message."""
        return await self.generate_chat([Message(role="user", content=prompt)], config)

    async def complete(self, prompt: str) -> str:
        """Single-turn completion: the first choice's text, or "" if none."""
        response = await self.generate(prompt)
        return response.text

    def get_stats(self) -> Dict[str, Any]:
        """Get usage statistics for this provider instance."""
        return {
            "model": self.model,
            "provider": self.provider_type.name,
            "request_count": self._request_count,
            "total_tokens": self._total_tokens,
        }

    def _record_request(self, response: GenerationResponse) -> None:
        """Record metrics from a request."""
        self._request_count += 1
        self._total_tokens += response.metrics.total_tokens


class ProviderFactory:
    """
    Factory for creating provider instances.

    Usage:
        provider = ProviderFactory.create("openai", model="gpt-4o", api_key="...")
    """

    _registry: Dict[str, type] = {}

    @classmethod
    def register(cls, name: str, provider_class: type) -> None:
        """Register a provider class."""
        cls._registry[name.lower()] = provider_class

    @classmethod
    def create(
        cls,
        provider_name: str,
        model: str,
        config: Optional[GenerationConfig] = None,
        **kwargs: Any,
    ) -> BaseProvider:
        """
        Create a provider instance.

        Args:
            provider_name: Provider name (openai, ollama).
            model: Model name/identifier.
            config: Sampling overrides.
            **kwargs: Provider-specific arguments.

        Returns:
            Configured provider instance.

        Raises:
            ConfigError: If provider is not registered.
        """
        provider_class = cls._registry.get(provider_name.lower())
        if provider_class is None:
            available = ", ".join(sorted(cls._registry.keys()))
            raise ConfigError(
                f"Unknown provider '{provider_name}'. Available: {available}"
            )
        return provider_class(model=model, config=config, **kwargs)

    @classmethod
    def from_endpoint(
        cls,
        endpoint: Any,  # ModelEndpointConfig
        timeout: Optional[float] = 120.0,
        retry: Optional[RetryConfig] = None,
        config: Optional[GenerationConfig] = None,
    ) -> BaseProvider:
        """
        Create the provider described by a ModelEndpointConfig.

        Sampling settings on the endpoint become the provider's default
        GenerationConfig unless ``config`` is given explicitly.
        """
        if config is None:
            config = GenerationConfig(
                temperature=endpoint.temperature,
                max_tokens=endpoint.max_tokens,
                seed=endpoint.seed,
            )
        return cls.create(
            endpoint.provider,
            model=endpoint.model_name,
            config=config,
            base_url=endpoint.api_endpoint,
            api_key=endpoint.api_key,
            timeout=timeout,
            retry=retry,
        )

    @classmethod
    def available_providers(cls) -> List[str]:
        """List registered provider names."""
        return sorted(cls._registry.keys())
