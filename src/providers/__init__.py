"""
Model Provider Abstraction Layer

Unified single-turn chat interface over model endpoints. The benchmark
uses two instances: one for the target model, one for the evaluator.

Usage:
    from src.providers import OpenAIProvider, ProviderFactory

    # Direct instantiation
    provider = OpenAIProvider(model="gpt-4o", api_key="sk-...")
    text = await provider.complete("What is 2+2?")

    # Via factory
    provider = ProviderFactory.create("ollama", model="qwen2.5:32b")
"""

from .base import (
    BaseProvider,
    GenerationConfig,
    GenerationMetrics,
    GenerationResponse,
    Message,
    ProviderFactory,
    ProviderType,
)
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = [
    # Base classes and types
    "BaseProvider",
    "GenerationConfig",
    "GenerationMetrics",
    "GenerationResponse",
    "Message",
    "ProviderFactory",
    "ProviderType",
    # Providers
    "OpenAIProvider",
    "OllamaProvider",
]
