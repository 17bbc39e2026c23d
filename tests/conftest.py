"""
Shared test fixtures for judge-bench.

Provides a scriptable in-process provider, CSV dataset factories and
environment isolation.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest

from src.providers.base import (
    BaseProvider,
    GenerationConfig,
    GenerationMetrics,
    GenerationResponse,
    Message,
    ProviderType,
)
from utils.retry import RetryConfig

Reply = Union[str, Callable[[str], str]]


class StubProvider(BaseProvider):
    """
    Provider that answers from a script instead of the network.

    ``reply`` is either a fixed string or a function of the prompt. ``delay``
    may likewise be a number or a function of the prompt, which lets tests
    make later items finish first. Tracks how many calls overlap.
    """

    def __init__(
        self,
        model: str = "stub-model",
        reply: Reply = "",
        delay: Union[float, Callable[[str], float]] = 0.0,
        fail_on: Optional[Callable[[str], bool]] = None,
        **kwargs,
    ):
        kwargs.setdefault("retry", RetryConfig(max_attempts=1))
        super().__init__(model, **kwargs)
        self.reply = reply
        self.delay = delay
        self.fail_on = fail_on
        self.prompts: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    async def _chat(self, messages: List[Message], config: GenerationConfig) -> GenerationResponse:
        prompt = messages[-1].content
        self.prompts.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delay(prompt) if callable(self.delay) else self.delay
            await asyncio.sleep(delay)
            if self.fail_on is not None and self.fail_on(prompt):
                raise ValueError(f"scripted failure for {prompt!r}")
            text = self.reply(prompt) if callable(self.reply) else self.reply
        finally:
            self.in_flight -= 1

        return GenerationResponse(
            text=text,
            model=self.model,
            provider=self.provider_type,
            metrics=GenerationMetrics(),
            timestamp=datetime.now(),
        )

    async def health_check(self) -> bool:
        return True


def write_csv(path: Path, rows: List[Dict[str, str]], header: str = "input,output,eval_aspect") -> Path:
    """Write a dataset CSV with proper quoting."""
    import csv

    columns = header.split(",")
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(columns)
        for row in rows:
            writer.writerow([row.get(c, "") for c in columns])
    return path


@pytest.fixture
def sample_rows() -> List[Dict[str, str]]:
    """Three synthetic benchmark cases."""
    return [
        {"input": "2+2は？", "output": "4", "eval_aspect": "数値で答えること"},
        {"input": "日本の首都は？", "output": "東京", "eval_aspect": "都市名のみ"},
        {"input": "Say hi", "output": "hi", "eval_aspect": "greeting, one word"},
    ]


@pytest.fixture
def sample_csv(tmp_path: Path, sample_rows: List[Dict[str, str]]) -> Path:
    return write_csv(tmp_path / "test.csv", sample_rows)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Remove benchmark variables from the environment and isolate state."""
    for prefix in ("TARGET", "EVALUATOR"):
        for suffix in (
            "API_ENDPOINT", "API_KEY", "MODEL_NAME", "PROVIDER", "TEMPERATURE", "SEED", "MAX_TOKENS",
        ):
            monkeypatch.delenv(f"{prefix}_{suffix}", raising=False)
    for name in (
        "BENCH_CONCURRENCY",
        "BENCH_TIMEOUT_SECONDS",
        "BENCH_MAX_ATTEMPTS",
        "BENCH_TEMPLATE_LOCALE",
        "BENCH_TEMPLATE_VERSION",
        "BENCH_INVALID_SCORES",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("JUDGE_BENCH_STATE_DIR", str(tmp_path / "state"))
    return tmp_path
