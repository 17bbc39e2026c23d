"""
Benchmark Run Configuration

Explicit configuration for one benchmark run, resolved once at process entry
from environment variables (optionally overridden by a YAML run file) and
passed into constructors. Nothing below reads the environment on its own.

Environment:
    TARGET_API_ENDPOINT / TARGET_API_KEY / TARGET_MODEL_NAME / TARGET_PROVIDER
    EVALUATOR_API_ENDPOINT / EVALUATOR_API_KEY / EVALUATOR_MODEL_NAME / EVALUATOR_PROVIDER
    {TARGET,EVALUATOR}_TEMPERATURE / _SEED / _MAX_TOKENS (sampling, unset = endpoint default)
    BENCH_CONCURRENCY, BENCH_TIMEOUT_SECONDS, BENCH_MAX_ATTEMPTS,
    BENCH_TEMPLATE_LOCALE, BENCH_TEMPLATE_VERSION, BENCH_INVALID_SCORES

YAML run file (every key optional):
    target: {api_endpoint: ..., api_key: ..., model_name: ..., provider: openai}
    evaluator: {model_name: gpt-4o, temperature: 0, seed: 42}
    run: {concurrency: 5, timeout_seconds: 120, max_attempts: 3, limit: 10,
          dataset: test.csv, output: results.json}
    prompt: {locale: ja, version: v1}
    invalid_scores: exclude
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import yaml

from utils.exceptions import ConfigError
from utils.retry import RetryConfig

from ..prompts import DEFAULT_LOCALE, DEFAULT_VERSION
from ..providers import ProviderFactory
from ..reporting.report_generator import InvalidScorePolicy

logger = logging.getLogger(__name__)

DEFAULT_EVALUATOR_ENDPOINT = "https://api.openai.com/v1"
DEFAULT_EVALUATOR_MODEL = "gpt-4o"
DEFAULT_PROVIDER = "openai"
DEFAULT_CONCURRENCY = 5
DEFAULT_TIMEOUT_SECONDS = 120.0

# Characters of a secret shown in diagnostics
KEY_PREVIEW_CHARS = 10


def mask_secret(secret: str, visible: int = KEY_PREVIEW_CHARS) -> str:
    """Preview of a secret: the first few characters followed by '...'."""
    if not secret:
        return "(not set)"
    return f"{secret[:visible]}..."


def _parse_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _parse_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _parse_timeout(name: str, value: Any) -> Optional[float]:
    """Per-attempt timeout; empty, zero or negative means no timeout."""
    if value is None or value == "":
        return None
    timeout = _parse_float(name, value)
    return timeout if timeout > 0 else None


def _parse_optional(name: str, value: Any, parse: Callable[[str, Any], Any]) -> Any:
    if value is None or value == "":
        return None
    return parse(name, value)


# Typed endpoint fields; everything else is a string
_SAMPLING_PARSERS: Dict[str, Callable[[str, Any], Any]] = {
    "temperature": _parse_float,
    "seed": _parse_int,
    "max_tokens": _parse_int,
}


def _section(data: Mapping[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"{name} must be a mapping, got {type(section).__name__}")
    return section


@dataclass(frozen=True)
class ModelEndpointConfig:
    """One callable model: where it lives, how to authenticate, what to ask for."""

    api_endpoint: str
    api_key: str = field(default="", repr=False)
    model_name: str = ""
    provider: str = DEFAULT_PROVIDER
    # Sampling; None leaves the endpoint's default in place
    temperature: Optional[float] = None
    seed: Optional[int] = None
    max_tokens: Optional[int] = None

    def masked_key(self) -> str:
        return mask_secret(self.api_key)

    def to_dict(self) -> Dict[str, Any]:
        """Diagnostic view; the key is masked."""
        return {
            "api_endpoint": self.api_endpoint,
            "api_key": self.masked_key(),
            "model_name": self.model_name,
            "provider": self.provider,
            "temperature": self.temperature,
            "seed": self.seed,
            "max_tokens": self.max_tokens,
        }

    def with_overrides(self, role: str, section: Dict[str, Any]) -> "ModelEndpointConfig":
        """Copy with values from a run-file section applied."""
        known = {f.name for f in dataclasses.fields(self)}
        unknown = set(section) - known
        if unknown:
            raise ConfigError(f"Unknown {role} setting(s): {', '.join(sorted(unknown))}")

        changes: Dict[str, Any] = {}
        for key, value in section.items():
            parse = _SAMPLING_PARSERS.get(key)
            if parse is None:
                changes[key] = str(value)
            else:
                changes[key] = _parse_optional(f"{role}.{key}", value, parse)
        if "provider" in changes:
            changes["provider"] = changes["provider"].lower()
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(
        cls,
        prefix: str,
        environ: Mapping[str, str],
        default_endpoint: str = "",
        default_model: str = "",
    ) -> "ModelEndpointConfig":
        sampling = {}
        for key, parse in _SAMPLING_PARSERS.items():
            name = f"{prefix}_{key.upper()}"
            sampling[key] = _parse_optional(name, environ.get(name), parse)
        return cls(
            api_endpoint=environ.get(f"{prefix}_API_ENDPOINT", default_endpoint),
            api_key=environ.get(f"{prefix}_API_KEY", ""),
            model_name=environ.get(f"{prefix}_MODEL_NAME", default_model),
            provider=environ.get(f"{prefix}_PROVIDER", DEFAULT_PROVIDER).lower(),
            **sampling,
        )


def _with_max_attempts(retry: RetryConfig, name: str, value: Any) -> RetryConfig:
    try:
        return dataclasses.replace(retry, max_attempts=_parse_int(name, value))
    except ValueError as e:
        raise ConfigError(f"{name}: {e}") from None


def _parse_policy(value: Any) -> InvalidScorePolicy:
    try:
        return InvalidScorePolicy(str(value).lower())
    except ValueError:
        choices = ", ".join(p.value for p in InvalidScorePolicy)
        raise ConfigError(f"invalid_scores must be one of {choices}, got {value!r}") from None


@dataclass(frozen=True)
class BenchConfig:
    """Complete configuration for one benchmark run."""

    target: ModelEndpointConfig
    evaluator: ModelEndpointConfig
    concurrency: int = DEFAULT_CONCURRENCY
    timeout_seconds: Optional[float] = DEFAULT_TIMEOUT_SECONDS  # per attempt
    retry: RetryConfig = field(default_factory=RetryConfig)
    template_locale: str = DEFAULT_LOCALE
    template_version: str = DEFAULT_VERSION
    invalid_score_policy: InvalidScorePolicy = InvalidScorePolicy.EXCLUDE
    dataset_path: Path = Path("test.csv")
    output_path: Path = Path("results.json")
    limit: Optional[int] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BenchConfig":
        """Build a config from environment variables (os.environ by default)."""
        env = os.environ if environ is None else environ

        target = ModelEndpointConfig.from_env("TARGET", env)
        evaluator = ModelEndpointConfig.from_env(
            "EVALUATOR",
            env,
            default_endpoint=DEFAULT_EVALUATOR_ENDPOINT,
            default_model=DEFAULT_EVALUATOR_MODEL,
        )

        retry = RetryConfig()
        if "BENCH_MAX_ATTEMPTS" in env:
            retry = _with_max_attempts(retry, "BENCH_MAX_ATTEMPTS", env["BENCH_MAX_ATTEMPTS"])

        timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS
        if "BENCH_TIMEOUT_SECONDS" in env:
            timeout = _parse_timeout("BENCH_TIMEOUT_SECONDS", env["BENCH_TIMEOUT_SECONDS"])

        return cls(
            target=target,
            evaluator=evaluator,
            concurrency=_parse_int(
                "BENCH_CONCURRENCY", env.get("BENCH_CONCURRENCY", DEFAULT_CONCURRENCY)
            ),
            timeout_seconds=timeout,
            retry=retry,
            template_locale=env.get("BENCH_TEMPLATE_LOCALE", DEFAULT_LOCALE),
            template_version=env.get("BENCH_TEMPLATE_VERSION", DEFAULT_VERSION),
            invalid_score_policy=_parse_policy(
                env.get("BENCH_INVALID_SCORES", InvalidScorePolicy.EXCLUDE.value)
            ),
        )

    @classmethod
    def from_yaml(
        cls,
        path: Path,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "BenchConfig":
        """Environment config with a YAML run file layered on top."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        return cls.from_env(environ).with_overrides(data)

    def with_overrides(self, data: Dict[str, Any]) -> "BenchConfig":
        """Return a copy with values from a run-file mapping applied."""
        changes: Dict[str, Any] = {}

        for role in ("target", "evaluator"):
            section = _section(data, role)
            if section:
                changes[role] = getattr(self, role).with_overrides(role, section)

        run = _section(data, "run")
        if "concurrency" in run:
            changes["concurrency"] = _parse_int("run.concurrency", run["concurrency"])
        if "timeout_seconds" in run:
            changes["timeout_seconds"] = _parse_timeout("run.timeout_seconds", run["timeout_seconds"])
        if "max_attempts" in run:
            changes["retry"] = _with_max_attempts(self.retry, "run.max_attempts", run["max_attempts"])
        if "limit" in run:
            limit = run["limit"]
            changes["limit"] = _parse_int("run.limit", limit) if limit is not None else None
        if "dataset" in run:
            changes["dataset_path"] = Path(run["dataset"])
        if "output" in run:
            changes["output_path"] = Path(run["output"])

        prompt = _section(data, "prompt")
        if "locale" in prompt:
            changes["template_locale"] = str(prompt["locale"])
        if "version" in prompt:
            changes["template_version"] = str(prompt["version"])

        if "invalid_scores" in data:
            changes["invalid_score_policy"] = _parse_policy(data["invalid_scores"])

        return dataclasses.replace(self, **changes)

    def validate(self) -> None:
        """
        Check the settings a run cannot do without.

        Raises:
            ConfigError: Listing every problem found.
        """
        problems = []
        if not self.target.api_endpoint:
            problems.append("TARGET_API_ENDPOINT is not set")
        if not self.target.model_name:
            problems.append("TARGET_MODEL_NAME is not set")
        if not self.evaluator.api_endpoint:
            problems.append("EVALUATOR_API_ENDPOINT is empty")
        if not self.evaluator.model_name:
            problems.append("EVALUATOR_MODEL_NAME is empty")
        if self.concurrency < 1:
            problems.append(f"concurrency must be >= 1, got {self.concurrency}")
        if self.limit is not None and self.limit < 0:
            problems.append(f"limit must be non-negative, got {self.limit}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            problems.append(f"timeout_seconds must be positive or unset, got {self.timeout_seconds}")

        available = ProviderFactory.available_providers()
        for role in ("target", "evaluator"):
            endpoint: ModelEndpointConfig = getattr(self, role)
            if endpoint.provider not in available:
                problems.append(
                    f"{role} provider '{endpoint.provider}' is not one of {', '.join(available)}"
                )
            if endpoint.temperature is not None and endpoint.temperature < 0:
                problems.append(f"{role} temperature must be >= 0, got {endpoint.temperature}")
            if endpoint.max_tokens is not None and endpoint.max_tokens < 1:
                problems.append(f"{role} max_tokens must be >= 1, got {endpoint.max_tokens}")

        if problems:
            raise ConfigError("Invalid configuration: " + "; ".join(problems))

    def to_dict(self) -> Dict[str, Any]:
        """Diagnostic view with masked keys."""
        return {
            "target": self.target.to_dict(),
            "evaluator": self.evaluator.to_dict(),
            "concurrency": self.concurrency,
            "timeout_seconds": self.timeout_seconds,
            "max_attempts": self.retry.max_attempts,
            "template": f"judge/{self.template_locale}/{self.template_version}",
            "invalid_score_policy": self.invalid_score_policy.value,
            "dataset_path": str(self.dataset_path),
            "output_path": str(self.output_path),
            "limit": self.limit,
        }
