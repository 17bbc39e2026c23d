"""
Custom exception hierarchy for judge-bench.

All project-specific exceptions inherit from JudgeBenchError.
"""


class JudgeBenchError(Exception):
    """Base exception for judge-bench."""

    pass


class ConfigError(JudgeBenchError):
    """Invalid or missing configuration."""

    pass


class TemplateNotFoundError(ConfigError):
    """No prompt template registered for the requested name/locale/version."""

    pass


class DatasetError(JudgeBenchError):
    """Dataset file missing or malformed."""

    pass


class ProviderError(JudgeBenchError):
    """A model endpoint call failed after the retry policy was exhausted."""

    def __init__(self, message: str, model: str = "", attempts: int = 0):
        super().__init__(message)
        self.model = model
        self.attempts = attempts


class ScoringError(JudgeBenchError):
    """Judge scores could not be aggregated under the configured policy."""

    pass


class ReportingError(JudgeBenchError):
    """Error writing the benchmark report."""

    pass
