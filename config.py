"""
Centralized configuration for judge-bench.

Loads environment variables from .env and provides validated paths and settings.
Model endpoint settings are resolved into an explicit BenchConfig by
src.benchmarks.config; this module only holds process-wide settings.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# -- Paths -------------------------------------------------------------------


STATE_DIR = Path(os.getenv("JUDGE_BENCH_STATE_DIR", str(Path.home() / ".judge_bench")))
LOG_DIR = STATE_DIR / "logs"

# -- Settings -----------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DEBUG = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")


def validate_config() -> None:
    """Validate that critical paths exist or can be created."""
    for path_var in [STATE_DIR, LOG_DIR]:
        if not path_var.exists():
            try:
                path_var.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                print(f"Warning: Could not create {path_var}: {e}")
