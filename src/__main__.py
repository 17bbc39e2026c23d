"""
Entry point for running judge-bench as a module.

Usage:
    python -m src run
    python -m src check-config
    python -m src quick-test --role target --prompt "What is 2 + 2?"
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
