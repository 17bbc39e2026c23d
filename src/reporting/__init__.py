"""
Benchmark reporting module.

Aggregates scored records into a report and writes it as JSON, with an
optional Markdown summary.
"""

from .report_generator import (
    BenchmarkReport,
    InvalidScorePolicy,
    ReportAggregator,
    ReportConfig,
    ReportGenerator,
)

__all__ = [
    "BenchmarkReport",
    "InvalidScorePolicy",
    "ReportAggregator",
    "ReportConfig",
    "ReportGenerator",
]
