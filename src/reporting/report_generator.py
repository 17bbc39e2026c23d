"""
Benchmark report aggregation and output.

ReportAggregator turns scored records into a BenchmarkReport (mean score plus
per-item detail). ReportGenerator writes the report as JSON, and optionally
renders a Markdown summary with a Jinja2 template.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import numpy as np
from jinja2 import Environment, FileSystemLoader

from utils.exceptions import ReportingError, ScoringError

if TYPE_CHECKING:
    from ..benchmarks.runner import ResultRecord

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


class InvalidScorePolicy(Enum):
    """How unparseable or out-of-range judge replies affect the average."""

    EXCLUDE = "exclude"  # Leave them out of the mean, count them separately
    FAIL = "fail"  # Refuse to produce an average


@dataclass
class BenchmarkReport:
    """Final result of one benchmark run."""

    model_name: str
    average_score: Optional[float]  # None when no valid score exists
    results: List["ResultRecord"] = field(default_factory=list)
    evaluator_model: str = ""
    dataset: Dict[str, Any] = field(default_factory=dict)
    template: str = ""
    scored_count: int = 0
    invalid_count: int = 0
    generated_at: datetime = field(default_factory=datetime.now)
    duration_seconds: float = 0.0

    # Fields that differ between otherwise identical runs
    TIME_VARYING_FIELDS = ("generated_at", "duration_seconds")

    def summary(self) -> str:
        """Generate a text summary of results."""
        average = f"{self.average_score:.2f}" if self.average_score is not None else "no data"
        lines = [
            f"═══ Benchmark Results: {self.model_name} ═══",
            f"Judge: {self.evaluator_model}",
            f"Template: {self.template}",
            f"Duration: {self.duration_seconds:.1f}s",
            "",
            f"Average Score: {average}",
            f"Scored: {self.scored_count}/{len(self.results)}"
            + (f" ({self.invalid_count} invalid)" if self.invalid_count else ""),
        ]
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_name": self.model_name,
            "average_score": self.average_score,
            "results": [r.to_dict() for r in self.results],
            "evaluator_model": self.evaluator_model,
            "dataset": self.dataset,
            "template": self.template,
            "scored_count": self.scored_count,
            "invalid_count": self.invalid_count,
            "generated_at": self.generated_at.isoformat(),
            "duration_seconds": self.duration_seconds,
        }


class ReportAggregator:
    """Computes the mean score and assembles the final report."""

    def __init__(self, policy: InvalidScorePolicy = InvalidScorePolicy.EXCLUDE):
        self.policy = policy

    def aggregate(
        self,
        model_name: str,
        results: Sequence["ResultRecord"],
        **metadata: Any,
    ) -> BenchmarkReport:
        """
        Build a BenchmarkReport from fully scored records.

        Args:
            model_name: Target model name.
            results: Records in dataset order, each already scored.
            **metadata: Extra BenchmarkReport fields (evaluator_model, dataset, ...).

        Raises:
            ScoringError: If a record was never scored, or if an invalid
                score is present under the FAIL policy.
        """
        unscored = [i for i, r in enumerate(results) if r.score is None]
        if unscored:
            raise ScoringError(f"Cannot aggregate: record(s) {unscored} have not been scored")

        valid = [r.score.value for r in results if r.score.is_valid]
        invalid = [i for i, r in enumerate(results) if not r.score.is_valid]

        if invalid:
            if self.policy is InvalidScorePolicy.FAIL:
                raise ScoringError(
                    f"{len(invalid)} judge repl(ies) could not be scored "
                    f"(record(s) {invalid}); rerun or use the 'exclude' policy"
                )
            logger.warning(f"Excluding {len(invalid)} invalid score(s) from the average")

        average = float(np.mean(valid)) if valid else None
        if average is None:
            logger.warning("No valid scores; average_score is undefined")

        return BenchmarkReport(
            model_name=model_name,
            average_score=average,
            results=list(results),
            scored_count=len(valid),
            invalid_count=len(invalid),
            **metadata,
        )


@dataclass
class ReportConfig:
    """Configuration for report output."""

    output_path: Path = Path("results.json")
    markdown_dir: Optional[Path] = None  # None = JSON only


def _sanitize_model_name(model: str) -> str:
    """Convert model name to safe filename (colons/slashes to underscores)."""
    return re.sub(r"[:/\\]", "_", model) or "model"


class ReportGenerator:
    """Writes a BenchmarkReport to disk."""

    def __init__(self, config: Optional[ReportConfig] = None):
        self.config = config or ReportConfig()
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def generate(self, report: BenchmarkReport) -> Path:
        """
        Write the JSON report (overwriting any previous run) and the
        optional Markdown summary.

        Returns:
            Path to the JSON report.

        Raises:
            ReportingError: If report generation fails.
        """
        try:
            json_path = self.config.output_path
            json_path.parent.mkdir(parents=True, exist_ok=True)
            with open(json_path, "w", encoding="utf-8") as f:
                json.dump(report.to_dict(), f, indent=4, ensure_ascii=False)
            logger.info(f"JSON report saved to {json_path}")

            if self.config.markdown_dir is not None:
                self.config.markdown_dir.mkdir(parents=True, exist_ok=True)
                stem = (
                    f"{_sanitize_model_name(report.model_name)}_"
                    f"{report.generated_at.strftime('%Y%m%d_%H%M%S')}"
                )
                md_path = self.config.markdown_dir / f"{stem}.md"
                md_path.write_text(self.render_markdown(report), encoding="utf-8")
                logger.info(f"Markdown report saved to {md_path}")

            return json_path

        except OSError as e:
            raise ReportingError(f"Failed to generate report: {e}") from e

    def render_markdown(self, report: BenchmarkReport) -> str:
        template = self._env.get_template("benchmark_report.md.j2")
        return template.render(**self._build_context(report))

    def _build_context(self, report: BenchmarkReport) -> Dict[str, Any]:
        """Build the Jinja2 template context from a BenchmarkReport."""
        distribution = {score: 0 for score in range(1, 6)}
        for record in report.results:
            if record.score is not None and record.score.is_valid:
                distribution[record.score.value] += 1

        return {
            "model": report.model_name,
            "judge": report.evaluator_model,
            "template": report.template,
            "dataset": report.dataset,
            "timestamp": report.generated_at.strftime("%Y-%m-%d %H:%M:%S"),
            "duration": f"{report.duration_seconds:.1f}",
            "average_score": (
                f"{report.average_score:.2f}" if report.average_score is not None else "N/A"
            ),
            "scored_count": report.scored_count,
            "invalid_count": report.invalid_count,
            "total": len(report.results),
            "distribution": distribution,
            "items": [
                {
                    "index": i + 1,
                    "input": _one_line(r.input),
                    "score": r.score.value if r.score and r.score.is_valid else "—",
                    "status": r.score.status.value if r.score else "unscored",
                }
                for i, r in enumerate(report.results)
            ],
        }


def _one_line(text: str, width: int = 60) -> str:
    """Collapse whitespace and truncate for a table cell."""
    flat = " ".join(text.split()).replace("|", "\\|")
    return flat if len(flat) <= width else flat[: width - 1] + "…"
