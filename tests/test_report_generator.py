"""Tests for score aggregation and report output."""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytest

from src.benchmarks.runner import ResultRecord
from src.reporting.report_generator import (
    BenchmarkReport,
    InvalidScorePolicy,
    ReportAggregator,
    ReportConfig,
    ReportGenerator,
    _one_line,
    _sanitize_model_name,
)
from src.scoring import ScoreResult, ScoreStatus, parse_score
from utils.exceptions import ReportingError, ScoringError

# ── Fixtures ────────────────────────────────────────────────────────────────


def _record(reply: Optional[str], index: int = 0) -> ResultRecord:
    record = ResultRecord(f"質問{index}", f"answer {index}", f"ref {index}", "rubric")
    if reply is not None:
        record.assign_score(parse_score(reply))
    return record


def _report(replies=("4", "5", "3"), **kwargs) -> BenchmarkReport:
    records = [_record(r, i) for i, r in enumerate(replies)]
    report = ReportAggregator().aggregate(
        "qwen2.5:7b",
        records,
        evaluator_model="gpt-4o",
        dataset={"name": "test", "size": len(records), "content_hash": "abc123"},
        template="judge/ja/v1",
        **kwargs,
    )
    report.generated_at = datetime(2026, 2, 5, 14, 30, 0)
    return report


# ── Aggregation ─────────────────────────────────────────────────────────────


class TestReportAggregator:
    def test_mean_of_scores(self) -> None:
        report = _report(("4", "5", "3"))

        assert report.average_score == 4.0
        assert report.scored_count == 3
        assert report.invalid_count == 0

    def test_fractional_mean(self) -> None:
        assert _report(("4", "5")).average_score == 4.5

    def test_empty_results_have_no_average(self) -> None:
        report = ReportAggregator().aggregate("m", [])

        assert report.average_score is None
        assert report.results == []

    def test_exclude_policy_skips_invalid(self) -> None:
        report = _report(("4", "abc", "0", "2"))

        assert report.average_score == 3.0
        assert report.scored_count == 2
        assert report.invalid_count == 2

    def test_all_invalid_has_no_average(self) -> None:
        report = _report(("", "?"))

        assert report.average_score is None
        assert report.invalid_count == 2

    def test_fail_policy_raises_on_invalid(self) -> None:
        records = [_record("4", 0), _record("six", 1)]

        with pytest.raises(ScoringError, match=r"\[1\]"):
            ReportAggregator(InvalidScorePolicy.FAIL).aggregate("m", records)

    def test_fail_policy_accepts_all_valid(self) -> None:
        records = [_record("4", 0), _record("2", 1)]

        report = ReportAggregator(InvalidScorePolicy.FAIL).aggregate("m", records)

        assert report.average_score == 3.0

    def test_unscored_record_raises(self) -> None:
        with pytest.raises(ScoringError, match="not been scored"):
            ReportAggregator().aggregate("m", [_record("4", 0), _record(None, 1)])

    def test_results_keep_order(self) -> None:
        report = _report(("1", "2", "3", "4", "5"))

        assert [r.input for r in report.results] == [f"質問{i}" for i in range(5)]


class TestBenchmarkReport:
    def test_to_dict_leads_with_core_fields(self) -> None:
        data = _report().to_dict()

        assert list(data)[:3] == ["model_name", "average_score", "results"]
        assert data["results"][0] == {
            "input": "質問0",
            "generated_output": "answer 0",
            "reference_output": "ref 0",
            "eval_aspect": "rubric",
            "score": 4,
            "score_status": "valid",
            "judge_reply": "4",
        }
        assert data["generated_at"] == "2026-02-05T14:30:00"

    def test_time_varying_fields(self) -> None:
        assert BenchmarkReport.TIME_VARYING_FIELDS == ("generated_at", "duration_seconds")

    def test_summary(self) -> None:
        summary = _report(("4", "x")).summary()

        assert "qwen2.5:7b" in summary
        assert "Average Score: 4.00" in summary
        assert "1 invalid" in summary

    def test_summary_without_scores(self) -> None:
        assert "no data" in ReportAggregator().aggregate("m", []).summary()


# ── Helpers ─────────────────────────────────────────────────────────────────


class TestHelpers:
    def test_sanitize_model_name(self) -> None:
        assert _sanitize_model_name("qwen2.5:32b") == "qwen2.5_32b"
        assert _sanitize_model_name("org/model:tag") == "org_model_tag"
        assert _sanitize_model_name("llama-3.2") == "llama-3.2"

    def test_one_line(self) -> None:
        assert _one_line("a\n  b | c") == "a b \\| c"
        assert _one_line("x" * 100, width=10) == "x" * 9 + "…"


# ── Output ──────────────────────────────────────────────────────────────────


class TestReportGenerator:
    def test_writes_json_report(self, tmp_path: Path) -> None:
        output = tmp_path / "results.json"

        path = ReportGenerator(ReportConfig(output_path=output)).generate(_report())

        assert path == output
        text = output.read_text(encoding="utf-8")
        assert '    "model_name": "qwen2.5:7b"' in text
        assert "質問0" in text  # non-ASCII not escaped
        data = json.loads(text)
        assert data["average_score"] == 4.0
        assert len(data["results"]) == 3

    def test_overwrites_previous_output(self, tmp_path: Path) -> None:
        output = tmp_path / "results.json"
        output.write_text("stale", encoding="utf-8")

        ReportGenerator(ReportConfig(output_path=output)).generate(_report())

        assert json.loads(output.read_text(encoding="utf-8"))["model_name"] == "qwen2.5:7b"

    def test_null_average_serialized(self, tmp_path: Path) -> None:
        output = tmp_path / "results.json"
        report = ReportAggregator().aggregate("m", [])

        ReportGenerator(ReportConfig(output_path=output)).generate(report)

        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["average_score"] is None
        assert data["results"] == []

    def test_no_markdown_by_default(self, tmp_path: Path) -> None:
        ReportGenerator(ReportConfig(output_path=tmp_path / "r.json")).generate(_report())

        assert list(tmp_path.glob("*.md")) == []

    def test_writes_markdown_report(self, tmp_path: Path) -> None:
        config = ReportConfig(output_path=tmp_path / "r.json", markdown_dir=tmp_path / "md")

        ReportGenerator(config).generate(_report(("4", "5", "bad")))

        md_path = tmp_path / "md" / "qwen2.5_7b_20260205_143000.md"
        content = md_path.read_text(encoding="utf-8")
        assert "# Benchmark Report: qwen2.5:7b" in content
        assert "**Average score: 4.50**" in content
        assert "1 invalid judge replies excluded" in content
        assert "| 3 | 質問2 | — | unparseable |" in content

    def test_markdown_score_distribution(self) -> None:
        content = ReportGenerator().render_markdown(_report(("5", "5", "1")))

        assert "| 5 | 2 |" in content
        assert "| 1 | 1 |" in content
        assert "| 3 | 0 |" in content

    def test_write_failure_raises_reporting_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        config = ReportConfig(output_path=blocker / "results.json")

        with pytest.raises(ReportingError):
            ReportGenerator(config).generate(_report())


def test_invalid_score_result_helpers() -> None:
    result = ScoreResult(ScoreStatus.OUT_OF_RANGE, "9")
    assert not result.is_valid
