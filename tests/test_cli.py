"""Tests for the command-line interface."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import StubProvider
from src.cli import build_parser, load_bench_config, main
from src.providers import ProviderFactory
from src.reporting import InvalidScorePolicy


@pytest.fixture(autouse=True)
def no_log_files():
    with patch("src.cli.setup_logging") as mock_setup, patch("src.cli.settings.validate_config"):
        yield mock_setup


@pytest.fixture
def target_env(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("TARGET_API_ENDPOINT", "http://localhost:8000/v1")
    monkeypatch.setenv("TARGET_MODEL_NAME", "local-model")
    monkeypatch.setenv("EVALUATOR_API_KEY", "sk-evaluator-0123456789")
    return clean_env


class TestParser:
    def test_run_flags(self) -> None:
        args = build_parser().parse_args(
            [
                "run",
                "--dataset", "cases.csv",
                "--output", "out.json",
                "--concurrency", "3",
                "--limit", "10",
                "--locale", "en",
                "--template-version", "v1",
                "--invalid-scores", "fail",
                "--markdown", "reports",
            ]
        )

        assert args.command == "run"
        assert (args.dataset, args.output, args.concurrency, args.limit) == (
            "cases.csv", "out.json", 3, 10,
        )
        assert args.invalid_scores == "fail"
        assert args.markdown == "reports"

    def test_run_defaults_defer_to_config(self) -> None:
        args = build_parser().parse_args(["run"])

        assert args.dataset is None
        assert args.concurrency is None
        assert args.quiet is False

    def test_invalid_scores_choices(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "--invalid-scores", "ignore"])

    def test_quick_test_role(self) -> None:
        args = build_parser().parse_args(["quick-test", "--role", "evaluator"])
        assert args.role == "evaluator"
        assert args.prompt == "What is 2 + 2?"


class TestLoadBenchConfig:
    def test_flags_override_environment(self, target_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BENCH_CONCURRENCY", "8")
        args = build_parser().parse_args(
            ["run", "--concurrency", "2", "--invalid-scores", "fail", "--max-attempts", "1"]
        )

        config = load_bench_config(args)

        assert config.concurrency == 2
        assert config.invalid_score_policy is InvalidScorePolicy.FAIL
        assert config.retry.max_attempts == 1
        assert config.target.model_name == "local-model"

    def test_flags_override_yaml(self, target_env: Path, tmp_path: Path) -> None:
        run_file = tmp_path / "run.yaml"
        run_file.write_text("run:\n  limit: 5\nprompt:\n  locale: en\n", encoding="utf-8")
        args = build_parser().parse_args(["run", "--config", str(run_file), "--limit", "2"])

        config = load_bench_config(args)

        assert config.limit == 2
        assert config.template_locale == "en"

    def test_zero_timeout_flag(self, target_env: Path) -> None:
        args = build_parser().parse_args(["run", "--timeout", "0"])
        assert load_bench_config(args).timeout_seconds is None


class TestMain:
    def test_no_command_prints_help(self) -> None:
        assert main([]) == 0

    def test_check_config_ok(self, target_env: Path, capsys: pytest.CaptureFixture) -> None:
        assert main(["check-config"]) == 0

        out = capsys.readouterr().out
        assert "sk-evaluat..." in out
        assert "sk-evaluator-0123456789" not in out

    def test_check_config_shows_zero_temperature(
        self, target_env: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        monkeypatch.setenv("EVALUATOR_TEMPERATURE", "0")

        assert main(["check-config"]) == 0
        out = capsys.readouterr().out
        row = next(line for line in out.splitlines() if "evaluator.temperature" in line)
        assert "0.0" in row

    def test_check_config_reports_missing_target(self, clean_env: Path, capsys: pytest.CaptureFixture) -> None:
        assert main(["check-config"]) == 1
        assert "TARGET_MODEL_NAME" in capsys.readouterr().out

    def test_run_end_to_end(self, target_env: Path, sample_csv: Path, tmp_path: Path) -> None:
        output = tmp_path / "out" / "results.json"
        target = StubProvider(model="local-model", reply="4")
        judge = StubProvider(model="gpt-4o", reply="5")

        with patch.object(ProviderFactory, "from_endpoint", side_effect=[target, judge]):
            code = main(
                ["run", "--dataset", str(sample_csv), "--output", str(output), "--quiet"]
            )

        assert code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["model_name"] == "local-model"
        assert data["average_score"] == 5.0
        assert [r["input"] for r in data["results"]] == ["2+2は？", "日本の首都は？", "Say hi"]

    def test_run_with_limit_and_markdown(self, target_env: Path, sample_csv: Path, tmp_path: Path) -> None:
        output = tmp_path / "results.json"
        target = StubProvider(model="local-model", reply="4")
        judge = StubProvider(model="gpt-4o", reply="3")

        with patch.object(ProviderFactory, "from_endpoint", side_effect=[target, judge]):
            code = main(
                [
                    "run",
                    "--dataset", str(sample_csv),
                    "--output", str(output),
                    "--limit", "1",
                    "--markdown", str(tmp_path / "md"),
                    "--quiet",
                ]
            )

        assert code == 0
        assert len(json.loads(output.read_text(encoding="utf-8"))["results"]) == 1
        assert len(list((tmp_path / "md").glob("local-model_*.md"))) == 1

    def test_run_without_target_fails(self, clean_env: Path, tmp_path: Path) -> None:
        output = tmp_path / "results.json"

        assert main(["run", "--output", str(output)]) == 1
        assert not output.exists()

    def test_run_missing_dataset_fails(self, target_env: Path, tmp_path: Path) -> None:
        code = main(["run", "--dataset", str(tmp_path / "missing.csv"), "--quiet"])
        assert code == 1

    def test_run_provider_failure_writes_nothing(self, target_env: Path, sample_csv: Path, tmp_path: Path) -> None:
        output = tmp_path / "results.json"
        target = StubProvider(model="local-model", fail_on=lambda p: True)
        judge = StubProvider(model="gpt-4o", reply="5")

        with patch.object(ProviderFactory, "from_endpoint", side_effect=[target, judge]):
            code = main(["run", "--dataset", str(sample_csv), "--output", str(output), "--quiet"])

        assert code == 1
        assert not output.exists()

    def test_invalid_max_attempts(self, target_env: Path) -> None:
        assert main(["check-config", "--max-attempts", "0"]) == 1

    def test_quick_test(self, target_env: Path, capsys: pytest.CaptureFixture) -> None:
        provider = StubProvider(model="local-model", reply="four")

        with patch.object(ProviderFactory, "from_endpoint", return_value=provider):
            code = main(["quick-test", "--prompt", "What is 2 + 2?"])

        assert code == 0
        assert provider.prompts == ["What is 2 + 2?"]
        assert "four" in capsys.readouterr().out

    def test_quick_test_unreachable(self, target_env: Path) -> None:
        provider = StubProvider(model="local-model")

        async def unhealthy() -> bool:
            return False

        provider.health_check = unhealthy
        with patch.object(ProviderFactory, "from_endpoint", return_value=provider):
            assert main(["quick-test"]) == 1
        assert provider.prompts == []

    def test_render_prompt(self, clean_env: Path, sample_csv: Path, capsys: pytest.CaptureFixture) -> None:
        code = main(["render-prompt", "--dataset", str(sample_csv), "--index", "1", "--answer", "大阪"])

        assert code == 0
        out = capsys.readouterr().out
        assert "日本の首都は？" in out
        assert "東京" in out
        assert "都市名のみ" in out
        assert "# 言語モデルの回答\n大阪\n" in out

    def test_render_prompt_index_out_of_range(self, clean_env: Path, sample_csv: Path) -> None:
        assert main(["render-prompt", "--dataset", str(sample_csv), "--index", "3"]) == 1
