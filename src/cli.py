"""
judge-bench CLI

Command-line interface for running LLM-as-Judge benchmarks.

Usage:
    # Run the benchmark over ./test.csv, writing ./results.json
    python -m src.cli run

    # Smaller run with a different judge prompt
    python -m src.cli run --limit 10 --locale en --markdown ./reports

    # Show resolved configuration (keys masked)
    python -m src.cli check-config

    # Send one prompt to the target or evaluator model
    python -m src.cli quick-test --role evaluator --prompt "What is 2 + 2?"

    # Preview the judge prompt for one dataset case
    python -m src.cli render-prompt --index 0 --answer "4"
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

import config as settings
from utils.exceptions import ConfigError, DatasetError, JudgeBenchError
from utils.logging_config import setup_logging

from .benchmarks.config import BenchConfig, mask_secret
from .reporting.report_generator import InvalidScorePolicy

logger = logging.getLogger(__name__)
console = Console()


def load_bench_config(args: argparse.Namespace) -> BenchConfig:
    """
    Resolve the run configuration: environment, then the YAML run file,
    then command-line flags.
    """
    if getattr(args, "config", None):
        bench = BenchConfig.from_yaml(Path(args.config))
    else:
        bench = BenchConfig.from_env()

    changes: Dict[str, Any] = {}
    if getattr(args, "dataset", None):
        changes["dataset_path"] = Path(args.dataset)
    if getattr(args, "output", None):
        changes["output_path"] = Path(args.output)
    if getattr(args, "concurrency", None) is not None:
        changes["concurrency"] = args.concurrency
    if getattr(args, "limit", None) is not None:
        changes["limit"] = args.limit
    if getattr(args, "timeout", None) is not None:
        changes["timeout_seconds"] = args.timeout if args.timeout > 0 else None
    if getattr(args, "max_attempts", None) is not None:
        try:
            changes["retry"] = dataclasses.replace(bench.retry, max_attempts=args.max_attempts)
        except ValueError as e:
            raise ConfigError(f"--max-attempts: {e}") from None
    if getattr(args, "locale", None):
        changes["template_locale"] = args.locale
    if getattr(args, "template_version", None):
        changes["template_version"] = args.template_version
    if getattr(args, "invalid_scores", None):
        changes["invalid_score_policy"] = InvalidScorePolicy(args.invalid_scores)

    return dataclasses.replace(bench, **changes) if changes else bench


async def cmd_run(args: argparse.Namespace) -> int:
    """Run the full benchmark."""
    from .benchmarks import BenchmarkRunner, load_csv_dataset
    from .reporting import ReportConfig, ReportGenerator

    bench = load_bench_config(args)
    bench.validate()

    console.print(f"[cyan]Benchmark: {bench.target.model_name}[/cyan]")
    console.print(f"[dim]Evaluator: {bench.evaluator.model_name} ({bench.evaluator.api_endpoint})[/dim]")
    console.print(f"[dim]Evaluator API key: {bench.evaluator.masked_key()}[/dim]")

    dataset = load_csv_dataset(bench.dataset_path, limit=bench.limit)
    console.print(f"[dim]Dataset: {dataset.name} ({len(dataset)} cases)[/dim]")

    runner = BenchmarkRunner.from_config(bench, verbose=not args.quiet)
    report = await runner.run(dataset)

    generator = ReportGenerator(
        ReportConfig(
            output_path=bench.output_path,
            markdown_dir=Path(args.markdown) if args.markdown else None,
        )
    )
    output_path = generator.generate(report)

    console.print()
    console.print(report.summary())
    console.print(f"\n[green]Results saved to {output_path}[/green]")
    return 0


async def cmd_check_config(args: argparse.Namespace) -> int:
    """Show the resolved configuration and report problems."""
    bench = load_bench_config(args)
    view = bench.to_dict()

    table = Table(title="Benchmark Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for role in ("target", "evaluator"):
        for key, value in view.pop(role).items():
            table.add_row(f"{role}.{key}", "—" if value in (None, "") else str(value))
    for key, value in view.items():
        table.add_row(key, "—" if value is None else str(value))
    console.print(table)

    try:
        bench.validate()
    except JudgeBenchError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    console.print("[green]Configuration OK[/green]")
    return 0


async def cmd_quick_test(args: argparse.Namespace) -> int:
    """Send a single prompt to the target or evaluator model."""
    from .providers import ProviderFactory

    bench = load_bench_config(args)
    endpoint = bench.target if args.role == "target" else bench.evaluator

    console.print(f"[cyan]Quick test ({args.role}): {endpoint.model_name}[/cyan]")
    console.print(f"[dim]Endpoint: {endpoint.api_endpoint} key: {mask_secret(endpoint.api_key)}[/dim]")

    provider = ProviderFactory.from_endpoint(
        endpoint, timeout=bench.timeout_seconds, retry=bench.retry
    )

    if not await provider.health_check():
        console.print(f"[red]Error: Could not connect to {endpoint.api_endpoint}[/red]")
        return 1

    response = await provider.generate(args.prompt)

    console.print(f"\n[bold]Model:[/bold] {response.model}")
    console.print(f"[bold]Prompt:[/bold] {args.prompt}")
    console.print(f"\n[bold]Response:[/bold]\n{response.text}")
    console.print("\n[dim]───────────────────────────────────────[/dim]")
    console.print(f"[green]Time:[/green] {response.metrics.total_duration_ms:.0f}ms")
    console.print(
        f"[green]Tokens:[/green] {response.metrics.prompt_tokens} prompt + "
        f"{response.metrics.completion_tokens} completion"
    )
    console.print(f"[green]Attempts:[/green] {response.metrics.attempts}")
    return 0


async def cmd_render_prompt(args: argparse.Namespace) -> int:
    """Print the judge prompt for one dataset case."""
    from .benchmarks import load_csv_dataset
    from .scoring import AnswerEvaluator

    bench = load_bench_config(args)
    dataset = load_csv_dataset(bench.dataset_path)

    if not 0 <= args.index < len(dataset):
        raise DatasetError(
            f"Index {args.index} out of range for {dataset.name} ({len(dataset)} cases)"
        )
    item = dataset.items[args.index]

    evaluator = AnswerEvaluator(
        provider=None,
        locale=bench.template_locale,
        version=bench.template_version,
    )
    console.print(f"[dim]Template: {evaluator.template.key}[/dim]\n")
    # Plain print: rich markup would eat the rubric's [brackets]
    print(
        evaluator.render_prompt(
            input=item.input,
            generated_output=args.answer,
            reference_output=item.reference_output,
            eval_aspect=item.eval_aspect,
        )
    )
    return 0


COMMANDS = {
    "run": cmd_run,
    "check-config": cmd_check_config,
    "quick-test": cmd_quick_test,
    "render-prompt": cmd_render_prompt,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="judge-bench",
        description="LLM-as-Judge Benchmark Harness",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Shared by every command
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", "-c", help="Path to run config YAML")
    common.add_argument("--locale", help="Judge template locale (default: ja)")
    common.add_argument("--template-version", help="Judge template version (default: v1)")
    common.add_argument("--timeout", type=float, help="Per-call timeout in seconds (0 = none)")
    common.add_argument("--max-attempts", type=int, help="Attempts per model call")

    # run
    run_parser = subparsers.add_parser("run", parents=[common], help="Run the benchmark")
    run_parser.add_argument("--dataset", "-d", help="CSV dataset path (default: test.csv)")
    run_parser.add_argument("--output", "-o", help="Results JSON path (default: results.json)")
    run_parser.add_argument("--concurrency", "-w", type=int, help="Max in-flight calls (default: 5)")
    run_parser.add_argument("--limit", "-n", type=int, help="Only evaluate the first N cases")
    run_parser.add_argument(
        "--invalid-scores",
        choices=[p.value for p in InvalidScorePolicy],
        help="How unparseable judge replies affect the average (default: exclude)",
    )
    run_parser.add_argument("--markdown", metavar="DIR", help="Also write a Markdown report here")
    run_parser.add_argument("--quiet", "-q", action="store_true", help="Hide progress bars")

    # check-config
    subparsers.add_parser(
        "check-config", parents=[common], help="Show resolved configuration"
    )

    # quick-test
    quick_parser = subparsers.add_parser(
        "quick-test", parents=[common], help="Send a single prompt to one model"
    )
    quick_parser.add_argument(
        "--role", choices=["target", "evaluator"], default="target", help="Which model to call"
    )
    quick_parser.add_argument("--prompt", default="What is 2 + 2?", help="Test prompt")

    # render-prompt
    render_parser = subparsers.add_parser(
        "render-prompt", parents=[common], help="Preview the judge prompt for one case"
    )
    render_parser.add_argument("--dataset", "-d", help="CSV dataset path (default: test.csv)")
    render_parser.add_argument("--index", "-i", type=int, default=0, help="Case index (0-based)")
    render_parser.add_argument("--answer", "-a", default="", help="Generated answer to insert")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    settings.validate_config()
    setup_logging(args.log_level or settings.LOG_LEVEL, settings.LOG_DIR)

    try:
        return asyncio.run(COMMANDS[args.command](args))
    except JudgeBenchError as e:
        logger.error(f"{args.command} failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
