"""
Benchmark Runner

Two-phase pipeline for one benchmark run:

1. Generation: every dataset case is sent verbatim to the target model.
2. Evaluation: every generated answer is scored by the judge model.

Both phases run through run_phase(), a semaphore-bounded worker pool that
keeps at most ``concurrency`` calls in flight and returns results in input
order. Phase 2 starts only after phase 1 has finished for every case. Any
worker failure cancels the rest of the phase and propagates, so a failed run
produces no report.

Usage:
    from src.benchmarks import BenchmarkRunner, load_csv_dataset

    runner = BenchmarkRunner.from_config(config)
    report = await runner.run(load_csv_dataset(config.dataset_path))
    print(report.summary())
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from utils.exceptions import ScoringError
from utils.logging_config import DebugTimer

from ..providers import BaseProvider, ProviderFactory
from ..reporting.report_generator import BenchmarkReport, ReportAggregator
from ..scoring.llm_judge import AnswerEvaluator, ScoreResult
from .config import DEFAULT_CONCURRENCY, BenchConfig
from .datasets import Dataset, DatasetItem

logger = logging.getLogger(__name__)
console = Console()

T = TypeVar("T")
U = TypeVar("U")


@dataclass
class ResultRecord:
    """One case's generated answer and, after phase 2, its judge score."""

    input: str
    generated_output: str
    reference_output: str
    eval_aspect: str
    score: Optional[ScoreResult] = None  # None until phase 2 scores it

    def assign_score(self, score: ScoreResult) -> None:
        """Set the judge score. A record is scored exactly once."""
        if self.score is not None:
            raise ScoringError(f"Record for input {self.input[:40]!r} is already scored")
        self.score = score

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "input": self.input,
            "generated_output": self.generated_output,
            "reference_output": self.reference_output,
            "eval_aspect": self.eval_aspect,
        }
        if self.score is None:
            data.update({"score": None, "score_status": "unscored", "judge_reply": None})
        else:
            data.update(self.score.to_dict())
        return data


async def run_phase(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[U]],
    window_size: int,
    on_complete: Optional[Callable[[int, U], None]] = None,
) -> List[U]:
    """
    Run ``worker`` over ``items`` with at most ``window_size`` in flight.

    Each item gets its own task and result slot, so completion order never
    affects output order.

    Args:
        items: Inputs, in order.
        worker: Coroutine function applied to each item.
        window_size: Concurrency ceiling.
        on_complete: Called with (index, result) as each item finishes.

    Returns:
        Results in input order.

    Raises:
        The first worker exception; all unfinished tasks are cancelled first.
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")

    items = list(items)
    results: List[Any] = [None] * len(items)
    semaphore = asyncio.Semaphore(window_size)

    async def _run(index: int, item: T) -> None:
        async with semaphore:
            result = await worker(item)
        results[index] = result
        if on_complete is not None:
            on_complete(index, result)

    tasks = [asyncio.create_task(_run(i, item)) for i, item in enumerate(items)]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    return results


class AnswerGenerator:
    """Produces the target model's answer for one case."""

    def __init__(self, provider: BaseProvider):
        self.provider = provider

    async def generate(self, item: DatasetItem) -> ResultRecord:
        """Send the case input verbatim; no prompt engineering."""
        answer = await self.provider.complete(item.input)
        return ResultRecord(
            input=item.input,
            generated_output=answer,
            reference_output=item.reference_output,
            eval_aspect=item.eval_aspect,
        )


class BenchmarkRunner:
    """
    Orchestrates generation, evaluation and aggregation for one run.
    """

    def __init__(
        self,
        target: BaseProvider,
        evaluator: AnswerEvaluator,
        concurrency: int = DEFAULT_CONCURRENCY,
        aggregator: Optional[ReportAggregator] = None,
        verbose: bool = True,
    ):
        """
        Args:
            target: Provider for the model under evaluation.
            evaluator: Judge wrapping the evaluator provider.
            concurrency: Max in-flight calls per phase.
            aggregator: Report aggregator (defaults to EXCLUDE policy).
            verbose: Show progress bars.
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.target = target
        self.generator = AnswerGenerator(target)
        self.evaluator = evaluator
        self.concurrency = concurrency
        self.aggregator = aggregator or ReportAggregator()
        self.verbose = verbose

    @classmethod
    def from_config(cls, config: BenchConfig, verbose: bool = True) -> "BenchmarkRunner":
        """Build providers, judge and aggregator from a BenchConfig."""
        target = ProviderFactory.from_endpoint(
            config.target, timeout=config.timeout_seconds, retry=config.retry
        )
        judge_provider = ProviderFactory.from_endpoint(
            config.evaluator, timeout=config.timeout_seconds, retry=config.retry
        )
        evaluator = AnswerEvaluator(
            provider=judge_provider,
            locale=config.template_locale,
            version=config.template_version,
        )
        return cls(
            target=target,
            evaluator=evaluator,
            concurrency=config.concurrency,
            aggregator=ReportAggregator(config.invalid_score_policy),
            verbose=verbose,
        )

    async def run(self, dataset: Dataset) -> BenchmarkReport:
        """
        Run both phases over the dataset and aggregate.

        Returns:
            BenchmarkReport with results in dataset order.

        Raises:
            ProviderError: If any model call fails after retries.
            ScoringError: If aggregation fails under the FAIL policy.
        """
        total = len(dataset)
        logger.info(
            f"Benchmarking {self.target.model} on {dataset.name} "
            f"({total} cases, concurrency {self.concurrency})"
        )

        with DebugTimer("benchmark", logger) as timer:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
                disable=not self.verbose,
            ) as progress:
                records = await self._generate_all(dataset.items, progress)
                timer.checkpoint("generation")
                await self._evaluate_all(records, progress)
                timer.checkpoint("evaluation")

        report = self.aggregator.aggregate(
            self.target.model,
            records,
            evaluator_model=self.evaluator.provider.model,
            dataset=dataset.to_dict(),
            template=self.evaluator.template.key,
            duration_seconds=timer.elapsed,
        )
        logger.info(
            f"Average score for {report.model_name}: "
            f"{report.average_score if report.average_score is not None else 'no data'}"
        )
        usage = {
            "target": self.target.get_stats(),
            "evaluator": self.evaluator.provider.get_stats(),
        }
        logger.info(
            f"Model calls: {usage['target']['request_count']} target, "
            f"{usage['evaluator']['request_count']} evaluator",
            extra={"extra_data": usage},
        )
        return report

    async def _generate_all(self, items: List[DatasetItem], progress: Progress) -> List[ResultRecord]:
        total = len(items)
        task = progress.add_task(f"[cyan]Generating answers ({self.target.model})...", total=total)
        logger.info("Generating answers from the target model...")

        def _done(index: int, record: ResultRecord) -> None:
            logger.info(
                f"Answer generated: {index + 1}/{total}",
                extra={"extra_data": {"phase": "generation", "index": index, "total": total}},
            )
            progress.advance(task)

        records = await run_phase(items, self.generator.generate, self.concurrency, _done)
        logger.info("Answer generation complete")
        return records

    async def _evaluate_all(self, records: List[ResultRecord], progress: Progress) -> None:
        total = len(records)
        task = progress.add_task(
            f"[magenta]Scoring answers ({self.evaluator.provider.model})...", total=total
        )
        logger.info("Scoring answers with the evaluator model...")

        async def _score(record: ResultRecord) -> ResultRecord:
            score = await self.evaluator.evaluate(
                input=record.input,
                generated_output=record.generated_output,
                reference_output=record.reference_output,
                eval_aspect=record.eval_aspect,
            )
            record.assign_score(score)
            return record

        def _done(index: int, record: ResultRecord) -> None:
            score = record.score
            logger.info(
                f"Answer scored: {index + 1}/{total} "
                f"(score={score.value if score.is_valid else score.status.value})",
                extra={
                    "extra_data": {
                        "phase": "evaluation",
                        "index": index,
                        "total": total,
                        "score": score.value,
                        "score_status": score.status.value,
                    }
                },
            )
            progress.advance(task)

        await run_phase(records, _score, self.concurrency, _done)
        logger.info("Answer scoring complete")


__all__ = [
    "AnswerGenerator",
    "BenchmarkRunner",
    "ResultRecord",
    "run_phase",
]
