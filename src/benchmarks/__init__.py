"""
Benchmark Module

Dataset loading, run configuration and the two-phase benchmark runner.

Usage:
    from src.benchmarks import BenchConfig, BenchmarkRunner, load_csv_dataset

    config = BenchConfig.from_env()
    config.validate()

    dataset = load_csv_dataset(config.dataset_path, limit=config.limit)
    runner = BenchmarkRunner.from_config(config)
    report = await runner.run(dataset)
    print(report.summary())
"""

from .config import BenchConfig, ModelEndpointConfig, mask_secret
from .datasets import Dataset, DatasetItem, load_csv_dataset
from .runner import AnswerGenerator, BenchmarkRunner, ResultRecord, run_phase

__all__ = [
    # Config
    "BenchConfig",
    "ModelEndpointConfig",
    "mask_secret",
    # Datasets
    "Dataset",
    "DatasetItem",
    "load_csv_dataset",
    # Runner
    "AnswerGenerator",
    "BenchmarkRunner",
    "ResultRecord",
    "run_phase",
]
