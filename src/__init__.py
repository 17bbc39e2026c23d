"""
judge-bench — LLM-as-Judge Benchmark Harness

Sends every case of a CSV dataset to a target model, has an evaluator model
score each answer against a rubric, and writes the average score plus
per-item results to results.json.

Main components:
- providers: Single-turn chat interface over model endpoints (OpenAI-compatible, Ollama)
- prompts: Versioned, locale-keyed judge prompt templates
- scoring: Rubric scoring and judge-reply parsing
- benchmarks: Dataset loading, run configuration and the two-phase runner
- reporting: Score aggregation and JSON/Markdown report output
"""

__version__ = "0.1.0"
