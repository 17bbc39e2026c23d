"""
Scoring Module

LLM-as-Judge rubric scoring for generated answers.

Usage:
    from src.scoring import AnswerEvaluator, parse_score

    evaluator = AnswerEvaluator(provider=judge_provider)
    result = await evaluator.evaluate(input=..., generated_output=..., ...)
"""

from .llm_judge import (
    MAX_SCORE,
    MIN_SCORE,
    AnswerEvaluator,
    ScoreResult,
    ScoreStatus,
    parse_score,
)

__all__ = [
    "AnswerEvaluator",
    "ScoreResult",
    "ScoreStatus",
    "parse_score",
    "MIN_SCORE",
    "MAX_SCORE",
]
