"""
LLM-as-Judge Evaluator

Scores a generated answer by rendering a rubric prompt (question, reference
answer, per-item criteria, generated answer) and asking the evaluator model
for a single integer from 1 to 5.

The judge reply is parsed into a ScoreResult that separates a valid score
from an unparseable or out-of-range reply. Parsing never raises; how invalid
scores affect the average is decided by the report aggregator.

Usage:
    from src.scoring.llm_judge import AnswerEvaluator

    evaluator = AnswerEvaluator(provider=judge_provider)
    result = await evaluator.evaluate(
        input="2+2?",
        generated_output="4",
        reference_output="4",
        eval_aspect="must be numeric",
    )
    print(result.value, result.status)
"""

import logging
import math
import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..prompts import DEFAULT_LOCALE, DEFAULT_VERSION, PromptRegistry, PromptTemplate

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5

JUDGE_TEMPLATE_NAME = "judge"

# Decorations a judge sometimes adds around the bare number: "4点", "4/5", "4 points"
_SCORE_SUFFIX = re.compile(r"\s*(?:/\s*5|点|points?)\s*$", re.IGNORECASE)


class ScoreStatus(Enum):
    """Outcome of parsing a judge reply."""

    VALID = "valid"
    UNPARSEABLE = "unparseable"
    OUT_OF_RANGE = "out_of_range"


@dataclass(frozen=True)
class ScoreResult:
    """A parsed judge reply. ``value`` is set only for VALID results."""

    status: ScoreStatus
    raw_reply: str
    value: Optional[int] = None

    @property
    def is_valid(self) -> bool:
        return self.status is ScoreStatus.VALID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.value,
            "score_status": self.status.value,
            "judge_reply": self.raw_reply,
        }


def parse_score(reply: str) -> ScoreResult:
    """
    Parse a judge reply into a ScoreResult.

    Accepts a bare number with optional surrounding whitespace, full-width
    digits, a trailing "点"/"points", or an "n/5" form. Integral values in
    [1, 5] are VALID; other numbers are OUT_OF_RANGE; anything else,
    including an empty reply, is UNPARSEABLE.
    """
    raw = reply if reply is not None else ""
    text = unicodedata.normalize("NFKC", raw).strip()
    text = _SCORE_SUFFIX.sub("", text)

    try:
        number = float(text)
    except ValueError:
        return ScoreResult(status=ScoreStatus.UNPARSEABLE, raw_reply=raw)

    if not math.isfinite(number) or number != int(number):
        return ScoreResult(status=ScoreStatus.OUT_OF_RANGE, raw_reply=raw)

    value = int(number)
    if not MIN_SCORE <= value <= MAX_SCORE:
        return ScoreResult(status=ScoreStatus.OUT_OF_RANGE, raw_reply=raw)

    return ScoreResult(status=ScoreStatus.VALID, raw_reply=raw, value=value)


class AnswerEvaluator:
    """
    Rubric-based judge backed by an evaluator model.

    The rubric (1=incorrect, 2=incorrect but right direction, 3=partially
    correct, 4=correct, 5=helpful; -1 for unnatural language or a partial
    factual error; 2 for an excessive safety refusal; 1 for a blank answer)
    lives in the prompt template, not in code.
    """

    def __init__(
        self,
        provider: Any,  # BaseProvider
        template: Optional[PromptTemplate] = None,
        locale: str = DEFAULT_LOCALE,
        version: str = DEFAULT_VERSION,
        registry: Optional[PromptRegistry] = None,
    ):
        """
        Args:
            provider: Evaluator model provider.
            template: Explicit judge template; otherwise looked up by locale/version.
            locale: Template locale.
            version: Template version.
            registry: Registry to look the template up in.
        """
        self.provider = provider
        if template is None:
            template = (registry or PromptRegistry()).get(JUDGE_TEMPLATE_NAME, locale, version)
        self.template = template

    def render_prompt(
        self,
        input: str,
        generated_output: str,
        reference_output: str,
        eval_aspect: str,
    ) -> str:
        """Render the judge prompt with all four values inserted verbatim."""
        return self.template.render(
            input_text=input,
            output_text=reference_output,
            eval_aspect=eval_aspect,
            pred=generated_output,
        )

    async def evaluate(
        self,
        input: str,
        generated_output: str,
        reference_output: str,
        eval_aspect: str,
    ) -> ScoreResult:
        """
        Score one generated answer.

        Raises:
            ProviderError: If the evaluator call fails.
        """
        prompt = self.render_prompt(input, generated_output, reference_output, eval_aspect)
        reply = await self.provider.complete(prompt)
        result = parse_score(reply)
        if not result.is_valid:
            logger.warning(
                f"Judge {getattr(self.provider, 'model', '?')} returned "
                f"{result.status.value} reply: {reply!r}"
            )
        return result
