"""Answer validation: one comparison rule per answer type."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Optional, Union

from practicetutor.engine.models import (
    AnswerSpec,
    AnswerType,
    ChoiceAnswer,
    NumericAnswer,
    Question,
    TextAnswer,
    TrueFalseAnswer,
)
from practicetutor.engine.normalizer import normalize

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.001

# Absorbs binary rounding so that a difference of exactly `tolerance` passes.
FLOAT_SLACK = 1e-9

_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class ValidationResult:
    correct: bool
    compared: str  # the (normalized or raw) value actually compared


def parse_number(text: Union[str, int, float, None]) -> Optional[float]:
    """Parse a plain decimal number; return None for anything else."""
    if isinstance(text, bool) or text is None:
        return None
    if isinstance(text, (int, float)):
        return float(text) if math.isfinite(text) else None
    text = text.strip()
    if not _NUMBER.fullmatch(text):
        return None
    return float(text)


def _expect(spec: AnswerSpec, kind: type, answer_type: AnswerType):
    if not isinstance(spec, kind):
        raise TypeError(
            f"{answer_type.value} question carries a {type(spec).__name__} answer"
        )
    return spec


def check_multiple_choice(spec: ChoiceAnswer, choice_index: Optional[int]) -> ValidationResult:
    """Pure index equality; a missing index is incorrect."""
    if choice_index is None or isinstance(choice_index, bool) or not isinstance(choice_index, int):
        return ValidationResult(correct=False, compared="")
    return ValidationResult(
        correct=choice_index == spec.correct_index,
        compared=str(choice_index),
    )


def stored_truth(value: Union[bool, str, int, float]) -> bool:
    """Derive the target boolean from a stored true/false value."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value == 1


def check_true_false(spec: TrueFalseAnswer, answer: Optional[str]) -> ValidationResult:
    """Only the literal tokens "true" and "false" can ever be correct."""
    token = (answer or "").strip().lower()
    if token not in ("true", "false"):
        return ValidationResult(correct=False, compared=token)
    return ValidationResult(
        correct=(token == "true") == stored_truth(spec.value),
        compared=token,
    )


def check_numeric(
    spec: NumericAnswer,
    answer: Optional[str],
    default_tolerance: float = DEFAULT_TOLERANCE,
) -> ValidationResult:
    """Compare numerically within tolerance. No symbol normalization."""
    raw = (answer or "").strip()
    submitted = parse_number(raw)
    if submitted is None:
        return ValidationResult(correct=False, compared=raw)

    target = parse_number(spec.value)
    if target is None:
        logger.warning("Stored numeric answer %r is not a number", spec.value)
        return ValidationResult(correct=False, compared=raw)

    tolerance = default_tolerance if spec.tolerance is None else spec.tolerance
    return ValidationResult(
        correct=abs(submitted - target) <= tolerance + FLOAT_SLACK,
        compared=raw,
    )


def check_text(spec: TextAnswer, answer: Optional[str]) -> ValidationResult:
    """Normalized set membership against the value and its alternates."""
    submitted = normalize(answer or "")
    candidates = {normalize(c) for c in (spec.value, *spec.alternates)}
    candidates.discard("")
    return ValidationResult(correct=submitted in candidates, compared=submitted)


def validate(
    answer_type: AnswerType,
    spec: AnswerSpec,
    answer: Optional[str] = None,
    choice_index: Optional[int] = None,
    default_tolerance: float = DEFAULT_TOLERANCE,
) -> ValidationResult:
    """Decide whether a submission is correct for the given answer spec."""
    if answer_type == AnswerType.MULTIPLE_CHOICE:
        return check_multiple_choice(_expect(spec, ChoiceAnswer, answer_type), choice_index)
    if answer_type == AnswerType.TRUE_FALSE:
        return check_true_false(_expect(spec, TrueFalseAnswer, answer_type), answer)
    if answer_type == AnswerType.NUMERIC:
        return check_numeric(
            _expect(spec, NumericAnswer, answer_type), answer, default_tolerance,
        )
    if answer_type in (AnswerType.EXACT, AnswerType.EXPRESSION):
        return check_text(_expect(spec, TextAnswer, answer_type), answer)
    raise ValueError(f"Unknown answer type: {answer_type!r}")


def validate_question(
    question: Question,
    answer: Optional[str] = None,
    choice_index: Optional[int] = None,
    default_tolerance: float = DEFAULT_TOLERANCE,
) -> ValidationResult:
    return validate(
        question.answer_type,
        question.correct_answer,
        answer=answer,
        choice_index=choice_index,
        default_tolerance=default_tolerance,
    )
