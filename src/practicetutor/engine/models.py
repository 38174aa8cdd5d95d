"""Practice-session data model: questions, answer specs, history aggregates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class AnswerType(str, Enum):
    EXACT = "exact"
    EXPRESSION = "expression"
    NUMERIC = "numeric"
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"


class PracticeMode(str, Enum):
    TOPIC = "topic"
    REVIEW = "review"
    WEAK = "weak"
    CUSTOM = "custom"


class FlagType(str, Enum):
    INCORRECT_ANSWER = "incorrect_answer"
    UNCLEAR = "unclear"
    TYPO = "typo"
    TOO_HARD = "too_hard"
    MULTIPLE_VALID = "multiple_valid"
    CLAIM_CORRECT = "claim_correct"
    OTHER = "other"


# --- Answer specs (one variant per answer type) ---


@dataclass(frozen=True)
class TextAnswer:
    """Correct answer for exact and expression questions."""
    value: str
    alternates: tuple[str, ...] = ()


@dataclass(frozen=True)
class NumericAnswer:
    value: Union[float, str]  # strings are parsed at validation time
    tolerance: Optional[float] = None
    unit: Optional[str] = None


@dataclass(frozen=True)
class ChoiceAnswer:
    choices: tuple[str, ...]
    correct_index: int


@dataclass(frozen=True)
class TrueFalseAnswer:
    value: Union[bool, str, int]


AnswerSpec = Union[TextAnswer, NumericAnswer, ChoiceAnswer, TrueFalseAnswer]


@dataclass(frozen=True)
class Question:
    id: str
    topic_id: str
    prompt: str
    answer_type: AnswerType
    correct_answer: AnswerSpec
    prompt_latex: Optional[str] = None
    difficulty: int = 3
    hints: tuple[str, ...] = ()
    solution_steps: tuple[str, ...] = ()
    status: str = "active"


# --- History ---


@dataclass(frozen=True)
class AttemptAggregate:
    attempts: int = 0
    correct: int = 0
    last_attempt_at: Optional[datetime] = None

    @property
    def accuracy(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.correct / self.attempts


@dataclass(frozen=True)
class TopicAggregate:
    attempts: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.correct / self.attempts


@dataclass
class HistorySnapshot:
    """Bulk history feed for one learner."""
    questions: dict[str, AttemptAggregate] = field(default_factory=dict)
    topics: dict[str, TopicAggregate] = field(default_factory=dict)


# --- Outbound records ---


@dataclass(frozen=True)
class AttemptRecord:
    question_id: str
    answer_raw: str
    is_correct: bool
    time_spent_seconds: int
    hints_used: int


@dataclass(frozen=True)
class FlagRecord:
    question_id: str
    flag_type: FlagType
    comment: Optional[str] = None
    student_answer: Optional[str] = None
    attempt_id: Optional[str] = None


# --- Candidate fetch ---


@dataclass(frozen=True)
class CandidateRequest:
    mode: PracticeMode
    topic_ids: Optional[tuple[str, ...]] = None
    question_ids: Optional[tuple[str, ...]] = None
    limit: int = 50
    offset: int = 0


@dataclass
class CandidatePage:
    questions: list[Question]
    total: int
