"""Learner-facing feedback text for verdicts, streaks and empty pools."""

from __future__ import annotations

from dataclasses import dataclass

from practicetutor.engine.models import AnswerType, ChoiceAnswer, PracticeMode, Question
from practicetutor.engine.validator import stored_truth


@dataclass(frozen=True)
class EmptyPoolMessage:
    title: str
    detail: str


EMPTY_POOL_MESSAGES: dict[PracticeMode, EmptyPoolMessage] = {
    PracticeMode.REVIEW: EmptyPoolMessage(
        "All caught up!",
        "You've completed all your scheduled reviews. Questions will appear "
        "here after you practice more.",
    ),
    PracticeMode.WEAK: EmptyPoolMessage(
        "No weak areas found",
        "Topics need at least 3 attempts and under 60% accuracy to show up here.",
    ),
    PracticeMode.TOPIC: EmptyPoolMessage(
        "No questions for this topic",
        "Pick another topic or ask your tutor to add questions.",
    ),
    PracticeMode.CUSTOM: EmptyPoolMessage(
        "No questions selected",
        "None of the selected questions are available any more.",
    ),
}

# (minimum streak, message), highest first
STREAK_MESSAGES: list[tuple[int, str]] = [
    (10, "{0} in a row. Unstoppable!"),
    (5, "{0} in a row. You're on fire!"),
    (3, "{0} in a row. Nice streak!"),
]


def empty_pool_message(mode: PracticeMode) -> EmptyPoolMessage:
    return EMPTY_POOL_MESSAGES[PracticeMode(mode)]


def streak_message(streak: int) -> str:
    for threshold, template in STREAK_MESSAGES:
        if streak >= threshold:
            return template.format(streak)
    return ""


def correct_answer_text(question: Question) -> str:
    """Render the stored correct answer as plain text."""
    spec = question.correct_answer
    if question.answer_type == AnswerType.MULTIPLE_CHOICE and isinstance(spec, ChoiceAnswer):
        return spec.choices[spec.correct_index]
    if question.answer_type == AnswerType.TRUE_FALSE:
        return "true" if stored_truth(spec.value) else "false"
    unit = getattr(spec, "unit", None)
    return f"{spec.value} {unit}" if unit else str(spec.value)


def verdict_message(question: Question, correct: bool, streak: int = 0) -> str:
    if correct:
        return " ".join(filter(None, ["Correct!", streak_message(streak)]))
    return f"Not quite right. The correct answer is: {correct_answer_text(question)}"
