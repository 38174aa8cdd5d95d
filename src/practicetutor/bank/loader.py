"""YAML question-bank parser for PracticeTutor."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from practicetutor.engine.models import (
    AnswerSpec,
    AnswerType,
    ChoiceAnswer,
    NumericAnswer,
    Question,
    TextAnswer,
    TrueFalseAnswer,
)


class QuestionFormatError(ValueError):
    """A question record in a bank file is malformed."""


@dataclass
class TopicFile:
    id: str
    name: str
    description: str = ""
    questions: list[Question] = field(default_factory=list)
    path: Path | None = None


def _fail(source: str, qid: Any, message: str) -> QuestionFormatError:
    return QuestionFormatError(f"{source}: question {qid!r}: {message}")


def _parse_answer(answer_type: AnswerType, raw: Any, source: str, qid: str) -> AnswerSpec:
    if not isinstance(raw, dict):
        raise _fail(source, qid, "correct_answer must be a mapping")

    if answer_type in (AnswerType.EXACT, AnswerType.EXPRESSION):
        if raw.get("value") is None:
            raise _fail(source, qid, "correct_answer.value is required")
        alternates = raw.get("alternates") or []
        if not isinstance(alternates, list):
            raise _fail(source, qid, "correct_answer.alternates must be a list")
        return TextAnswer(value=str(raw["value"]), alternates=tuple(str(a) for a in alternates))

    if answer_type == AnswerType.NUMERIC:
        if raw.get("value") is None:
            raise _fail(source, qid, "correct_answer.value is required")
        tolerance = raw.get("tolerance")
        if tolerance is not None:
            if isinstance(tolerance, bool) or not isinstance(tolerance, (int, float)) or tolerance < 0:
                raise _fail(source, qid, "correct_answer.tolerance must be a non-negative number")
            tolerance = float(tolerance)
        value = raw["value"]
        if not isinstance(value, (int, float, str)) or isinstance(value, bool):
            raise _fail(source, qid, "correct_answer.value must be a number")
        return NumericAnswer(value=value, tolerance=tolerance, unit=raw.get("unit"))

    if answer_type == AnswerType.MULTIPLE_CHOICE:
        choices = raw.get("choices")
        if not isinstance(choices, list) or not choices:
            raise _fail(source, qid, "correct_answer.choices must be a non-empty list")
        # "correct" is accepted as an alias for correct_index
        index = raw.get("correct_index", raw.get("correct"))
        if isinstance(index, bool) or not isinstance(index, int):
            raise _fail(source, qid, "correct_answer.correct_index must be an integer")
        if not 0 <= index < len(choices):
            raise _fail(source, qid, f"correct_index {index} is out of range")
        labels = tuple(
            str(c.get("text", "")) if isinstance(c, dict) else str(c) for c in choices
        )
        return ChoiceAnswer(choices=labels, correct_index=index)

    if answer_type == AnswerType.TRUE_FALSE:
        if raw.get("value") is None:
            raise _fail(source, qid, "correct_answer.value is required")
        return TrueFalseAnswer(value=raw["value"])

    raise _fail(source, qid, f"unsupported answer type {answer_type.value}")


def parse_question(raw: dict, topic_id: str, source: str = "<bank>") -> Question:
    """Build a Question from one raw YAML record."""
    qid = raw.get("id")
    if qid is None or str(qid).strip() == "":
        raise _fail(source, qid, "id is required")
    qid = str(qid)

    prompt = raw.get("prompt")
    if not prompt:
        raise _fail(source, qid, "prompt is required")

    try:
        answer_type = AnswerType(raw.get("answer_type", "exact"))
    except ValueError:
        raise _fail(source, qid, f"unknown answer_type {raw.get('answer_type')!r}") from None

    difficulty = raw.get("difficulty", 3)
    if isinstance(difficulty, bool) or not isinstance(difficulty, int) or not 1 <= difficulty <= 5:
        raise _fail(source, qid, "difficulty must be an integer from 1 to 5")

    return Question(
        id=qid,
        topic_id=str(raw.get("topic_id", topic_id)),
        prompt=str(prompt),
        prompt_latex=raw.get("prompt_latex"),
        answer_type=answer_type,
        correct_answer=_parse_answer(answer_type, raw.get("correct_answer"), source, qid),
        difficulty=difficulty,
        hints=tuple(str(h) for h in raw.get("hints") or []),
        solution_steps=tuple(str(s) for s in raw.get("solution_steps") or []),
        status=str(raw.get("status", "active")),
    )


def load_topic(path: Path) -> TopicFile:
    """Load one topic file: a `topic` header plus a `questions` list."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    header = data.get("topic") or {}
    topic_id = str(header.get("id") or path.stem)
    questions = [
        parse_question(raw, topic_id, source=path.name)
        for raw in data.get("questions") or []
    ]
    return TopicFile(
        id=topic_id,
        name=header.get("name", topic_id),
        description=header.get("description", ""),
        questions=questions,
        path=path,
    )
