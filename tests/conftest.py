"""Shared fixtures for PracticeTutor tests."""

from __future__ import annotations

from typing import Optional

import pytest
import yaml

from practicetutor.engine.models import (
    AnswerType,
    AttemptRecord,
    FlagRecord,
    Question,
    TextAnswer,
)
from practicetutor.state.attempts import AttemptLog


def make_question(
    qid: str,
    topic_id: str = "t1",
    answer_type: AnswerType = AnswerType.EXACT,
    correct_answer=None,
    hints: tuple[str, ...] = (),
    solution_steps: tuple[str, ...] = (),
) -> Question:
    return Question(
        id=qid,
        topic_id=topic_id,
        prompt=f"Question {qid}",
        answer_type=answer_type,
        correct_answer=correct_answer or TextAnswer(value="42"),
        hints=hints,
        solution_steps=solution_steps,
    )


class RecordingSink:
    """In-memory attempt sink; can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.attempts: list[AttemptRecord] = []
        self.flags: list[FlagRecord] = []

    async def record_attempt(self, record: AttemptRecord) -> Optional[str]:
        if self.fail:
            raise ConnectionError("sink offline")
        self.attempts.append(record)
        return f"attempt-{len(self.attempts)}"

    async def submit_flag(self, record: FlagRecord) -> Optional[str]:
        if self.fail:
            raise ConnectionError("sink offline")
        self.flags.append(record)
        return f"flag-{len(self.flags)}"


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def sample_bank_dir(tmp_path):
    """Create a small two-topic question bank for testing."""
    bank_dir = tmp_path / "bank"
    bank_dir.mkdir()

    algebra = {
        "topic": {"id": "algebra", "name": "Algebra", "description": "Linear equations"},
        "questions": [
            {
                "id": "alg-1",
                "prompt": "Simplify 4(x + 3) - 3x",
                "answer_type": "expression",
                "correct_answer": {"value": "x + 12", "alternates": ["x+12", "12+x"]},
                "hints": ["Distribute the 4.", "Collect like terms."],
                "solution_steps": ["4x + 12 - 3x", "x + 12"],
            },
            {
                "id": "alg-2",
                "prompt": "Which is 2 + 2?",
                "answer_type": "multiple_choice",
                "difficulty": 1,
                "correct_answer": {"choices": ["3", "4", "5"], "correct_index": 1},
            },
            {
                "id": "alg-3",
                "prompt": "Solve 3x = 15",
                "answer_type": "numeric",
                "correct_answer": {"value": 5},
                "hints": ["Divide by 3."],
            },
            {
                "id": "alg-4",
                "prompt": "Retired question",
                "status": "archived",
                "correct_answer": {"value": "1"},
            },
        ],
    }
    circles = {
        "topic": {"id": "circles", "name": "Circles"},
        "questions": [
            {
                "id": "cir-1",
                "prompt": "Circumference of a circle with radius 7",
                "answer_type": "numeric",
                "correct_answer": {"value": 43.96, "tolerance": 0.1, "unit": "cm"},
            },
            {
                "id": "cir-2",
                "prompt": "The diameter is twice the radius.",
                "answer_type": "true_false",
                "correct_answer": {"value": "true"},
            },
        ],
    }
    with open(bank_dir / "algebra.yaml", "w") as f:
        yaml.dump(algebra, f, allow_unicode=True)
    with open(bank_dir / "circles.yaml", "w") as f:
        yaml.dump(circles, f, allow_unicode=True)
    return bank_dir


@pytest.fixture
def attempt_log(tmp_path):
    topics = {"alg-1": "algebra", "alg-2": "algebra", "alg-3": "algebra",
              "cir-1": "circles", "cir-2": "circles"}
    return AttemptLog(db_path=tmp_path / "data" / "attempts.db", topic_of=topics.get)
