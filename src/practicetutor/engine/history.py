"""Per-learner attempt history lookup."""

from __future__ import annotations

from typing import Optional

from practicetutor.engine.models import AttemptAggregate, HistorySnapshot, TopicAggregate

WEAK_MIN_ATTEMPTS = 3
WEAK_MAX_ACCURACY = 0.6


class HistoryIndex:
    """Read-only map of question id → attempt aggregate.

    Built once from a history snapshot; attempts made afterwards do not
    change it. Rebuild from a fresh snapshot to pick them up.
    """

    def __init__(
        self,
        questions: Optional[dict[str, AttemptAggregate]] = None,
        topics: Optional[dict[str, TopicAggregate]] = None,
    ):
        self._questions = dict(questions or {})
        self._topics = dict(topics or {})

    @classmethod
    def from_snapshot(cls, snapshot: HistorySnapshot) -> "HistoryIndex":
        return cls(questions=snapshot.questions, topics=snapshot.topics)

    def get(self, question_id: str) -> Optional[AttemptAggregate]:
        return self._questions.get(question_id)

    def is_unanswered(self, question_id: str) -> bool:
        aggregate = self._questions.get(question_id)
        return aggregate is None or aggregate.attempts == 0

    def __len__(self) -> int:
        return len(self._questions)

    @property
    def topics(self) -> dict[str, TopicAggregate]:
        return dict(self._topics)

    def weak_topics(
        self,
        min_attempts: int = WEAK_MIN_ATTEMPTS,
        max_accuracy: float = WEAK_MAX_ACCURACY,
    ) -> list[str]:
        """Topics with at least `min_attempts` attempts and accuracy below `max_accuracy`."""
        return sorted(
            topic_id
            for topic_id, agg in self._topics.items()
            if agg.attempts >= min_attempts and agg.correct / agg.attempts < max_accuracy
        )
