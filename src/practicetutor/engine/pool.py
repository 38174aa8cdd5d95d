"""Candidate pool resolution and the external collaborator interfaces."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Protocol

from practicetutor.engine.history import WEAK_MAX_ACCURACY, WEAK_MIN_ATTEMPTS, HistoryIndex
from practicetutor.engine.models import (
    AttemptRecord,
    CandidatePage,
    CandidateRequest,
    FlagRecord,
    HistorySnapshot,
    PracticeMode,
    Question,
)

logger = logging.getLogger(__name__)


class QuestionStore(Protocol):
    """Returns eligible (active, owned) question records."""

    def fetch(self, request: CandidateRequest) -> CandidatePage: ...


class DueSource(Protocol):
    """External spaced-repetition scheduler: ids whose next_due <= now."""

    def due_question_ids(self, now: datetime) -> list[str]: ...


class HistorySource(Protocol):
    def fetch_history(self) -> HistorySnapshot: ...


class AttemptSink(Protocol):
    """Accepts recorded outcomes. Both calls may return a record id."""

    async def record_attempt(self, record: AttemptRecord) -> Optional[str]: ...

    async def submit_flag(self, record: FlagRecord) -> Optional[str]: ...


def _dedupe(ids: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(ids))


class CandidatePoolResolver:
    """Turns a practice mode plus filters into the raw list of eligible questions."""

    def __init__(
        self,
        store: QuestionStore,
        due_source: Optional[DueSource] = None,
        page_size: int = 50,
        weak_min_attempts: int = WEAK_MIN_ATTEMPTS,
        weak_max_accuracy: float = WEAK_MAX_ACCURACY,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.due_source = due_source
        self.page_size = page_size
        self.weak_min_attempts = weak_min_attempts
        self.weak_max_accuracy = weak_max_accuracy
        self._clock = clock

    def resolve(
        self,
        mode: PracticeMode,
        history: HistoryIndex,
        topic_id: Optional[str] = None,
        question_ids: Optional[Iterable[str]] = None,
    ) -> list[Question]:
        mode = PracticeMode(mode)

        if mode == PracticeMode.TOPIC:
            if not topic_id:
                raise ValueError("Topic mode requires a topic id")
            return self._fetch_all(CandidateRequest(mode=mode, topic_ids=(topic_id,)))

        if mode == PracticeMode.REVIEW:
            if self.due_source is None:
                raise ValueError("Review mode requires a due-item source")
            due = _dedupe(self.due_source.due_question_ids(self._clock()))
            logger.debug("%d question(s) due for review", len(due))
            if not due:
                return []
            return self._fetch_all(CandidateRequest(mode=mode, question_ids=due))

        if mode == PracticeMode.WEAK:
            weak = history.weak_topics(self.weak_min_attempts, self.weak_max_accuracy)
            logger.debug("Weak topics: %s", weak)
            if not weak:
                return []
            return self._fetch_all(CandidateRequest(mode=mode, topic_ids=tuple(weak)))

        # custom
        ids = _dedupe(question_ids or ())
        if not ids:
            raise ValueError("Custom mode requires at least one question id")
        return self._fetch_all(CandidateRequest(mode=mode, question_ids=ids))

    def _fetch_all(self, request: CandidateRequest) -> list[Question]:
        """Page through the store until every matching record is collected."""
        questions: list[Question] = []
        seen: set[str] = set()
        offset = 0
        while True:
            page = self.store.fetch(CandidateRequest(
                mode=request.mode,
                topic_ids=request.topic_ids,
                question_ids=request.question_ids,
                limit=self.page_size,
                offset=offset,
            ))
            for q in page.questions:
                if q.id not in seen:
                    seen.add(q.id)
                    questions.append(q)
            offset += len(page.questions)
            if not page.questions or offset >= page.total:
                return questions
