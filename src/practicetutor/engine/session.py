"""Practice session state machine: present → submit → feedback → advance."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from practicetutor.engine.history import HistoryIndex
from practicetutor.engine.models import (
    AnswerType,
    AttemptRecord,
    FlagRecord,
    FlagType,
    PracticeMode,
    Question,
)
from practicetutor.engine.pool import AttemptSink, CandidatePoolResolver
from practicetutor.engine.sampler import SmartSampler
from practicetutor.engine.validator import DEFAULT_TOLERANCE, ValidationResult, validate_question

logger = logging.getLogger(__name__)


class SessionError(ValueError):
    """An action that the session's current state does not allow."""


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    PRESENTING = "presenting"  # Question shown, awaiting an answer
    SUBMITTED = "submitted"  # Verdict shown, awaiting "next"
    COMPLETED = "completed"  # List exhausted or abandoned
    EMPTY = "nothing_available"  # Pool was empty; nothing to work on


@dataclass
class QuestionAttemptState:
    """Transient state for the current question. Discarded on advance."""
    question: Question
    started_at: float
    answer: str = ""
    choice_index: Optional[int] = None
    submitted: bool = False
    result: Optional[ValidationResult] = None
    hints_revealed: int = 0
    solution_revealed: bool = False
    flag: Optional[FlagRecord] = None
    attempt_id: Optional[str] = None
    _record_task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def is_correct(self) -> Optional[bool]:
        return None if self.result is None else self.result.correct

    @property
    def visible_hints(self) -> list[str]:
        return list(self.question.hints[: self.hints_revealed])

    @property
    def submitted_answer(self) -> str:
        if self.question.answer_type == AnswerType.MULTIPLE_CHOICE:
            return "" if self.choice_index is None else str(self.choice_index)
        return self.answer


@dataclass
class SessionStats:
    total: int = 0
    correct: int = 0
    streak: int = 0
    best_streak: int = 0

    @property
    def accuracy(self) -> int:
        if self.total == 0:
            return 0
        return round(self.correct / self.total * 100)

    def record(self, correct: bool) -> None:
        self.total += 1
        if correct:
            self.correct += 1
            self.streak += 1
            self.best_streak = max(self.best_streak, self.streak)
        else:
            self.streak = 0


class PracticeSession:
    """Drives one learner through a frozen list of questions."""

    def __init__(
        self,
        mode: PracticeMode,
        questions: Sequence[Question],
        sink: Optional[AttemptSink] = None,
        default_tolerance: float = DEFAULT_TOLERANCE,
        clock: Callable[[], float] = time.monotonic,
    ):
        ids = [q.id for q in questions]
        if len(set(ids)) != len(ids):
            raise ValueError("Session question list contains duplicate ids")

        self.mode = PracticeMode(mode)
        self.questions: tuple[Question, ...] = tuple(questions)
        self.sink = sink
        self.default_tolerance = default_tolerance
        self._clock = clock

        self.state = SessionState.NOT_STARTED
        self.current_index = 0
        self.attempt: Optional[QuestionAttemptState] = None
        self.stats = SessionStats()
        self._pending: set[asyncio.Task] = set()

    # --- Lifecycle ---

    def start(self) -> SessionState:
        if self.state != SessionState.NOT_STARTED:
            raise SessionError(f"Session already started ({self.state.value})")
        if not self.questions:
            self.state = SessionState.EMPTY
            logger.info("No questions available for %s practice", self.mode.value)
            return self.state
        self.current_index = 0
        self._present()
        logger.info(
            "Started %s session with %d question(s)", self.mode.value, len(self.questions),
        )
        return self.state

    def _present(self) -> None:
        self.attempt = QuestionAttemptState(
            question=self.questions[self.current_index], started_at=self._clock(),
        )
        self.state = SessionState.PRESENTING

    @property
    def current_question(self) -> Optional[Question]:
        return self.attempt.question if self.attempt else None

    @property
    def is_finished(self) -> bool:
        return self.state in (SessionState.COMPLETED, SessionState.EMPTY)

    @property
    def progress_fraction(self) -> float:
        if not self.questions or self.state == SessionState.COMPLETED:
            return 1.0
        done = self.current_index + (1 if self.state == SessionState.SUBMITTED else 0)
        return done / len(self.questions)

    def _require(self, *states: SessionState) -> QuestionAttemptState:
        if self.state not in states or self.attempt is None:
            allowed = ", ".join(s.value for s in states)
            raise SessionError(f"Not allowed while {self.state.value} (needs {allowed})")
        return self.attempt

    # --- Main transitions ---

    async def submit(
        self, answer: Optional[str] = None, choice_index: Optional[int] = None,
    ) -> ValidationResult:
        """Check the answer locally and report it to the sink in the background."""
        attempt = self._require(SessionState.PRESENTING)
        question = attempt.question

        if question.answer_type == AnswerType.MULTIPLE_CHOICE:
            if choice_index is None:
                raise SessionError("Select a choice before submitting")
        elif not (answer or "").strip():
            raise SessionError("Enter an answer before submitting")

        attempt.answer = answer or ""
        attempt.choice_index = choice_index
        result = validate_question(
            question, answer=answer, choice_index=choice_index,
            default_tolerance=self.default_tolerance,
        )
        attempt.result = result
        attempt.submitted = True
        self.stats.record(result.correct)
        self.state = SessionState.SUBMITTED

        record = AttemptRecord(
            question_id=question.id,
            answer_raw=attempt.submitted_answer,
            is_correct=result.correct,
            time_spent_seconds=max(0, round(self._clock() - attempt.started_at)),
            hints_used=attempt.hints_revealed,
        )
        if self.sink is not None:
            attempt._record_task = self._spawn(self._record_attempt(attempt, record))
        return result

    def next(self) -> SessionState:
        """Discard the current attempt and move on, or complete the session."""
        self._require(SessionState.SUBMITTED)
        self.attempt = None
        if self.current_index + 1 >= len(self.questions):
            self.state = SessionState.COMPLETED
            logger.info(
                "Completed %s session: %d/%d correct",
                self.mode.value, self.stats.correct, self.stats.total,
            )
            return self.state
        self.current_index += 1
        self._present()
        return self.state

    def abandon(self) -> None:
        """Drop all transient state; nothing is persisted for a partial session."""
        self.attempt = None
        if not self.is_finished:
            self.state = SessionState.COMPLETED

    # --- Disclosure ---

    def reveal_hint(self) -> Optional[str]:
        """Reveal the next hint. Only while presenting, and never past the last hint."""
        if self.state != SessionState.PRESENTING or self.attempt is None:
            return None
        attempt = self.attempt
        if attempt.hints_revealed >= len(attempt.question.hints):
            return None
        hint = attempt.question.hints[attempt.hints_revealed]
        attempt.hints_revealed += 1
        return hint

    def reveal_solution(self) -> Optional[list[str]]:
        """Return the solution steps. Only once the answer is submitted."""
        if self.state != SessionState.SUBMITTED or self.attempt is None:
            return None
        self.attempt.solution_revealed = True
        return list(self.attempt.question.solution_steps)

    # --- Flag / report side channel ---

    async def flag(self, flag_type: FlagType | str, comment: Optional[str] = None) -> FlagRecord:
        """Report a problem with the current question. Once per question."""
        attempt = self._require(SessionState.PRESENTING, SessionState.SUBMITTED)
        try:
            flag_type = FlagType(flag_type)
        except ValueError:
            raise SessionError(f"Unknown flag type: {flag_type}") from None
        if attempt.flag is not None:
            raise SessionError("This question has already been flagged")
        if flag_type == FlagType.CLAIM_CORRECT and attempt.is_correct is not False:
            raise SessionError("Only an answer marked incorrect can be claimed correct")

        if flag_type == FlagType.CLAIM_CORRECT and comment is None:
            comment = "Student claims their answer was marked incorrectly"
        record = FlagRecord(
            question_id=attempt.question.id,
            flag_type=flag_type,
            comment=comment or None,
            student_answer=attempt.submitted_answer or None,
            attempt_id=attempt.attempt_id,
        )
        attempt.flag = record
        if self.sink is not None:
            self._spawn(self._submit_flag(attempt, record))
        return record

    # --- Background sink calls ---

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _record_attempt(self, attempt: QuestionAttemptState, record: AttemptRecord) -> None:
        try:
            attempt.attempt_id = await self.sink.record_attempt(record)
        except Exception as e:
            logger.warning("Failed to record attempt for %s: %s", record.question_id, e)

    async def _submit_flag(self, attempt: QuestionAttemptState, record: FlagRecord) -> None:
        if attempt._record_task is not None:
            await asyncio.wait([attempt._record_task])
            record = dataclasses.replace(record, attempt_id=attempt.attempt_id)
        try:
            await self.sink.submit_flag(record)
        except Exception as e:
            logger.warning("Failed to submit flag for %s: %s", record.question_id, e)

    async def drain(self) -> None:
        """Wait for outstanding sink calls (shutdown and tests)."""
        while self._pending:
            await asyncio.wait(list(self._pending))

    def summary(self) -> dict:
        return {
            "mode": self.mode.value,
            "state": self.state.value,
            "total": self.stats.total,
            "correct": self.stats.correct,
            "accuracy": self.stats.accuracy,
            "streak": self.stats.streak,
            "bestStreak": self.stats.best_streak,
            "questionCount": len(self.questions),
        }


def build_session(
    mode: PracticeMode,
    resolver: CandidatePoolResolver,
    history: HistoryIndex,
    sampler: SmartSampler,
    count: Optional[int] = None,
    topic_id: Optional[str] = None,
    question_ids: Optional[Iterable[str]] = None,
    sink: Optional[AttemptSink] = None,
    default_tolerance: float = DEFAULT_TOLERANCE,
) -> PracticeSession:
    """Resolve the pool for a mode, freeze the session list and start the session."""
    mode = PracticeMode(mode)
    pool = resolver.resolve(mode, history, topic_id=topic_id, question_ids=question_ids)
    if mode == PracticeMode.CUSTOM:
        questions = sampler.shuffled(pool)
    else:
        questions = sampler.sample(pool, history, count)
    session = PracticeSession(
        mode, questions, sink=sink, default_tolerance=default_tolerance,
    )
    session.start()
    return session
