"""Tests for the practice session state machine."""

from __future__ import annotations

import logging
import random

import pytest

from practicetutor.engine.history import HistoryIndex
from practicetutor.engine.models import (
    AnswerType,
    CandidatePage,
    ChoiceAnswer,
    FlagType,
    NumericAnswer,
    PracticeMode,
    TextAnswer,
)
from practicetutor.engine.pool import CandidatePoolResolver
from practicetutor.engine.sampler import SmartSampler
from practicetutor.engine.session import (
    PracticeSession,
    SessionError,
    SessionState,
    build_session,
)

from conftest import RecordingSink, make_question


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class ListStore:
    def __init__(self, questions):
        self.questions = questions

    def fetch(self, request):
        matches = self.questions
        if request.topic_ids is not None:
            matches = [q for q in matches if q.topic_id in request.topic_ids]
        if request.question_ids is not None:
            matches = [q for q in matches if q.id in request.question_ids]
        page = matches[request.offset : request.offset + request.limit]
        return CandidatePage(questions=page, total=len(matches))


@pytest.fixture
def questions():
    return [
        make_question("q1", hints=("first", "second"), solution_steps=("step 1", "step 2")),
        make_question(
            "q2",
            answer_type=AnswerType.MULTIPLE_CHOICE,
            correct_answer=ChoiceAnswer(choices=("3", "4", "5"), correct_index=1),
        ),
        make_question(
            "q3",
            answer_type=AnswerType.NUMERIC,
            correct_answer=NumericAnswer(value=43.96, tolerance=0.1),
        ),
    ]


@pytest.fixture
def session(questions, sink):
    s = PracticeSession(PracticeMode.TOPIC, questions, sink=sink)
    s.start()
    return s


class TestLifecycle:
    def test_start_presents_first_question(self, session):
        assert session.state == SessionState.PRESENTING
        assert session.current_question.id == "q1"
        assert session.progress_fraction == 0.0

    def test_empty_list_means_nothing_available(self):
        s = PracticeSession(PracticeMode.REVIEW, [])
        assert s.start() == SessionState.EMPTY
        assert s.is_finished
        assert s.current_question is None

    def test_cannot_start_twice(self, session):
        with pytest.raises(SessionError):
            session.start()

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            PracticeSession(PracticeMode.TOPIC, [make_question("q1"), make_question("q1")])

    def test_next_requires_submission(self, session):
        with pytest.raises(SessionError):
            session.next()

    @pytest.mark.asyncio
    async def test_submit_twice_rejected(self, session):
        await session.submit(answer="42")
        with pytest.raises(SessionError):
            await session.submit(answer="42")

    @pytest.mark.asyncio
    async def test_completed_after_last_question(self, session):
        await session.submit(answer="42")
        assert session.next() == SessionState.PRESENTING
        await session.submit(choice_index=1)
        assert session.next() == SessionState.PRESENTING
        await session.submit(answer="43.96")
        assert session.progress_fraction == 1.0
        assert session.next() == SessionState.COMPLETED
        assert session.attempt is None
        with pytest.raises(SessionError):
            await session.submit(answer="1")

    def test_abandon(self, session):
        session.abandon()
        assert session.state == SessionState.COMPLETED
        assert session.attempt is None


class TestSubmit:
    @pytest.mark.asyncio
    async def test_empty_text_answer_rejected(self, session):
        with pytest.raises(SessionError):
            await session.submit(answer="   ")
        assert session.state == SessionState.PRESENTING
        assert session.stats.total == 0

    @pytest.mark.asyncio
    async def test_multiple_choice_needs_index(self, session):
        await session.submit(answer="42")
        session.next()
        with pytest.raises(SessionError):
            await session.submit(answer="4")

    @pytest.mark.asyncio
    async def test_verdict_and_stats(self, session):
        result = await session.submit(answer=" 42 ")
        assert result.correct
        assert session.attempt.is_correct is True
        assert session.stats.total == 1
        assert session.stats.streak == 1

    @pytest.mark.asyncio
    async def test_streak_resets_on_miss(self, session):
        await session.submit(answer="42")
        session.next()
        await session.submit(choice_index=1)
        assert session.stats.streak == 2
        session.next()
        await session.submit(answer="12")
        assert session.stats.streak == 0
        assert session.stats.best_streak == 2
        assert session.stats.accuracy == 67

    @pytest.mark.asyncio
    async def test_attempt_recorded_with_time_and_hints(self, questions):
        sink = RecordingSink()
        clock = FakeClock()
        s = PracticeSession(PracticeMode.TOPIC, questions, sink=sink, clock=clock)
        s.start()
        s.reveal_hint()
        clock.now += 12.4
        await s.submit(answer="41")
        await s.drain()

        record = sink.attempts[0]
        assert record.question_id == "q1"
        assert record.answer_raw == "41"
        assert record.is_correct is False
        assert record.time_spent_seconds == 12
        assert record.hints_used == 1
        assert s.attempt.attempt_id == "attempt-1"

    @pytest.mark.asyncio
    async def test_choice_index_recorded_as_answer(self, session, sink):
        await session.submit(answer="42")
        session.next()
        await session.submit(choice_index=2)
        await session.drain()
        assert sink.attempts[1].answer_raw == "2"
        assert sink.attempts[1].is_correct is False

    @pytest.mark.asyncio
    async def test_sink_failure_is_logged_not_raised(self, questions, caplog):
        s = PracticeSession(PracticeMode.TOPIC, questions, sink=RecordingSink(fail=True))
        s.start()
        with caplog.at_level(logging.WARNING, logger="practicetutor.engine.session"):
            result = await s.submit(answer="42")
            await s.drain()
        assert result.correct
        assert s.state == SessionState.SUBMITTED
        assert s.attempt.attempt_id is None
        assert "Failed to record attempt" in caplog.text

    @pytest.mark.asyncio
    async def test_configured_default_tolerance(self):
        q = make_question(
            "n1", answer_type=AnswerType.NUMERIC, correct_answer=NumericAnswer(value=10),
        )
        s = PracticeSession(PracticeMode.TOPIC, [q], default_tolerance=0.5)
        s.start()
        assert (await s.submit(answer="10.4")).correct


class TestDisclosure:
    def test_hints_are_bounded(self, session):
        assert session.reveal_hint() == "first"
        assert session.reveal_hint() == "second"
        assert session.reveal_hint() is None
        assert session.attempt.hints_revealed == 2
        assert session.attempt.visible_hints == ["first", "second"]

    @pytest.mark.asyncio
    async def test_no_hints_after_submission(self, session):
        await session.submit(answer="42")
        assert session.reveal_hint() is None
        assert session.attempt.hints_revealed == 0

    def test_no_solution_while_presenting(self, session):
        assert session.reveal_solution() is None
        assert not session.attempt.solution_revealed

    @pytest.mark.asyncio
    async def test_solution_after_submission(self, session):
        await session.submit(answer="7")
        assert session.reveal_solution() == ["step 1", "step 2"]
        assert session.attempt.solution_revealed

    @pytest.mark.asyncio
    async def test_state_discarded_on_advance(self, session):
        session.reveal_hint()
        await session.submit(answer="42")
        session.next()
        assert session.attempt.hints_revealed == 0
        assert session.attempt.answer == ""
        assert session.attempt.flag is None


class TestFlags:
    @pytest.mark.asyncio
    async def test_flag_once_per_question(self, session, sink):
        record = await session.flag(FlagType.TYPO, comment="Spelling")
        assert record.flag_type == FlagType.TYPO
        with pytest.raises(SessionError):
            await session.flag(FlagType.UNCLEAR)
        await session.drain()
        assert len(sink.flags) == 1
        assert sink.flags[0].comment == "Spelling"

    @pytest.mark.asyncio
    async def test_flag_by_string_value(self, session):
        record = await session.flag("too_hard")
        assert record.flag_type == FlagType.TOO_HARD

    @pytest.mark.asyncio
    async def test_unknown_flag_type(self, session):
        with pytest.raises(SessionError):
            await session.flag("bogus")

    @pytest.mark.asyncio
    async def test_flag_after_submit_carries_attempt(self, session, sink):
        await session.submit(answer="41")
        await session.flag(FlagType.INCORRECT_ANSWER)
        await session.drain()
        flag = sink.flags[0]
        assert flag.student_answer == "41"
        assert flag.attempt_id == "attempt-1"

    @pytest.mark.asyncio
    async def test_claim_correct_needs_incorrect_verdict(self, session):
        with pytest.raises(SessionError):
            await session.flag(FlagType.CLAIM_CORRECT)
        await session.submit(answer="42")
        with pytest.raises(SessionError):
            await session.flag(FlagType.CLAIM_CORRECT)

    @pytest.mark.asyncio
    async def test_claim_correct_after_miss(self, session, sink):
        await session.submit(answer="forty-two")
        record = await session.flag(FlagType.CLAIM_CORRECT)
        assert record.comment
        await session.drain()
        assert sink.flags[0].flag_type == FlagType.CLAIM_CORRECT

    @pytest.mark.asyncio
    async def test_flag_not_allowed_when_completed(self, session):
        session.abandon()
        with pytest.raises(SessionError):
            await session.flag(FlagType.OTHER)

    @pytest.mark.asyncio
    async def test_flag_failure_is_logged(self, questions, caplog):
        s = PracticeSession(PracticeMode.TOPIC, questions, sink=RecordingSink(fail=True))
        s.start()
        with caplog.at_level(logging.WARNING, logger="practicetutor.engine.session"):
            await s.flag(FlagType.OTHER)
            await s.drain()
        assert "Failed to submit flag" in caplog.text


class TestBuildSession:
    @pytest.fixture
    def bank_questions(self):
        return [
            make_question("a1", topic_id="algebra"),
            make_question("a2", topic_id="algebra"),
            make_question("a3", topic_id="algebra"),
            make_question("g1", topic_id="geometry"),
        ]

    @pytest.mark.asyncio
    async def test_end_to_end_small_topic(self, bank_questions, sink):
        resolver = CandidatePoolResolver(ListStore(bank_questions))
        sampler = SmartSampler(rng=random.Random(5))
        session = build_session(
            PracticeMode.TOPIC, resolver, HistoryIndex(), sampler,
            count=20, topic_id="algebra", sink=sink,
        )
        assert session.state == SessionState.PRESENTING
        assert sorted(q.id for q in session.questions) == ["a1", "a2", "a3"]

        seen = []
        while session.state == SessionState.PRESENTING:
            seen.append(session.current_question.id)
            await session.submit(answer="42")
            session.next()
        await session.drain()

        assert session.state == SessionState.COMPLETED
        assert len(seen) == 3 and len(set(seen)) == 3
        assert len(sink.attempts) == 3
        summary = session.summary()
        assert summary["total"] == 3
        assert summary["accuracy"] == 100
        assert summary["bestStreak"] == 3

    def test_empty_pool(self, bank_questions):
        resolver = CandidatePoolResolver(ListStore(bank_questions))
        session = build_session(
            PracticeMode.WEAK, resolver, HistoryIndex(), SmartSampler(rng=random.Random(1)),
        )
        assert session.state == SessionState.EMPTY

    def test_custom_mode_keeps_whole_selection(self, bank_questions):
        resolver = CandidatePoolResolver(ListStore(bank_questions))
        session = build_session(
            PracticeMode.CUSTOM, resolver, HistoryIndex(), SmartSampler(rng=random.Random(2)),
            count=1, question_ids=["a1", "g1", "a3"],
        )
        assert sorted(q.id for q in session.questions) == ["a1", "a3", "g1"]

    def test_topic_mode_without_topic_raises(self, bank_questions):
        resolver = CandidatePoolResolver(ListStore(bank_questions))
        with pytest.raises(ValueError):
            build_session(PracticeMode.TOPIC, resolver, HistoryIndex(), SmartSampler())

    def test_sampled_session_respects_count(self):
        pool = [make_question(f"q{i}") for i in range(30)]
        resolver = CandidatePoolResolver(ListStore(pool))
        session = build_session(
            PracticeMode.TOPIC, resolver, HistoryIndex(), SmartSampler(rng=random.Random(3)),
            count=20, topic_id="t1",
        )
        assert len(session.questions) == 20
        assert len({q.id for q in session.questions}) == 20
