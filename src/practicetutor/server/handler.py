"""Server handler: dispatches JSON-lines requests to the practice engine."""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Optional

from practicetutor.bank.registry import QuestionBank
from practicetutor.config.settings import Settings
from practicetutor.engine.feedback import correct_answer_text, empty_pool_message, verdict_message
from practicetutor.engine.history import HistoryIndex
from practicetutor.engine.models import AnswerType, ChoiceAnswer, PracticeMode, Question
from practicetutor.engine.pool import CandidatePoolResolver
from practicetutor.engine.sampler import SmartSampler
from practicetutor.engine.session import PracticeSession, SessionState, build_session
from practicetutor.state.attempts import AttemptLog

from .protocol import Request


def _question_to_dict(question: Question) -> dict:
    """Serialize a question for display. Never includes the answer."""
    d = {
        "id": question.id,
        "topicId": question.topic_id,
        "prompt": question.prompt,
        "promptLatex": question.prompt_latex,
        "answerType": question.answer_type.value,
        "difficulty": question.difficulty,
        "hintCount": len(question.hints),
    }
    if question.answer_type == AnswerType.MULTIPLE_CHOICE and isinstance(
        question.correct_answer, ChoiceAnswer
    ):
        d["choices"] = list(question.correct_answer.choices)
    if question.answer_type == AnswerType.NUMERIC:
        d["unit"] = getattr(question.correct_answer, "unit", None)
    return d


class ServerHandler:
    """Routes incoming requests to engine methods and returns result dicts."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        bank: Optional[QuestionBank] = None,
        log: Optional[AttemptLog] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or Settings.load()
        self.bank = bank or QuestionBank(self.settings.get_bank_dir())
        self.log = log or AttemptLog(
            db_path=self.settings.get_data_dir() / "attempts.db",
            topic_of=self._topic_of,
        )
        self.sampler = SmartSampler(self.settings.sampler.to_config(), rng=rng)
        self._session: Optional[PracticeSession] = None

    def _topic_of(self, question_id: str) -> Optional[str]:
        question = self.bank.get(question_id)
        return question.topic_id if question else None

    async def dispatch(self, msg: dict) -> dict:
        """Route a request message to the appropriate handler method."""
        request = Request.from_dict(msg)

        handler_map = {
            "listTopics": self._list_topics,
            "startSession": self._start_session,
            "getQuestion": self._get_question,
            "submit": self._submit,
            "revealHint": self._reveal_hint,
            "revealSolution": self._reveal_solution,
            "flag": self._flag,
            "next": self._next,
            "summary": self._summary,
            "endSession": self._end_session,
        }

        handler = handler_map.get(request.method)
        if handler is None:
            raise ValueError(f"Unknown method: {request.method}")

        return await handler(request.params)

    def _require_session(self) -> PracticeSession:
        if self._session is None:
            raise ValueError("No session started")
        return self._session

    def _position(self, session: PracticeSession) -> dict:
        d = {
            "state": session.state.value,
            "currentIndex": session.current_index,
            "totalQuestions": len(session.questions),
            "stats": session.summary(),
        }
        if session.current_question is not None:
            d["question"] = _question_to_dict(session.current_question)
        return d

    async def _list_topics(self, params: dict) -> dict:
        history = HistoryIndex.from_snapshot(self.log.fetch_history())
        weak = set(history.weak_topics(
            self.settings.weak_topics.min_attempts, self.settings.weak_topics.max_accuracy,
        ))
        aggregates = history.topics
        topics = []
        for t in self.bank.list_topics():
            agg = aggregates.get(t.id)
            topics.append({
                "id": t.id,
                "name": t.name,
                "description": t.description,
                "questionCount": sum(1 for q in t.questions if q.status == "active"),
                "attempts": agg.attempts if agg else 0,
                "accuracy": round(agg.accuracy * 100) if agg else None,
                "weak": t.id in weak,
            })
        due = self.log.due_question_ids(datetime.now(timezone.utc))
        return {"topics": topics, "dueCount": len(due)}

    async def _start_session(self, params: dict) -> dict:
        if self._session is not None:
            await self._session.drain()

        mode = PracticeMode(params["mode"])
        topic_id = params.get("topicId")
        if topic_id and self.bank.get_topic(topic_id) is None:
            raise ValueError(f"Unknown topic: {topic_id}")
        history = HistoryIndex.from_snapshot(self.log.fetch_history())
        resolver = CandidatePoolResolver(
            self.bank,
            due_source=self.log,
            weak_min_attempts=self.settings.weak_topics.min_attempts,
            weak_max_accuracy=self.settings.weak_topics.max_accuracy,
        )
        self._session = build_session(
            mode,
            resolver,
            history,
            self.sampler,
            count=params.get("count"),
            topic_id=topic_id,
            question_ids=params.get("questionIds"),
            sink=self.log,
            default_tolerance=self.settings.validation.default_tolerance,
        )

        result = self._position(self._session)
        if self._session.state == SessionState.EMPTY:
            message = empty_pool_message(mode)
            result["empty"] = {"title": message.title, "detail": message.detail}
        return result

    async def _get_question(self, params: dict) -> dict:
        session = self._require_session()
        result = self._position(session)
        if session.attempt is not None:
            result["hints"] = session.attempt.visible_hints
            result["submitted"] = session.attempt.submitted
        return result

    async def _submit(self, params: dict) -> dict:
        session = self._require_session()
        result = await session.submit(
            answer=params.get("answer"), choice_index=params.get("choiceIndex"),
        )
        question = session.current_question
        return {
            "correct": result.correct,
            "compared": result.compared,
            "message": verdict_message(question, result.correct, session.stats.streak),
            "correctAnswer": correct_answer_text(question),
            "stats": session.summary(),
        }

    async def _reveal_hint(self, params: dict) -> dict:
        session = self._require_session()
        hint = session.reveal_hint()
        attempt = session.attempt
        return {
            "hint": hint,
            "hintsRevealed": attempt.hints_revealed if attempt else 0,
            "hintCount": len(attempt.question.hints) if attempt else 0,
        }

    async def _reveal_solution(self, params: dict) -> dict:
        session = self._require_session()
        steps = session.reveal_solution()
        if steps is None:
            return {"solution": None}
        return {
            "solution": steps,
            "correctAnswer": correct_answer_text(session.current_question),
        }

    async def _flag(self, params: dict) -> dict:
        session = self._require_session()
        record = await session.flag(params["flagType"], comment=params.get("comment"))
        return {"flagged": True, "flagType": record.flag_type.value}

    async def _next(self, params: dict) -> dict:
        session = self._require_session()
        session.next()
        if session.state == SessionState.COMPLETED:
            await session.drain()
            return {"finished": True, "summary": session.summary()}
        result = self._position(session)
        result["finished"] = False
        return result

    async def _summary(self, params: dict) -> dict:
        return self._require_session().summary()

    async def _end_session(self, params: dict) -> dict:
        session = self._require_session()
        session.abandon()
        await session.drain()
        self._session = None
        return {"ok": True}

    async def shutdown(self) -> None:
        """Let background attempt and flag writes finish."""
        if self._session is not None:
            await self._session.drain()
