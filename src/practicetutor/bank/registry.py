"""Question bank discovery: a directory of YAML topic files."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from practicetutor.bank.loader import QuestionFormatError, TopicFile, load_topic
from practicetutor.engine.models import CandidatePage, CandidateRequest, Question


class QuestionBank:
    """Loads topic files and serves them as a question store.

    Only questions whose status is ``active`` are ever returned.
    """

    def __init__(self, bank_dir: Optional[Path] = None):
        self.bank_dir = bank_dir or (Path(__file__).parent / "topics")
        self._topics: Optional[list[TopicFile]] = None
        self._by_id: dict[str, Question] = {}

    def _load(self) -> list[TopicFile]:
        if self._topics is None:
            topics: list[TopicFile] = []
            by_id: dict[str, Question] = {}
            for path in sorted(self.bank_dir.glob("*.y*ml")):
                topic = load_topic(path)
                for q in topic.questions:
                    if q.id in by_id:
                        raise QuestionFormatError(
                            f"{path.name}: duplicate question id {q.id!r}"
                        )
                    by_id[q.id] = q
                topics.append(topic)
            self._topics = topics
            self._by_id = by_id
        return self._topics

    def list_topics(self) -> list[TopicFile]:
        return list(self._load())

    def get_topic(self, topic_id: str) -> Optional[TopicFile]:
        for topic in self._load():
            if topic.id == topic_id:
                return topic
        return None

    def get(self, question_id: str) -> Optional[Question]:
        self._load()
        return self._by_id.get(question_id)

    def active_questions(self) -> list[Question]:
        return [
            q for topic in self._load() for q in topic.questions
            if q.status == "active"
        ]

    def fetch(self, request: CandidateRequest) -> CandidatePage:
        """Answer a candidate fetch with one page of matching questions."""
        matches = self.active_questions()
        if request.topic_ids is not None:
            wanted = set(request.topic_ids)
            matches = [q for q in matches if q.topic_id in wanted]
        if request.question_ids is not None:
            wanted = set(request.question_ids)
            matches = [q for q in matches if q.id in wanted]
        page = matches[request.offset : request.offset + request.limit]
        return CandidatePage(questions=page, total=len(matches))
