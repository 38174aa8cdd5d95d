"""Mastery-weighted session sampling.

Unanswered questions fill most of a session; the rest is drawn from
answered questions by roulette-wheel selection without replacement,
weighted so that low-accuracy questions come back more often.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Optional, Sequence

from practicetutor.engine.history import HistoryIndex
from practicetutor.engine.models import Question


@dataclass(frozen=True)
class SamplerConfig:
    session_size: int = 20
    unanswered_share: float = 0.7
    weight_base: float = 3.0
    weight_slope: float = 2.5


class SmartSampler:
    def __init__(self, config: Optional[SamplerConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or SamplerConfig()
        self.rng = rng or random.Random()

    def weight(self, accuracy: float) -> float:
        """3.0 at 0% accuracy down to 0.5 at 100%."""
        return self.config.weight_base - accuracy * self.config.weight_slope

    def shuffled(self, questions: Sequence[Question]) -> list[Question]:
        result = list(questions)
        self.rng.shuffle(result)
        return result

    def sample(
        self,
        pool: Sequence[Question],
        history: HistoryIndex,
        count: Optional[int] = None,
        shuffle: bool = True,
    ) -> list[Question]:
        """Select up to `count` distinct questions from the pool."""
        n = self.config.session_size if count is None else count
        if n <= 0:
            return []

        if len(pool) <= n:
            return self.shuffled(pool) if shuffle else list(pool)

        unanswered = [q for q in pool if history.is_unanswered(q.id)]
        answered = [q for q in pool if not history.is_unanswered(q.id)]

        target = min(math.ceil(n * self.config.unanswered_share), len(unanswered))
        result = self.shuffled(unanswered)[:target]

        remaining = n - len(result)
        if remaining > 0 and answered:
            result.extend(self._weighted_draw(answered, history, remaining))

        # Top up from leftover unanswered items when answered ones run out.
        if len(result) < n:
            chosen = {q.id for q in result}
            leftovers = [q for q in unanswered if q.id not in chosen]
            result.extend(self.shuffled(leftovers)[: n - len(result)])

        return self.shuffled(result)

    def _weighted_draw(
        self, answered: Sequence[Question], history: HistoryIndex, k: int,
    ) -> list[Question]:
        candidates = [
            (q, self.weight(history.get(q.id).accuracy))
            for q in answered
        ]
        picked: list[Question] = []
        while candidates and len(picked) < k:
            total = sum(w for _, w in candidates)
            draw = self.rng.random() * total
            cumulative = 0.0
            index = len(candidates) - 1
            for i, (_, w) in enumerate(candidates):
                cumulative += w
                if cumulative > draw:
                    index = i
                    break
            picked.append(candidates.pop(index)[0])
        return picked
