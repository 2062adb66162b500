"""Process-local cache of a quiz's ordered questions and their correct options.

Questions do not change while a quiz is being played, so answer scoring
reads them from here instead of hitting the catalog tables on every
submission. Entries expire after ``QUIZ_CACHE_TTL_SEC`` and the oldest
entry is evicted once ``QUIZ_CACHE_MAX_ENTRIES`` is reached.

The cache lives in this process only. With several service instances an
admin invalidation reaches just the instance that served it; swap the
backend for a shared store before scaling out.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, List, Optional

from quizapp.models import AnswerOption, Question


@dataclass(frozen=True)
class CachedQuestion:
    id: int
    order: int
    difficulty: int
    option_ids: frozenset
    correct_option_id: Optional[int]


class QuestionCache:
    def __init__(self, ttl_sec: float = 300, max_entries: int = 100,
                 reload_floor_sec: float = 5, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = ttl_sec
        self.max_entries = max_entries
        self.reload_floor_sec = reload_floor_sec
        self._clock = clock
        self._entries: "OrderedDict[int, tuple]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def init_app(self, app) -> None:
        self.ttl_sec = float(app.config.get('QUIZ_CACHE_TTL_SEC', 300))
        self.max_entries = int(app.config.get('QUIZ_CACHE_MAX_ENTRIES', 100))
        self.reload_floor_sec = float(app.config.get('QUIZ_CACHE_RELOAD_FLOOR_SEC', 5))
        self.clear()
        app.extensions['question_cache'] = self

    def get(self, quiz_id: int) -> Optional[List[CachedQuestion]]:
        with self._lock:
            entry = self._entries.get(quiz_id)
            if entry is None:
                return None
            questions, cached_at = entry
            if self._clock() - cached_at > self.ttl_sec:
                del self._entries[quiz_id]
                return None
            return questions

    def put(self, quiz_id: int, questions: List[CachedQuestion]) -> None:
        with self._lock:
            self._entries.pop(quiz_id, None)
            while self.max_entries > 0 and len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
            self._entries[quiz_id] = (questions, self._clock())

    def get_or_compute(self, quiz_id: int, loader: Callable[[int], List[CachedQuestion]]) -> List[CachedQuestion]:
        questions = self.get(quiz_id)
        if questions is not None:
            self.hits += 1
            return questions
        self.misses += 1
        questions = loader(quiz_id)
        self.put(quiz_id, questions)
        return questions

    def age(self, quiz_id: int) -> Optional[float]:
        """Seconds since the entry was loaded, or None when nothing is cached."""
        with self._lock:
            entry = self._entries.get(quiz_id)
            return None if entry is None else self._clock() - entry[1]

    def invalidate(self, quiz_id: int) -> bool:
        with self._lock:
            return self._entries.pop(quiz_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict:
        with self._lock:
            return {
                'size': len(self._entries),
                'maxSize': self.max_entries,
                'ttlMs': int(self.ttl_sec * 1000),
                'hits': self.hits,
                'misses': self.misses,
                'quizIds': list(self._entries.keys()),
            }


def load_quiz_questions(quiz_id: int) -> List[CachedQuestion]:
    questions = Question.query.filter_by(quiz_id=quiz_id).order_by(Question.order, Question.id).all()
    loaded = []
    for q in questions:
        options = AnswerOption.query.filter_by(question_id=q.id).order_by(AnswerOption.id).all()
        correct = next((o.id for o in options if o.is_correct), None)
        loaded.append(CachedQuestion(
            id=q.id,
            order=q.order,
            difficulty=q.difficulty,
            option_ids=frozenset(o.id for o in options),
            correct_option_id=correct,
        ))
    return loaded


def get_quiz_questions(quiz_id: int) -> List[CachedQuestion]:
    return question_cache.get_or_compute(quiz_id, load_quiz_questions)


question_cache = QuestionCache()
