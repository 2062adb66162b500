import math
from dataclasses import dataclass
from typing import List, Optional

from flask import current_app

from quizapp.errors import CatalogIntegrityError
from .cache import CachedQuestion, get_quiz_questions, question_cache

BASE_SCORE = 100
MAX_TIME_BONUS = 50
FAST_THRESHOLD_MS = 2000
SLOW_THRESHOLD_MS = 15000


@dataclass
class ScoreResult:
    correct: bool
    score_delta: int
    base: int
    time_bonus: int
    time_spent_ms: int

    def breakdown(self) -> dict:
        return {
            'base': self.base,
            'timeBonus': self.time_bonus,
            'timeSpentMs': self.time_spent_ms,
        }


def clamp_elapsed_ms(value) -> int:
    """Bound a reported duration to [0, SLOW_THRESHOLD_MS]; past that it scores the same."""
    try:
        elapsed = int(value or 0)
    except (TypeError, ValueError, OverflowError):
        elapsed = 0
    return min(max(0, elapsed), SLOW_THRESHOLD_MS)


def calculate_time_bonus(elapsed_ms) -> int:
    """Full bonus up to the fast threshold, none from the slow one, linear in between."""
    elapsed = clamp_elapsed_ms(elapsed_ms)
    if elapsed <= FAST_THRESHOLD_MS:
        return MAX_TIME_BONUS
    if elapsed >= SLOW_THRESHOLD_MS:
        return 0
    raw = MAX_TIME_BONUS * (SLOW_THRESHOLD_MS - elapsed) / (SLOW_THRESHOLD_MS - FAST_THRESHOLD_MS)
    # half-up, not banker's rounding
    return int(math.floor(raw + 0.5))


def calculate_score_delta(is_correct: bool, elapsed_ms) -> int:
    if not is_correct:
        return 0
    return BASE_SCORE + calculate_time_bonus(elapsed_ms)


def find_question(quiz_id: int, question_id: int) -> Optional[CachedQuestion]:
    questions = get_quiz_questions(quiz_id)
    for q in questions:
        if q.id == question_id:
            return q
    # The catalog may have changed since it was cached; reload at most once per floor
    age = question_cache.age(quiz_id)
    if age is not None and age < question_cache.reload_floor_sec:
        return None
    question_cache.invalidate(quiz_id)
    for q in get_quiz_questions(quiz_id):
        if q.id == question_id:
            return q
    return None


def question_at(quiz_id: int, index: int) -> Optional[CachedQuestion]:
    questions: List[CachedQuestion] = get_quiz_questions(quiz_id)
    if 0 <= index < len(questions):
        return questions[index]
    return None


def score_answer(question: CachedQuestion, option_id: int, elapsed_ms) -> ScoreResult:
    """Decide correctness and points for one answer.

    The elapsed time is taken as given; callers that want the server clock
    to bound it do so before calling in.
    """
    if question.correct_option_id is None:
        current_app.logger.error(f"[catalog] question={question.id} has no correct option")
        raise CatalogIntegrityError('correct_option_missing', questionId=question.id)

    elapsed = clamp_elapsed_ms(elapsed_ms)
    correct = question.correct_option_id == option_id
    time_bonus = calculate_time_bonus(elapsed) if correct else 0
    return ScoreResult(
        correct=correct,
        score_delta=calculate_score_delta(correct, elapsed),
        base=BASE_SCORE if correct else 0,
        time_bonus=time_bonus,
        time_spent_ms=elapsed,
    )
