from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from quizapp import db
from quizapp.errors import NotFoundError, SessionStateError
from quizapp.models import Answer, QuizSession
from .scoring import ScoreResult, clamp_elapsed_ms, find_question, question_at, score_answer
from .timing import ensure_active, ensure_owner, load_session, server_elapsed_ms


@dataclass
class LedgerResult:
    correct: bool
    score_delta: int
    total_score: int
    current_question_index: int
    score: ScoreResult

    def to_dict(self) -> dict:
        return {
            'correct': self.correct,
            'scoreDelta': self.score_delta,
            'totalScore': self.total_score,
            'currentQuestionIndex': self.current_question_index,
            'breakdown': self.score.breakdown(),
        }


def effective_elapsed_ms(reported_ms, server_ms: Optional[int], grace_ms: Optional[int]) -> int:
    """Client time, floored by the server clock when a grace window is configured."""
    reported = clamp_elapsed_ms(reported_ms)
    if grace_ms is None or server_ms is None:
        return reported
    return max(reported, server_ms - int(grace_ms))


def commit_answer(session: QuizSession, answer: Answer, advance: bool) -> QuizSession:
    """Insert the answer and apply its score delta in one transaction."""
    values = {QuizSession.total_score: QuizSession.total_score + answer.score_delta}
    if advance:
        values[QuizSession.current_question_index] = QuizSession.current_question_index + 1
        values[QuizSession.current_question_started_at] = None
    try:
        db.session.add(answer)
        db.session.flush()
        updated = QuizSession.query.filter(
            QuizSession.id == session.id,
            QuizSession.finished_at.is_(None),
        ).update(values, synchronize_session=False)
        if not updated:
            raise SessionStateError('session_finished')
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SessionStateError('already_answered', questionId=answer.question_id)
    except Exception:
        db.session.rollback()
        raise
    db.session.refresh(session)
    return session


def record_answer(
    session_id: int,
    question_id: int,
    option_id: int,
    time_spent_ms,
    quiz_id: Optional[int] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> LedgerResult:
    session = load_session(session_id, quiz_id)
    ensure_owner(session, user_id)
    ensure_active(session)

    question = find_question(session.quiz_id, question_id)
    if question is None:
        raise NotFoundError('question_not_found')
    if option_id not in question.option_ids:
        raise NotFoundError('option_not_found')
    if Answer.query.filter_by(session_id=session.id, question_id=question.id).first():
        raise SessionStateError('already_answered', questionId=question.id)

    current = question_at(session.quiz_id, session.current_question_index)
    is_current = current is not None and current.id == question.id

    elapsed = clamp_elapsed_ms(time_spent_ms)
    grace = current_app.config.get('SERVER_TIMING_GRACE_MS')
    if is_current and grace is not None:
        elapsed = effective_elapsed_ms(elapsed, server_elapsed_ms(session, now), grace)

    result = score_answer(question, option_id, elapsed)
    answer = Answer(
        session_id=session.id,
        question_id=question.id,
        option_id=option_id,
        is_correct=result.correct,
        time_spent_ms=result.time_spent_ms,
        score_delta=result.score_delta,
    )
    session = commit_answer(session, answer, advance=is_current)
    current_app.logger.info(
        f"[answer] session={session.id} question={question.id} correct={result.correct} "
        f"delta={result.score_delta} total={session.total_score} elapsed_ms={result.time_spent_ms}"
    )
    return LedgerResult(
        correct=result.correct,
        score_delta=result.score_delta,
        total_score=session.total_score,
        current_question_index=session.current_question_index,
        score=result,
    )
