"""Session lifecycle around the timing/scoring core: start, timeout, finish."""

from datetime import datetime
from typing import Optional

from flask import current_app

from quizapp import db
from quizapp.errors import NotFoundError
from quizapp.models import Answer, Question, Quiz, QuizSession, as_utc, isoformat, utcnow
from .ledger import commit_answer
from .scoring import SLOW_THRESHOLD_MS, question_at
from .timing import ensure_active, ensure_owner, load_session


def _public_questions(quiz_id: int):
    questions = Question.query.filter_by(quiz_id=quiz_id).order_by(Question.order, Question.id).all()
    return [q.to_public_dict() for q in questions]


def start_session(quiz_id: int, user_id: int) -> dict:
    """Resume the user's unfinished session for the quiz, or open a new attempt."""
    quiz = Quiz.query.filter_by(id=quiz_id, is_active=True).first()
    if quiz is None:
        raise NotFoundError('quiz_not_found')

    session = (
        QuizSession.query.filter_by(quiz_id=quiz.id, user_id=user_id, finished_at=None)
        .order_by(QuizSession.started_at.desc())
        .first()
    )
    resumed = session is not None
    if not resumed:
        attempts = QuizSession.query.filter_by(quiz_id=quiz.id, user_id=user_id).count()
        session = QuizSession(quiz_id=quiz.id, user_id=user_id, attempt_number=attempts + 1)
        db.session.add(session)
        db.session.commit()
        current_app.logger.info(f"[session-start] session={session.id} quiz={quiz.id} user={user_id} attempt={session.attempt_number}")

    questions = _public_questions(quiz.id)
    return {
        'sessionId': session.id,
        'quizId': quiz.id,
        'attemptNumber': session.attempt_number,
        'resumed': resumed,
        'totalQuestions': len(questions),
        'totalScore': session.total_score,
        'currentQuestionIndex': session.current_question_index,
        'questions': questions,
    }


def record_timeout(session_id: int, question_id: int, user_id: Optional[int], quiz_id: Optional[int] = None) -> dict:
    """Record a zero-score answer for the current question whose time ran out, then advance."""
    session = load_session(session_id, quiz_id)
    ensure_owner(session, user_id)
    ensure_active(session)

    expected = question_at(session.quiz_id, session.current_question_index)
    if expected is None or expected.id != question_id:
        return {
            'skipped': False,
            'message': 'Question already processed',
            'currentQuestionIndex': session.current_question_index,
            'totalScore': session.total_score,
        }
    if Answer.query.filter_by(session_id=session.id, question_id=question_id).first():
        return {
            'skipped': False,
            'message': 'Already answered',
            'currentQuestionIndex': session.current_question_index,
            'totalScore': session.total_score,
        }

    answer = Answer(
        session_id=session.id,
        question_id=question_id,
        option_id=None,
        is_correct=False,
        time_spent_ms=SLOW_THRESHOLD_MS,
        score_delta=0,
    )
    session = commit_answer(session, answer, advance=True)
    current_app.logger.info(f"[timeout] session={session.id} question={question_id} next_index={session.current_question_index}")
    return {
        'skipped': True,
        'currentQuestionIndex': session.current_question_index,
        'totalScore': session.total_score,
    }


def finish_session(session_id: int, user_id: Optional[int], quiz_id: Optional[int] = None, now: Optional[datetime] = None) -> dict:
    session = load_session(session_id, quiz_id)
    ensure_owner(session, user_id)

    if session.finished_at is None:
        finished_at = as_utc(now) or utcnow()
        QuizSession.query.filter(
            QuizSession.id == session.id,
            QuizSession.finished_at.is_(None),
        ).update({QuizSession.finished_at: finished_at}, synchronize_session=False)
        db.session.commit()
        db.session.refresh(session)
        current_app.logger.info(f"[session-finish] session={session.id} total={session.total_score}")

    answers = Answer.query.filter_by(session_id=session.id).all()
    return {
        'sessionId': session.id,
        'totalScore': session.total_score,
        'answered': len(answers),
        'correctAnswers': sum(1 for a in answers if a.is_correct),
        'finishedAt': isoformat(session.finished_at),
    }
