"""Server-side question clock.

Each question slot starts unarmed. The client reports when it actually
displays the question and the first such report stamps
``current_question_started_at``. Later reports for the same index are
no-ops returning the stamped time, so a client cannot restart its own
timer, while network retries stay harmless.
"""

from datetime import datetime
from typing import Optional

from flask import current_app

from quizapp import db
from quizapp.errors import ForbiddenError, NotFoundError, SessionStateError
from quizapp.models import QuizSession, as_utc, isoformat, utcnow


def load_session(session_id: int, quiz_id: Optional[int] = None) -> QuizSession:
    session = db.session.get(QuizSession, session_id) if session_id else None
    if session is None or (quiz_id is not None and session.quiz_id != quiz_id):
        raise NotFoundError('session_not_found')
    return session


def ensure_owner(session: QuizSession, user_id: Optional[int]) -> None:
    if user_id is not None and session.user_id != user_id:
        raise ForbiddenError('session_not_yours')


def ensure_active(session: QuizSession) -> None:
    if session.finished_at is not None:
        raise SessionStateError('session_finished')


def mark_question_shown(
    session_id: int,
    question_index: int,
    user_id: Optional[int],
    quiz_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict:
    session = load_session(session_id, quiz_id)
    ensure_owner(session, user_id)
    ensure_active(session)
    if session.current_question_index != question_index:
        raise SessionStateError(
            'wrong_question_index',
            expected=session.current_question_index,
            received=question_index,
        )

    now = as_utc(now) or utcnow()
    started_at = session.current_question_started_at
    if started_at is None:
        # Conditional write: of two racing signals only one sees rowcount 1
        armed = QuizSession.query.filter(
            QuizSession.id == session.id,
            QuizSession.current_question_index == question_index,
            QuizSession.current_question_started_at.is_(None),
            QuizSession.finished_at.is_(None),
        ).update({QuizSession.current_question_started_at: now}, synchronize_session=False)
        db.session.commit()
        if armed:
            started_at = now
            current_app.logger.info(f"[timer-armed] session={session.id} index={question_index} at={now.isoformat()}")
        else:
            db.session.refresh(session)
            if session.current_question_index != question_index or session.finished_at is not None:
                # Lost the race to an answer or finish; report the fresh state
                ensure_active(session)
                raise SessionStateError(
                    'wrong_question_index',
                    expected=session.current_question_index,
                    received=question_index,
                )
            started_at = session.current_question_started_at
    else:
        current_app.logger.info(f"[timer-skip] session={session.id} index={question_index} already armed")

    return {
        'questionIndex': question_index,
        'serverTime': isoformat(now),
        'questionStartedAt': isoformat(started_at),
    }


def server_elapsed_ms(session: QuizSession, now: Optional[datetime] = None) -> Optional[int]:
    """Milliseconds since the current question was armed, or None while unarmed."""
    started_at = as_utc(session.current_question_started_at)
    if started_at is None:
        return None
    now = as_utc(now) or utcnow()
    return max(0, int((now - started_at).total_seconds() * 1000))
