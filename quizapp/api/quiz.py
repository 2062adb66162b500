from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from quizapp import socketio
from quizapp.services.quiz.ledger import record_answer
from quizapp.services.quiz.sessions import finish_session, record_timeout, start_session
from quizapp.services.quiz.timing import mark_question_shown
from .schemas import AnswerRequest, FinishRequest, TimeoutRequest, ViewQuestionRequest, parse_body

quiz = Blueprint('quiz', __name__)


def _notify(session_id, event, payload):
    socketio.emit('session_update', dict(payload, event=event, sessionId=session_id), to=f"session:{session_id}", namespace='/ws')


@quiz.route('/<int:quiz_id>/start', methods=['POST'])
@login_required
def start(quiz_id):
    return jsonify(start_session(quiz_id, current_user.id))


@quiz.route('/<int:quiz_id>/view', methods=['POST'])
@login_required
def view_question(quiz_id):
    """Client reports the question is on screen; arms the server-side timer once."""
    body = parse_body(ViewQuestionRequest)
    payload = mark_question_shown(body.session_id, body.question_index, current_user.id, quiz_id=quiz_id)
    _notify(body.session_id, 'timer_armed', payload)
    return jsonify(dict(payload, success=True))


@quiz.route('/<int:quiz_id>/answer', methods=['POST'])
@login_required
def submit_answer(quiz_id):
    body = parse_body(AnswerRequest)
    result = record_answer(
        body.session_id,
        body.question_id,
        body.option_id,
        body.time_spent_ms,
        quiz_id=quiz_id,
        user_id=current_user.id,
    )
    payload = result.to_dict()
    _notify(body.session_id, 'answer_recorded', payload)
    return jsonify(payload)


@quiz.route('/<int:quiz_id>/timeout', methods=['POST'])
@login_required
def question_timeout(quiz_id):
    body = parse_body(TimeoutRequest)
    payload = record_timeout(body.session_id, body.question_id, current_user.id, quiz_id=quiz_id)
    if payload['skipped']:
        _notify(body.session_id, 'timeout', payload)
    return jsonify(payload)


@quiz.route('/<int:quiz_id>/finish', methods=['POST'])
@login_required
def finish(quiz_id):
    body = parse_body(FinishRequest)
    payload = finish_session(body.session_id, current_user.id, quiz_id=quiz_id)
    _notify(body.session_id, 'finished', payload)
    return jsonify(payload)
