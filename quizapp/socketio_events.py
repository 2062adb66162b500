from flask_socketio import emit, join_room, leave_room
from typing import Optional

from quizapp import socketio
from quizapp.models import QuizSession
from quizapp import db
from quizapp.services.identity import authenticate


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # Rooms are dropped by Flask-SocketIO on disconnect
    pass


def _session_id_from(data) -> Optional[int]:
    raw = (data or {}).get('sessionId')
    try:
        session_id = int(raw)
    except (TypeError, ValueError):
        emit('error', {'message': 'sessionId is required'})
        return None
    if session_id <= 0:
        emit('error', {'message': 'sessionId is required'})
        return None
    return session_id


def handle_join_session(data):
    """Subscribe to live updates for one of the caller's own sessions."""
    session_id = _session_id_from(data)
    if session_id is None:
        return
    result = authenticate(data.get('initData'))
    if not result.ok:
        emit('error', {'message': result.error})
        return
    session = db.session.get(QuizSession, session_id)
    if session is None:
        emit('error', {'message': 'session_not_found'})
        return
    if session.user_id != result.user.id:
        emit('error', {'message': 'session_not_yours'})
        return
    room = f"session:{session.id}"
    join_room(room)
    emit('joined', {'room': room, 'session': session.to_dict()})


def handle_leave_session(data):
    session_id = _session_id_from(data)
    if session_id is None:
        return
    room = f"session:{session_id}"
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('join_session', handle_join_session, namespace='/ws')
    socketio.on_event('leave_session', handle_leave_session, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')
