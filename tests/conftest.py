import json
import os
import sys
import time
import pytest

# Ensure the project root (containing the `quizapp` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from quizapp import create_app, db, socketio
from quizapp.services.telegram import sign_init_data

BOT_TOKEN = '123456:TEST-BOT-TOKEN'
ADMIN_TELEGRAM_ID = '999'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TELEGRAM_BOT_TOKEN = BOT_TOKEN
    ADMIN_TELEGRAM_IDS = [ADMIN_TELEGRAM_ID]
    INIT_DATA_MAX_AGE_SEC = 86400
    QUIZ_CACHE_TTL_SEC = 300
    QUIZ_CACHE_MAX_ENTRIES = 100
    QUIZ_CACHE_RELOAD_FLOOR_SEC = 5
    SERVER_TIMING_GRACE_MS = None
    CORS_ORIGINS = ['http://localhost:3000']


def make_init_data(telegram_id=123, auth_date=None, bot_token=BOT_TOKEN, **extra):
    """Build a correctly signed initData string for a Telegram user."""
    user = {'id': telegram_id, 'first_name': 'Test', 'username': f'user{telegram_id}'}
    fields = {
        'query_id': 'AAHdF6IQAAAAAN0XohDhrOrc',
        'user': json.dumps(user, separators=(',', ':')),
        'auth_date': str(int(time.time()) if auth_date is None else auth_date),
    }
    fields.update(extra)
    return sign_init_data(fields, bot_token)


def auth_headers(telegram_id=123, **kwargs):
    return {'X-Telegram-Init-Data': make_init_data(telegram_id, **kwargs)}


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizapp.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def catalog(flask_app):
    """A quiz with three ordered questions; each has three options.

    Returns ids as plain ints so tests never hold detached ORM objects.
    """
    from quizapp.models import AnswerOption, Question, Quiz

    quiz = Quiz(title='General knowledge', is_active=True)
    db.session.add(quiz)
    db.session.flush()
    questions = []
    for order in range(3):
        question = Question(quiz_id=quiz.id, text=f'Question {order + 1}', order=order)
        db.session.add(question)
        db.session.flush()
        options = []
        for idx in range(3):
            option = AnswerOption(question_id=question.id, text=f'Option {idx}', is_correct=(idx == 1))
            db.session.add(option)
            db.session.flush()
            options.append(option.id)
        questions.append({'id': question.id, 'options': options, 'correct': options[1], 'wrong': options[0]})
    db.session.commit()
    return {'quiz_id': quiz.id, 'questions': questions}


@pytest.fixture()
def user(flask_app):
    from quizapp.models import User

    u = User(telegram_id='123', first_name='Test', username='user123')
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture()
def quiz_session(flask_app, catalog, user):
    from quizapp.models import QuizSession

    s = QuizSession(user_id=user.id, quiz_id=catalog['quiz_id'])
    db.session.add(s)
    db.session.commit()
    return s
