from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=origins)

    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from quizapp.services.quiz.cache import question_cache
    question_cache.init_app(flask_app)

    from quizapp.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Telegram initData is the only credential: Flask-Login resolves the user per request
    from quizapp.services.identity import register_request_loader
    register_request_loader(flask_app, login_manager)

    from quizapp.api.auth import auth
    flask_app.register_blueprint(auth, url_prefix='/api/auth')

    from quizapp.api.quiz import quiz
    flask_app.register_blueprint(quiz, url_prefix='/api/quiz')

    from quizapp.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from quizapp.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo quiz."""
        from quizapp.models import Quiz, Question, AnswerOption
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            demo = Quiz(title='Warm-up', description='Three quick questions', is_active=True)
            db.session.add(demo)
            db.session.flush()
            seed = [
                ('2 + 2 = ?', ['3', '4', '5'], 1),
                ('Capital of France?', ['Paris', 'Rome', 'Madrid'], 0),
                ('Largest planet?', ['Mars', 'Venus', 'Jupiter'], 2),
            ]
            for order, (text, options, correct_idx) in enumerate(seed):
                question = Question(quiz_id=demo.id, text=text, order=order)
                db.session.add(question)
                db.session.flush()
                for idx, option_text in enumerate(options):
                    db.session.add(AnswerOption(question_id=question.id, text=option_text, is_correct=(idx == correct_idx)))

            db.session.commit()
            question_cache.clear()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
