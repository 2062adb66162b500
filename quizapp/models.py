from datetime import datetime, timezone

from flask_login import UserMixin

from quizapp import db


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """Attach UTC to naive datetimes read back from backends that drop tzinfo (SQLite)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value):
    value = as_utc(value)
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    telegram_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    username = db.Column(db.String(64), nullable=True)
    first_name = db.Column(db.String(128), nullable=True)
    last_name = db.Column(db.String(128), nullable=True)
    photo_url = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def display_name(self):
        full = ' '.join(part for part in (self.first_name, self.last_name) if part)
        return full or self.username or self.telegram_id

    def to_dict(self):
        return {
            'id': self.id,
            'telegramId': self.telegram_id,
            'username': self.username,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'photoUrl': self.photo_url,
            'displayName': self.display_name,
        }


class Quiz(db.Model):
    __tablename__ = 'quizzes'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)


class Question(db.Model):
    __tablename__ = 'questions'
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    order = db.Column(db.Integer, default=0, nullable=False)
    difficulty = db.Column(db.Integer, default=1, nullable=False)
    options = db.relationship('AnswerOption', back_populates='question', order_by='AnswerOption.id')

    def to_public_dict(self):
        # Never expose which option is correct
        return {
            'id': self.id,
            'text': self.text,
            'order': self.order,
            'difficulty': self.difficulty,
            'options': [{'id': o.id, 'text': o.text} for o in self.options],
        }


class AnswerOption(db.Model):
    __tablename__ = 'answer_options'
    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey('questions.id'), nullable=False, index=True)
    text = db.Column(db.String(500), nullable=False)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    question = db.relationship('Question', back_populates='options')


class QuizSession(db.Model):
    __tablename__ = 'quiz_sessions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quizzes.id'), nullable=False, index=True)
    attempt_number = db.Column(db.Integer, default=1, nullable=False)
    current_question_index = db.Column(db.Integer, default=0, nullable=False)
    current_question_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    total_score = db.Column(db.Integer, default=0, nullable=False)
    started_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    finished_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_finished(self):
        return self.finished_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'quizId': self.quiz_id,
            'attemptNumber': self.attempt_number,
            'currentQuestionIndex': self.current_question_index,
            'currentQuestionStartedAt': isoformat(self.current_question_started_at),
            'totalScore': self.total_score,
            'startedAt': isoformat(self.started_at),
            'finishedAt': isoformat(self.finished_at),
        }


class Answer(db.Model):
    __tablename__ = 'answers'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'question_id', name='uq_answers_session_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('quiz_sessions.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('questions.id'), nullable=False)
    # Null for timed-out questions
    option_id = db.Column(db.Integer, db.ForeignKey('answer_options.id'), nullable=True)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    time_spent_ms = db.Column(db.Integer, default=0, nullable=False)
    score_delta = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
