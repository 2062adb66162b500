"""create users, quiz catalog, quiz_sessions and answers

Revision ID: 3a7c9e1d2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a7c9e1d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('telegram_id', sa.String(length=64), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=True),
        sa.Column('first_name', sa.String(length=128), nullable=True),
        sa.Column('last_name', sa.String(length=128), nullable=True),
        sa.Column('photo_url', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_telegram_id', 'users', ['telegram_id'], unique=True)

    op.create_table(
        'quizzes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        'questions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quizzes.id'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('difficulty', sa.Integer(), nullable=False, server_default='1'),
    )
    op.create_index('ix_questions_quiz_id', 'questions', ['quiz_id'])

    op.create_table(
        'answer_options',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('text', sa.String(length=500), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_answer_options_question_id', 'answer_options', ['question_id'])

    op.create_table(
        'quiz_sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quizzes.id'), nullable=False),
        sa.Column('attempt_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('current_question_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_question_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_quiz_sessions_user_id', 'quiz_sessions', ['user_id'])
    op.create_index('ix_quiz_sessions_quiz_id', 'quiz_sessions', ['quiz_id'])

    op.create_table(
        'answers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_sessions.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('option_id', sa.Integer(), sa.ForeignKey('answer_options.id'), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('time_spent_ms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('session_id', 'question_id', name='uq_answers_session_question'),
    )
    op.create_index('ix_answers_session_id', 'answers', ['session_id'])


def downgrade():
    op.drop_index('ix_answers_session_id', table_name='answers')
    op.drop_table('answers')
    op.drop_index('ix_quiz_sessions_quiz_id', table_name='quiz_sessions')
    op.drop_index('ix_quiz_sessions_user_id', table_name='quiz_sessions')
    op.drop_table('quiz_sessions')
    op.drop_index('ix_answer_options_question_id', table_name='answer_options')
    op.drop_table('answer_options')
    op.drop_index('ix_questions_quiz_id', table_name='questions')
    op.drop_table('questions')
    op.drop_table('quizzes')
    op.drop_index('ix_users_telegram_id', table_name='users')
    op.drop_table('users')
