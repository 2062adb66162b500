from functools import wraps

from flask import Blueprint, current_app, g, jsonify

from quizapp.errors import ApiError, ForbiddenError
from quizapp.services.identity import authenticate, get_init_data_from_request, is_admin
from quizapp.services.quiz.cache import question_cache
from .schemas import QuizCacheRequest, parse_body

admin = Blueprint('admin', __name__)


def admin_required(view):
    """Requires an already-registered user whose Telegram id is on the admin list."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        result = authenticate(get_init_data_from_request(), create=False)
        if not result.ok:
            raise ApiError(result.error, status=result.status)
        if not is_admin(result.user.telegram_id):
            current_app.logger.warning(f"[admin-denied] telegram_id={result.user.telegram_id}")
            raise ForbiddenError('ADMIN_ACCESS_REQUIRED')
        g.admin_user = result.user
        return view(*args, **kwargs)
    return wrapper


@admin.route('/quiz-cache', methods=['GET'])
@admin_required
def quiz_cache_stats():
    return jsonify({'ok': True, 'cache': question_cache.stats()})


@admin.route('/quiz-cache', methods=['POST'])
@admin_required
def quiz_cache_invalidate():
    body = parse_body(QuizCacheRequest)
    if body.invalidate_all:
        question_cache.clear()
        invalidated = 'all'
    elif body.quiz_id is not None:
        invalidated = [body.quiz_id] if question_cache.invalidate(body.quiz_id) else []
    else:
        raise ApiError('missing_fields', fields=[{'field': 'quizId', 'message': 'quizId or invalidateAll is required'}])
    current_app.logger.info(f"[cache-invalidate] admin={g.admin_user.telegram_id} invalidated={invalidated}")
    return jsonify({'ok': True, 'invalidated': invalidated, 'cache': question_cache.stats()})
