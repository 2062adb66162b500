from flask import Blueprint, jsonify

from quizapp.services.identity import authenticate, get_init_data_from_request, is_admin
from .schemas import TelegramAuthRequest, parse_body

auth = Blueprint('auth', __name__)


@auth.route('/telegram', methods=['POST'])
def telegram_login():
    """Exchange initData for the resolved user profile."""
    body = parse_body(TelegramAuthRequest)
    result = authenticate(body.init_data or get_init_data_from_request())
    if not result.ok:
        return jsonify({'ok': False, 'reason': result.error}), result.status
    return jsonify({
        'ok': True,
        'user': result.user.to_dict(),
        'isAdmin': is_admin(result.user.telegram_id),
    })
