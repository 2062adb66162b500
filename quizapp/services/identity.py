"""Resolve a verified initData payload into an application ``User``.

Flask-Login's ``request_loader`` calls :func:`authenticate` for every
request, so ``current_user`` / ``login_required`` work unchanged. When
authentication fails the reason is kept on ``flask.g`` and the
unauthorized handler reports it with a stable tag.
"""

import json
from dataclasses import dataclass
from typing import Optional

from flask import current_app, g, jsonify, request
from sqlalchemy.exc import IntegrityError

from quizapp import db
from quizapp.models import User
from quizapp.services import telegram

INIT_DATA_HEADER = 'X-Telegram-Init-Data'
INIT_DATA_COOKIE = 'telegram_init_data'

NO_USER = 'NO_USER'
NO_USER_ID = 'NO_USER_ID'
USER_NOT_FOUND = 'USER_NOT_FOUND'


@dataclass
class AuthResult:
    ok: bool
    user: Optional[User] = None
    error: Optional[str] = None
    status: int = 200


def _fail(error, status=401):
    return AuthResult(ok=False, error=error, status=status)


def get_init_data_from_request(req=None) -> Optional[str]:
    req = req or request
    header = req.headers.get(INIT_DATA_HEADER)
    if header:
        return header
    cookie = req.cookies.get(INIT_DATA_COOKIE)
    if cookie:
        return cookie
    if req.is_json:
        body = req.get_json(silent=True)
        if isinstance(body, dict) and isinstance(body.get('initData'), str):
            return body['initData'] or None
    return None


def parse_telegram_user(data):
    """Return the decoded ``user`` descriptor or a failing AuthResult."""
    raw_user = data.get('user')
    if not raw_user:
        return None, _fail(NO_USER)
    try:
        tg_user = json.loads(raw_user)
    except ValueError:
        return None, _fail(telegram.PARSE_ERROR)
    if not isinstance(tg_user, dict):
        return None, _fail(telegram.PARSE_ERROR)
    if not tg_user.get('id'):
        return None, _fail(NO_USER_ID)
    return tg_user, None


def _upsert_user(tg_user) -> User:
    telegram_id = str(tg_user['id'])
    profile = {
        'username': tg_user.get('username'),
        'first_name': tg_user.get('first_name'),
        'last_name': tg_user.get('last_name'),
        'photo_url': tg_user.get('photo_url'),
    }
    user = User.query.filter_by(telegram_id=telegram_id).first()
    if user is None:
        user = User(telegram_id=telegram_id, **profile)
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            # Concurrent first request from the same Telegram user
            db.session.rollback()
            user = User.query.filter_by(telegram_id=telegram_id).first()
            if user is None:
                raise
        else:
            current_app.logger.info(f"[user-created] user={user.id} telegram_id={telegram_id}")
            return user

    changed = False
    for attr, value in profile.items():
        if getattr(user, attr) != value:
            setattr(user, attr, value)
            changed = True
    if changed:
        db.session.add(user)
        db.session.commit()
    return user


def authenticate(raw_init_data: Optional[str], *, create: bool = True) -> AuthResult:
    cfg = current_app.config
    bot_token = cfg.get('TELEGRAM_BOT_TOKEN')
    validation = telegram.validate_init_data(
        raw_init_data or '',
        bot_token,
        max_age=int(cfg.get('INIT_DATA_MAX_AGE_SEC', telegram.DEFAULT_MAX_AGE_SEC)),
    )
    if not validation.ok:
        if validation.reason == telegram.NO_BOT_TOKEN:
            current_app.logger.error("[auth] TELEGRAM_BOT_TOKEN is not configured")
            return _fail(telegram.NO_BOT_TOKEN, 500)
        current_app.logger.warning(
            f"[auth-fail] reason={validation.reason} len={len(raw_init_data or '')}"
        )
        return _fail(validation.reason)

    tg_user, failure = parse_telegram_user(validation.data)
    if failure:
        current_app.logger.warning(f"[auth-fail] reason={failure.error}")
        return failure

    if create:
        return AuthResult(ok=True, user=_upsert_user(tg_user))

    user = User.query.filter_by(telegram_id=str(tg_user['id'])).first()
    if user is None:
        return _fail(USER_NOT_FOUND, 404)
    return AuthResult(ok=True, user=user)


def is_admin(telegram_id) -> bool:
    return str(telegram_id) in set(current_app.config.get('ADMIN_TELEGRAM_IDS') or [])


def register_request_loader(app, login_manager):
    @app.before_request
    def reset_request_identity():
        # Identity is per request; an app context may span several (tests, socket handlers)
        g.pop('_login_user', None)
        g.pop('auth_error', None)

    @login_manager.request_loader
    def load_user_from_request(req):
        result = authenticate(get_init_data_from_request(req))
        if not result.ok:
            g.auth_error = (result.error, result.status)
            return None
        return result.user

    @login_manager.unauthorized_handler
    def unauthorized():
        error, status = g.get('auth_error') or (telegram.NO_INIT_DATA, 401)
        return jsonify({'error': error, 'ok': False}), status
