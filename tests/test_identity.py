import json
import time

from conftest import BOT_TOKEN, make_init_data
from quizapp.models import User
from quizapp.services.identity import authenticate, is_admin
from quizapp.services.telegram import sign_init_data


def test_first_request_creates_user(flask_app):
    result = authenticate(make_init_data(777))
    assert result.ok
    assert result.user.telegram_id == '777'
    assert result.user.username == 'user777'
    assert User.query.count() == 1

    # Second request resolves the same record
    again = authenticate(make_init_data(777))
    assert again.user.id == result.user.id
    assert User.query.count() == 1


def test_profile_fields_refreshed(flask_app):
    authenticate(make_init_data(777))
    fields = {
        'user': json.dumps({'id': 777, 'first_name': 'Renamed', 'username': 'newname'}),
        'auth_date': str(int(time.time())),
    }
    result = authenticate(sign_init_data(fields, BOT_TOKEN))
    assert result.user.first_name == 'Renamed'
    assert result.user.username == 'newname'


def test_missing_user_field(flask_app):
    raw = sign_init_data({'auth_date': str(int(time.time()))}, BOT_TOKEN)
    result = authenticate(raw)
    assert (result.ok, result.error, result.status) == (False, 'NO_USER', 401)


def test_undecodable_user_field(flask_app):
    raw = sign_init_data({'user': '{not json', 'auth_date': str(int(time.time()))}, BOT_TOKEN)
    assert authenticate(raw).error == 'PARSE_ERROR'
    raw = sign_init_data({'user': '[1, 2]', 'auth_date': str(int(time.time()))}, BOT_TOKEN)
    assert authenticate(raw).error == 'PARSE_ERROR'


def test_user_without_id(flask_app):
    raw = sign_init_data({'user': '{"first_name":"x"}', 'auth_date': str(int(time.time()))}, BOT_TOKEN)
    assert authenticate(raw).error == 'NO_USER_ID'


def test_lookup_only_requires_existing_record(flask_app):
    result = authenticate(make_init_data(555), create=False)
    assert (result.error, result.status) == ('USER_NOT_FOUND', 404)
    authenticate(make_init_data(555))
    assert authenticate(make_init_data(555), create=False).ok


def test_validator_failures_map_to_401(flask_app):
    assert authenticate('').status == 401
    expired = authenticate(make_init_data(1, auth_date=int(time.time()) - 90000))
    assert (expired.error, expired.status) == ('EXPIRED', 401)
    forged = authenticate(make_init_data(1, bot_token='someone-else'))
    assert forged.error == 'HASH_MISMATCH'


def test_missing_bot_token_is_server_error(flask_app):
    flask_app.config['TELEGRAM_BOT_TOKEN'] = None
    result = authenticate(make_init_data(1))
    assert (result.error, result.status) == ('NO_BOT_TOKEN', 500)


def test_is_admin(flask_app):
    assert is_admin('999')
    assert is_admin(999)
    assert not is_admin('123')
