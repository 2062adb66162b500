from conftest import ADMIN_TELEGRAM_ID, auth_headers
from quizapp.services.quiz.cache import get_quiz_questions, question_cache


def _register(client, telegram_id):
    res = client.post('/api/auth/telegram', headers=auth_headers(telegram_id), json={})
    assert res.status_code == 200


def test_admin_must_exist(client):
    res = client.get('/api/admin/quiz-cache', headers=auth_headers(ADMIN_TELEGRAM_ID))
    assert res.status_code == 404
    assert res.get_json()['error'] == 'USER_NOT_FOUND'


def test_non_admin_forbidden(client):
    _register(client, 123)
    res = client.get('/api/admin/quiz-cache', headers=auth_headers(123))
    assert res.status_code == 403
    assert res.get_json()['error'] == 'ADMIN_ACCESS_REQUIRED'


def test_unauthenticated_admin_request(client):
    res = client.get('/api/admin/quiz-cache')
    assert res.status_code == 401
    assert res.get_json()['error'] == 'NO_INIT_DATA'


def test_cache_stats_and_invalidation(client, catalog):
    _register(client, ADMIN_TELEGRAM_ID)
    get_quiz_questions(catalog['quiz_id'])

    res = client.get('/api/admin/quiz-cache', headers=auth_headers(ADMIN_TELEGRAM_ID))
    assert res.status_code == 200
    assert res.get_json()['cache']['quizIds'] == [catalog['quiz_id']]

    res = client.post('/api/admin/quiz-cache', json={'quizId': catalog['quiz_id']}, headers=auth_headers(ADMIN_TELEGRAM_ID))
    assert res.status_code == 200
    assert res.get_json()['invalidated'] == [catalog['quiz_id']]
    assert question_cache.get(catalog['quiz_id']) is None

    get_quiz_questions(catalog['quiz_id'])
    res = client.post('/api/admin/quiz-cache', json={'invalidateAll': True}, headers=auth_headers(ADMIN_TELEGRAM_ID))
    assert res.get_json()['invalidated'] == 'all'
    assert question_cache.stats()['size'] == 0

    res = client.post('/api/admin/quiz-cache', json={}, headers=auth_headers(ADMIN_TELEGRAM_ID))
    assert res.status_code == 400
