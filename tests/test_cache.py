from quizapp.services.quiz.cache import QuestionCache, get_quiz_questions, question_cache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_get_or_compute_caches_until_ttl():
    clock = FakeClock()
    cache = QuestionCache(ttl_sec=10, max_entries=5, clock=clock)
    calls = []

    def loader(quiz_id):
        calls.append(quiz_id)
        return [f'q-{quiz_id}-{len(calls)}']

    assert cache.get_or_compute(1, loader) == ['q-1-1']
    assert cache.get_or_compute(1, loader) == ['q-1-1']
    assert calls == [1]

    clock.now = 11
    assert cache.get_or_compute(1, loader) == ['q-1-2']
    assert calls == [1, 1]
    assert cache.stats()['hits'] == 1
    assert cache.stats()['misses'] == 2


def test_invalidate_and_clear():
    cache = QuestionCache()
    cache.put(1, ['a'])
    cache.put(2, ['b'])
    assert cache.invalidate(1) is True
    assert cache.invalidate(1) is False
    assert cache.get(1) is None
    assert cache.get(2) == ['b']
    cache.clear()
    assert cache.stats()['size'] == 0


def test_oldest_entry_evicted_at_capacity():
    cache = QuestionCache(max_entries=2)
    cache.put(1, ['a'])
    cache.put(2, ['b'])
    cache.put(3, ['c'])
    assert cache.get(1) is None
    assert cache.stats()['quizIds'] == [2, 3]


def test_init_app_reads_config(flask_app):
    assert question_cache.ttl_sec == 300
    assert question_cache.max_entries == 100
    assert flask_app.extensions['question_cache'] is question_cache


def test_quiz_questions_loaded_in_order_with_correct_option(catalog):
    loaded = get_quiz_questions(catalog['quiz_id'])
    assert [q.id for q in loaded] == [q['id'] for q in catalog['questions']]
    assert [q.correct_option_id for q in loaded] == [q['correct'] for q in catalog['questions']]
    assert question_cache.stats()['size'] == 1
