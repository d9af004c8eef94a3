import json

import pytest

from karotte import create_app, db
from karotte.models import GameRecord, Word
from conftest import SAMPLE_WORDS, TestConfig as BaseConfig

# First correct position per sample word (1=M, 2=N, 3=F)
ANSWERS = {
    text: next(pos for pos, flag in zip((1, 2, 3), (m, n, f)) if flag)
    for text, _, m, n, f in SAMPLE_WORDS
}


def new_session(client):
    res = client.post('/api/games/sessions')
    assert res.status_code == 201
    return res.get_json()['session_id']


def play_all_correct(client, session_id):
    state = client.get(f'/api/games/{session_id}/state').get_json()
    while state['status'] == 'running':
        text = state['current']['word']
        state = client.post(f'/api/games/{session_id}/answer', json={'position': ANSWERS[text]}).get_json()
        assert state['applied'] is True
        if state['status'] == 'running' and state['current']['word'] == text:
            state = client.post(f'/api/games/{session_id}/advance').get_json()
    return state


def test_index_and_health(seeded_client):
    assert seeded_client.get('/').status_code == 200
    res = seeded_client.get('/health')
    assert res.status_code == 200
    assert res.get_json()['words'] == len(SAMPLE_WORDS)
    assert seeded_client.get('/words/count').get_json()['count'] == len(SAMPLE_WORDS)


def test_missing_words_block_sessions_until_loaded(flask_app, client):
    res = client.post('/api/games/sessions')
    assert res.status_code == 503
    assert 'error' in res.get_json()
    assert client.get('/health').status_code == 503

    db.session.add(Word(word='Tisch', frequency=500, pos_m=True))
    db.session.commit()
    assert client.get('/health').status_code == 200
    assert client.post('/api/games/sessions').status_code == 201


def test_create_session_is_idle(seeded_client):
    res = seeded_client.post('/api/games/sessions')
    data = res.get_json()
    assert data['status'] == 'idle'
    assert data['mode'] is None
    assert data['current'] is None
    assert data['session_id']


def test_unknown_session(seeded_client):
    assert seeded_client.get('/api/games/nope/state').status_code == 404
    assert seeded_client.post('/api/games/nope/start', json={'mode': 'timed'}).status_code == 404
    assert seeded_client.post('/api/games/nope/advance').status_code == 404
    assert seeded_client.delete('/api/games/nope').status_code == 404


def test_invalid_mode_and_position(seeded_client):
    sid = new_session(seeded_client)
    assert seeded_client.post(f'/api/games/{sid}/start', json={'mode': 'zen'}).status_code == 400
    assert seeded_client.post(f'/api/games/{sid}/start').status_code == 400
    seeded_client.post(f'/api/games/{sid}/start', json={'mode': 'timed'})
    res = seeded_client.post(f'/api/games/{sid}/answer', json={'position': 'Q'})
    assert res.status_code == 400


def test_timed_start_and_answer(seeded_client):
    sid = new_session(seeded_client)
    state = seeded_client.post(f'/api/games/{sid}/start', json={'mode': 'timed'}).get_json()
    assert state['status'] == 'running'
    assert state['mode'] == 'timed'
    assert state['remaining_seconds'] == 60
    assert state['countdown_running'] is False
    assert state['awaiting_round_ready'] is True

    state = seeded_client.post(f'/api/games/{sid}/ready').get_json()
    assert state['countdown_running'] is True
    assert state['awaiting_round_ready'] is False

    text = state['current']['word']
    state = seeded_client.post(f'/api/games/{sid}/answer', json={'position': ANSWERS[text]}).get_json()
    assert state['score'] > 0
    assert state['rounds'][0]['word'] == text
    assert state['rounds'][0]['result_state'] == 'correct'


def test_wrong_answer_reveals_correct_positions(seeded_client):
    sid = new_session(seeded_client)
    state = seeded_client.post(f'/api/games/{sid}/start', json={'mode': 'timed'}).get_json()
    text = state['current']['word']
    wrong = next(p for p in (1, 2, 3) if p != ANSWERS[text] and not (text == 'Joghurt' and p == 2))
    state = seeded_client.post(f'/api/games/{sid}/answer', json={'position': wrong}).get_json()
    assert state['current']['word'] == text
    assert state['current']['selected_pos'] == wrong
    assert ANSWERS[text] in state['current']['correct_positions']
    assert state['score'] == 0

    again = seeded_client.post(f'/api/games/{sid}/answer', json={'position': ANSWERS[text]}).get_json()
    assert again['applied'] is False
    assert again['score'] == 0


def test_survival_run_is_saved_to_history(seeded_client):
    sid = new_session(seeded_client)
    seeded_client.post(f'/api/games/{sid}/start', json={'mode': 'survival'})
    state = play_all_correct(seeded_client, sid)

    assert state['status'] == 'finished'
    assert state['current'] is None
    assert state['correct_count'] == len(SAMPLE_WORDS)
    assert state['result']['is_new_record'] is True
    assert state['result']['best_after'] == len(SAMPLE_WORDS)

    records = seeded_client.get('/api/history').get_json()
    assert len(records) == 1
    record = records[0]
    assert record['mode'] == 'survival'
    assert record['schema'] == 3
    assert record['score'] == state['score']
    assert record['stats']['accuracy'] == 1.0
    assert sorted(r['word'] for r in record['rounds']) == sorted(ANSWERS)

    one = seeded_client.get(f"/api/history/{record['id']}").get_json()
    assert one == record

    best = seeded_client.get('/api/games/best').get_json()
    assert best == {'timed': 0, 'survival': len(SAMPLE_WORDS)}


def test_finished_session_ignores_events(seeded_client):
    sid = new_session(seeded_client)
    seeded_client.post(f'/api/games/{sid}/start', json={'mode': 'survival'})
    play_all_correct(seeded_client, sid)
    res = seeded_client.post(f'/api/games/{sid}/advance').get_json()
    assert res['applied'] is False
    assert res['status'] == 'finished'
    assert len(seeded_client.get('/api/history').get_json()) == 1


def test_leave_and_restart(seeded_client):
    sid = new_session(seeded_client)
    seeded_client.post(f'/api/games/{sid}/start', json={'mode': 'timed'})
    state = seeded_client.post(f'/api/games/{sid}/leave').get_json()
    assert state['status'] == 'idle'
    assert state['rounds'] == []
    state = seeded_client.post(f'/api/games/{sid}/start', json={'mode': 'survival'}).get_json()
    assert state['mode'] == 'survival'
    assert state['remaining_seconds'] is None
    assert seeded_client.get('/api/history').get_json() == []


def test_close_session(seeded_client):
    sid = new_session(seeded_client)
    assert seeded_client.delete(f'/api/games/{sid}').status_code == 200
    assert seeded_client.get(f'/api/games/{sid}/state').status_code == 404


def test_best_defaults_to_zero(seeded_client):
    assert seeded_client.get('/api/games/best').get_json() == {'timed': 0, 'survival': 0}


def test_history_filter_and_delete(seeded_client):
    for _ in range(2):
        sid = new_session(seeded_client)
        seeded_client.post(f'/api/games/{sid}/start', json={'mode': 'survival'})
        play_all_correct(seeded_client, sid)

    assert len(seeded_client.get('/api/history?mode=survival').get_json()) == 2
    assert seeded_client.get('/api/history?mode=timed').get_json() == []
    assert seeded_client.get('/api/history?mode=zen').status_code == 400

    records = seeded_client.get('/api/history').get_json()
    assert records[0]['ended_at'] >= records[1]['ended_at']
    first_id = records[0]['id']
    assert seeded_client.delete(f'/api/history/{first_id}').status_code == 200
    assert seeded_client.delete(f'/api/history/{first_id}').status_code == 404
    assert seeded_client.get(f'/api/history/{first_id}').status_code == 404

    assert seeded_client.delete('/api/history').status_code == 200
    assert seeded_client.get('/api/history').get_json() == []


def test_legacy_rows_are_served_in_current_shape(flask_app, client):
    legacy = {
        'schema': 2, 'mode': 'timed', 'finalScore': 11,
        'startedAt': '2024-05-01T10:00:00Z', 'endedAt': '2024-05-01T10:01:00Z',
        'rounds': [{'round': 1, 'word': 'Tisch', 'frequency': 500, 'selectedPos': 1,
                    'correctPosList': [1], 'resultState': 'correct', 'gainedScore': 11,
                    'durationMs': 900}],
    }
    from datetime import datetime, timezone
    db.session.add(GameRecord(
        schema=2, mode='timed',
        ended_at=datetime(2024, 5, 1, 10, 1, tzinfo=timezone.utc),
        payload=json.dumps(legacy),
    ))
    db.session.commit()

    records = client.get('/api/history').get_json()
    assert records[0]['schema'] == 2
    assert records[0]['rounds'][0]['correct_pos_list'] == [1]
    assert records[0]['rounds'][0]['result_state'] == 'correct'
    assert records[0]['rounds'][0]['gained_score'] == 11


def test_unreadable_history_row(flask_app, client):
    from datetime import datetime, timezone
    db.session.add(GameRecord(
        schema=9, mode='timed', ended_at=datetime.now(timezone.utc), payload='{"foo": 1}',
    ))
    db.session.commit()
    res = client.get('/api/history')
    assert res.status_code == 500
    assert 'Unreadable' in res.get_json()['error']


class SchedulerConfig(BaseConfig):
    TIMED_DURATION_SEC = 0
    ENABLE_SCHEDULER_IN_TESTS = True


@pytest.fixture()
def scheduler_app():
    application = create_app(SchedulerConfig)
    with application.app_context():
        db.create_all()
        for text, frequency, m, n, f in SAMPLE_WORDS:
            db.session.add(Word(word=text, frequency=frequency, pos_m=m, pos_n=n, pos_f=f))
        db.session.commit()
        yield application
        db.session.remove()
        db.drop_all()


def test_countdown_worker_finishes_timed_run(scheduler_app):
    client = scheduler_app.test_client()
    sid = new_session(client)
    client.post(f'/api/games/{sid}/start', json={'mode': 'timed'})
    client.post(f'/api/games/{sid}/ready')

    session = scheduler_app.extensions['karotte_sessions'].get(sid)
    assert session.status == 'finished'
    assert len(session.rounds) == 1
    assert session.saved_record_id is not None

    records = client.get('/api/history').get_json()
    assert len(records) == 1
    assert records[0]['rounds'][0]['result_state'] == 'unanswered'


def test_countdown_worker_skips_survival(scheduler_app):
    client = scheduler_app.test_client()
    sid = new_session(client)
    client.post(f'/api/games/{sid}/start', json={'mode': 'survival'})
    res = client.post(f'/api/games/{sid}/ready').get_json()
    assert res['applied'] is False
    assert scheduler_app.extensions['karotte_sessions'].get(sid).status == 'running'
