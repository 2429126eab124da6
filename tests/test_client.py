import pytest
import requests
from client import HabitClient, RemoteError, RateLimitError, AuthError

class ScriptedResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self.body = body

    def json(self):
        if self.body is None:
            raise ValueError('No JSON body')
        return self.body

class ScriptedSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

def test_ensure_session_signs_in_once(api):
    user = api.user
    assert user['is_anonymous'] is True
    assert api.ensure_session()['id'] == user['id']
    assert api.get_current_user()['id'] == user['id']

def test_create_then_list(api):
    created = api.create_habit('Drink Water', '💧', '', '#4CAF50')
    habits = api.list_habits()
    assert [h['id'] for h in habits] == [created['id']]
    assert habits[0]['name'] == 'Drink Water'
    assert api.list_completions([created['id']]) == []

def test_toggle_completion_inserts_then_deletes(api):
    habit = api.create_habit('Run')

    assert api.toggle_completion(habit['id'], '2024-05-01') is True
    assert api.find_completion(habit['id'], '2024-05-01') is not None
    assert [c['completion_date'] for c in api.list_completions([habit['id']])] == ['2024-05-01']

    assert api.toggle_completion(habit['id'], '2024-05-01') is False
    assert api.find_completion(habit['id'], '2024-05-01') is None
    assert api.list_completions([habit['id']]) == []

def test_toggle_completion_rejects_bad_key(api):
    habit = api.create_habit('Run')
    with pytest.raises(ValueError):
        api.toggle_completion(habit['id'], '2024-4-1')

def test_update_and_delete_habit(api):
    habit = api.create_habit('Run')
    updated = api.update_habit(habit['id'], 'Run 5k', '🏃', 'Before work', '#2196F3')
    assert updated['name'] == 'Run 5k'

    api.delete_habit(habit['id'])
    assert api.list_habits() == []

def test_reorder_habits(api):
    a = api.create_habit('A')
    b = api.create_habit('B')
    api.reorder_habits([b['id'], a['id']])
    assert [h['name'] for h in api.list_habits()] == ['B', 'A']

def test_error_carries_server_message(api):
    with pytest.raises(RemoteError) as exc:
        api.create_habit('   ')
    assert exc.value.status == 400
    assert str(exc.value) == 'Please enter a habit name'

def test_insert_duplicate_is_remote_error(api):
    habit = api.create_habit('Run')
    api.insert_completion(habit['id'], '2024-05-01')
    with pytest.raises(RemoteError) as exc:
        api.insert_completion(habit['id'], '2024-05-01')
    assert exc.value.status == 409

def test_list_completions_without_ids_skips_request():
    session = ScriptedSession([])
    assert HabitClient('http://example.test', session=session).list_completions([]) == []
    assert session.calls == []

def test_sign_in_retries_on_rate_limit():
    delays = []
    session = ScriptedSession([
        ScriptedResponse(429, {'error': 'rate limit exceeded'}),
        ScriptedResponse(429, {'error': 'rate limit exceeded'}),
        ScriptedResponse(201, {'id': 7, 'is_anonymous': True}),
    ])
    client = HabitClient('http://example.test', session=session, sleep=delays.append)

    assert client.sign_in_anonymously(retries=3, initial_delay=1.0)['id'] == 7
    assert delays == [1.0, 2.0]
    assert len(session.calls) == 3

def test_sign_in_gives_up_after_last_attempt():
    delays = []
    session = ScriptedSession([ScriptedResponse(429)] * 3)
    client = HabitClient('http://example.test', session=session, sleep=delays.append)

    with pytest.raises(RateLimitError):
        client.sign_in_anonymously(retries=3, initial_delay=0.5)
    assert delays == [0.5, 1.0]

def test_sign_in_other_errors_fail_immediately():
    session = ScriptedSession([ScriptedResponse(500, {'error': 'boom'})])
    client = HabitClient('http://example.test', session=session, sleep=lambda d: None)

    with pytest.raises(RemoteError) as exc:
        client.sign_in_anonymously()
    assert exc.value.status == 500
    assert len(session.calls) == 1

def test_get_current_user_signed_out():
    session = ScriptedSession([ScriptedResponse(401, {'error': 'Not signed in'})])
    assert HabitClient('http://example.test', session=session).get_current_user() is None

def test_unauthorized_call_raises_auth_error():
    session = ScriptedSession([ScriptedResponse(401, {'error': 'Not signed in'})])
    with pytest.raises(AuthError):
        HabitClient('http://example.test', session=session).list_habits()

def test_transport_errors_are_wrapped():
    session = ScriptedSession([requests.ConnectionError('connection refused')])
    with pytest.raises(RemoteError):
        HabitClient('http://example.test', session=session).list_habits()

def test_error_without_json_body():
    session = ScriptedSession([ScriptedResponse(502)])
    with pytest.raises(RemoteError) as exc:
        HabitClient('http://example.test', session=session).list_habits()
    assert str(exc.value) == 'HTTP 502'

def test_base_url_from_environment(monkeypatch):
    monkeypatch.setenv('HABITS_API_URL', 'http://habits.internal/')
    session = ScriptedSession([ScriptedResponse(200, [])])
    client = HabitClient(session=session)
    client.list_habits()
    assert session.calls[0][1] == 'http://habits.internal/habits'
