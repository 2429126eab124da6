import os
os.environ['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'

import pytest
from concurrent.futures import Executor, Future
from app import app
from models import db, User
from extensions import limiter
from client import HabitClient, RemoteError
from services.completion_store import CompletionStore

BASE_URL = 'http://testserver'

class FlaskTestResponse:
    def __init__(self, response):
        self.status_code = response.status_code
        self._response = response

    def json(self):
        data = self._response.get_json(silent=True)
        if data is None:
            raise ValueError('Response has no JSON body')
        return data

class FlaskTestSession:
    """Stands in for requests.Session, routing calls to the Flask test client."""

    def __init__(self, test_client):
        self.test_client = test_client
        self.calls = []

    def request(self, method, url, timeout=None, params=None, json=None):
        path = url[len(BASE_URL):]
        self.calls.append((method, path))
        response = self.test_client.open(path, method=method, query_string=params, json=json)
        return FlaskTestResponse(response)

class DeferredExecutor(Executor):
    """Queues submitted work until run_pending() is called."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_pending(self):
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)

class FailingService:
    """Wraps a service and raises RemoteError from the methods named in ``fail``."""

    def __init__(self, inner, fail=()):
        self.inner = inner
        self.fail = set(fail)
        self.calls = []

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if not callable(attr):
            return attr

        def call(*args, **kwargs):
            self.calls.append(name)
            if name in self.fail:
                raise RemoteError(f'{name} unavailable', 503)
            return attr(*args, **kwargs)
        return call

@pytest.fixture
def client():
    app.config['TESTING'] = True
    limiter.reset()

    with app.test_client() as client:
        with app.app_context():
            db.create_all()
            yield client
            db.session.remove()
            db.drop_all()

@pytest.fixture
def auth_client(client):
    response = client.post('/auth/anonymous')
    user = db.session.get(User, response.json['id'])
    return client, user

@pytest.fixture
def runner(client):
    return app.test_cli_runner()

@pytest.fixture
def api(client):
    habit_client = HabitClient(base_url=BASE_URL, session=FlaskTestSession(client), sleep=lambda delay: None)
    habit_client.ensure_session()
    return habit_client

@pytest.fixture
def service(api):
    return FailingService(api)

@pytest.fixture
def executor():
    return DeferredExecutor()

@pytest.fixture
def store(service, executor):
    return CompletionStore(service, executor=executor)
