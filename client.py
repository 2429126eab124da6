import logging
import os
import time

import requests
from dotenv import load_dotenv

from models import DEFAULT_ICON, DEFAULT_COLOR
from utils import parse_day_key

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'http://localhost:5000'

class RemoteError(Exception):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status

class AuthError(RemoteError):
    pass

class RateLimitError(RemoteError):
    pass

class HabitClient:
    """HTTP client for the habit persistence API.

    Holds the session cookie of the signed-in anonymous user, so every call
    after ``ensure_session`` is scoped to that user's habits.
    """

    def __init__(self, base_url=None, session=None, timeout=10, sleep=time.sleep):
        base_url = base_url or os.environ.get('HABITS_API_URL', DEFAULT_BASE_URL)
        self.base_url = base_url.rstrip('/')
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.sleep = sleep
        self.user = None

    def _request(self, method, path, expected=(200,), **kwargs):
        try:
            response = self.session.request(method, self.base_url + path, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error('%s %s failed: %s', method, path, e)
            raise RemoteError(f'{method} {path} failed: {e}') from e

        if response.status_code in expected:
            return response

        message = self._error_message(response)
        if response.status_code == 401:
            raise AuthError(message, response.status_code)
        if response.status_code == 429:
            raise RateLimitError(message, response.status_code)
        raise RemoteError(message, response.status_code)

    @staticmethod
    def _error_message(response):
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get('error'):
            return body['error']
        return f'HTTP {response.status_code}'

    # Auth

    def sign_in_anonymously(self, retries=3, initial_delay=1.0):
        """Create an anonymous session, backing off on rate limits only.

        The delay doubles after each rate-limited attempt. Any other failure,
        or a rate limit on the last attempt, is raised immediately.
        """
        if retries < 1:
            raise ValueError('retries must be at least 1')

        for attempt in range(retries):
            try:
                response = self._request('POST', '/auth/anonymous', expected=(200, 201))
            except RateLimitError:
                if attempt == retries - 1:
                    raise
                delay = initial_delay * 2 ** attempt
                logger.warning('Rate limit hit, retrying in %.1fs...', delay)
                self.sleep(delay)
                continue
            self.user = response.json()
            return self.user

    def get_current_user(self):
        try:
            self.user = self._request('GET', '/auth/user').json()
        except AuthError:
            self.user = None
        return self.user

    def ensure_session(self):
        return self.get_current_user() or self.sign_in_anonymously()

    # Habits

    def list_habits(self):
        return self._request('GET', '/habits').json()

    def create_habit(self, name, icon=DEFAULT_ICON, description='', color=DEFAULT_COLOR):
        payload = {'name': name, 'icon': icon, 'description': description, 'color': color}
        return self._request('POST', '/habits', expected=(201,), json=payload).json()

    def update_habit(self, habit_id, name, icon, description, color):
        payload = {'name': name, 'icon': icon, 'description': description, 'color': color}
        return self._request('PUT', f'/habits/{habit_id}', json=payload).json()

    def delete_habit(self, habit_id):
        self._request('DELETE', f'/habits/{habit_id}', expected=(204,))

    def reorder_habits(self, habit_ids):
        return self._request('PUT', '/habits/order', json={'habit_ids': list(habit_ids)}).json()

    # Completions

    def list_completions(self, habit_ids):
        habit_ids = list(habit_ids)
        if not habit_ids:
            return []
        return self._request('GET', '/completions', params={'habit_id': habit_ids}).json()

    def find_completion(self, habit_id, day_key):
        response = self._request('GET', '/completions/find', expected=(200, 404),
                                 params={'habit_id': habit_id, 'date': day_key})
        if response.status_code == 404:
            return None
        return response.json()

    def insert_completion(self, habit_id, day_key):
        payload = {'habit_id': habit_id, 'completion_date': day_key}
        return self._request('POST', '/completions', expected=(201,), json=payload).json()

    def delete_completion(self, completion_id):
        self._request('DELETE', f'/completions/{completion_id}', expected=(204,))

    def toggle_completion(self, habit_id, day_key):
        """Flip completion of one day; returns True when it is now complete.

        Check-then-act: a second session toggling the same habit and day in
        between can make the insert fail with 409, surfaced as RemoteError.
        """
        parse_day_key(day_key)
        existing = self.find_completion(habit_id, day_key)
        if existing:
            self.delete_completion(existing['id'])
            return False
        self.insert_completion(habit_id, day_key)
        return True
