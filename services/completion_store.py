"""In-memory habit state kept in step with the persistence API.

Mutations follow "commit, then verify-or-resync": the local change is
applied first, the remote call follows, and any remote failure throws the
local guess away by reloading every habit from the server, or by undoing
the change when the reload fails as well. Failures come back as
``SyncResult``/``LoadResult`` values instead of exceptions.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from client import RemoteError
from models import DEFAULT_ICON, DEFAULT_COLOR
from utils import day_key, parse_day_key, local_today, yesterday_of

logger = logging.getLogger(__name__)

class HabitState:
    def __init__(self, id, name, icon=DEFAULT_ICON, description='', color=DEFAULT_COLOR,
                 position=0, completed_days=None):
        self.id = id
        self.name = name
        self.icon = icon
        self.description = description or ''
        self.color = color or DEFAULT_COLOR
        self.position = position
        self.completed_days = set(completed_days or ())

    @classmethod
    def from_record(cls, record, completed_days=()):
        return cls(
            id=record['id'],
            name=record['name'],
            icon=record.get('icon') or DEFAULT_ICON,
            description=record.get('description') or '',
            color=record.get('color') or DEFAULT_COLOR,
            position=record.get('position', 0),
            completed_days=completed_days,
        )

    def copy(self):
        return HabitState(self.id, self.name, self.icon, self.description, self.color,
                          self.position, self.completed_days)

    def sorted_days(self):
        # ISO keys sort chronologically
        return sorted(self.completed_days)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'icon': self.icon,
            'description': self.description,
            'color': self.color,
            'position': self.position,
            'completed_days': self.sorted_days(),
        }

class LoadResult:
    def __init__(self, ok, habits=None, error=None):
        self.ok = ok
        self.habits = habits if habits is not None else []
        self.error = error

    def __bool__(self):
        return self.ok

class SyncResult:
    def __init__(self, ok, completed=None, habit=None, error=None, dispatched=True):
        self.ok = ok
        self.completed = completed
        self.habit = habit
        self.error = error
        self.dispatched = dispatched

    def __bool__(self):
        return self.ok

def _resolved(result):
    future = Future()
    future.set_result(result)
    return future

def _rejected(error):
    return SyncResult(False, error=error, dispatched=False)

def _canonical_keys(completions):
    by_habit = {}
    for c in completions:
        key = day_key(parse_day_key(c['completion_date']))
        by_habit.setdefault(c['habit_id'], set()).add(key)
    return by_habit

class CompletionStore:
    """Habits and their completed day keys for one signed-in session.

    ``service`` is anything exposing the ``HabitClient`` methods. Toggle
    persistence runs on ``executor``; the default single worker keeps one
    store's requests in dispatch order.
    """

    def __init__(self, service, executor=None):
        self.service = service
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='habit-sync')
        self._lock = threading.RLock()
        self._habits = []
        self._listeners = []
        self.last_error = None

    # Reading

    @property
    def habits(self):
        with self._lock:
            return [h.copy() for h in self._habits]

    def get(self, habit_id):
        with self._lock:
            habit = self._find(habit_id)
            return habit.copy() if habit else None

    def is_completed(self, habit_id, key):
        with self._lock:
            habit = self._find(habit_id)
            return habit is not None and key in habit.completed_days

    def _find(self, habit_id):
        for habit in self._habits:
            if habit.id == habit_id:
                return habit
        return None

    def subscribe(self, callback):
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def _notify(self):
        snapshot = self.habits
        for callback in list(self._listeners):
            callback(snapshot)

    # Loading

    def load(self):
        try:
            records = self.service.list_habits()
            ids = [r['id'] for r in records]
            completions = self.service.list_completions(ids) if ids else []
        except RemoteError as e:
            logger.error('Error loading habits: %s', e)
            return LoadResult(False, error=f'Failed to load habits: {e}')

        by_habit = _canonical_keys(completions)
        habits = [HabitState.from_record(r, by_habit.get(r['id'], ())) for r in records]
        with self._lock:
            self._habits = habits
            self.last_error = None
        self._notify()
        return LoadResult(True, habits=self.habits)

    def _resync(self, error, undo=None):
        """Reload canonical state after a failed mutation.

        If the reload fails too, ``undo`` rolls back the local change so the
        failed guess is not left on screen.
        """
        logger.error('%s; reloading habits', error)
        loaded = self.load()
        if not loaded.ok:
            error = f'{error}; {loaded.error}'
            if undo is not None:
                with self._lock:
                    undo()
                self._notify()
        with self._lock:
            self.last_error = error
        return SyncResult(False, error=error)

    # Completions

    def toggle(self, habit_id, key, today=None):
        """Flip one day's completion locally, then persist it.

        The local set already shows the new value when this returns. The
        returned future resolves once the server has answered; future days
        and unknown habits resolve at once without a request.
        """
        today = today or local_today()
        try:
            target = parse_day_key(key)
        except ValueError as e:
            return _resolved(_rejected(str(e)))
        if target > today:
            return _resolved(_rejected('Future days cannot be completed'))

        with self._lock:
            habit = self._find(habit_id)
            if habit is None:
                return _resolved(_rejected(f'Unknown habit: {habit_id}'))
            if key in habit.completed_days:
                habit.completed_days.discard(key)
                expected = False
            else:
                habit.completed_days.add(key)
                expected = True
        self._notify()

        return self.executor.submit(self._persist_toggle, habit_id, key, expected)

    def _set_day(self, habit_id, key, completed):
        with self._lock:
            habit = self._find(habit_id)
            if habit is None:
                return
            if completed:
                habit.completed_days.add(key)
            else:
                habit.completed_days.discard(key)

    def _persist_toggle(self, habit_id, key, expected):
        try:
            completed = self.service.toggle_completion(habit_id, key)
        except RemoteError as e:
            return self._resync(f'Failed to update habit: {e}',
                                undo=lambda: self._set_day(habit_id, key, not expected))

        if completed != expected:
            # Server held a different state than we had; its answer wins for
            # this day only, other days may still have toggles in flight
            logger.warning('Habit %s on %s diverged from server', habit_id, key)
            self._set_day(habit_id, key, completed)
            self._notify()
        return SyncResult(True, completed=completed)

    def complete_yesterday(self, habit_id, today=None):
        today = today or local_today()
        return self.toggle(habit_id, day_key(yesterday_of(today)), today=today)

    # Habits

    def create(self, name, icon=DEFAULT_ICON, description='', color=DEFAULT_COLOR):
        name = (name or '').strip()
        if not name:
            return _rejected('Please enter a habit name')

        try:
            record = self.service.create_habit(name, icon, description, color)
        except RemoteError as e:
            return self._resync(f'Failed to add habit: {e}')

        habit = HabitState.from_record(record)
        with self._lock:
            self._habits.append(habit)
        self._notify()
        return SyncResult(True, habit=habit.copy())

    def update(self, habit_id, name, icon, description, color):
        try:
            record = self.service.update_habit(habit_id, name, icon, description, color)
            completions = self.service.list_completions([habit_id])
        except RemoteError as e:
            return self._resync(f'Failed to update habit: {e}')

        habit = HabitState.from_record(record, _canonical_keys(completions).get(habit_id, ()))
        with self._lock:
            for index, existing in enumerate(self._habits):
                if existing.id == habit_id:
                    self._habits[index] = habit
                    break
            else:
                self._habits.append(habit)
        self._notify()
        return SyncResult(True, habit=habit.copy())

    def delete(self, habit_id):
        try:
            self.service.delete_habit(habit_id)
        except RemoteError as e:
            return self._resync(f'Failed to delete habit: {e}')

        with self._lock:
            self._habits = [h for h in self._habits if h.id != habit_id]
        self._notify()
        return SyncResult(True)

    def reorder(self, habit_ids):
        habit_ids = list(habit_ids)
        with self._lock:
            previous = [(h, h.position) for h in self._habits]
            by_id = {h.id: h for h in self._habits}
            if len(habit_ids) != len(by_id) or set(habit_ids) != set(by_id):
                return _rejected('Reorder must list every habit exactly once')
            self._habits = [by_id[i] for i in habit_ids]
            for position, habit in enumerate(self._habits):
                habit.position = position
        self._notify()

        try:
            self.service.reorder_habits(habit_ids)
        except RemoteError as e:
            return self._resync(f'Failed to reorder habits: {e}',
                                undo=lambda: self._restore_order(previous))
        return SyncResult(True)

    def _restore_order(self, previous):
        self._habits = [habit for habit, _ in previous]
        for habit, position in previous:
            habit.position = position

    def close(self):
        if self._owns_executor:
            self.executor.shutdown(wait=True)
