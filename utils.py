import re
from datetime import date, datetime, timedelta

from models import DEFAULT_ICON, DEFAULT_COLOR

MAX_NAME_LENGTH = 100
MAX_ICON_LENGTH = 16

AVAILABLE_ICONS = ['⭐', '💪', '📚', '🏃', '💧', '🧘', '🎯', '✍️', '🌱', '🎵', '🍎', '💤', '📱', '🏠', '💰', '❤️']

_DAY_KEY_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_HEX_COLOR_RE = re.compile(r'^#[0-9A-Fa-f]{6}$')

def day_key(value):
    """Canonical key for the local calendar date of ``value``.

    Keys are ISO dates (``YYYY-MM-DD``, one-based month). The same string
    is used in memory, on the wire and in the database, so two datetimes on
    the same local day always share a key.
    """
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()

def parse_day_key(key):
    if not isinstance(key, str) or not _DAY_KEY_RE.match(key):
        raise ValueError(f"Invalid day key: {key!r}")
    return date.fromisoformat(key)

def is_day_key(key):
    try:
        parse_day_key(key)
    except ValueError:
        return False
    return True

def local_today():
    return date.today()

def yesterday_of(today):
    return today - timedelta(days=1)

def is_hex_color(value):
    return isinstance(value, str) and bool(_HEX_COLOR_RE.match(value))

def clean_habit_fields(data, partial=False):
    """Validate habit display fields from a request body.

    Returns a dict holding only the fields that were supplied (all of them,
    with defaults filled in, unless ``partial``). Raises ``ValueError`` with a
    user-facing message on the first invalid field.
    """
    if not isinstance(data, dict):
        raise ValueError('Expected a JSON object')

    cleaned = {}
    if 'name' in data or not partial:
        name = data.get('name')
        name = name.strip() if isinstance(name, str) else ''
        if not name:
            raise ValueError('Please enter a habit name')
        if len(name) > MAX_NAME_LENGTH:
            raise ValueError(f'Habit name is limited to {MAX_NAME_LENGTH} characters')
        cleaned['name'] = name

    if 'icon' in data or not partial:
        icon = data.get('icon') or DEFAULT_ICON
        if not isinstance(icon, str) or len(icon) > MAX_ICON_LENGTH:
            raise ValueError('Invalid icon')
        cleaned['icon'] = icon

    if 'description' in data or not partial:
        description = data.get('description') or ''
        if not isinstance(description, str):
            raise ValueError('Invalid description')
        cleaned['description'] = description.strip()

    if 'color' in data or not partial:
        color = data.get('color') or DEFAULT_COLOR
        if not is_hex_color(color):
            raise ValueError('Color must be a hex value like #4CAF50')
        cleaned['color'] = color.upper()

    return cleaned
