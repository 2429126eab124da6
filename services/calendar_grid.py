"""Week-by-day completion grids for a single habit.

Everything here is a pure function of ``today`` and a habit's completed day
keys, so grids are rebuilt on every render and never cached.

Layout convention: each column is one week and holds 7 cells ordered oldest
(top) to newest (bottom); columns run oldest (left) to newest (right).
"""
import calendar
import math
from datetime import date, timedelta

from models import DEFAULT_COLOR
from utils import day_key

DAYS_IN_WEEK = 7
MAX_WEEKS = 520

FUTURE = 'future'
TODAY_COMPLETE = 'today-complete'
TODAY_INCOMPLETE = 'today-incomplete'
PAST_COMPLETE = 'past-complete'
PAST_INCOMPLETE = 'past-incomplete'
EMPTY = 'empty' # padding after Dec 31 in the year layout

NEUTRAL_COLOR = '#E0E0E0'
FUTURE_COLOR = '#F0F0F0'
TODAY_ACCENT = '#007AFF'

class GridCell:
    def __init__(self, week, day, cell_date, state, color):
        self.week = week
        self.day = day
        self.date = cell_date
        self.key = day_key(cell_date) if cell_date is not None else None
        self.state = state
        self.color = color
        self.interactive = state not in (FUTURE, EMPTY)

    def to_dict(self):
        return {
            'week': self.week,
            'day': self.day,
            'date': self.key,
            'state': self.state,
            'color': self.color,
            'interactive': self.interactive,
        }

class CalendarGrid:
    def __init__(self, today, layout, weeks):
        self.today = today
        self.layout = layout
        self.weeks = weeks

    @property
    def total_weeks(self):
        return len(self.weeks)

    def cells(self):
        for column in self.weeks:
            for cell in column:
                yield cell

    def dated_cells(self):
        return [c for c in self.cells() if c.date is not None]

    def find(self, cell_date):
        for cell in self.cells():
            if cell.date == cell_date:
                return cell
        return None

    def to_dict(self):
        return {
            'today': day_key(self.today),
            'layout': self.layout,
            'total_weeks': self.total_weeks,
            'scroll_offset': initial_scroll_offset(self),
            'weeks': [[c.to_dict() for c in column] for column in self.weeks],
        }

def classify(cell_date, today, completed_days):
    if cell_date > today:
        return FUTURE
    done = day_key(cell_date) in completed_days
    if cell_date == today:
        return TODAY_COMPLETE if done else TODAY_INCOMPLETE
    return PAST_COMPLETE if done else PAST_INCOMPLETE

def cell_color(state, habit_color=DEFAULT_COLOR):
    if state == PAST_COMPLETE:
        return habit_color or DEFAULT_COLOR
    if state == TODAY_COMPLETE:
        return TODAY_ACCENT
    if state == FUTURE:
        return FUTURE_COLOR
    if state == EMPTY:
        return None
    return NEUTRAL_COLOR

def _make_cell(week, day, cell_date, today, completed_days, color):
    state = classify(cell_date, today, completed_days)
    return GridCell(week, day, cell_date, state, cell_color(state, color))

def build_trailing_grid(today, completed_days, color=DEFAULT_COLOR, weeks=52, anchor=None):
    """Grid ending on ``today``, which lands in the bottom-right cell.

    The window starts at ``anchor`` (default: ``weeks`` weeks before today).
    ``ceil(elapsed / 7) + 1`` columns are laid out so the partially elapsed
    current week always gets its own column.
    """
    if anchor is None:
        if not 0 <= weeks <= MAX_WEEKS:
            raise ValueError(f'weeks must be between 0 and {MAX_WEEKS}')
        try:
            anchor = today - timedelta(weeks=weeks)
        except OverflowError:
            raise ValueError('weeks reaches past the earliest supported date')
    if anchor > today:
        raise ValueError('anchor must not be after today')

    elapsed = (today - anchor).days
    total_weeks = math.ceil(elapsed / DAYS_IN_WEEK) + 1
    if total_weeks > MAX_WEEKS + 1:
        raise ValueError(f'grid may span at most {MAX_WEEKS} weeks')
    try:
        # top-left cell; offset (total_weeks - 1) * 7 + 6 from today
        first = today - timedelta(days=total_weeks * DAYS_IN_WEEK - 1)
    except OverflowError:
        raise ValueError('grid reaches past the earliest supported date')

    columns = []
    for week in range(total_weeks):
        column = []
        for day in range(DAYS_IN_WEEK):
            cell_date = first + timedelta(days=week * DAYS_IN_WEEK + day)
            column.append(_make_cell(week, day, cell_date, today, completed_days, color))
        columns.append(column)
    return CalendarGrid(today, 'trailing', columns)

def days_in_year(year):
    return 366 if calendar.isleap(year) else 365

def build_year_grid(today, completed_days, color=DEFAULT_COLOR):
    """Grid covering Jan 1 to Dec 31 of ``today``'s year.

    Cell ``(week, day)`` is day-of-year ``week * 7 + day``; cells past the
    end of the year are ``EMPTY`` padding, so every date of the year appears
    exactly once and future days of the year are shown but not interactive.
    """
    year_start = date(today.year, 1, 1)
    total_days = days_in_year(today.year)
    total_weeks = math.ceil(total_days / DAYS_IN_WEEK)

    columns = []
    for week in range(total_weeks):
        column = []
        for day in range(DAYS_IN_WEEK):
            day_of_year = week * DAYS_IN_WEEK + day
            if day_of_year >= total_days:
                column.append(GridCell(week, day, None, EMPTY, None))
                continue
            cell_date = year_start + timedelta(days=day_of_year)
            column.append(_make_cell(week, day, cell_date, today, completed_days, color))
        columns.append(column)
    return CalendarGrid(today, 'year', columns)

def build_grid(today, completed_days, color=DEFAULT_COLOR, layout='year', weeks=52):
    if layout == 'year':
        return build_year_grid(today, completed_days, color)
    if layout == 'trailing':
        return build_trailing_grid(today, completed_days, color, weeks=weeks)
    raise ValueError(f'Unknown grid layout: {layout}')

def initial_scroll_offset(grid, cell_pitch=14, lead_weeks=4):
    # Reveal the current week with a few weeks of history to its left
    cell = grid.find(grid.today)
    if cell is None:
        return 0
    return max(0, (cell.week - lead_weeks) * cell_pitch)

def today_status(today, completed_days):
    return classify(today, today, completed_days)

def yearly_counts(completed_sets, year):
    prefix = f'{year:04d}-'
    counts = {}
    for keys in completed_sets:
        for key in set(keys):
            if key.startswith(prefix):
                counts[key] = counts.get(key, 0) + 1
    return counts
