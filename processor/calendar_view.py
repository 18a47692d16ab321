"""Month grid, event list and title suggestion helpers."""
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from processor.dates import format_ymd
from processor.models import Event, Occurrence, RecurrenceFrequency
from processor.recurrence import generate_occurrences, js_weekday

GRID_DAYS = 42  # 6 rows * 7 days
MAX_SPAN_DAYS = 366


@dataclass
class DayCell:
    """One cell of the month grid."""
    date: date
    is_current_month: bool
    is_today: bool
    has_events: bool = False


def grid_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of the Sunday-first 6 week grid for a month."""
    first = date(year, month, 1)
    start = first - timedelta(days=js_weekday(first))
    return start, start + timedelta(days=GRID_DAYS - 1)


def visible_occurrences(
    events: Dict[str, Event],
    view_start: date,
    view_end: date
) -> List[Tuple[Event, Occurrence]]:
    """Expand every event against the window, paired with its event."""
    return [
        (event, occurrence)
        for event in events.values()
        for occurrence in generate_occurrences(event, view_start, view_end)
    ]


def event_dates(pairs: Iterable[Tuple[Event, Occurrence]]) -> Set[str]:
    """YYYY-MM-DD keys of every day touched by an occurrence."""
    dates = set()
    for _, occurrence in pairs:
        day = occurrence.start.date()
        last = occurrence.end.date()
        span = 0
        while day <= last and span < MAX_SPAN_DAYS:
            dates.add(format_ymd(day))
            day += timedelta(days=1)
            span += 1
    return dates


def events_on_day(
    events: Dict[str, Event],
    pairs: Iterable[Tuple[Event, Occurrence]],
    selected: date
) -> List[Event]:
    """
    Events with an occurrence covering the selected day.

    Each event appears once however many of its occurrences match, and
    results are sorted by title.
    """
    selected_ymd = format_ymd(selected)
    ids = {
        event.id for event, occurrence in pairs
        if format_ymd(occurrence.start.date()) <= selected_ymd <= format_ymd(occurrence.end.date())
    }
    found = [events[event_id] for event_id in ids if event_id in events]
    return sorted(found, key=lambda e: e.title.casefold())


def month_view(
    events: Dict[str, Event],
    year: int,
    month: int,
    selected: Optional[date] = None,
    today: Optional[date] = None
) -> Dict[str, object]:
    """
    Build the month grid and the event list for the selected day.

    Returns:
        Dict with 'cells' (42 DayCell) and 'day_events' (list of Event)
    """
    today = today or date.today()
    start, end = grid_bounds(year, month)
    pairs = visible_occurrences(events, start, end)
    marked = event_dates(pairs)

    cells = []
    for offset in range(GRID_DAYS):
        day = start + timedelta(days=offset)
        cells.append(DayCell(
            date=day,
            is_current_month=day.month == month,
            is_today=day == today,
            has_events=format_ymd(day) in marked
        ))

    day_events = events_on_day(events, pairs, selected) if selected else []
    return {'cells': cells, 'day_events': day_events}


WEEKDAYS_SHORT = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']
RECENT_LIMIT = 5
LEADING_INT_PATTERN = re.compile(r'\s*([+-]?\d+)', re.ASCII)


def list_events(events: Dict[str, Event]) -> List[Event]:
    """
    All events for the list screen.

    Sorted by anchor start date, newest first, then by title. Events
    without any time range go last.
    """
    dated = [e for e in events.values() if e.time_ranges and e.time_ranges[0].start]
    undated = [e for e in events.values() if not (e.time_ranges and e.time_ranges[0].start)]
    dated.sort(key=lambda e: e.title.casefold())
    dated.sort(key=lambda e: e.time_ranges[0].start, reverse=True)
    return dated + undated


def recurrence_description(event: Event) -> Optional[str]:
    """Short English summary of an event's repetition, or None."""
    rule = event.recurrence_rule
    if rule is None:
        return None
    if rule.frequency == RecurrenceFrequency.WEEKLY:
        days = ', '.join(
            WEEKDAYS_SHORT[d] for d in rule.weekly_days or [] if 0 <= d <= 6
        )
        return f"Repeats weekly on {days}"
    days = ', '.join(str(d) for d in rule.monthly_days or [])
    return f"Repeats monthly on day {days}"


def _numeric_id(event: Event) -> Optional[int]:
    match = LEADING_INT_PATTERN.match(event.id)
    return int(match.group(1)) if match else None


def recent_events(events: Dict[str, Event], limit: int = RECENT_LIMIT) -> List[Event]:
    """
    Latest events with distinct titles, used as title suggestions.

    Only events whose id starts with a number qualify (ids are creation
    timestamps); the highest id comes first and blank titles are skipped.
    """
    numbered = [e for e in events.values() if _numeric_id(e) is not None]
    numbered.sort(key=_numeric_id, reverse=True)

    seen = set()
    recent = []
    for event in numbered:
        if event.title.strip() and event.title not in seen:
            seen.add(event.title)
            recent.append(event)
        if len(recent) >= limit:
            break
    return recent
