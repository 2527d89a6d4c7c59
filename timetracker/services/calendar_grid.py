"""
Calendar grid construction.
Maps a week or a month to day buckets and merges per-day entries and markers.
"""
import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Dict, Tuple

import pytz

from ..config import settings
from ..models.models import TimeEntry, DayMarker


MONDAY = 0
# Grids and prev/next navigation stay inside the date type range
MIN_YEAR = 2
MAX_YEAR = 9998


@dataclass
class DayCell:
    day: date
    entries: List[TimeEntry] = field(default_factory=list)
    marker: Optional[DayMarker] = None
    in_month: bool = True

    @property
    def total_hours(self) -> Decimal:
        return sum((e.total_hours for e in self.entries), Decimal("0"))

    @property
    def is_weekend(self) -> bool:
        return self.day.weekday() >= 5


@dataclass
class WeekGrid:
    week_start: date
    days: List[DayCell]

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=6)

    @property
    def prev_week(self) -> date:
        return self.week_start - timedelta(days=7)

    @property
    def next_week(self) -> date:
        return self.week_start + timedelta(days=7)

    @property
    def total_hours(self) -> Decimal:
        return sum((d.total_hours for d in self.days), Decimal("0"))


@dataclass
class MonthGrid:
    year: int
    month: int
    weeks: List[WeekGrid]

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def prev_month(self) -> date:
        return (self.first_day - timedelta(days=1)).replace(day=1)

    @property
    def next_month(self) -> date:
        return month_bounds(self.year, self.month)[1] + timedelta(days=1)

    def week_total(self, week: WeekGrid) -> Decimal:
        """Hours of the days of this month only"""
        return sum((d.total_hours for d in week.days if d.in_month), Decimal("0"))

    @property
    def total_hours(self) -> Decimal:
        return sum((self.week_total(w) for w in self.weeks), Decimal("0"))

    @property
    def days_worked(self) -> int:
        return sum(1 for w in self.weeks for d in w.days if d.in_month and d.entries)


def start_of_week(d: date, first_weekday: int = MONDAY) -> date:
    diff = (7 + (d.weekday() - first_weekday)) % 7
    return d - timedelta(days=diff)


def week_days(week_start: date) -> List[date]:
    return [week_start + timedelta(days=i) for i in range(7)]


def month_bounds(year: int, month: int) -> tuple:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def month_weeks(year: int, month: int) -> List[List[date]]:
    """Whole Monday-first weeks covering the month, neighbour-month days included."""
    first, last = month_bounds(year, month)
    weeks = []
    cursor = start_of_week(first)
    while cursor <= last:
        weeks.append(week_days(cursor))
        cursor += timedelta(days=7)
    return weeks


def _by_day(entries: Iterable[TimeEntry], markers: Iterable[DayMarker]):
    entries_by_day: Dict[date, List[TimeEntry]] = {}
    for e in entries:
        entries_by_day.setdefault(e.entry_date, []).append(e)
    markers_by_day: Dict[date, DayMarker] = {}
    for m in markers:
        # One marker per employee/day; first one wins if a caller mixes employees
        markers_by_day.setdefault(m.date, m)
    return entries_by_day, markers_by_day


def _cells(days: List[date], entries_by_day, markers_by_day, month: Optional[int] = None) -> List[DayCell]:
    return [
        DayCell(
            day=d,
            entries=sorted(entries_by_day.get(d, []), key=lambda e: e.start_time),
            marker=markers_by_day.get(d),
            in_month=month is None or d.month == month,
        )
        for d in days
    ]


def build_week_grid(week_start: date, entries: Iterable[TimeEntry], markers: Iterable[DayMarker]) -> WeekGrid:
    week_start = start_of_week(week_start)
    entries_by_day, markers_by_day = _by_day(entries, markers)
    return WeekGrid(week_start=week_start, days=_cells(week_days(week_start), entries_by_day, markers_by_day))


def build_month_grid(year: int, month: int, entries: Iterable[TimeEntry], markers: Iterable[DayMarker]) -> MonthGrid:
    entries_by_day, markers_by_day = _by_day(entries, markers)
    weeks = [
        WeekGrid(week_start=days[0], days=_cells(days, entries_by_day, markers_by_day, month=month))
        for days in month_weeks(year, month)
    ]
    return MonthGrid(year=year, month=month, weeks=weeks)


def local_today() -> date:
    """Today in the organisation's time zone"""
    return datetime.now(pytz.timezone(settings.tz_default)).date()


def resolve_month(year: Optional[int], month: Optional[int]) -> Tuple[int, int]:
    """Fill a missing year/month from today and reject values outside the supported range."""
    today = local_today()
    if year is None:
        year = today.year
    if month is None:
        month = today.month
    if not 1 <= month <= 12 or not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError("Invalid month")
    return year, month


def is_supported_day(day: date) -> bool:
    return MIN_YEAR <= day.year <= MAX_YEAR
