"""
Business hours utilities for slot generation.

A working day is sliced into fixed-length windows between the opening and
closing time, skipping any window that overlaps the lunch break. Closed
weekdays and holidays produce no windows at all.
"""
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

Window = Tuple[time, time]

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def parse_clock(value) -> time:
    """Parse "HH:MM" (or "HH:MM:SS") into a time."""
    if isinstance(value, time):
        return value
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day: {value!r}")


def check_time_conflict(start1, end1, start2, end2) -> bool:
    """
    Check if two time ranges overlap.

    Returns:
        True if there's a conflict (overlap), False otherwise
    """
    # No conflict if one ends before the other starts
    if end1 <= start2 or end2 <= start1:
        return False
    return True


def slice_work_day(
    day_start: time,
    day_end: time,
    duration_minutes: int,
    lunch_start: Optional[time] = None,
    lunch_end: Optional[time] = None,
) -> List[Window]:
    """
    Cut [day_start, day_end) into consecutive windows of duration_minutes.

    The last window must finish by day_end. Windows overlapping the lunch
    break are dropped.
    """
    if duration_minutes <= 0:
        raise ValueError("Slot duration must be positive")

    anchor = date(2000, 1, 3)
    current = datetime.combine(anchor, day_start)
    end = datetime.combine(anchor, day_end)
    step = timedelta(minutes=duration_minutes)
    lunch = None
    if lunch_start and lunch_end:
        lunch = (datetime.combine(anchor, lunch_start), datetime.combine(anchor, lunch_end))

    windows = []
    while current + step <= end:
        slot_end = current + step
        if lunch is None or not check_time_conflict(current, slot_end, lunch[0], lunch[1]):
            windows.append((current.time(), slot_end.time()))
        current = slot_end
    return windows


class BusinessHours:
    """
    Per-weekday working windows.

    Either built from a work-day template (start, end, slot length, lunch
    break) or from an explicit weekly table of windows. Weekdays are
    0=Monday ... 6=Sunday.
    """

    def __init__(
        self,
        weekly_windows: Dict[int, List[Window]],
        holidays: Optional[Dict[str, str]] = None,
    ):
        self.weekly_windows = {
            weekday: sorted(windows) for weekday, windows in weekly_windows.items()
        }
        self.holidays = dict(holidays or {})

    @classmethod
    def from_template(
        cls,
        day_start,
        day_end,
        duration_minutes: int,
        lunch_start=None,
        lunch_end=None,
        closed_days: Iterable[str] = (),
        holidays: Optional[Dict[str, str]] = None,
    ) -> "BusinessHours":
        windows = slice_work_day(
            parse_clock(day_start),
            parse_clock(day_end),
            duration_minutes,
            parse_clock(lunch_start) if lunch_start else None,
            parse_clock(lunch_end) if lunch_end else None,
        )
        closed = {name.strip().lower() for name in closed_days}
        weekly = {
            weekday: list(windows)
            for weekday, name in enumerate(WEEKDAY_NAMES)
            if name not in closed
        }
        return cls(weekly, holidays=holidays)

    @classmethod
    def from_settings(cls, settings) -> "BusinessHours":
        return cls.from_template(
            settings.WORK_DAY_START,
            settings.WORK_DAY_END,
            settings.SLOT_DURATION_MINUTES,
            settings.LUNCH_BREAK_START,
            settings.LUNCH_BREAK_END,
            closed_days=settings.CLOSED_DAYS,
            holidays=settings.HOLIDAYS,
        )

    def is_holiday(self, day: date) -> bool:
        return day.isoformat() in self.holidays

    def windows_for(self, weekday: int) -> List[Window]:
        return list(self.weekly_windows.get(weekday, []))

    def windows_for_date(self, day: date) -> List[Window]:
        if self.is_holiday(day):
            return []
        return self.windows_for(day.weekday())
