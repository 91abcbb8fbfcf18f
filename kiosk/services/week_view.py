"""
Week-at-a-glance grid for the kiosk dashboard.

Lays cached events out as day columns by hourly rows, the way the wall
display shows them. Pure functions over CalendarEvent objects; no database
or network access.
"""

import calendar as cal_module
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from kiosk.models import CalendarEvent

DEFAULT_DAYS = 5
FIRST_HOUR = 6
LAST_HOUR = 22


def format_hour(hour: int) -> str:
    """12-hour label for a time slot, e.g. 6 -> '6 AM', 13 -> '1 PM'."""
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12} {suffix}"


def grid_window(today: date, tz: ZoneInfo, days: int = DEFAULT_DAYS) -> tuple[datetime, datetime]:
    """UTC [start, end) covering `days` local days starting today."""
    start_local = datetime.combine(today, time.min, tzinfo=tz)
    end_local = datetime.combine(today + timedelta(days=days), time.min, tzinfo=tz)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)


def _overlaps(event: CalendarEvent, start: datetime, end: datetime) -> bool:
    return event.start_time < end and event.end_time > start


def _entry(event: CalendarEvent, tz: ZoneInfo) -> dict[str, Any]:
    return {
        "event": event,
        "start_local": event.start_time.astimezone(tz),
        "end_local": event.end_time.astimezone(tz),
    }


def build_week_grid(
    events: list[CalendarEvent],
    today: date,
    tz: ZoneInfo,
    days: int = DEFAULT_DAYS,
    first_hour: int = FIRST_HOUR,
    last_hour: int = LAST_HOUR,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Build the template context for the grid.

    Returns a dict with:
        day_columns: one entry per day (date, day_name, day_num, month_name,
            is_today, is_weekend, all_day_events)
        rows: one entry per hour from first_hour to last_hour inclusive, each
            with a label and one cell per day; a cell lists the timed events
            overlapping that hour and flags the current hour
        event_count: number of events placed anywhere in the grid
    """
    now_local = (now or datetime.now(timezone.utc)).astimezone(tz)
    timed = [e for e in events if not e.is_all_day]
    all_day = [e for e in events if e.is_all_day]
    placed: set[int] = set()

    day_columns = []
    for offset in range(days):
        day = today + timedelta(days=offset)
        day_start = datetime.combine(day, time.min, tzinfo=tz)
        day_end = day_start + timedelta(days=1)

        day_all_day = [_entry(e, tz) for e in all_day if _overlaps(e, day_start, day_end)]
        placed.update(id(entry["event"]) for entry in day_all_day)

        day_columns.append({
            "date": day,
            "day_name": cal_module.day_abbr[day.weekday()],
            "day_num": day.day,
            "month_name": cal_module.month_abbr[day.month],
            "is_today": day == today,
            "is_weekend": day.weekday() >= 5,
            "all_day_events": day_all_day,
        })

    rows = []
    for hour in range(first_hour, last_hour + 1):
        cells = []
        for column in day_columns:
            slot_start = datetime.combine(column["date"], time(hour), tzinfo=tz)
            slot_end = slot_start + timedelta(hours=1)

            slot_events = [_entry(e, tz) for e in timed if _overlaps(e, slot_start, slot_end)]
            placed.update(id(entry["event"]) for entry in slot_events)

            cells.append({
                "date": column["date"],
                "events": slot_events,
                "is_current_hour": slot_start <= now_local < slot_end,
            })
        rows.append({
            "hour": hour,
            "label": format_hour(hour),
            "cells": cells,
        })

    return {
        "day_columns": day_columns,
        "rows": rows,
        "event_count": len(placed),
    }
