"""
Calendar router: cached events, sync control and calendar selection.

Every route requires a signed-in session. Reads come from the local cache;
only the sync endpoints talk to Google.
"""

import logging
from datetime import date, datetime, time, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from kiosk.database import get_db
from kiosk.routers.deps import require_user
from kiosk.services.calendar_service import (
    CalendarAPIError,
    CalendarAuthError,
    CalendarNotFoundError,
    NotAuthenticatedError,
    get_calendar_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/calendar",
    tags=["calendar"],
    dependencies=[Depends(require_user)],
)


def parse_query_datetime(value: str, name: str) -> datetime:
    """
    Parse an ISO date or datetime query parameter into aware UTC.

    Bare dates mean midnight UTC; naive datetimes are taken as UTC.

    Raises:
        HTTPException: 400 if the value is not ISO formatted
    """
    raw = value.strip()
    try:
        if len(raw) == 10:
            parsed = datetime.combine(date.fromisoformat(raw), time.min)
        else:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"{name} must be an ISO 8601 date or datetime",
        )

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@router.get("/events")
def get_events(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    """Cached events overlapping [startDate, endDate]."""
    if not start_date or not end_date:
        raise HTTPException(status_code=400, detail="startDate and endDate are required")

    start = parse_query_datetime(start_date, "startDate")
    end = parse_query_datetime(end_date, "endDate")
    if end < start:
        raise HTTPException(status_code=400, detail="endDate must not be before startDate")

    events = get_calendar_service(db).get_events(start, end)
    return [event.to_dict() for event in events]


@router.get("/events/all")
def get_all_events(db: Session = Depends(get_db)):
    """Every cached event, ordered by start time."""
    return [event.to_dict() for event in get_calendar_service(db).get_all_events()]


@router.post("/sync")
def sync_events(db: Session = Depends(get_db)):
    """
    Sync events from Google now.

    Returns the sync result; a failed sync answers 502 with the error.
    """
    result = get_calendar_service(db).sync_events()
    if not result.success:
        return JSONResponse(status_code=502, content=result.to_dict())
    return result.to_dict()


@router.get("/sync/status")
def get_sync_status(db: Session = Depends(get_db)):
    """Most recent sync status, or null before the first sync."""
    status = get_calendar_service(db).get_last_sync_status()
    return status.to_dict() if status else None


@router.get("/calendars")
def list_calendars(db: Session = Depends(get_db)):
    """Stored calendar list, primary first."""
    return [calendar.to_dict() for calendar in get_calendar_service(db).list_calendars()]


@router.post("/calendars/sync")
def sync_calendars(db: Session = Depends(get_db)):
    """Refresh the calendar list from Google."""
    try:
        calendars = get_calendar_service(db).sync_calendars()
    except NotAuthenticatedError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except (CalendarAuthError, CalendarAPIError) as e:
        logger.error(f"Sync calendars error: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to sync calendars: {e}")

    return [calendar.to_dict() for calendar in calendars]


@router.get("/calendars/selected")
def get_selected_calendar(db: Session = Depends(get_db)):
    calendar = get_calendar_service(db).get_selected_calendar()
    return {"selected_calendar_id": calendar.id if calendar else None}


@router.post("/calendars/{calendar_id}/select")
def select_calendar(calendar_id: str, db: Session = Depends(get_db)):
    """Choose the calendar the kiosk syncs and displays."""
    try:
        get_calendar_service(db).select_calendar(calendar_id)
    except CalendarNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"success": True}
