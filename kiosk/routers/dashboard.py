"""
Dashboard router: the kiosk's wall display.

Serves the full page at / and the week grid partial the page polls.
"""

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from kiosk.config import get_settings
from kiosk.database import get_db
from kiosk.routers.deps import get_session_user
from kiosk.services.calendar_service import CalendarService, get_calendar_service
from kiosk.services.week_view import build_week_grid, grid_window

router = APIRouter(tags=["dashboard"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

AUTH_ERROR_MESSAGES = {
    "oauth_error": "Google sign-in was cancelled or refused.",
    "missing_code": "Google did not return an authorization code.",
    "invalid_state": "The sign-in request expired. Please try again.",
    "auth_failed": "Signing in with Google failed. Please try again.",
}


def _grid_context(service: CalendarService) -> dict:
    """Week grid for the display calendar, in the kiosk's timezone."""
    tz = ZoneInfo(get_settings().timezone)
    now = datetime.now(tz)
    start, end = grid_window(now.date(), tz)
    events = service.get_events(start, end)
    grid = build_week_grid(events, now.date(), tz, now=now)
    grid["generated_at"] = now
    return grid


@router.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request,
    auth: str | None = None,
    error: str | None = None,
    db: Session = Depends(get_db),
):
    """Login screen when signed out, week grid when signed in."""
    context = {
        "title": "Calendar Kiosk",
        "auth_success": auth == "success",
        "error_message": AUTH_ERROR_MESSAGES.get(error) if error else None,
        "oauth_configured": get_settings().google_oauth_configured,
    }

    user = get_session_user(request, db)
    if user is None:
        return templates.TemplateResponse(request, "login.html", context)

    service = get_calendar_service(db)
    context.update(_grid_context(service))
    context.update({
        "user": user,
        "calendars": service.list_calendars(),
        "selected_calendar": service.get_selected_calendar(),
        "sync_status": service.get_last_sync_status(),
    })
    return templates.TemplateResponse(request, "dashboard.html", context)


@router.get("/dashboard/grid", response_class=HTMLResponse)
def dashboard_grid(request: Request, db: Session = Depends(get_db)):
    """
    Week grid partial, re-fetched by the page every minute.

    Signed-out requests get a 401 so the page can fall back to the login screen.
    """
    user = get_session_user(request, db)
    if user is None:
        return HTMLResponse("", status_code=401)

    service = get_calendar_service(db)
    context = _grid_context(service)
    context["sync_status"] = service.get_last_sync_status()
    return templates.TemplateResponse(request, "dashboard/_grid.html", context)
