"""
Calendar Kiosk - FastAPI Application Entry Point
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from kiosk import __version__
from kiosk.config import get_settings
from kiosk.database import engine, get_db, init_db
from kiosk.logging_config import configure_logging
from kiosk.routers import auth, calendar, dashboard
from kiosk.tasks.calendar_sync import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)

# Initialize FastAPI app
settings = get_settings()

app = FastAPI(
    title="Calendar Kiosk",
    description="Wall display for a Google Calendar, cached locally",
    version=__version__,
    debug=settings.debug,
)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie="kiosk_session",
    max_age=settings.session_max_age_seconds,
    same_site="lax",
    https_only=settings.is_production,
)

# Mount static files
app.mount(
    "/static",
    StaticFiles(directory=str(Path(__file__).resolve().parent / "static")),
    name="static",
)

# Include routers
app.include_router(auth.router)
app.include_router(calendar.router)
app.include_router(dashboard.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
async def startup_event():
    """Prepare logging and the database, then start the sync scheduler."""
    configure_logging()
    init_db()
    start_scheduler()
    logger.info(f"Calendar Kiosk {__version__} started ({settings.environment})")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop background tasks on application shutdown."""
    stop_scheduler()
    engine.dispose()


@app.get("/api/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint that also verifies database connection.
    """
    try:
        db.execute(text("SELECT 1")).fetchone()
        db_status = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        db_status = f"error: {e}"

    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "database": db_status,
    }


def run():
    """Console entry point: serve the app with uvicorn."""
    configure_logging()
    uvicorn.run(
        "kiosk.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
