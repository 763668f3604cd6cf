from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from watchtime.db.base import get_db
from watchtime.core.config import settings
from watchtime.core.logging import setup_logging
from watchtime.routers import jobs as jobs_router
from watchtime.routers import sessions as sessions_router
from watchtime.routers import stats as stats_router
from watchtime.core.errors import (
    WatchtimeException,
    watchtime_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

setup_logging(settings)

app = FastAPI(
    title="Watchtime API",
    description=(
        "**Live-session tracking and watch-time aggregation**\n\n"
        "Polls streaming platforms for current viewer counts, tracks each "
        "broadcast as a session, finalizes sessions into hours watched and "
        "rolls them up into daily / 7-day / 30-day totals per creator.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(WatchtimeException, watchtime_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(sessions_router.router)
app.include_router(stats_router.router)
app.include_router(jobs_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
