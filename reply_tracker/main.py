"""
FastAPI application exposing the reply-tracking stages as HTTP triggers.
"""

from contextlib import asynccontextmanager
from html import escape

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel

from reply_tracker.config import settings
from reply_tracker.core.logging import configure_logging, get_logger
from reply_tracker.exceptions import ConfigurationError
from reply_tracker.processors import build_processor
from reply_tracker.scheduler import start_scheduler, stop_scheduler
from reply_tracker.services.oauth import authorization_url, exchange_code

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    configure_logging(settings.log_level, settings.json_logs)
    log.info("application_starting", dry_run=settings.dry_run)

    if settings.scheduler_enabled:
        start_scheduler()
    else:
        log.info("scheduler_disabled", reason="stages run on HTTP or CLI trigger")

    yield

    # Shutdown
    if settings.scheduler_enabled:
        stop_scheduler()
    log.info("application_stopped")


app = FastAPI(
    title="Lender Reply Tracker",
    description="Matches lender replies to loan submissions and classifies them",
    version="1.0.0",
    lifespan=lifespan,
)


# Request Models

class ClassifyRequest(BaseModel):
    dry_run: bool | None = None  # defaults to the DRY_RUN setting


def run_stage(stage: str, dry_run: bool | None = None) -> dict:
    """Run one stage synchronously and return its stats."""
    try:
        processor = build_processor(stage, dry_run=dry_run)
        stats = processor.process()
    except ConfigurationError as e:
        log.error("stage_not_configured", stage=stage, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        log.error("stage_failed", stage=stage, error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail=f"{stage} failed: {e}")

    return {"status": "ok", "stage": stage, "stats": stats}


# Endpoints

@app.get("/")
async def root():
    return {"service": "reply-tracker", "status": "running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.api_route("/run-check", methods=["GET", "POST"])
def run_check():
    """Match threaded replies from the mailbox to submissions."""
    return run_stage("thread")


@app.post("/run-heuristic")
def run_heuristic():
    """Match unthreaded replies by sender and business name."""
    return run_stage("heuristic")


@app.post("/run-classify")
def run_classify(request: ClassifyRequest | None = None):
    """
    Classify recent replies and record approvals and declines.

    Args:
        dry_run: If true, classify and log without writing to the store
    """
    dry_run = request.dry_run if request is not None else None
    return run_stage("classify", dry_run=dry_run)


@app.get("/auth")
def auth():
    """Redirect to Google consent to obtain a Gmail refresh token."""
    try:
        settings.validate_for("oauth")
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return RedirectResponse(authorization_url(settings))


@app.get("/oauth2callback", response_class=HTMLResponse)
def oauth2callback(code: str | None = None):
    """Exchange the authorization code and show the refresh token once."""
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    try:
        refresh_token = exchange_code(code, settings)
    except Exception as e:
        log.error("oauth_exchange_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Authorization code exchange failed")

    if not refresh_token:
        log.warning("oauth_no_refresh_token")
        raise HTTPException(
            status_code=500,
            detail="No refresh token returned; revoke access and authorize again",
        )

    log.info("oauth_refresh_token_issued")
    return (
        "<h3>Authorization complete</h3>"
        "<p>Set GMAIL_REFRESH_TOKEN to:</p>"
        f"<pre>{escape(refresh_token)}</pre>"
    )


# Run with: uvicorn reply_tracker.main:app --host 0.0.0.0 --port 3000
