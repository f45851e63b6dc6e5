import logging

from fastapi import FastAPI
from app.api.v1.api import api_router
from app.config import Settings
from app.context import build_context
from app.database import SessionLocal, init_db
from app.services.ledger import IdempotencyLedger

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Transaction Automation",
    description="Reconciles bill reminders and archives bills from Gmail push notifications",
    version="1.0.0"
)


@app.on_event("startup")
def on_startup():
    """Load settings, create tables and build the shared service context."""
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    init_db()

    IdempotencyLedger(SessionLocal, settings.ledger_ttl_days).purge_expired()

    app.state.context = build_context(settings, SessionLocal)
    logger.info(f"✅ Google services ready (calendar: {settings.calendar_name})")


app.include_router(api_router)


@app.get("/")
def health_check():
    return {"status": "ok"}
