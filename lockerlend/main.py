import logging

import yaml
from fastapi import FastAPI
from lockerlend.infrastructure.config import settings
from lockerlend.infrastructure.database import Base, engine, SessionLocal
from lockerlend.infrastructure.models import models  # noqa: F401  (registers tables on Base)
from lockerlend.presentation.routers import router
from lockerlend.services.expiry_sweeper import ExpirySweeper

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="lockerlend")
sweeper = ExpirySweeper(session_factory=SessionLocal, interval_seconds=settings.expiry_sweep_interval_seconds)


# Use the contractual schema
def custom_openapi():
    with open(settings.openapi_path) as f:
        return yaml.safe_load(f)


@app.on_event("startup")
def _start_expiry_sweeper() -> None:
    """
    Expiry is not request-driven: when an interval is configured, overdue transactions
    are swept on a background thread for the lifetime of the app
    """
    if settings.expiry_sweep_interval_seconds > 0:
        sweeper.start()


@app.on_event("shutdown")
def _stop_expiry_sweeper() -> None:
    sweeper.stop()


app.openapi = custom_openapi
Base.metadata.create_all(bind=engine)
app.include_router(router)
