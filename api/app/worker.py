"""Celery worker configuration.

Runs the half-booking expiry sweep on a beat schedule:

    celery -A app.worker worker --beat
"""

import asyncio
import logging

from celery import Celery

from app.core.config import settings
from app.core.database import engine
from app.services.expiry import run_sweep

logger = logging.getLogger(__name__)

celery_app = Celery(
    "courtslot",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.club_timezone,
    enable_utc=True,
    beat_schedule={
        "sweep-half-bookings": {
            "task": "app.worker.sweep_half_bookings",
            "schedule": settings.sweep_interval_minutes * 60.0,
        },
    },
)


async def _sweep() -> dict:
    try:
        result = await run_sweep()
    finally:
        # Each task run gets a fresh event loop; pooled connections must not outlive it
        await engine.dispose()
    return {"deleted": result.deleted, "notified": result.notified}


@celery_app.task(name="app.worker.sweep_half_bookings")
def sweep_half_bookings() -> dict:
    return asyncio.run(_sweep())
