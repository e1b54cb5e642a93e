"""Reset readings to a day of sample data.

Usage:
    python -m dashboard.seed

Deletes every reading, then writes 24 hourly readings for device001 and
device002. Set SEED_ADMIN_EMAIL and SEED_ADMIN_PASSWORD to also create an
admin account (skipped if the email is already taken).
"""
import asyncio
import logging
import os
import random
from datetime import datetime, timedelta, timezone

from . import accounts, readings
from .config import Settings
from .db import create_schema, make_engine, make_sessionmaker
from .errors import DuplicateEmail

logger = logging.getLogger(__name__)

DEVICE_IDS = ("device001", "device002")
HOURS = 24


def sample_rows(now: datetime, device_ids=DEVICE_IDS, hours: int = HOURS, rng: random.Random | None = None):
    rng = rng or random.Random()
    rows = []
    for device_id in device_ids:
        for i in range(hours):
            rows.append({
                "device_id": device_id,
                "temperature": round(rng.uniform(15, 35), 1),
                "humidity": round(rng.uniform(30, 90), 1),
                "timestamp": now - timedelta(hours=i),
            })
    return rows


async def seed(settings: Settings, admin_email: str | None = None, admin_password: str | None = None) -> int:
    engine = make_engine(settings.database_url)
    try:
        await create_schema(engine)
        async with make_sessionmaker(engine)() as db:
            removed = await readings.clear(db)
            logger.info("deleted %d existing readings", removed)
            added = await readings.insert_many(db, sample_rows(datetime.now(timezone.utc)))
            logger.info("added %d readings", added)
            if admin_email and admin_password:
                try:
                    await accounts.create_account(db, "Admin", admin_email, admin_password, "admin")
                except DuplicateEmail:
                    logger.info("admin %s already exists", admin_email)
        return added
    finally:
        await engine.dispose()


def main():
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")
    asyncio.run(seed(settings, os.getenv("SEED_ADMIN_EMAIL"), os.getenv("SEED_ADMIN_PASSWORD")))


if __name__ == "__main__":
    main()
