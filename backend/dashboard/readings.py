from datetime import datetime
from typing import Iterable, List

from sqlalchemy import delete as sa_delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Reading

LATEST_LIMIT = 10
DEVICE_LIMIT = 20


def _newest_first(stmt):
    return stmt.order_by(Reading.timestamp.desc(), Reading.created_at.desc())


async def latest(db: AsyncSession, limit: int = LATEST_LIMIT) -> List[Reading]:
    res = await db.execute(_newest_first(select(Reading)).limit(limit))
    return list(res.scalars().all())


async def by_device(db: AsyncSession, device_id: str, limit: int = DEVICE_LIMIT) -> List[Reading]:
    res = await db.execute(
        _newest_first(select(Reading).where(Reading.device_id == device_id)).limit(limit)
    )
    return list(res.scalars().all())


async def create(db: AsyncSession, device_id: str, temperature: float, humidity: float,
                 timestamp: datetime | None = None) -> Reading:
    row = Reading(device_id=device_id, temperature=temperature, humidity=humidity)
    if timestamp is not None:
        row.timestamp = timestamp
    db.add(row)
    await db.commit()
    return row


async def insert_many(db: AsyncSession, rows: Iterable[dict]) -> int:
    objs = [Reading(**r) for r in rows]
    db.add_all(objs)
    await db.commit()
    return len(objs)


async def get(db: AsyncSession, reading_id: str) -> Reading | None:
    return await db.get(Reading, reading_id)


async def delete(db: AsyncSession, row: Reading):
    await db.delete(row)
    await db.commit()


async def clear(db: AsyncSession) -> int:
    res = await db.execute(sa_delete(Reading))
    await db.commit()
    return res.rowcount


async def count(db: AsyncSession) -> int:
    res = await db.execute(select(func.count()).select_from(Reading))
    return res.scalar_one()
