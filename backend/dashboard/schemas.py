from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, EmailStr

from .models import Account, Reading


class SignupIn(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    password: str | None = None
    role: str | None = None


class LoginIn(BaseModel):
    email: EmailStr | None = None
    password: str | None = None


class ReadingIn(BaseModel):
    """Body of ``POST /api/data``.

    Fields are optional here so a missing one produces the API's own
    400 message instead of a schema error.
    """
    deviceId: str | None = None
    temperature: float | None = None
    humidity: float | None = None


def iso(ts: datetime | None) -> str | None:
    if ts is None:
        return None
    if ts.tzinfo is None:
        # sqlite drops the offset; everything is stored in UTC
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def account_out(a: Account) -> Dict[str, Any]:
    return {
        "_id": a.id,
        "name": a.name,
        "email": a.email,
        "role": a.role,
        "createdAt": iso(a.created_at),
        "updatedAt": iso(a.updated_at),
    }


def reading_out(r: Reading) -> Dict[str, Any]:
    return {
        "_id": r.id,
        "deviceId": r.device_id,
        "temperature": r.temperature,
        "humidity": r.humidity,
        "timestamp": iso(r.timestamp),
        "createdAt": iso(r.created_at),
        "updatedAt": iso(r.updated_at),
    }


def ok(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


def fail(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}
