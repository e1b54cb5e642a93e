"""HTTP surface of the telemetry dashboard.

Public reads, admin-only writes, and the signup/login/me auth flow.
Every response uses the ``{"success": bool, "data"?: ..., "error"?: ...}`` envelope.

Run with::

    uvicorn dashboard.main:app --port 8000
"""
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import accounts, auth, readings
from .auth import Principal, authenticate, get_settings, require_role
from .config import Settings
from .db import create_schema, get_db, make_engine, make_sessionmaker
from .errors import ApiError, AuthenticationError, NotFound, ValidationError, storage_errors
from .models import ROLES
from .schemas import LoginIn, ReadingIn, SignupIn, account_out, fail, ok, reading_out

logger = logging.getLogger(__name__)

router = APIRouter()


# --- auth ---

@router.post("/api/auth/signup", status_code=201)
async def signup(body: SignupIn, db: AsyncSession = Depends(get_db), settings: Settings = Depends(get_settings)):
    if not body.name or not body.email or not body.password:
        raise ValidationError("Please provide name, email and password")
    role = body.role or "user"
    if role not in ROLES:
        raise ValidationError("Role must be one of: " + ", ".join(ROLES))
    with storage_errors("signing up"):
        account, token = await auth.signup(db, body.name, body.email, body.password, role, settings)
    return ok({**account_out(account), "token": token})


@router.post("/api/auth/login")
async def login(body: LoginIn, db: AsyncSession = Depends(get_db), settings: Settings = Depends(get_settings)):
    if not body.email or not body.password:
        raise ValidationError("Please provide email and password")
    with storage_errors("logging in"):
        account, token = await auth.login(db, body.email, body.password, settings)
    return ok({**account_out(account), "token": token})


@router.get("/api/auth/me")
async def me(principal: Principal = Depends(authenticate), db: AsyncSession = Depends(get_db)):
    with storage_errors("loading the current account"):
        account = await accounts.find_by_id(db, principal.account_id)
    if account is None:
        raise AuthenticationError("Not authorized, account not found")
    return ok(account_out(account))


# --- telemetry ---

@router.get("/api/data/latest")
async def get_latest(db: AsyncSession = Depends(get_db)):
    with storage_errors("fetching latest readings"):
        rows = await readings.latest(db)
    return ok([reading_out(r) for r in rows])


@router.get("/api/data/device/{device_id}")
async def get_by_device(device_id: str, db: AsyncSession = Depends(get_db)):
    with storage_errors("fetching readings for a device"):
        rows = await readings.by_device(db, device_id)
    return ok([reading_out(r) for r in rows])


@router.post("/api/data", status_code=201)
async def create_reading(body: ReadingIn, principal: Principal = Depends(require_role("admin")),
                         db: AsyncSession = Depends(get_db)):
    device_id = (body.deviceId or "").strip()
    if not device_id or body.temperature is None or body.humidity is None:
        raise ValidationError("Please provide deviceId, temperature, and humidity")
    with storage_errors("creating a reading"):
        row = await readings.create(db, device_id, body.temperature, body.humidity)
    logger.info("account %s stored reading %s for %s", principal.account_id, row.id, row.device_id)
    return ok(reading_out(row))


@router.delete("/api/data/{reading_id}")
async def delete_reading(reading_id: str, principal: Principal = Depends(require_role("admin")),
                         db: AsyncSession = Depends(get_db)):
    with storage_errors("deleting a reading"):
        row = await readings.get(db, reading_id)
        if row is None:
            raise NotFound("Device data not found")
        await readings.delete(db, row)
    logger.info("account %s deleted reading %s", principal.account_id, reading_id)
    return ok({})


# --- error envelope ---

async def _api_error(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=fail(exc.message))


async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=fail(str(exc.detail)),
                        headers=getattr(exc, "headers", None))


async def _validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        field = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
        message = f"{field}: {errors[0].get('msg')}" if field else errors[0].get("msg", message)
    return JSONResponse(status_code=400, content=fail(message))


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(level=settings.log_level.upper(),
                            format="%(asctime)s %(levelname)s %(name)s %(message)s")
        engine = make_engine(settings.database_url)
        await create_schema(engine)
        app.state.engine = engine
        app.state.sessionmaker = make_sessionmaker(engine)
        logger.info("telemetry dashboard ready (db=%s)", engine.url.render_as_string(hide_password=True))
        yield
        await engine.dispose()

    app = FastAPI(title="IoT Telemetry Dashboard", lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ApiError, _api_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.include_router(router)
    return app


app = create_app()
