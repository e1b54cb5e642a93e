import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Tuple

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from . import accounts
from .config import Settings
from .errors import AuthenticationError, AuthorizationError, ExpiredToken, InvalidCredentials, InvalidToken
from .models import ROLES, Account

logger = logging.getLogger(__name__)

# verified against when the email is unknown so both failure paths cost one hash
_DUMMY_HASH = accounts.hash_password("not-a-real-password")


@dataclass(frozen=True)
class Principal:
    account_id: str
    role: str


def issue_token(account: Account, settings: Settings, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": account.id,
        "role": account.role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.token_ttl_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _is_canonical(token: str) -> bool:
    """Every segment must be the exact unpadded base64url of its bytes.

    The decoder ignores stray characters and the spare bits of the last
    character, so two different strings can decode to the same signature.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return False
    for part in parts:
        try:
            raw = base64.urlsafe_b64decode(part + "=" * (-len(part) % 4))
        except (binascii.Error, ValueError):
            return False
        if base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") != part:
            return False
    return True


def verify_token(token: str, settings: Settings) -> Principal:
    """Check signature and expiry; no revocation list is consulted."""
    if not _is_canonical(token):
        raise InvalidToken()
    try:
        data = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise ExpiredToken()
    except JWTError:
        raise InvalidToken()
    sub, role = data.get("sub"), data.get("role")
    if not isinstance(sub, str) or role not in ROLES:
        raise InvalidToken()
    return Principal(account_id=sub, role=role)


async def login(db: AsyncSession, email: str, password: str, settings: Settings) -> Tuple[Account, str]:
    account = await accounts.find_by_email(db, email)
    if account is None:
        accounts.verify_password(password, _DUMMY_HASH)
        logger.info("login failed: unknown email")
        raise InvalidCredentials()
    if not accounts.verify_password(password, account.password_hash):
        logger.info("login failed for account %s", account.id)
        raise InvalidCredentials()
    return account, issue_token(account, settings)


async def signup(db: AsyncSession, name: str, email: str, password: str, role: str,
                 settings: Settings) -> Tuple[Account, str]:
    # role comes from the caller unchecked beyond membership in ROLES
    if role == "admin":
        logger.warning("self-service signup requested the admin role for %s", email)
    account = await accounts.create_account(db, name, email, password, role)
    return account, issue_token(account, settings)


# --- access-control gate ---

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def authenticate(request: Request,
                 token: HTTPAuthorizationCredentials | None = Depends(security),
                 settings: Settings = Depends(get_settings)) -> Principal:
    if token is None:
        raise AuthenticationError("Not authorized, no token")
    principal = verify_token(token.credentials, settings)
    request.state.principal = principal
    return principal


def require_role(role: str):
    def checker(principal: Principal = Depends(authenticate)) -> Principal:
        if principal.role != role:
            logger.warning("account %s (%s) denied, requires %s", principal.account_id, principal.role, role)
            raise AuthorizationError()
        return principal
    return checker
