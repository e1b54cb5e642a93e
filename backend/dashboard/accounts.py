import hashlib
import hmac
import logging
import secrets

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import DuplicateEmail
from .models import Account

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000


def hash_password(password: str) -> str:
    """Salted PBKDF2-SHA256, stored as ``salt:hash``."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS).hex()
    return f"{salt}:{digest}"


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        salt, digest = stored_hash.split(":")
    except (ValueError, AttributeError):
        return False
    computed = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS).hex()
    return hmac.compare_digest(computed, digest)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_by_email(db: AsyncSession, email: str) -> Account | None:
    res = await db.execute(select(Account).where(Account.email == normalize_email(email)))
    return res.scalar_one_or_none()


async def find_by_id(db: AsyncSession, account_id: str) -> Account | None:
    return await db.get(Account, account_id)


async def create_account(db: AsyncSession, name: str, email: str, password: str, role: str) -> Account:
    email = normalize_email(email)
    if await find_by_email(db, email):
        raise DuplicateEmail()
    account = Account(name=name, email=email, password_hash=hash_password(password), role=role)
    db.add(account)
    try:
        await db.commit()
    except IntegrityError:
        # lost a race against a concurrent signup for the same email
        await db.rollback()
        raise DuplicateEmail()
    logger.info("created %s account %s", role, account.id)
    return account
