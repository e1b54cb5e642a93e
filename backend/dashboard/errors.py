"""Error taxonomy shared by every route.

Each error maps to one HTTP status and is rendered as the
``{"success": false, "error": "..."}`` envelope by the handlers
registered in ``main.create_app``.
"""
import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    message = "Invalid request"


class DuplicateEmail(ValidationError):
    message = "User already exists"


class AuthenticationError(ApiError):
    status_code = 401
    message = "Not authorized"


class InvalidToken(AuthenticationError):
    message = "Not authorized, token failed"


class ExpiredToken(AuthenticationError):
    message = "Not authorized, token expired"


class InvalidCredentials(AuthenticationError):
    message = "Invalid credentials"


class AuthorizationError(ApiError):
    status_code = 403
    message = "Not authorized to access this route"


class NotFound(ApiError):
    status_code = 404
    message = "Not found"


class ServerError(ApiError):
    status_code = 500
    message = "Server error"


@contextmanager
def storage_errors(action: str):
    """Turn storage failures into a generic ``ServerError``.

    The original exception is logged for operators, never returned to callers.
    """
    try:
        yield
    except SQLAlchemyError:
        logger.exception("storage failure while %s", action)
        raise ServerError()
