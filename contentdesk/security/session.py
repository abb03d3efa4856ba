"""Session resolution.

The session token is treated as a capability reference only: the canonical
user id is always re-read from the database by the token's email claim. The
token's ``sub`` may point at a stale row (ids drifted during account merges),
so it is surfaced as ``session_user_id`` for diagnostics and never used for
writes.
"""
import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from contentdesk.db import get_db
from contentdesk.errors import Unauthorized, Forbidden, InternalError
from contentdesk.models import User
from contentdesk.security.auth import read_token, decode_access_token

logger = logging.getLogger(__name__)


@dataclass
class SessionValidation:
    success: bool
    real_user_id: int | None = None
    user_email: str | None = None
    user_role: str | None = None
    is_super_admin: bool = False
    session_user_id: str | None = None
    error: str | None = None
    status: int | None = None


@dataclass
class SessionUser:
    """What route handlers and role predicates see of the caller."""
    id: int
    email: str
    role: str | None
    name: str | None = None
    is_super_admin: bool = False


def _failure(error: str, status: int = 401) -> SessionValidation:
    return SessionValidation(success=False, error=error, status=status)


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def validate_session_user(request: Request, db: Session) -> SessionValidation:
    """Resolve the caller without raising; failures carry an HTTP status."""
    token = read_token(request)
    if not token:
        return _failure("Authentication required")

    payload = decode_access_token(token)
    if not payload or not payload.get("email"):
        return _failure("Invalid session")

    try:
        user = find_user_by_email(db, payload["email"])
    except SQLAlchemyError:
        logger.exception("Session validation error")
        return _failure("Session validation failed", status=500)

    if not user:
        return _failure("Session user not found in database")
    if not user.is_active:
        return _failure("Account is disabled")

    session_user_id = payload.get("sub")
    if session_user_id is not None and str(session_user_id) != str(user.id):
        logger.warning(
            "Session subject does not match stored user id",
            extra={"session_user_id": session_user_id, "real_user_id": user.id},
        )

    return SessionValidation(
        success=True,
        real_user_id=user.id,
        user_email=user.email,
        user_role=user.role,
        is_super_admin=bool(user.is_super_admin),
        session_user_id=session_user_id,
    )


def validate_session_user_with_response(request: Request, db: Session):
    """Returns ``(data, None)`` on success or ``(None, JSONResponse)`` on failure."""
    validation = validate_session_user(request, db)
    if not validation.success:
        return None, JSONResponse(
            status_code=validation.status or 401,
            content={"error": validation.error},
        )
    return validation, None


def get_real_user_id(request: Request, db: Session) -> int:
    validation = validate_session_user(request, db)
    if not validation.success:
        raise Unauthorized(f"Session validation failed: {validation.error}")
    return validation.real_user_id


def validate_admin_session_user(request: Request, db: Session) -> SessionValidation:
    validation = validate_session_user(request, db)
    if not validation.success:
        return validation
    if validation.user_role != "ADMIN":
        return _failure("Admin access required", status=403)
    return validation


# --- FastAPI dependencies ---

def get_current_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    validation = validate_session_user(request, db)
    if not validation.success:
        return None
    return db.get(User, validation.real_user_id)


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    validation = validate_session_user(request, db)
    if not validation.success:
        if validation.status == 500:
            raise InternalError(validation.error)
        raise Unauthorized(validation.error)
    return db.get(User, validation.real_user_id)


def optional_user(user: User | None = Depends(get_current_user)) -> User | None:
    return user


def get_session(user: User = Depends(require_user)) -> SessionUser:
    return SessionUser(
        id=user.id,
        email=user.email,
        role=user.role,
        name=user.name,
        is_super_admin=bool(user.is_super_admin),
    )


def require_admin(session: SessionUser = Depends(get_session)) -> SessionUser:
    if session.role != "ADMIN":
        raise Forbidden("Admin access required")
    return session
