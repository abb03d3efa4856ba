import secrets
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse, JSONResponse
from sqlalchemy.orm import Session
from contentdesk.config import settings
from contentdesk.db import get_db
from contentdesk.errors import InternalError, ValidationError
from contentdesk.models import User
from contentdesk.security.session import require_user
from contentdesk.services.publisher import build_authorization_url, exchange_code, get_linkedin_account

router = APIRouter(prefix="/auth/linkedin", tags=["auth"])

STATE_COOKIE = "li_oauth_state"

@router.get("/connect")
def linkedin_connect(user: User = Depends(require_user)):
    """Redirects to the LinkedIn consent screen, asking for sign-in and posting scopes."""
    if not settings.linkedin_client_id:
        raise InternalError("LinkedIn Client ID not configured")

    state = f"{user.id}:{secrets.token_hex(16)}"
    response = RedirectResponse(url=build_authorization_url(state))
    response.set_cookie(
        key=STATE_COOKIE,
        value=state,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        max_age=10 * 60,
    )
    return response

@router.get("/callback")
def linkedin_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    if not code or not state:
        raise ValidationError("Invalid LinkedIn callback")
    stored = request.cookies.get(STATE_COOKIE)
    if not stored or not secrets.compare_digest(stored, state) or stored.split(":", 1)[0] != str(user.id):
        raise ValidationError("LinkedIn state mismatch")

    result = exchange_code(db, user_id=user.id, code=code)
    if not result.get("ok"):
        raise ValidationError("LinkedIn connection failed")

    response = JSONResponse({"ok": True, "provider": "linkedin"})
    response.delete_cookie(STATE_COOKIE)
    return response

@router.get("/status")
def linkedin_status(user: User = Depends(require_user), db: Session = Depends(get_db)):
    account = get_linkedin_account(db, user.id)
    return {
        "connected": account is not None,
        "expires_at": account.expires_at if account else None,
        "scope": account.scope if account else None,
    }
