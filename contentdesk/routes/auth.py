from fastapi import APIRouter, Depends, Response
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from sqlalchemy import func
from contentdesk.db import get_db
from contentdesk.enums import UserRole
from contentdesk.errors import Unauthorized, ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import User, Organization, OrganizationUser
from contentdesk.schemas import UserCreate
from contentdesk.security.auth import (
    verify_password, get_password_hash, create_session_token, set_session_cookie, clear_session_cookie,
)
from contentdesk.security.session import require_user
from typing import Any

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login")
def login(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
) -> dict[str, Any]:
    user = db.query(User).filter(func.lower(User.email) == func.lower(form_data.username.strip())).first()
    if not user or not verify_password(form_data.password, user.password_hash):
        log_event("login_failed", level="warning", email=form_data.username.strip().lower())
        raise Unauthorized("Incorrect email or password")
    if not user.is_active:
        raise Unauthorized("Account is disabled")

    access_token = create_session_token(user)
    # HttpOnly cookie for web clients; the body token serves API clients
    set_session_cookie(response, access_token)
    log_event("login", user_id=user.id)
    return {"access_token": access_token, "token_type": "bearer"}

@router.post("/register")
def register(
    user_in: UserCreate,
    response: Response,
    db: Session = Depends(get_db)
) -> dict[str, Any]:
    email = user_in.email.strip()
    existing_user = db.query(User).filter(func.lower(User.email) == email.lower()).first()
    if existing_user:
        raise ValidationError("A user with this email already exists.")

    # Organization access comes only from an invitation or an admin-created org
    new_user = User(
        email=email,
        name=user_in.name.strip(),
        password_hash=get_password_hash(user_in.password),
        role=UserRole.CREATIVE.value,
        is_active=True,
        is_super_admin=False
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    log_event("user_registered", user_id=new_user.id)

    access_token = create_session_token(new_user)
    set_session_cookie(response, access_token)
    return {"access_token": access_token, "token_type": "bearer"}

@router.post("/logout")
def logout(response: Response) -> dict[str, str]:
    clear_session_cookie(response)
    return {"message": "Logged out successfully"}

@router.get("/me")
def get_current_user_profile(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_db)
) -> dict[str, Any]:
    rows = (
        db.query(OrganizationUser, Organization)
        .join(Organization, Organization.id == OrganizationUser.organization_id)
        .filter(OrganizationUser.user_id == current_user.id, OrganizationUser.is_active == True)
        .order_by(OrganizationUser.joined_at.desc(), OrganizationUser.id.desc())
        .all()
    )
    return {
        "id": current_user.id,
        "email": current_user.email,
        "name": current_user.name,
        "role": current_user.role,
        "is_super_admin": bool(current_user.is_super_admin),
        "organizations": [{"id": org.id, "name": org.name, "role": m.role} for m, org in rows],
    }
