from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from contentdesk.db import get_db
from contentdesk.errors import NotFound, ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import User
from contentdesk.schemas import UserOut, UserRoleUpdate, PasswordReset
from contentdesk.security.auth import get_password_hash
from contentdesk.security.session import require_admin, SessionUser

router = APIRouter(prefix="/api/admin", tags=["admin"])

def _user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user

@router.get("/users", response_model=list[UserOut])
def list_users(
    session: SessionUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()

@router.patch("/users/{user_id}/role", response_model=UserOut)
def change_user_role(
    user_id: int,
    payload: UserRoleUpdate,
    session: SessionUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == session.id:
        raise ValidationError("You cannot change your own role")
    user = _user_or_404(db, user_id)
    previous = user.role
    user.role = payload.role
    db.commit()
    db.refresh(user)
    log_event("user_role_changed", target_user_id=user.id, previous_role=previous, role=user.role, changed_by=session.id)
    return user

@router.post("/users/{user_id}/reset-password")
def reset_password(
    user_id: int,
    payload: PasswordReset,
    session: SessionUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = _user_or_404(db, user_id)
    user.password_hash = get_password_hash(payload.password)
    db.commit()
    log_event("user_password_reset", target_user_id=user.id, changed_by=session.id)
    return {"ok": True}
