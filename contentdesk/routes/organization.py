import re
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from contentdesk.db import get_db
from contentdesk.enums import OrganizationRole
from contentdesk.errors import Forbidden, NotFound, ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import Organization, OrganizationUser, User
from contentdesk.schemas import (
    OrganizationCreate, OrganizationOut, OrganizationMembershipOut, OrganizationSettingsUpdate,
    MemberOut, InviteIn, MemberRoleUpdate,
)
from contentdesk.security.org_context import (
    OrganizationContext, require_org_context, require_organization_context, has_org_role,
)
from contentdesk.security.session import require_user, require_admin, find_user_by_email, SessionUser
from contentdesk.services.email import send_invitation

router = APIRouter(prefix="/api/organization", tags=["organization"])

def _utcnow():
    return datetime.now(timezone.utc)

def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "organization"

def _unique_slug(db: Session, base: str) -> str:
    slug, n = base, 2
    while db.query(Organization.id).filter(Organization.slug == slug).first():
        slug = f"{base}-{n}"
        n += 1
    return slug

def _require_member_manager(ctx: OrganizationContext, action: str = "manage members"):
    """Org OWNER/ADMIN, or a global ADMIN who is a member of the org."""
    if has_org_role(ctx.organization_role, OrganizationRole.ADMIN.value) or ctx.user_role == "ADMIN":
        return
    raise Forbidden(f"Only organization owners and admins can {action}")

def _member_out(m: OrganizationUser, u: User) -> MemberOut:
    return MemberOut(
        user_id=u.id,
        email=u.email,
        name=u.name,
        user_role=u.role,
        role=m.role,
        is_active=bool(m.is_active),
        permissions=m.permissions if isinstance(m.permissions, list) else [],
        joined_at=m.joined_at,
        invited_at=m.invited_at,
    )

def _membership_or_404(db: Session, organization_id: int, user_id: int) -> OrganizationUser:
    membership = db.query(OrganizationUser).filter(
        OrganizationUser.organization_id == organization_id,
        OrganizationUser.user_id == user_id,
    ).first()
    if not membership:
        raise NotFound("Member not found")
    return membership

@router.get("/list", response_model=list[OrganizationMembershipOut])
def list_organizations(user: User = Depends(require_user), db: Session = Depends(get_db)):
    rows = (
        db.query(OrganizationUser, Organization)
        .join(Organization, Organization.id == OrganizationUser.organization_id)
        .filter(OrganizationUser.user_id == user.id, OrganizationUser.is_active == True)
        .order_by(OrganizationUser.joined_at.desc(), OrganizationUser.id.desc())
        .all()
    )
    return [
        OrganizationMembershipOut(
            id=org.id, name=org.name, slug=org.slug,
            primary_color=org.primary_color, domain=org.domain, role=m.role,
        )
        for m, org in rows
    ]

@router.get("/current")
def current_organization(ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    org = db.get(Organization, ctx.organization_id)
    return {
        "organization": OrganizationOut.model_validate(org),
        "organization_role": ctx.organization_role,
        "user_role": ctx.user_role,
        "permissions": ctx.permissions,
    }

@router.get("/settings")
def get_settings(ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    org = db.get(Organization, ctx.organization_id)
    rows = (
        db.query(OrganizationUser, User)
        .join(User, User.id == OrganizationUser.user_id)
        .filter(OrganizationUser.organization_id == org.id, OrganizationUser.is_active == True)
        .order_by(OrganizationUser.joined_at.asc(), OrganizationUser.id.asc())
        .all()
    )
    return {
        "organization": OrganizationOut.model_validate(org),
        "members": [_member_out(m, u) for m, u in rows],
    }

@router.put("/settings", response_model=OrganizationOut)
def update_settings(
    payload: OrganizationSettingsUpdate,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    _require_member_manager(ctx, "update settings")
    org = db.get(Organization, ctx.organization_id)

    data = payload.model_dump(exclude_unset=True)
    if "slug" in data:
        data["slug"] = _slugify(data["slug"])
        taken = db.query(Organization.id).filter(Organization.slug == data["slug"], Organization.id != org.id).first()
        if taken:
            raise ValidationError("An organization with this slug already exists")
    for k, v in data.items():
        setattr(org, k, v)
    db.commit()
    db.refresh(org)
    log_event("organization_settings_updated", organization_id=org.id, user_id=ctx.user_id, fields=sorted(data.keys()))
    return org

@router.post("/create", response_model=OrganizationOut)
def create_organization(
    payload: OrganizationCreate,
    session: SessionUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if payload.slug:
        slug = _slugify(payload.slug)
        if db.query(Organization.id).filter(Organization.slug == slug).first():
            raise ValidationError("An organization with this slug already exists")
    else:
        slug = _unique_slug(db, _slugify(payload.name))

    org = Organization(
        name=payload.name,
        slug=slug,
        primary_color=payload.primary_color,
        domain=payload.domain,
    )
    db.add(org)
    db.flush()
    db.add(OrganizationUser(
        organization_id=org.id,
        user_id=session.id,
        role=OrganizationRole.OWNER.value,
        is_active=True,
        permissions=[],
        joined_at=_utcnow(),
    ))
    db.commit()
    db.refresh(org)
    log_event("organization_created", organization_id=org.id, user_id=session.id)
    return org

@router.get("/{organization_id}/users", response_model=list[MemberOut])
def list_members(organization_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    ctx = require_organization_context(db, user, explicit_org_id=organization_id)
    rows = (
        db.query(OrganizationUser, User)
        .join(User, User.id == OrganizationUser.user_id)
        .filter(OrganizationUser.organization_id == ctx.organization_id)
        .order_by(OrganizationUser.joined_at.asc(), OrganizationUser.id.asc())
        .all()
    )
    return [_member_out(m, u) for m, u in rows]

@router.post("/invite")
def invite_member(
    payload: InviteIn,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    _require_member_manager(ctx)
    if payload.role == OrganizationRole.OWNER.value and ctx.organization_role != OrganizationRole.OWNER.value:
        raise Forbidden("Only owners can invite another owner")

    invitee = find_user_by_email(db, payload.email)
    if not invitee:
        invitee = User(
            email=payload.email.strip().lower(),
            name=payload.name,
            role=payload.user_role,
            is_active=True,
        )
        db.add(invitee)
        db.flush()

    membership = db.query(OrganizationUser).filter(
        OrganizationUser.organization_id == ctx.organization_id,
        OrganizationUser.user_id == invitee.id,
    ).first()
    now = _utcnow()
    if membership and membership.is_active:
        raise ValidationError("User is already a member of this organization")
    if membership:
        membership.is_active = True
        membership.role = payload.role
        membership.invited_at = now
        membership.invited_by_id = user.id
    else:
        membership = OrganizationUser(
            organization_id=ctx.organization_id,
            user_id=invitee.id,
            role=payload.role,
            is_active=True,
            permissions=[],
            joined_at=now,
            invited_at=now,
            invited_by_id=user.id,
        )
        db.add(membership)
    db.commit()
    db.refresh(membership)

    org = db.get(Organization, ctx.organization_id)
    email_result = send_invitation(invitee.email, org.name, user.name)
    log_event("member_invited", organization_id=ctx.organization_id, invited_user_id=invitee.id, invited_by=user.id)
    return {"member": _member_out(membership, invitee), "email_sent": bool(email_result.get("ok"))}

@router.patch("/users/{user_id}/role", response_model=MemberOut)
def update_member_role(
    user_id: int,
    payload: MemberRoleUpdate,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    _require_member_manager(ctx)
    if user_id == ctx.user_id:
        raise ValidationError("You cannot change your own organization role")
    membership = _membership_or_404(db, ctx.organization_id, user_id)
    if OrganizationRole.OWNER.value in (payload.role, membership.role) and ctx.organization_role != OrganizationRole.OWNER.value:
        raise Forbidden("Only owners can grant or revoke the owner role")
    membership.role = payload.role
    db.commit()
    db.refresh(membership)
    log_event("member_role_changed", organization_id=ctx.organization_id, member_id=user_id, role=payload.role)
    return _member_out(membership, db.get(User, user_id))

def _set_member_active(db: Session, ctx: OrganizationContext, user_id: int, active: bool) -> MemberOut:
    _require_member_manager(ctx)
    if user_id == ctx.user_id and not active:
        raise ValidationError("You cannot deactivate yourself")
    membership = _membership_or_404(db, ctx.organization_id, user_id)
    membership.is_active = active
    db.commit()
    db.refresh(membership)
    log_event(
        "member_activated" if active else "member_deactivated",
        organization_id=ctx.organization_id,
        member_id=user_id,
        changed_by=ctx.user_id,
    )
    return _member_out(membership, db.get(User, user_id))

@router.post("/users/{user_id}/deactivate", response_model=MemberOut)
def deactivate_member(user_id: int, ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return _set_member_active(db, ctx, user_id, False)

@router.post("/users/{user_id}/activate", response_model=MemberOut)
def activate_member(user_id: int, ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return _set_member_active(db, ctx, user_id, True)
