from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from contentdesk.db import get_db
from contentdesk.enums import ContentType, IdeaStatus, values
from contentdesk.errors import Forbidden, ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import Idea, User
from contentdesk.schemas import IdeaCreate, IdeaUpdate, IdeaOut, IdeaPage, StatusUpdate
from contentdesk.security.org_context import OrganizationContext, require_org_context, get_scoped_or_404
from contentdesk.security.roles import is_admin, is_client, is_creative
from contentdesk.security.session import require_user
from contentdesk.services.workflow import IDEA_MACHINE, transition_idea, get_status_history

router = APIRouter(prefix="/api/ideas", tags=["ideas"])

def _require_owner_or_admin(user: User, idea: Idea, action: str):
    if idea.created_by_id != user.id and not is_admin(user):
        raise Forbidden(f"Only the creator or an admin can {action} this idea")

@router.post("", response_model=IdeaOut)
def create_idea(
    payload: IdeaCreate,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    if not is_creative(user):
        raise Forbidden("Only creatives can create ideas")
    idea = Idea(
        organization_id=ctx.organization_id,
        created_by_id=user.id,
        status=IdeaStatus.PENDING.value,
        **payload.model_dump(),
    )
    db.add(idea)
    db.commit()
    db.refresh(idea)
    log_event("idea_created", idea_id=idea.id, organization_id=ctx.organization_id, user_id=user.id)
    return idea

@router.get("", response_model=IdeaPage)
def list_ideas(
    status: str | None = None,
    saved_for_later: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    q = db.query(Idea).filter(Idea.organization_id == ctx.organization_id)
    if status:
        if status not in values(IdeaStatus):
            raise ValidationError(f"Invalid idea status: {status}")
        q = q.filter(Idea.status == status)
    if saved_for_later is not None:
        q = q.filter(Idea.saved_for_later == saved_for_later)

    total = q.count()
    items = q.order_by(Idea.created_at.desc(), Idea.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {"items": items, "total": total, "page": page, "limit": limit}

@router.get("/unassigned", response_model=list[IdeaOut])
def list_unassigned_ideas(
    content_type: str | None = None,
    search: str | None = None,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    """PENDING ideas not yet attached to a delivery item, oldest publishing date first."""
    q = db.query(Idea).filter(
        Idea.organization_id == ctx.organization_id,
        Idea.delivery_item_id.is_(None),
        Idea.status == IdeaStatus.PENDING.value,
    )
    if content_type and content_type != "ALL":
        if content_type not in values(ContentType):
            raise ValidationError(f"Invalid content type: {content_type}")
        q = q.filter(Idea.content_type == content_type)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(Idea.title.ilike(pattern), Idea.description.ilike(pattern)))
    return q.order_by(Idea.publishing_date_time.asc().nulls_last(), Idea.id.asc()).all()

@router.get("/{idea_id}", response_model=IdeaOut)
def get_idea(idea_id: int, ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return get_scoped_or_404(db, Idea, idea_id, ctx.organization_id, "Idea")

@router.patch("/{idea_id}", response_model=IdeaOut)
def update_idea(
    idea_id: int,
    payload: IdeaUpdate,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    idea = get_scoped_or_404(db, Idea, idea_id, ctx.organization_id, "Idea")
    _require_owner_or_admin(user, idea, "edit")

    # status only moves through /status
    data = payload.model_dump(exclude_unset=True)
    for k, v in data.items():
        if k in ("title", "description") and v is not None:
            v = v.strip()
        setattr(idea, k, v)
    db.commit()
    db.refresh(idea)
    log_event("idea_updated", idea_id=idea.id, fields=sorted(data.keys()))
    return idea

@router.delete("/{idea_id}")
def delete_idea(
    idea_id: int,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    idea = get_scoped_or_404(db, Idea, idea_id, ctx.organization_id, "Idea")
    _require_owner_or_admin(user, idea, "delete")
    db.delete(idea)
    db.commit()
    log_event("idea_deleted", idea_id=idea_id, organization_id=ctx.organization_id, user_id=user.id)
    return {"ok": True}

@router.patch("/{idea_id}/status", response_model=IdeaOut)
def update_idea_status(
    idea_id: int,
    payload: StatusUpdate,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    if not is_client(user):
        raise Forbidden("Only clients can update idea status")
    idea = get_scoped_or_404(db, Idea, idea_id, ctx.organization_id, "Idea")
    return transition_idea(db, idea, payload.status, user, reason=payload.reason)

@router.get("/{idea_id}/history")
def idea_history(idea_id: int, ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    idea = get_scoped_or_404(db, Idea, idea_id, ctx.organization_id, "Idea")
    return {"idea_id": idea.id, "status": idea.status, "history": get_status_history(db, IDEA_MACHINE, idea)}
