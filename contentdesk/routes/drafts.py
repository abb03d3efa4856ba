from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from contentdesk.db import get_db
from contentdesk.enums import DraftStatus, values
from contentdesk.errors import AppError, Forbidden, ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import ContentDraft, Feedback, Idea, User
from contentdesk.schemas import (
    DraftCreate, DraftUpdate, DraftOut, TransitionIn, RejectIn, PublishIn, PublishOut, StatusUpdate,
)
from contentdesk.security.org_context import OrganizationContext, require_org_context, get_scoped_or_404
from contentdesk.security.roles import get_role, is_admin, is_creative
from contentdesk.security.session import require_user
from contentdesk.services.publisher import publish_draft
from contentdesk.services.workflow import DRAFT_MACHINE, transition_draft, get_status_history

router = APIRouter(prefix="/api/drafts", tags=["drafts"])

# Keys owned by the workflow engine; clients cannot overwrite them through PUT
RESERVED_METADATA_KEYS = {"statusHistory", "revisionNotes", "revisionRequestedBy", "revisionRequestedAt", "publishedTo", "publishedAt"}

def _utcnow():
    return datetime.now(timezone.utc)

def _draft(db: Session, draft_id: int, ctx: OrganizationContext) -> ContentDraft:
    return get_scoped_or_404(db, ContentDraft, draft_id, ctx.organization_id, "Draft")

@router.post("", response_model=DraftOut)
def create_draft(
    payload: DraftCreate,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    if not is_creative(user):
        raise Forbidden("Only creatives can create drafts")
    idea = get_scoped_or_404(db, Idea, payload.idea_id, ctx.organization_id, "Idea")

    metadata = {k: v for k, v in (payload.metadata or {}).items() if k not in RESERVED_METADATA_KEYS}
    draft = ContentDraft(
        organization_id=idea.organization_id,
        idea_id=idea.id,
        created_by_id=user.id,
        body=payload.body,
        content_type=payload.content_type or idea.content_type,
        status=DraftStatus.DRAFT.value,
        draft_metadata=metadata,
    )
    db.add(draft)
    db.commit()
    db.refresh(draft)
    log_event("draft_created", draft_id=draft.id, idea_id=idea.id, organization_id=ctx.organization_id, user_id=user.id)
    return draft

@router.get("", response_model=list[DraftOut])
def list_drafts(
    status: str | None = None,
    idea_id: int | None = None,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    q = db.query(ContentDraft).filter(ContentDraft.organization_id == ctx.organization_id)
    if status:
        if status not in values(DraftStatus):
            raise ValidationError(f"Invalid draft status: {status}")
        q = q.filter(ContentDraft.status == status)
    if idea_id is not None:
        q = q.filter(ContentDraft.idea_id == idea_id)
    return q.order_by(ContentDraft.updated_at.desc(), ContentDraft.id.desc()).all()

@router.get("/{draft_id}", response_model=DraftOut)
def get_draft(draft_id: int, ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return _draft(db, draft_id, ctx)

@router.put("/{draft_id}", response_model=DraftOut)
def update_draft(
    draft_id: int,
    payload: DraftUpdate,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    draft = _draft(db, draft_id, ctx)
    if draft.created_by_id != user.id and not is_admin(user):
        raise Forbidden("Only the creator or an admin can edit this draft")
    if draft.status == DraftStatus.PUBLISHED.value:
        raise ValidationError("Published drafts cannot be edited")

    data = payload.model_dump(exclude_unset=True)
    if data.get("body") is not None:
        draft.body = data["body"]
    if data.get("content_type") is not None:
        draft.content_type = data["content_type"]
    if data.get("metadata"):
        extra = {k: v for k, v in data["metadata"].items() if k not in RESERVED_METADATA_KEYS}
        draft.draft_metadata = {**(draft.draft_metadata or {}), **extra}
    db.commit()
    db.refresh(draft)
    log_event("draft_updated", draft_id=draft.id, fields=sorted(data.keys()))
    return draft

@router.post("/{draft_id}/submit", response_model=DraftOut)
def submit_draft(
    draft_id: int,
    payload: TransitionIn | None = None,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    draft = _draft(db, draft_id, ctx)
    reason = payload.reason if payload else None
    return transition_draft(db, draft, DraftStatus.AWAITING_FEEDBACK.value, user, reason=reason or "Submitted for review")

@router.post("/{draft_id}/approve", response_model=DraftOut)
def approve_draft(
    draft_id: int,
    payload: TransitionIn | None = None,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    draft = _draft(db, draft_id, ctx)
    reason = payload.reason if payload else None
    return transition_draft(db, draft, DraftStatus.APPROVED.value, user, reason=reason or "Content approved")

@router.post("/{draft_id}/reject", response_model=DraftOut)
def reject_draft(
    draft_id: int,
    payload: RejectIn,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    """Send the draft back for revision with the client's feedback attached."""
    draft = _draft(db, draft_id, ctx)
    transition_draft(
        db, draft, DraftStatus.AWAITING_REVISION.value, user,
        reason="Revision requested", revision_notes=payload.feedback, commit=False,
    )
    db.add(Feedback(
        organization_id=draft.organization_id,
        content_draft_id=draft.id,
        created_by_id=user.id,
        comment=payload.feedback,
        category="revision",
        priority="high",
        actionable=True,
    ))
    db.commit()
    db.refresh(draft)
    return draft

@router.post("/{draft_id}/revise", response_model=DraftOut)
def revise_draft(
    draft_id: int,
    payload: TransitionIn | None = None,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    draft = _draft(db, draft_id, ctx)
    reason = payload.reason if payload else None
    return transition_draft(db, draft, DraftStatus.DRAFT.value, user, reason=reason or "Revision started")

@router.post("/{draft_id}/publish", response_model=PublishOut)
def publish_content(
    draft_id: int,
    payload: PublishIn | None = None,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    payload = payload or PublishIn()
    draft = _draft(db, draft_id, ctx)
    # Validate before touching LinkedIn so a bad request never posts remotely
    DRAFT_MACHINE.check(draft.status, DraftStatus.PUBLISHED.value, get_role(user))

    linkedin = None
    if payload.publish_to_linkedin:
        linkedin = publish_draft(db, draft, user.id)
        if not linkedin.get("ok"):
            log_event("draft_publish_remote_fail", level="warning", draft_id=draft.id, error=str(linkedin.get("error")))
            raise ValidationError(f"LinkedIn publishing failed: {linkedin.get('error')}")

    try:
        transition_draft(db, draft, DraftStatus.PUBLISHED.value, user, reason=payload.reason or "Content published")
    except AppError as e:
        if linkedin:
            log_event(
                "draft_publish_remote_orphaned", level="error",
                draft_id=draft_id, remote_id=linkedin.get("remote_id"), error=e.message,
            )
        raise

    if linkedin:
        draft.draft_metadata = {
            **(draft.draft_metadata or {}),
            "publishedTo": [{"platform": "linkedin", "remoteId": linkedin.get("remote_id")}],
            "publishedAt": _utcnow().isoformat(),
        }
        db.commit()
        db.refresh(draft)
    return {"draft": DraftOut.model_validate(draft), "linkedin": linkedin}

@router.patch("/{draft_id}/status", response_model=DraftOut)
def update_draft_status(
    draft_id: int,
    payload: StatusUpdate,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    draft = _draft(db, draft_id, ctx)
    return transition_draft(
        db, draft, payload.status, user,
        reason=payload.reason, revision_notes=payload.revision_notes,
    )

@router.get("/{draft_id}/history")
def draft_history(draft_id: int, ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    draft = _draft(db, draft_id, ctx)
    return {"draft_id": draft.id, "status": draft.status, "history": get_status_history(db, DRAFT_MACHINE, draft)}
