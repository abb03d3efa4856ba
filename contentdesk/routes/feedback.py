from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from contentdesk.db import get_db
from contentdesk.enums import DraftStatus
from contentdesk.errors import Forbidden, ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import ContentDraft, Feedback, Idea, User
from contentdesk.schemas import FeedbackCreate, FeedbackOut
from contentdesk.security.org_context import OrganizationContext, require_org_context, get_scoped_or_404
from contentdesk.security.roles import get_role, has_permission
from contentdesk.security.session import require_user

router = APIRouter(prefix="/api/feedback", tags=["feedback"])

def _one_target(content_draft_id: int | None, idea_id: int | None):
    if (content_draft_id is None) == (idea_id is None):
        raise ValidationError("Provide exactly one of content_draft_id or idea_id")

@router.post("", response_model=FeedbackOut)
def create_feedback(
    payload: FeedbackCreate,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    if not has_permission(get_role(user), "canProvideFeedback"):
        raise Forbidden("You cannot provide feedback")
    _one_target(payload.content_draft_id, payload.idea_id)
    if not payload.comment.strip():
        raise ValidationError("Feedback comment is required")

    if payload.content_draft_id is not None:
        draft = get_scoped_or_404(db, ContentDraft, payload.content_draft_id, ctx.organization_id, "Draft")
        if draft.status == DraftStatus.AWAITING_REVISION.value:
            raise ValidationError("Draft is awaiting revision; feedback is closed until it is resubmitted")
    else:
        get_scoped_or_404(db, Idea, payload.idea_id, ctx.organization_id, "Idea")

    feedback = Feedback(
        organization_id=ctx.organization_id,
        created_by_id=user.id,
        **payload.model_dump(),
    )
    feedback.comment = payload.comment.strip()
    db.add(feedback)
    db.commit()
    db.refresh(feedback)
    log_event(
        "feedback_created",
        feedback_id=feedback.id,
        content_draft_id=feedback.content_draft_id,
        idea_id=feedback.idea_id,
        organization_id=ctx.organization_id,
    )
    return feedback

@router.get("", response_model=list[FeedbackOut])
def list_feedback(
    content_draft_id: int | None = None,
    idea_id: int | None = None,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    _one_target(content_draft_id, idea_id)
    q = db.query(Feedback).filter(Feedback.organization_id == ctx.organization_id)
    if content_draft_id is not None:
        get_scoped_or_404(db, ContentDraft, content_draft_id, ctx.organization_id, "Draft")
        q = q.filter(Feedback.content_draft_id == content_draft_id)
    else:
        get_scoped_or_404(db, Idea, idea_id, ctx.organization_id, "Idea")
        q = q.filter(Feedback.idea_id == idea_id)
    return q.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()
