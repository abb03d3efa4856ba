from datetime import datetime, timezone
import pytz
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from contentdesk.db import get_db
from contentdesk.enums import DraftStatus, ScheduleStatus, UserRole, values
from contentdesk.errors import Forbidden, ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import ContentDraft, ScheduledPost, User
from contentdesk.schemas import ScheduledPostCreate, ScheduledPostOut
from contentdesk.security.org_context import OrganizationContext, require_org_context, get_scoped_or_404
from contentdesk.security.roles import get_role, is_creative
from contentdesk.security.session import require_user

router = APIRouter(prefix="/api/scheduled-posts", tags=["scheduled-posts"])

def to_utc(value: datetime, tz_name: str | None) -> datetime:
    """Interpret a naive datetime in ``tz_name`` (UTC when absent) and convert it to UTC."""
    if value.tzinfo is None:
        try:
            tz = pytz.timezone(tz_name) if tz_name else pytz.utc
        except pytz.UnknownTimeZoneError:
            raise ValidationError(f"Unknown timezone: {tz_name}")
        value = tz.localize(value)
    return value.astimezone(pytz.utc)

@router.post("", response_model=ScheduledPostOut)
def schedule_post(
    payload: ScheduledPostCreate,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    if not is_creative(user):
        raise Forbidden("Only creatives can schedule posts")
    draft = get_scoped_or_404(db, ContentDraft, payload.content_draft_id, ctx.organization_id, "Draft")
    if draft.status != DraftStatus.APPROVED.value:
        raise ValidationError("Only approved drafts can be scheduled")

    scheduled_date = to_utc(payload.scheduled_date, payload.timezone)
    if scheduled_date <= datetime.now(timezone.utc):
        raise ValidationError("Scheduled time must be in the future")

    pending = db.query(ScheduledPost.id).filter(
        ScheduledPost.content_draft_id == draft.id,
        ScheduledPost.status == ScheduleStatus.SCHEDULED.value,
    ).first()
    if pending:
        raise ValidationError("This draft is already scheduled")

    post = ScheduledPost(
        organization_id=ctx.organization_id,
        content_draft_id=draft.id,
        scheduled_by_id=user.id,
        scheduled_date=scheduled_date,
        platform=payload.platform,
        status=ScheduleStatus.SCHEDULED.value,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    log_event(
        "post_scheduled",
        scheduled_post_id=post.id,
        draft_id=draft.id,
        organization_id=ctx.organization_id,
        scheduled_date=scheduled_date.isoformat(),
    )
    return post

@router.get("", response_model=list[ScheduledPostOut])
def list_scheduled_posts(
    status: str | None = None,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    q = db.query(ScheduledPost).filter(ScheduledPost.organization_id == ctx.organization_id)
    # Creatives see posts for their own drafts; clients and admins see the whole org
    if get_role(user) == UserRole.CREATIVE.value:
        q = q.join(ContentDraft, ContentDraft.id == ScheduledPost.content_draft_id).filter(
            ContentDraft.created_by_id == user.id
        )
    if status:
        if status not in values(ScheduleStatus):
            raise ValidationError(f"Invalid schedule status: {status}")
        q = q.filter(ScheduledPost.status == status)
    return q.order_by(ScheduledPost.scheduled_date.asc(), ScheduledPost.id.asc()).all()
