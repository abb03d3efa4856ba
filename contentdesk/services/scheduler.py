from datetime import datetime, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import select
from sqlalchemy.orm import Session

from contentdesk.enums import DraftStatus, ScheduleStatus
from contentdesk.errors import AppError
from contentdesk.logging_setup import log_event
from contentdesk.models import ScheduledPost, ContentDraft, User
from contentdesk.services.publisher import publish_draft
from contentdesk.services.workflow import transition_draft

def _mark_failed(db: Session, post: ScheduledPost, error) -> None:
    post.status = ScheduleStatus.FAILED.value
    post.last_error = error if isinstance(error, str) else str(error)
    db.commit()
    log_event("scheduled_post_failed", level="warning", scheduled_post_id=post.id, error=post.last_error)

def publish_due_posts(db_factory: Callable[[], Session]) -> int:
    """
    Publish every SCHEDULED post whose time has come and move its draft to PUBLISHED.
    Runs on an interval; returns how many posts went out.
    """
    db = db_factory()
    try:
        now = datetime.now(timezone.utc)
        stmt = (
            select(ScheduledPost)
            .where(ScheduledPost.status == ScheduleStatus.SCHEDULED.value)
            .where(ScheduledPost.scheduled_date <= now)
            .order_by(ScheduledPost.scheduled_date.asc())
        )
        posts = db.execute(stmt).scalars().all()

        if not posts:
            return 0

        published = 0
        for post in posts:
            draft = db.query(ContentDraft).filter(
                ContentDraft.id == post.content_draft_id,
                ContentDraft.organization_id == post.organization_id,
            ).first()
            actor = db.get(User, post.scheduled_by_id)
            if not draft or not actor:
                _mark_failed(db, post, "Draft or scheduling user no longer exists")
                continue
            if draft.status != DraftStatus.APPROVED.value:
                _mark_failed(db, post, f"Draft is {draft.status}, expected APPROVED")
                continue

            result = publish_draft(db, draft, actor.id)
            if not (isinstance(result, dict) and result.get("ok")):
                error_info = result.get("error") if isinstance(result, dict) else str(result)
                _mark_failed(db, post, error_info)
                continue

            try:
                transition_draft(
                    db, draft, DraftStatus.PUBLISHED.value, actor,
                    reason="Published to LinkedIn on schedule", commit=False,
                )
            except AppError as e:
                db.rollback()
                # keep the remote id so the post is not sent again by hand
                post.remote_id = result.get("remote_id")
                _mark_failed(db, post, f"Published remotely but draft update failed: {e.message}")
                continue

            post.status = ScheduleStatus.PUBLISHED.value
            post.remote_id = result.get("remote_id")
            post.published_at = datetime.now(timezone.utc)
            post.last_error = None
            db.commit()
            published += 1
            log_event("scheduled_post_published", scheduled_post_id=post.id, draft_id=draft.id, remote_id=post.remote_id)

        return published
    finally:
        db.close()

# Global reference so shutdown can stop the running scheduler
_global_scheduler = None

def start_scheduler(db_factory: Callable[[], Session], interval_minutes: int = 1):
    """Start a BackgroundScheduler that checks for due posts every minute."""
    global _global_scheduler
    sched = BackgroundScheduler(timezone="UTC")
    sched.add_job(
        publish_due_posts,
        trigger="interval",
        minutes=interval_minutes,
        args=[db_factory],
        id="check_due_posts",
        replace_existing=True,
        max_instances=1
    )
    sched.start()
    _global_scheduler = sched
    log_event("scheduler_started", interval_minutes=interval_minutes)
    return sched

def stop_scheduler():
    global _global_scheduler
    if _global_scheduler:
        _global_scheduler.shutdown(wait=False)
        _global_scheduler = None
