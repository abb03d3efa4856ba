from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytz
import pytest
from sqlalchemy import update

from contentdesk.errors import ValidationError
from contentdesk.models import ContentDraft, ScheduledPost
from contentdesk.routes.scheduled_posts import to_utc
from contentdesk.services import scheduler
from contentdesk.services.scheduler import publish_due_posts


def _future(hours=2):
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


def _due_post(db_session, draft, user, minutes_ago=5):
    post = ScheduledPost(
        organization_id=draft.organization_id,
        content_draft_id=draft.id,
        scheduled_by_id=user.id,
        scheduled_date=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        platform="LINKEDIN",
        status="SCHEDULED",
    )
    db_session.add(post)
    db_session.commit()
    db_session.refresh(post)
    return post


def test_to_utc_localizes_naive_times():
    naive = datetime(2026, 7, 1, 9, 0)
    assert to_utc(naive, "America/New_York") == datetime(2026, 7, 1, 13, 0, tzinfo=pytz.utc)
    assert to_utc(naive, None) == datetime(2026, 7, 1, 9, 0, tzinfo=pytz.utc)
    aware = datetime(2026, 7, 1, 9, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_utc(aware, "Asia/Tokyo") == datetime(2026, 7, 1, 7, 0, tzinfo=pytz.utc)
    with pytest.raises(ValidationError):
        to_utc(naive, "Mars/Olympus")


def test_schedule_approved_draft(seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED")
    res = login(seed.creative).post("/api/scheduled-posts", json={
        "content_draft_id": draft.id, "scheduled_date": _future(),
    })

    assert res.status_code == 200
    assert res.json()["status"] == "SCHEDULED"
    assert res.json()["platform"] == "LINKEDIN"

    res = login(seed.creative).post("/api/scheduled-posts", json={
        "content_draft_id": draft.id, "scheduled_date": _future(3),
    })
    assert res.status_code == 400
    assert res.json() == {"error": "This draft is already scheduled"}


def test_schedule_rejects_unapproved_past_and_other_platforms(seed, login, make_draft):
    client = login(seed.creative)
    pending = make_draft(seed.o1, seed.creative, status="AWAITING_FEEDBACK")
    approved = make_draft(seed.o1, seed.creative, status="APPROVED")

    res = client.post("/api/scheduled-posts", json={"content_draft_id": pending.id, "scheduled_date": _future()})
    assert res.json() == {"error": "Only approved drafts can be scheduled"}

    res = client.post("/api/scheduled-posts", json={"content_draft_id": approved.id, "scheduled_date": _future(-1)})
    assert res.json() == {"error": "Scheduled time must be in the future"}

    res = client.post("/api/scheduled-posts", json={
        "content_draft_id": approved.id, "scheduled_date": _future(), "platform": "INSTAGRAM",
    })
    assert res.status_code == 400
    assert res.json() == {"error": "platform: Only LINKEDIN publishing is supported"}

    res = login(seed.client).post("/api/scheduled-posts", json={"content_draft_id": approved.id, "scheduled_date": _future()})
    assert res.status_code == 403


def test_creatives_only_see_their_own_scheduled_posts(db_session, seed, login, make_user, add_member, make_draft):
    other_creative = make_user("other@acme.test", role="CREATIVE")
    add_member(seed.o1, other_creative)
    mine = make_draft(seed.o1, seed.creative, status="APPROVED")
    theirs = make_draft(seed.o1, other_creative, status="APPROVED")
    login(seed.creative).post("/api/scheduled-posts", json={"content_draft_id": mine.id, "scheduled_date": _future()})
    login(other_creative).post("/api/scheduled-posts", json={"content_draft_id": theirs.id, "scheduled_date": _future()})

    assert [p["content_draft_id"] for p in login(seed.creative).get("/api/scheduled-posts").json()] == [mine.id]
    assert len(login(seed.client).get("/api/scheduled-posts").json()) == 2
    assert login(seed.client).get("/api/scheduled-posts", params={"status": "FAILED"}).json() == []


def test_due_post_is_published_and_draft_transitions(db_session, seed, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED", body="Big news today")
    post_id, draft_id = _due_post(db_session, draft, seed.creative).id, draft.id
    remote = {"ok": True, "platform": "linkedin", "remote_id": "urn:li:share:7"}

    with patch("contentdesk.services.scheduler.publish_draft", return_value=remote) as publish:
        count = publish_due_posts(lambda: db_session)

    assert count == 1
    publish.assert_called_once()
    db_session.expire_all()
    post = db_session.get(ScheduledPost, post_id)
    assert post.status == "PUBLISHED"
    assert post.remote_id == "urn:li:share:7"
    assert post.published_at is not None
    assert db_session.get(ContentDraft, draft_id).status == "PUBLISHED"


def test_future_posts_are_left_alone(db_session, seed, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED")
    _due_post(db_session, draft, seed.creative, minutes_ago=-30)

    with patch("contentdesk.services.scheduler.publish_draft") as publish:
        assert publish_due_posts(lambda: db_session) == 0
    publish.assert_not_called()


def test_remote_failure_marks_post_failed(db_session, seed, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED")
    post_id, draft_id = _due_post(db_session, draft, seed.creative).id, draft.id

    with patch("contentdesk.services.scheduler.publish_draft",
               return_value={"ok": False, "error": "LinkedIn account is not connected"}):
        assert publish_due_posts(lambda: db_session) == 0

    db_session.expire_all()
    post = db_session.get(ScheduledPost, post_id)
    assert post.status == "FAILED"
    assert post.last_error == "LinkedIn account is not connected"
    assert db_session.get(ContentDraft, draft_id).status == "APPROVED"


def test_draft_no_longer_approved_fails_without_posting(db_session, seed, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED")
    post_id = _due_post(db_session, draft, seed.creative).id
    draft.status = "PUBLISHED"
    db_session.commit()

    with patch("contentdesk.services.scheduler.publish_draft") as publish:
        publish_due_posts(lambda: db_session)

    publish.assert_not_called()
    db_session.expire_all()
    assert db_session.get(ScheduledPost, post_id).last_error == "Draft is PUBLISHED, expected APPROVED"


def test_start_and_stop_scheduler():
    with patch("contentdesk.services.scheduler.BackgroundScheduler") as sched_cls:
        sched = scheduler.start_scheduler(lambda: None, interval_minutes=5)

        sched_cls.assert_called_once_with(timezone="UTC")
        kwargs = sched.add_job.call_args.kwargs
        assert kwargs["minutes"] == 5
        assert kwargs["id"] == "check_due_posts"
        assert kwargs["max_instances"] == 1
        sched.start.assert_called_once()

        scheduler.stop_scheduler()
        sched.shutdown.assert_called_once_with(wait=False)
        assert scheduler._global_scheduler is None


def test_lost_race_after_posting_keeps_remote_id(db_session, seed, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED")
    post_id, draft_id = _due_post(db_session, draft, seed.creative).id, draft.id

    def post_then_race(db, d, user_id):
        db.execute(
            update(ContentDraft)
            .where(ContentDraft.id == draft_id)
            .values(status="PUBLISHED")
            .execution_options(synchronize_session=False)
        )
        return {"ok": True, "platform": "linkedin", "remote_id": "urn:li:share:9"}

    with patch("contentdesk.services.scheduler.publish_draft", side_effect=post_then_race):
        assert publish_due_posts(lambda: db_session) == 0

    db_session.expire_all()
    post = db_session.get(ScheduledPost, post_id)
    assert post.status == "FAILED"
    assert post.remote_id == "urn:li:share:9"
    assert post.last_error.startswith("Published remotely but draft update failed")
