from unittest.mock import patch

from sqlalchemy import update

from contentdesk.models import ContentDraft, Feedback, StatusEvent


def test_full_review_cycle(db_session, seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative)

    res = login(seed.creative).post(f"/api/drafts/{draft.id}/submit")
    assert res.status_code == 200
    assert res.json()["status"] == "AWAITING_FEEDBACK"

    res = login(seed.client).post(f"/api/drafts/{draft.id}/reject", json={"feedback": "Tone it down"})
    assert res.status_code == 200
    assert res.json()["status"] == "AWAITING_REVISION"
    assert res.json()["metadata"]["revisionNotes"] == "Tone it down"

    res = login(seed.creative).post(f"/api/drafts/{draft.id}/revise", json={"reason": "Reworking intro"})
    assert res.json()["status"] == "DRAFT"

    login(seed.creative).post(f"/api/drafts/{draft.id}/submit")
    res = login(seed.client).post(f"/api/drafts/{draft.id}/approve")
    assert res.json()["status"] == "APPROVED"

    res = login(seed.creative).post(f"/api/drafts/{draft.id}/publish")
    assert res.status_code == 200
    assert res.json()["draft"]["status"] == "PUBLISHED"
    assert res.json()["linkedin"] is None

    history = login(seed.client).get(f"/api/drafts/{draft.id}/history").json()["history"]
    assert [h["status"] for h in history] == [
        "AWAITING_FEEDBACK", "AWAITING_REVISION", "DRAFT", "AWAITING_FEEDBACK", "APPROVED", "PUBLISHED",
    ]
    assert db_session.query(StatusEvent).filter(StatusEvent.entity_id == draft.id,
                                                StatusEvent.entity_type == "draft").count() == 6


def test_reject_records_actionable_feedback(db_session, seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="AWAITING_FEEDBACK")

    login(seed.client).post(f"/api/drafts/{draft.id}/reject", json={"feedback": "Needs a stronger hook"})

    feedback = db_session.query(Feedback).filter(Feedback.content_draft_id == draft.id).one()
    assert feedback.comment == "Needs a stronger hook"
    assert feedback.category == "revision"
    assert feedback.priority == "high"
    assert feedback.actionable is True
    assert feedback.created_by_id == seed.client.id


def test_reject_requires_feedback(seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="AWAITING_FEEDBACK")
    res = login(seed.client).post(f"/api/drafts/{draft.id}/reject", json={"feedback": "   "})
    assert res.status_code == 400
    assert res.json() == {"error": "feedback: Feedback is required when rejecting a draft"}


def test_skipping_review_is_an_invalid_transition(db_session, seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative)

    res = login(seed.admin).patch(f"/api/drafts/{draft.id}/status", json={"status": "APPROVED"})

    assert res.status_code == 400
    assert res.json() == {"error": "Invalid status transition from DRAFT to APPROVED"}
    db_session.expire_all()
    assert db_session.get(ContentDraft, draft.id).status == "DRAFT"


def test_client_cannot_submit_and_creative_cannot_approve(seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative)
    assert login(seed.client).post(f"/api/drafts/{draft.id}/submit").status_code == 403

    login(seed.creative).post(f"/api/drafts/{draft.id}/submit")
    assert login(seed.creative).post(f"/api/drafts/{draft.id}/approve").status_code == 403


def test_terminal_states_accept_nothing(seed, login, make_draft):
    published = make_draft(seed.o1, seed.creative, status="PUBLISHED")
    rejected = make_draft(seed.o1, seed.creative, status="REJECTED")
    client = login(seed.admin)
    for draft in (published, rejected):
        for target in ("DRAFT", "AWAITING_FEEDBACK", "APPROVED"):
            res = client.patch(f"/api/drafts/{draft.id}/status", json={"status": target})
            assert res.status_code == 400


def test_status_endpoint_with_revision_notes(seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="AWAITING_FEEDBACK")
    res = login(seed.client).patch(f"/api/drafts/{draft.id}/status", json={
        "status": "AWAITING_REVISION", "revision_notes": "Add a CTA",
    })
    assert res.status_code == 200
    assert res.json()["metadata"]["revisionNotes"] == "Add a CTA"
    assert res.json()["metadata"]["revisionRequestedBy"] == seed.client.id


def test_drafts_of_other_organizations_are_not_found(seed, login, make_draft):
    foreign = make_draft(seed.o2, seed.other_client, status="AWAITING_FEEDBACK")
    client = login(seed.client)
    assert client.get(f"/api/drafts/{foreign.id}").status_code == 404
    assert client.post(f"/api/drafts/{foreign.id}/approve").status_code == 404
    assert client.get("/api/drafts").json() == []


def test_create_draft_inherits_idea_organization(seed, login, make_idea):
    idea = make_idea(seed.o1, seed.creative, status="APPROVED")
    res = login(seed.creative).post("/api/drafts", json={
        "idea_id": idea.id,
        "body": "Hello LinkedIn",
        "metadata": {"tone": "playful", "statusHistory": [{"status": "APPROVED"}]},
    })

    assert res.status_code == 200
    body = res.json()
    assert body["organization_id"] == seed.o1.id
    assert body["status"] == "DRAFT"
    assert body["content_type"] == "SOCIAL_MEDIA_POST"
    assert body["metadata"] == {"tone": "playful"}


def test_create_draft_for_foreign_idea_is_not_found(seed, login, make_idea):
    foreign = make_idea(seed.o2, seed.other_client, status="APPROVED")
    res = login(seed.creative).post("/api/drafts", json={"idea_id": foreign.id, "body": "x"})
    assert res.status_code == 404


def test_update_draft_merges_metadata(seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, metadata={"tone": "formal"})
    res = login(seed.creative).put(f"/api/drafts/{draft.id}", json={
        "body": "Second take",
        "metadata": {"audience": "founders", "revisionNotes": "forged"},
    })

    assert res.status_code == 200
    assert res.json()["body"] == "Second take"
    assert res.json()["metadata"] == {"tone": "formal", "audience": "founders"}


def test_update_published_draft_is_rejected(seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="PUBLISHED")
    res = login(seed.creative).put(f"/api/drafts/{draft.id}", json={"body": "Too late"})
    assert res.status_code == 400
    assert res.json() == {"error": "Published drafts cannot be edited"}


def test_list_drafts_filters(seed, login, make_draft):
    make_draft(seed.o1, seed.creative)
    approved = make_draft(seed.o1, seed.creative, status="APPROVED")
    client = login(seed.client)

    res = client.get("/api/drafts", params={"status": "APPROVED"})
    assert [d["id"] for d in res.json()] == [approved.id]
    res = client.get("/api/drafts", params={"idea_id": approved.idea_id})
    assert [d["id"] for d in res.json()] == [approved.id]
    assert client.get("/api/drafts", params={"status": "LIVE"}).status_code == 400


def test_publish_to_linkedin_records_remote_id(seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED")
    remote = {"ok": True, "platform": "linkedin", "published_at": "2026-01-01T00:00:00+00:00",
              "remote_id": "urn:li:share:42"}

    with patch("contentdesk.routes.drafts.publish_draft", return_value=remote) as publish:
        res = login(seed.creative).post(f"/api/drafts/{draft.id}/publish", json={"publish_to_linkedin": True})

    assert res.status_code == 200
    body = res.json()
    assert body["linkedin"]["remote_id"] == "urn:li:share:42"
    assert body["draft"]["status"] == "PUBLISHED"
    assert body["draft"]["metadata"]["publishedTo"] == [{"platform": "linkedin", "remoteId": "urn:li:share:42"}]
    assert publish.call_args.args[2] == seed.creative.id


def test_linkedin_failure_leaves_draft_approved(db_session, seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED")

    with patch("contentdesk.routes.drafts.publish_draft",
               return_value={"ok": False, "error": "LinkedIn account is not connected"}):
        res = login(seed.creative).post(f"/api/drafts/{draft.id}/publish", json={"publish_to_linkedin": True})

    assert res.status_code == 400
    assert res.json() == {"error": "LinkedIn publishing failed: LinkedIn account is not connected"}
    db_session.expire_all()
    assert db_session.get(ContentDraft, draft.id).status == "APPROVED"


def test_publish_checks_transition_before_posting(seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="AWAITING_FEEDBACK")
    with patch("contentdesk.routes.drafts.publish_draft") as publish:
        res = login(seed.creative).post(f"/api/drafts/{draft.id}/publish", json={"publish_to_linkedin": True})
    assert res.status_code == 400
    publish.assert_not_called()


def test_publishing_a_draft_that_skipped_review_is_rejected(seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative)
    with patch("contentdesk.routes.drafts.publish_draft") as publish:
        res = login(seed.creative).post(f"/api/drafts/{draft.id}/publish", json={"publish_to_linkedin": True})
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid status transition from DRAFT to PUBLISHED"}
    publish.assert_not_called()


def test_approving_twice_is_an_invalid_transition(db_session, seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED")
    res = login(seed.client).post(f"/api/drafts/{draft.id}/approve")
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid status transition from APPROVED to APPROVED"}
    assert db_session.query(StatusEvent).count() == 0


def test_lost_publish_race_logs_remote_post(db_session, seed, login, make_draft):
    draft = make_draft(seed.o1, seed.creative, status="APPROVED")
    draft_id = draft.id

    def post_then_race(db, d, user_id):
        # a concurrent request publishes the draft while LinkedIn is being called
        db.execute(
            update(ContentDraft)
            .where(ContentDraft.id == draft_id)
            .values(status="PUBLISHED")
            .execution_options(synchronize_session=False)
        )
        return {"ok": True, "platform": "linkedin", "remote_id": "urn:li:share:77"}

    with patch("contentdesk.routes.drafts.publish_draft", side_effect=post_then_race), \
         patch("contentdesk.routes.drafts.log_event") as log:
        res = login(seed.creative).post(f"/api/drafts/{draft_id}/publish", json={"publish_to_linkedin": True})

    assert res.status_code == 409
    log.assert_called_once_with(
        "draft_publish_remote_orphaned", level="error",
        draft_id=draft_id, remote_id="urn:li:share:77", error=res.json()["error"],
    )
