from datetime import datetime, timezone

from contentdesk.models import ContentDeliveryItem, ContentDeliveryPlan, ContentDraft, Idea


def _idea_payload(**overrides):
    payload = {
        "title": "Quarterly results teaser",
        "description": "Short post hinting at the Q3 numbers",
        "content_type": "SOCIAL_MEDIA_POST",
    }
    payload.update(overrides)
    return payload


def test_client_approves_pending_idea_and_draft_is_created(db_session, seed, login, make_idea):
    idea = make_idea(seed.o1, seed.creative)
    client = login(seed.client)

    res = client.patch(f"/api/ideas/{idea.id}/status", json={"status": "APPROVED"})

    assert res.status_code == 200
    assert res.json()["status"] == "APPROVED"
    drafts = db_session.query(ContentDraft).filter(ContentDraft.idea_id == idea.id).all()
    assert len(drafts) == 1
    assert drafts[0].status == "DRAFT"
    assert drafts[0].organization_id == seed.o1.id


def test_idea_in_other_organization_is_not_found(db_session, seed, login, make_idea):
    """Another tenant's idea looks exactly like a missing one."""
    foreign = make_idea(seed.o2, seed.other_client)
    client = login(seed.client)

    res = client.patch(f"/api/ideas/{foreign.id}/status", json={"status": "APPROVED"})

    assert res.status_code == 404
    assert res.json() == {"error": "Idea not found"}
    db_session.expire_all()
    assert db_session.get(Idea, foreign.id).status == "PENDING"
    assert db_session.query(ContentDraft).count() == 0


def test_creative_cannot_change_idea_status(seed, login, make_idea):
    idea = make_idea(seed.o1, seed.creative)
    client = login(seed.creative)

    res = client.patch(f"/api/ideas/{idea.id}/status", json={"status": "APPROVED"})

    assert res.status_code == 403
    assert res.json() == {"error": "Only clients can update idea status"}


def test_admin_cannot_change_idea_status(seed, login, make_idea):
    idea = make_idea(seed.o1, seed.creative)
    res = login(seed.admin).patch(f"/api/ideas/{idea.id}/status", json={"status": "REJECTED"})
    assert res.status_code == 403


def test_decided_idea_cannot_move_again(seed, login, make_idea):
    idea = make_idea(seed.o1, seed.creative, status="REJECTED")
    res = login(seed.client).patch(f"/api/ideas/{idea.id}/status", json={"status": "APPROVED"})
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid status transition from REJECTED to APPROVED"}


def test_unknown_status_is_rejected(seed, login, make_idea):
    idea = make_idea(seed.o1, seed.creative)
    res = login(seed.client).patch(f"/api/ideas/{idea.id}/status", json={"status": "MAYBE"})
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid idea status: MAYBE"}


def test_status_change_requires_session(seed, client, make_idea):
    idea = make_idea(seed.o1, seed.creative)
    res = client.patch(f"/api/ideas/{idea.id}/status", json={"status": "APPROVED"})
    assert res.status_code == 401
    assert res.json() == {"error": "Authentication required"}


def test_creative_creates_idea_in_resolved_organization(seed, login):
    res = login(seed.creative).post("/api/ideas", json=_idea_payload(title="  Padded title  "))

    assert res.status_code == 200
    body = res.json()
    assert body["title"] == "Padded title"
    assert body["status"] == "PENDING"
    assert body["organization_id"] == seed.o1.id
    assert body["created_by_id"] == seed.creative.id


def test_client_cannot_create_idea(seed, login):
    res = login(seed.client).post("/api/ideas", json=_idea_payload())
    assert res.status_code == 403
    assert res.json() == {"error": "Only creatives can create ideas"}


def test_create_idea_validates_fields(seed, login):
    client = login(seed.creative)

    res = client.post("/api/ideas", json=_idea_payload(title="   "))
    assert res.status_code == 400
    assert res.json() == {"error": "title: title must be between 1 and 200 characters"}

    res = client.post("/api/ideas", json=_idea_payload(description="x" * 1001))
    assert res.status_code == 400
    assert res.json()["error"].startswith("description:")

    res = client.post("/api/ideas", json=_idea_payload(content_type="PODCAST"))
    assert res.status_code == 400
    assert "content_type must be one of" in res.json()["error"]


def test_list_ideas_is_scoped_filtered_and_paginated(seed, login, make_idea):
    for i in range(3):
        make_idea(seed.o1, seed.creative, title=f"Idea {i}")
    make_idea(seed.o1, seed.creative, title="Rejected one", status="REJECTED")
    make_idea(seed.o2, seed.other_client, title="Globex idea")
    client = login(seed.client)

    res = client.get("/api/ideas")
    assert res.status_code == 200
    assert res.json()["total"] == 4
    assert all(i["organization_id"] == seed.o1.id for i in res.json()["items"])

    res = client.get("/api/ideas", params={"status": "PENDING", "limit": 2, "page": 2})
    body = res.json()
    assert body["total"] == 3
    assert body["page"] == 2
    assert len(body["items"]) == 1

    res = client.get("/api/ideas", params={"status": "ARCHIVED"})
    assert res.status_code == 400


def test_only_creator_or_admin_edits_idea(seed, login, make_user, add_member, make_idea):
    idea = make_idea(seed.o1, seed.creative)
    second_creative = make_user("second@acme.test", role="CREATIVE")
    add_member(seed.o1, second_creative)

    res = login(second_creative).patch(f"/api/ideas/{idea.id}", json={"title": "Hijacked"})
    assert res.status_code == 403
    assert res.json() == {"error": "Only the creator or an admin can edit this idea"}

    res = login(seed.creative).patch(f"/api/ideas/{idea.id}", json={"saved_for_later": True})
    assert res.status_code == 200
    assert res.json()["saved_for_later"] is True

    res = login(seed.admin).patch(f"/api/ideas/{idea.id}", json={"title": "Edited by admin"})
    assert res.status_code == 200
    assert res.json()["title"] == "Edited by admin"
    assert res.json()["status"] == "PENDING"


def test_delete_idea(db_session, seed, login, make_idea):
    idea_id = make_idea(seed.o1, seed.creative).id
    res = login(seed.creative).delete(f"/api/ideas/{idea_id}")
    assert res.status_code == 200
    assert res.json() == {"ok": True}
    db_session.expire_all()
    assert db_session.get(Idea, idea_id) is None


def test_idea_history_lists_transitions(seed, login, make_idea):
    idea = make_idea(seed.o1, seed.creative)
    client = login(seed.client)
    client.patch(f"/api/ideas/{idea.id}/status", json={"status": "APPROVED", "reason": "On brand"})

    res = client.get(f"/api/ideas/{idea.id}/history")

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "APPROVED"
    assert len(body["history"]) == 1
    entry = body["history"][0]
    assert entry["previousStatus"] == "PENDING"
    assert entry["status"] == "APPROVED"
    assert entry["changedBy"] == seed.client.id
    assert entry["reason"] == "On brand"


def test_edit_rejects_null_for_required_fields(db_session, seed, login, make_idea):
    idea = make_idea(seed.o1, seed.creative, title="Keep me")
    client = login(seed.creative)

    for field in ("title", "description", "content_type", "saved_for_later"):
        res = client.patch(f"/api/ideas/{idea.id}", json={field: None})
        assert res.status_code == 400
        assert res.json() == {"error": f"{field}: {field} cannot be null"}

    # optional fields can still be cleared
    res = client.patch(f"/api/ideas/{idea.id}", json={"media_type": None, "publishing_date_time": None})
    assert res.status_code == 200
    db_session.expire_all()
    assert db_session.get(Idea, idea.id).title == "Keep me"


def test_edit_validates_media_type(db_session, seed, login, make_idea):
    idea = make_idea(seed.o1, seed.creative)
    client = login(seed.creative)

    res = client.patch(f"/api/ideas/{idea.id}", json={"media_type": "HOLOGRAM"})
    assert res.status_code == 400
    assert res.json()["error"].startswith("media_type: media_type must be one of PHOTO")
    db_session.expire_all()
    assert db_session.get(Idea, idea.id).media_type is None

    res = client.patch(f"/api/ideas/{idea.id}", json={"media_type": "CAROUSEL"})
    assert res.json()["media_type"] == "CAROUSEL"


def test_unassigned_ideas_lists_pending_ideas_without_delivery_item(db_session, seed, login, make_idea):
    open_post = make_idea(seed.o1, seed.creative, title="Open social post")
    open_blog = make_idea(seed.o1, seed.creative, title="Open blog", content_type="BLOG_POST")
    assigned = make_idea(seed.o1, seed.creative, title="Already planned")
    make_idea(seed.o1, seed.creative, title="Approved one", status="APPROVED")
    make_idea(seed.o2, seed.other_client, title="Other tenant")

    plan = ContentDeliveryPlan(
        organization_id=seed.o1.id, client_id=seed.client.id, name="March",
        start_date=datetime(2026, 3, 1, tzinfo=timezone.utc), end_date=datetime(2026, 3, 31, tzinfo=timezone.utc),
        target_month=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )
    plan.items.append(ContentDeliveryItem(
        content_type="SOCIAL_MEDIA_POST", quantity=1, due_date=datetime(2026, 3, 15, tzinfo=timezone.utc),
    ))
    db_session.add(plan)
    db_session.flush()
    assigned.delivery_item_id = plan.items[0].id
    db_session.commit()

    client = login(seed.client)
    res = client.get("/api/ideas/unassigned")
    assert res.status_code == 200
    assert sorted(i["id"] for i in res.json()) == sorted([open_post.id, open_blog.id])

    assert [i["id"] for i in client.get("/api/ideas/unassigned", params={"content_type": "BLOG_POST"}).json()] == [open_blog.id]
    assert len(client.get("/api/ideas/unassigned", params={"content_type": "ALL"}).json()) == 2
    assert [i["id"] for i in client.get("/api/ideas/unassigned", params={"search": "SOCIAL"}).json()] == [open_post.id]

    res = client.get("/api/ideas/unassigned", params={"content_type": "PODCAST"})
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid content type: PODCAST"}
