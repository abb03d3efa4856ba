"""Status state machines for ideas and content drafts.

Routes never assign ``status`` directly. They go through ``apply_transition``,
which validates the (source, target, role) triple against the table below,
swaps the status with ``WHERE status = <expected>`` so concurrent requests
cannot both win, and records the change in ``status_events`` plus, for
drafts, in ``metadata.statusHistory``.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from contentdesk.enums import IdeaStatus, DraftStatus, UserRole, ContentType, values
from contentdesk.errors import ConflictError, Forbidden, TransitionError, ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import Idea, ContentDraft, StatusEvent
from contentdesk.security.roles import get_role

CLIENT = UserRole.CLIENT.value
CREATIVE = UserRole.CREATIVE.value
ADMIN = UserRole.ADMIN.value


@dataclass(frozen=True)
class Transition:
    source: str
    target: str
    roles: frozenset
    action: str


class StateMachine:
    def __init__(self, entity_type: str, label: str, model, statuses: list[str], transitions: list[Transition]):
        self.entity_type = entity_type
        self.label = label
        self.model = model
        self.statuses = statuses
        self.transitions = {(t.source, t.target): t for t in transitions}

    def find(self, current: str, target: str) -> Transition | None:
        return self.transitions.get((current, target))

    def can_transition(self, current: str, target: str, role: str | None) -> bool:
        transition = self.find(current, target)
        return transition is not None and role in transition.roles

    def allowed_targets(self, current: str, role: str | None) -> list[str]:
        return [t.target for t in self.transitions.values() if t.source == current and role in t.roles]

    def check(self, current: str, target: str, role: str | None) -> Transition:
        if target not in self.statuses:
            raise ValidationError(f"Invalid {self.label.lower()} status: {target}")
        transition = self.find(current, target)
        if transition is None:
            raise TransitionError(current, target)
        if role not in transition.roles:
            raise Forbidden(f"Role {role or 'UNKNOWN'} cannot move a {self.label.lower()} from {current} to {target}")
        return transition


def _t(source, target, roles, action) -> Transition:
    return Transition(source.value, target.value, frozenset(roles), action)


IDEA_MACHINE = StateMachine(
    entity_type="idea",
    label="Idea",
    model=Idea,
    statuses=values(IdeaStatus),
    transitions=[
        _t(IdeaStatus.PENDING, IdeaStatus.APPROVED, {CLIENT}, "approve_idea"),
        _t(IdeaStatus.PENDING, IdeaStatus.REJECTED, {CLIENT}, "reject_idea"),
    ],
)

DRAFT_MACHINE = StateMachine(
    entity_type="draft",
    label="Draft",
    model=ContentDraft,
    statuses=values(DraftStatus),
    transitions=[
        _t(DraftStatus.DRAFT, DraftStatus.AWAITING_FEEDBACK, {CREATIVE, ADMIN}, "submit_for_review"),
        _t(DraftStatus.AWAITING_FEEDBACK, DraftStatus.APPROVED, {CLIENT, ADMIN}, "approve_content"),
        _t(DraftStatus.AWAITING_FEEDBACK, DraftStatus.AWAITING_REVISION, {CLIENT, ADMIN}, "request_revision"),
        _t(DraftStatus.AWAITING_FEEDBACK, DraftStatus.REJECTED, {CLIENT, ADMIN}, "reject_content"),
        _t(DraftStatus.AWAITING_REVISION, DraftStatus.DRAFT, {CREATIVE, ADMIN}, "revise_draft"),
        _t(DraftStatus.APPROVED, DraftStatus.PUBLISHED, {CREATIVE, ADMIN}, "publish_content"),
    ],
)


def _utcnow():
    return datetime.now(timezone.utc)


def _history_entry(status: str, actor_id: int, reason: str | None, previous: str, changed_at: datetime) -> dict[str, Any]:
    # Shape shared with rows written before status_events existed
    return {
        "status": status,
        "changedBy": actor_id,
        "changedAt": changed_at.isoformat(),
        "reason": reason or "Status updated",
        "previousStatus": previous,
    }


def apply_transition(
    db: Session,
    machine: StateMachine,
    entity,
    target: str,
    actor,
    reason: str | None = None,
    revision_notes: str | None = None,
    commit: bool = True,
):
    """Move ``entity`` to ``target`` on behalf of ``actor``.

    Raises ValidationError/TransitionError (400), Forbidden (403) or
    ConflictError (409) when another request changed the status first.
    """
    target = target.value if hasattr(target, "value") else target
    role = get_role(actor)
    previous = entity.status
    transition = machine.check(previous, target, role)

    model = machine.model
    now = _utcnow()
    new_values: dict[Any, Any] = {model.status: target}

    if model is ContentDraft:
        metadata = dict(entity.draft_metadata or {})
        history = metadata.get("statusHistory")
        history = list(history) if isinstance(history, list) else []
        history.append(_history_entry(target, actor.id, reason or revision_notes, previous, now))
        metadata["statusHistory"] = history
        if revision_notes:
            metadata["revisionNotes"] = revision_notes
            metadata["revisionRequestedBy"] = actor.id
            metadata["revisionRequestedAt"] = now.isoformat()
        new_values[ContentDraft.draft_metadata] = metadata

    stmt = (
        update(model)
        .where(
            model.id == entity.id,
            model.organization_id == entity.organization_id,
            model.status == previous,
        )
        .values(new_values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        db.rollback()
        log_event(
            "status_transition_conflict",
            level="warning",
            entity_type=machine.entity_type,
            entity_id=entity.id,
            expected_status=previous,
            target_status=target,
        )
        raise ConflictError(f"{machine.label} status changed while updating; reload and try again")

    db.add(StatusEvent(
        organization_id=entity.organization_id,
        entity_type=machine.entity_type,
        entity_id=entity.id,
        previous_status=previous,
        status=target,
        changed_by_id=actor.id,
        reason=reason or revision_notes,
        changed_at=now,
    ))

    log_event(
        "status_transition",
        entity_type=machine.entity_type,
        entity_id=entity.id,
        action=transition.action,
        previous_status=previous,
        status=target,
        user_id=actor.id,
        organization_id=entity.organization_id,
    )

    if commit:
        db.commit()
        db.refresh(entity)
    return entity


def ensure_draft_for_idea(db: Session, idea: Idea) -> ContentDraft | None:
    """Create the first DRAFT for a freshly approved idea, if it has none."""
    existing = db.query(ContentDraft.id).filter(ContentDraft.idea_id == idea.id).first()
    if existing:
        return None
    content_type = idea.content_type or ContentType.SOCIAL_MEDIA_POST.value
    draft = ContentDraft(
        idea_id=idea.id,
        organization_id=idea.organization_id,
        created_by_id=idea.created_by_id,
        status=DraftStatus.DRAFT.value,
        content_type=content_type,
        body=f"Content draft for: {idea.title}\n\n{idea.description}",
        draft_metadata={
            "autoGenerated": True,
            "ideaTitle": idea.title,
            "ideaDescription": idea.description,
            "contentType": content_type,
        },
    )
    db.add(draft)
    return draft


def transition_idea(db: Session, idea: Idea, target: str, actor, reason: str | None = None) -> Idea:
    apply_transition(db, IDEA_MACHINE, idea, target, actor, reason=reason, commit=False)
    if target == IdeaStatus.APPROVED.value:
        draft = ensure_draft_for_idea(db, idea)
        if draft is not None:
            db.flush()
            log_event("draft_auto_created", idea_id=idea.id, draft_id=draft.id, organization_id=idea.organization_id)
    db.commit()
    db.refresh(idea)
    return idea


def transition_draft(db: Session, draft: ContentDraft, target: str, actor, reason: str | None = None,
                     revision_notes: str | None = None, commit: bool = True) -> ContentDraft:
    return apply_transition(db, DRAFT_MACHINE, draft, target, actor, reason=reason,
                            revision_notes=revision_notes, commit=commit)


def get_status_history(db: Session, machine: StateMachine, entity) -> list[dict[str, Any]]:
    events = db.query(StatusEvent).filter(
        StatusEvent.entity_type == machine.entity_type,
        StatusEvent.entity_id == entity.id,
        StatusEvent.organization_id == entity.organization_id,
    ).order_by(StatusEvent.changed_at.asc(), StatusEvent.id.asc()).all()
    if events:
        return [
            _history_entry(e.status, e.changed_by_id, e.reason, e.previous_status, e.changed_at)
            for e in events
        ]
    # Rows written before status_events existed only carry the embedded array
    if machine.model is ContentDraft:
        history = (entity.draft_metadata or {}).get("statusHistory")
        return list(history) if isinstance(history, list) else []
    return []
