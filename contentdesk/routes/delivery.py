"""Monthly content delivery plans and the ideas assigned to their line items."""
from collections import Counter
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, selectinload
from contentdesk.db import get_db
from contentdesk.enums import DeliveryPlanStatus, DeliveryItemStatus, DraftStatus
from contentdesk.errors import Forbidden, NotFound, ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import ContentDeliveryPlan, ContentDeliveryItem, ContentDraft, Idea, User
from contentdesk.schemas import DeliveryPlanCreate, DeliveryPlanOut, DeliveryItemOut, AssignIdeasIn, ArchiveIn, IdeaOut
from contentdesk.security.org_context import (
    OrganizationContext, require_org_context, get_scoped_or_404, get_delivery_item_or_404,
)
from contentdesk.security.roles import is_admin
from contentdesk.security.session import require_user

router = APIRouter(prefix="/api/delivery-plans", tags=["delivery"])
items_router = APIRouter(prefix="/api/delivery-items", tags=["delivery"])

def _month_start(month: str) -> datetime:
    try:
        return datetime.strptime(month, "%Y-%m").replace(tzinfo=timezone.utc)
    except ValueError:
        raise ValidationError("month must use the YYYY-MM format")

def _next_month(start: datetime) -> datetime:
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)

@router.post("", response_model=DeliveryPlanOut)
def create_plan(
    payload: DeliveryPlanCreate,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    if payload.end_date < payload.start_date:
        raise ValidationError("end_date must not be before start_date")

    # Plan and items commit together or not at all
    plan = ContentDeliveryPlan(
        organization_id=ctx.organization_id,
        client_id=user.id,
        name=payload.name,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
        target_month=_month_start(payload.target_month),
        status=DeliveryPlanStatus.DRAFT.value,
        items=[
            ContentDeliveryItem(
                content_type=item.content_type,
                quantity=item.quantity,
                due_date=item.due_date,
                priority=item.priority,
                notes=item.notes,
                status=DeliveryItemStatus.PENDING.value,
            )
            for item in payload.items
        ],
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)
    log_event("delivery_plan_created", plan_id=plan.id, organization_id=ctx.organization_id, items=len(payload.items))
    return plan

@router.get("", response_model=list[DeliveryPlanOut])
def list_plans(
    month: str | None = None,
    show_archived: bool = False,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    q = db.query(ContentDeliveryPlan).options(selectinload(ContentDeliveryPlan.items)).filter(
        ContentDeliveryPlan.organization_id == ctx.organization_id
    )
    if month:
        start = _month_start(month)
        q = q.filter(ContentDeliveryPlan.target_month >= start, ContentDeliveryPlan.target_month < _next_month(start))
    if not show_archived:
        q = q.filter(ContentDeliveryPlan.is_archived == False)
    return q.order_by(ContentDeliveryPlan.target_month.desc(), ContentDeliveryPlan.created_at.desc()).all()

@router.get("/{plan_id}", response_model=DeliveryPlanOut)
def get_plan(plan_id: int, ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    return get_scoped_or_404(db, ContentDeliveryPlan, plan_id, ctx.organization_id, "Delivery plan")

@router.post("/{plan_id}/archive", response_model=DeliveryPlanOut)
def archive_plan(
    plan_id: int,
    payload: ArchiveIn | None = None,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    plan = get_scoped_or_404(db, ContentDeliveryPlan, plan_id, ctx.organization_id, "Delivery plan")
    if plan.client_id != user.id and not is_admin(user):
        raise Forbidden("Unauthorized to update this plan")
    plan.is_archived = payload.is_archived if payload else True
    db.commit()
    db.refresh(plan)
    log_event("delivery_plan_archived", plan_id=plan.id, is_archived=plan.is_archived)
    return plan

@router.get("/{plan_id}/progress")
def plan_progress(plan_id: int, ctx: OrganizationContext = Depends(require_org_context), db: Session = Depends(get_db)):
    plan = get_scoped_or_404(db, ContentDeliveryPlan, plan_id, ctx.organization_id, "Delivery plan")

    items = []
    total_quantity = 0
    total_delivered = 0
    for item in sorted(plan.items, key=lambda i: (i.due_date, i.id)):
        idea_ids = [idea.id for idea in item.ideas if idea.organization_id == ctx.organization_id]
        drafts = []
        if idea_ids:
            drafts = db.query(ContentDraft.idea_id, ContentDraft.status).filter(
                ContentDraft.organization_id == ctx.organization_id,
                ContentDraft.idea_id.in_(idea_ids),
            ).all()
        draft_counts = Counter(status for _, status in drafts)
        delivered = len({idea_id for idea_id, status in drafts if status == DraftStatus.PUBLISHED.value})

        total_quantity += item.quantity
        total_delivered += min(delivered, item.quantity)
        items.append({
            "item_id": item.id,
            "content_type": item.content_type,
            "quantity": item.quantity,
            "assigned_ideas": len(idea_ids),
            "remaining": max(item.quantity - len(idea_ids), 0),
            "delivered": delivered,
            "draft_counts": dict(draft_counts),
            "due_date": item.due_date,
            "status": item.status,
        })

    percentage = round(total_delivered / total_quantity * 100) if total_quantity else 0
    if total_quantity and total_delivered >= total_quantity:
        status = "COMPLETED"
    elif percentage >= 80:
        status = "ON_TRACK"
    elif percentage > 0:
        status = "BEHIND_SCHEDULE"
    else:
        status = "NOT_STARTED"

    return {
        "plan_id": plan.id,
        "name": plan.name,
        "target_month": plan.target_month,
        "total_quantity": total_quantity,
        "delivered": total_delivered,
        "progress_percentage": percentage,
        "status": status,
        "items": items,
    }

@items_router.post("/{item_id}/assign")
def assign_ideas(
    item_id: int,
    payload: AssignIdeasIn,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    item = get_delivery_item_or_404(db, item_id, ctx.organization_id)
    ideas = db.query(Idea).filter(
        Idea.id.in_(payload.idea_ids),
        Idea.organization_id == ctx.organization_id,
    ).all()
    if len(ideas) != len(payload.idea_ids):
        raise NotFound("One or more ideas not found or do not belong to your organization")
    already = sorted(idea.id for idea in ideas if idea.delivery_item_id is not None)
    if already:
        raise ValidationError(f"Some ideas are already assigned to delivery items: {already}")

    for idea in ideas:
        idea.delivery_item_id = item.id
    if item.status == DeliveryItemStatus.PENDING.value:
        item.status = DeliveryItemStatus.IN_PROGRESS.value
    db.commit()
    db.refresh(item)
    log_event("delivery_ideas_assigned", item_id=item.id, idea_ids=payload.idea_ids)
    return {
        "assigned_count": len(ideas),
        "delivery_item": DeliveryItemOut.model_validate(item),
        "ideas": [IdeaOut.model_validate(i) for i in item.ideas],
    }

@items_router.delete("/{item_id}/ideas/{idea_id}")
def unassign_idea(
    item_id: int,
    idea_id: int,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    item = get_delivery_item_or_404(db, item_id, ctx.organization_id)
    idea = get_scoped_or_404(db, Idea, idea_id, ctx.organization_id, "Idea")
    if idea.delivery_item_id != item.id:
        raise NotFound("Idea is not assigned to this delivery item")
    idea.delivery_item_id = None
    db.commit()
    db.refresh(idea)
    log_event("delivery_idea_unassigned", item_id=item.id, idea_id=idea.id)
    return {"ok": True, "idea": IdeaOut.model_validate(idea)}
