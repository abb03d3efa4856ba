"""Organization context: which tenant a request operates against.

Every org-scoped query in the routes filters on the ``organization_id`` this
module returns. Both public call shapes share ``_resolve``:

- ``get_organization_context`` returns ``None`` when no context can be built,
  for callers that degrade gracefully.
- ``require_organization_context`` raises the typed error.
"""
import logging
from dataclasses import dataclass, field

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from contentdesk.db import get_db
from contentdesk.errors import AppError, Forbidden, NoActiveOrganization, NotFound, Unauthorized
from contentdesk.logging_setup import log_event
from contentdesk.models import (
    OrganizationUser, Idea, ContentDraft, Media, ContentDeliveryPlan, ContentDeliveryItem,
)
from contentdesk.security.session import require_user

logger = logging.getLogger(__name__)

ORG_HEADER = "x-selected-organization"
ORG_QUERY_PARAM = "organizationId"

ORG_ROLE_LEVELS = {
    "OWNER": 4,
    "ADMIN": 3,
    "MANAGER": 2,
    "MEMBER": 1,
    "VIEWER": 0,
}


@dataclass
class OrganizationContext:
    organization_id: int
    user_id: int
    user_role: str | None
    organization_role: str
    user_email: str = ""
    is_super_admin: bool = False
    permissions: list[str] = field(default_factory=list)


def selected_organization_id(request: Request | None) -> str | None:
    """Explicit selection from the request: header first, then query param."""
    if request is None:
        return None
    return request.headers.get(ORG_HEADER) or request.query_params.get(ORG_QUERY_PARAM) or None


def _parse_org_id(raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise Forbidden("You do not have access to this organization")


def _active_memberships(db: Session, user_id: int):
    return db.query(OrganizationUser).filter(
        OrganizationUser.user_id == user_id,
        OrganizationUser.is_active == True,
    )


def _resolve(db: Session, user, explicit_org_id=None) -> OrganizationContext:
    if explicit_org_id not in (None, ""):
        org_id = _parse_org_id(explicit_org_id)
        # Global role and super-admin flag grant nothing here; only an active membership does
        membership = _active_memberships(db, user.id).filter(
            OrganizationUser.organization_id == org_id
        ).first()
        if not membership:
            log_event("org_context_denied", level="warning", user_id=user.id, organization_id=org_id)
            raise Forbidden("You do not have access to this organization")
    else:
        membership = _active_memberships(db, user.id).order_by(
            OrganizationUser.joined_at.desc(),
            OrganizationUser.id.desc(),
        ).first()
        if not membership:
            log_event("org_context_missing", level="warning", user_id=user.id)
            raise NoActiveOrganization()

    permissions = membership.permissions if isinstance(membership.permissions, list) else []
    return OrganizationContext(
        organization_id=membership.organization_id,
        user_id=user.id,
        user_role=user.role,
        organization_role=membership.role,
        user_email=user.email or "",
        is_super_admin=bool(getattr(user, "is_super_admin", False)),
        permissions=[p for p in permissions if isinstance(p, str)],
    )


def require_organization_context(db: Session, user, explicit_org_id=None, request: Request | None = None) -> OrganizationContext:
    """Resolve the context or raise Unauthorized / Forbidden / NoActiveOrganization."""
    if user is None:
        raise Unauthorized()
    if explicit_org_id in (None, ""):
        explicit_org_id = selected_organization_id(request)
    context = _resolve(db, user, explicit_org_id)
    log_event(
        "org_context_resolved",
        level="debug",
        user_id=context.user_id,
        organization_id=context.organization_id,
        user_role=context.user_role,
    )
    return context


def get_organization_context(db: Session, user, explicit_org_id=None, request: Request | None = None) -> OrganizationContext | None:
    try:
        return require_organization_context(db, user, explicit_org_id, request)
    except AppError as e:
        logger.warning(f"No organization context: {e.message}")
        return None


def require_org_context(
    request: Request,
    user=Depends(require_user),
    db: Session = Depends(get_db),
) -> OrganizationContext:
    """FastAPI dependency for org-scoped routes."""
    return require_organization_context(db, user, request=request)


def has_org_role(organization_role: str | None, required_role: str) -> bool:
    return ORG_ROLE_LEVELS.get(organization_role or "", 0) >= ORG_ROLE_LEVELS.get(required_role, 0)


def get_scoped_or_404(db: Session, model, entity_id: int, organization_id: int, label: str):
    """Fetch a row of ``model`` inside the organization.

    Missing rows and rows of another tenant are indistinguishable to the caller.
    """
    entity = db.query(model).filter(
        model.id == entity_id,
        model.organization_id == organization_id,
    ).first()
    if not entity:
        raise NotFound(f"{label} not found")
    return entity


def get_delivery_item_or_404(db: Session, item_id: int, organization_id: int) -> ContentDeliveryItem:
    item = db.query(ContentDeliveryItem).join(ContentDeliveryPlan).filter(
        ContentDeliveryItem.id == item_id,
        ContentDeliveryPlan.organization_id == organization_id,
    ).first()
    if not item:
        raise NotFound("Delivery item not found")
    return item


RESOURCE_MODELS = {
    "idea": Idea,
    "contentDraft": ContentDraft,
    "media": Media,
    "contentDeliveryPlan": ContentDeliveryPlan,
}


def validate_organization_access(db: Session, resource_type: str, resource_id: int, organization_id: int) -> bool:
    model = RESOURCE_MODELS.get(resource_type)
    if model is None:
        return False
    row = db.query(model.organization_id).filter(model.id == resource_id).first()
    return row is not None and row[0] == organization_id
