"""Role predicates and the per-role permission matrix.

All predicates are pure and fail closed: a missing session, user or role is
never granted anything.
"""
from typing import Any

from contentdesk.enums import UserRole

PERMISSIONS = {
    "CREATIVE": {
        "canCreateContent": True,
        "canApproveIdeas": False,
        "canViewAllContent": True,
        "canEditOwnContent": True,
        "canDeleteOwnContent": True,
        "canViewDashboard": True,
        "canProvideFeedback": True,
        "canViewOrganizationData": True,
        "canManageOrganization": False,
    },
    "CLIENT": {
        "canCreateContent": False,
        "canApproveIdeas": True,
        "canViewAllContent": True,
        "canEditOwnContent": False,
        "canDeleteOwnContent": False,
        "canViewDashboard": True,
        "canProvideFeedback": True,
        "canViewOrganizationData": True,
        "canManageOrganization": False,
    },
    "ADMIN": {
        "canCreateContent": True,
        "canApproveIdeas": True,
        "canViewAllContent": True,
        "canEditOwnContent": True,
        "canDeleteOwnContent": True,
        "canViewDashboard": True,
        "canProvideFeedback": True,
        "canViewOrganizationData": True,
        "canManageOrganization": True,
    },
}

FEATURES = {
    "create-content": "canCreateContent",
    "approve-ideas": "canApproveIdeas",
    "edit-content": "canEditOwnContent",
    "delete-content": "canDeleteOwnContent",
    "view-dashboard": "canViewDashboard",
    "provide-feedback": "canProvideFeedback",
    "view-organization-data": "canViewOrganizationData",
    "manage-organization": "canManageOrganization",
}


def get_role(session: Any) -> str | None:
    """Role of a session-like object: SessionUser, User, {"user": {...}}, or None."""
    if session is None:
        return None
    if isinstance(session, dict):
        user = session.get("user", session)
        role = user.get("role") if isinstance(user, dict) else None
    else:
        role = getattr(session, "role", None)
        if role is None and getattr(session, "user", None) is not None:
            role = getattr(session.user, "role", None)
    if isinstance(role, UserRole):
        return role.value
    return role or None


def has_role(session: Any, roles) -> bool:
    role = get_role(session)
    if not role:
        return False
    return role in {r.value if isinstance(r, UserRole) else r for r in roles}


def is_admin(session: Any) -> bool:
    return get_role(session) == UserRole.ADMIN.value


def is_creative(session: Any) -> bool:
    # Admins can do everything a creative can
    return get_role(session) in (UserRole.CREATIVE.value, UserRole.ADMIN.value)


def is_client(session: Any) -> bool:
    return get_role(session) == UserRole.CLIENT.value


def has_permission(role: str | None, permission: str) -> bool:
    return bool(PERMISSIONS.get(role or "", {}).get(permission, False))


def can_user_access(role: str | None, feature: str) -> bool:
    permission = FEATURES.get(feature)
    if not permission:
        return False
    return has_permission(role, permission)


def has_organization_access(user_organization_id, resource_organization_id) -> bool:
    return user_organization_id is not None and user_organization_id == resource_organization_id
