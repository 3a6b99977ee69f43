"""
Role-based access control.

Global roles, highest to lowest access:
    ADMIN > PROJECT_MANAGER > CONTRACTOR > STAKEHOLDER > VIEWER

Contractors may only move phases they are assigned to; that scoping lives in
the phase actions, not in this table.
"""
from typing import Iterable

from fastapi import HTTPException, status

ADMIN = "ADMIN"
PROJECT_MANAGER = "PROJECT_MANAGER"
CONTRACTOR = "CONTRACTOR"
STAKEHOLDER = "STAKEHOLDER"
VIEWER = "VIEWER"

ROLES = [ADMIN, PROJECT_MANAGER, CONTRACTOR, STAKEHOLDER, VIEWER]

ACTIONS = ["view", "create", "update", "delete", "manage"]
RESOURCES = ["project", "phase", "document", "photo", "staff", "checklist", "member", "notification"]

PERMISSIONS = {
    ADMIN: {
        "project": ["view", "create", "update", "delete", "manage"],
        "phase": ["view", "create", "update", "delete", "manage"],
        "document": ["view", "create", "update", "delete"],
        "photo": ["view", "create", "delete"],
        "staff": ["view", "create", "update", "delete"],
        "checklist": ["view", "create", "update", "delete"],
        "member": ["view", "create", "update", "delete"],
        "notification": ["view", "update"],
    },
    PROJECT_MANAGER: {
        "project": ["view", "create", "update"],
        "phase": ["view", "create", "update", "manage"],
        "document": ["view", "create", "update"],
        "photo": ["view", "create"],
        "staff": ["view", "create", "update"],
        "checklist": ["view", "create", "update"],
        "member": ["view", "create", "update"],
        "notification": ["view", "update"],
    },
    CONTRACTOR: {
        "project": ["view"],
        "phase": ["view", "update"],
        "document": ["view", "create"],
        "photo": ["view", "create"],
        "staff": ["view"],
        "checklist": ["view", "update"],
        "member": ["view"],
        "notification": ["view", "update"],
    },
    STAKEHOLDER: {
        "project": ["view"],
        "phase": ["view"],
        "document": ["view"],
        "photo": ["view"],
        "staff": ["view"],
        "checklist": ["view"],
        "member": ["view"],
        "notification": ["view", "update"],
    },
    VIEWER: {
        "project": ["view"],
        "phase": ["view"],
        "document": ["view"],
        "photo": ["view"],
        "staff": [],
        "checklist": ["view"],
        "member": [],
        "notification": ["view", "update"],
    },
}


def can(role: str, action: str, resource: str) -> bool:
    """True when `role` may perform `action` on `resource`. Unknown roles are denied."""
    return action in PERMISSIONS.get(role, {}).get(resource, [])


def can_any(role: str, actions: Iterable[str], resource: str) -> bool:
    return any(can(role, action, resource) for action in actions)


def can_create_project(role: str) -> bool:
    return role in (ADMIN, PROJECT_MANAGER)


def can_manage_phase(role: str) -> bool:
    return role in (ADMIN, PROJECT_MANAGER)


def can_review_phase(role: str) -> bool:
    return role in (ADMIN, PROJECT_MANAGER)


def require(user, action: str, resource: str):
    if not can(user.role, action, resource):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def check_admin(user):
    if user.role != ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
