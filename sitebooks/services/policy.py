"""
Authorization policy.

One decision table for every resource type:

- admin: always allowed
- supervisor, admin-only action: denied
- supervisor, project-scoped action: allowed iff the resource's project is in scope
- resource without a resolvable project: admin only
"""
import enum
import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from ..auth.principal import Principal
from ..errors import Forbidden
from .scope import resolve_scope, in_scope


logger = structlog.get_logger(__name__)


class Action(str, enum.Enum):
    # Project-scoped
    read = "read"
    write = "write"
    delete = "delete"
    # Admin-only
    approve_material = "approve_material"
    reject_material = "reject_material"
    set_material_status = "set_material_status"
    create_project = "create_project"
    update_project = "update_project"
    delete_project = "delete_project"
    manage_users = "manage_users"


ADMIN_ONLY_ACTIONS = frozenset({
    Action.approve_material,
    Action.reject_material,
    Action.set_material_status,
    Action.create_project,
    Action.update_project,
    Action.delete_project,
    Action.manage_users,
})


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(False, reason)


def authorize(db: Session, principal: Principal, action: Action, resource_project_id: Optional[uuid.UUID]) -> Decision:
    if principal.is_admin:
        return Decision.allow()
    if not principal.is_supervisor:
        return Decision.deny("Unknown role")
    if action in ADMIN_ONLY_ACTIONS:
        return Decision.deny("Admin only")
    if resource_project_id is None:
        return Decision.deny("Resource is not assigned to a project")
    if in_scope(resolve_scope(db, principal), resource_project_id):
        return Decision.allow()
    return Decision.deny("Not authorized for this project")


def ensure_authorized(db: Session, principal: Principal, action: Action, resource_project_id: Optional[uuid.UUID]) -> None:
    decision = authorize(db, principal, action, resource_project_id)
    if not decision.allowed:
        logger.info(
            "authorization_denied",
            principal_id=str(principal.id),
            role=principal.role.value,
            action=action.value,
            project_id=str(resource_project_id) if resource_project_id else None,
            reason=decision.reason,
        )
        raise Forbidden(decision.reason or "Forbidden", action=action.value)


def ensure_can_reassign(
    db: Session,
    principal: Principal,
    action: Action,
    source_project_id: Optional[uuid.UUID],
    target_project_id: Optional[uuid.UUID],
) -> None:
    """
    Moving a resource between projects needs authority over both ends.
    An unassigned end is skipped, unless both are unassigned, in which case
    only an admin may act.
    """
    if source_project_id is None and target_project_id is None:
        ensure_authorized(db, principal, action, None)
        return
    if source_project_id is not None:
        ensure_authorized(db, principal, action, source_project_id)
    if target_project_id is not None:
        ensure_authorized(db, principal, action, target_project_id)
