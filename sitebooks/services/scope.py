"""
Project scoping for principals.

An admin acts on every project; a supervisor only on the projects whose
``supervisor_id`` is theirs. Scope is read from the store on every call and
never cached, since an admin can reassign a project between two requests.
"""
import uuid
from typing import FrozenSet, Optional

from sqlalchemy.orm import Session, Query

from ..auth.principal import Principal
from ..models.models import Project

# None == "no filter" (admin)
Scope = Optional[FrozenSet[uuid.UUID]]


def resolve_scope(db: Session, principal: Principal) -> Scope:
    if principal.is_admin:
        return None
    rows = db.query(Project.id).filter(Project.supervisor_id == principal.id).all()
    return frozenset(r[0] for r in rows)


def in_scope(scope: Scope, project_id: Optional[uuid.UUID]) -> bool:
    if scope is None:
        return True
    if project_id is None:
        return False
    return project_id in scope


def apply_scope(query: Query, column, scope: Scope) -> Query:
    """Restrict ``query`` to rows whose ``column`` lies inside ``scope``."""
    if scope is None:
        return query
    return query.filter(column.in_(list(scope)))
