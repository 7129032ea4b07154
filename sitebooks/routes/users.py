import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import Conflict, Forbidden, NotFound
from ..models.enums import Role
from ..models.models import Project, User
from ..auth.principal import Principal
from ..auth.security import get_current_principal, get_password_hash
from ..schemas.auth import UserCreate, UserUpdate, UserResponse, SupervisorResponse
from ..services.policy import Action, ensure_authorized
from ..logging import structlog


router = APIRouter(prefix="/users", tags=["users"])

SELF_EDITABLE = {"name", "email", "phone", "password"}


def _ensure_unique(db: Session, username: Optional[str] = None, email: Optional[str] = None, exclude: Optional[uuid.UUID] = None):
    if username:
        q = db.query(User).filter(User.username == username)
        if exclude:
            q = q.filter(User.id != exclude)
        if q.first():
            raise Conflict("Username already in use", field="username")
    if email:
        q = db.query(User).filter(User.email == email)
        if exclude:
            q = q.filter(User.id != exclude)
        if q.first():
            raise Conflict("Email already in use", field="email")


def _apply(db: Session, user: User, changes: dict) -> User:
    if "email" in changes and changes["email"]:
        changes["email"] = changes["email"].lower()
        _ensure_unique(db, email=changes["email"], exclude=user.id)
    password = changes.pop("password", None)
    if password:
        user.password_hash = get_password_hash(password)
    for key, value in changes.items():
        if value is None and key in ("name", "role", "is_active"):
            continue
        setattr(user, key, value)
    return user


@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[Role] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    ensure_authorized(db, principal, Action.manage_users, None)
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    return query.order_by(User.created_at.desc()).all()


@router.post("", response_model=UserResponse, status_code=201)
def create_user(body: UserCreate, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    ensure_authorized(db, principal, Action.manage_users, None)
    username = body.username.strip()
    email = body.email.lower()
    _ensure_unique(db, username=username, email=email)
    user = User(
        username=username,
        name=body.name.strip(),
        email=email,
        phone=body.phone,
        password_hash=get_password_hash(body.password),
        role=body.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    structlog.get_logger().info("user_created", user_id=str(user.id), role=user.role.value)
    return user


@router.get("/supervisors", response_model=List[SupervisorResponse])
def list_supervisors(db: Session = Depends(get_db), _: Principal = Depends(get_current_principal)):
    return (
        db.query(User)
        .filter(User.role == Role.supervisor, User.is_active.is_(True))
        .order_by(User.name.asc())
        .all()
    )


@router.put("/me", response_model=UserResponse)
def update_me(body: UserUpdate, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    changes = body.model_dump(exclude_unset=True)
    refused = sorted(set(changes) - SELF_EDITABLE)
    if refused:
        raise Forbidden("Only an admin can change these fields", fields=refused)
    user = db.get(User, principal.id)
    _apply(db, user, changes)
    db.commit()
    db.refresh(user)
    return user


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    if user_id != principal.id:
        ensure_authorized(db, principal, Action.manage_users, None)
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found", id=str(user_id))
    return user


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found", id=str(user_id))
    ensure_authorized(db, principal, Action.manage_users, None)
    _apply(db, user, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(user)
    structlog.get_logger().info("user_updated", user_id=str(user.id), role=user.role.value, is_active=user.is_active)
    return user


@router.delete("/{user_id}")
def delete_user(user_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found", id=str(user_id))
    ensure_authorized(db, principal, Action.manage_users, None)
    if user.id == principal.id:
        raise Conflict("You cannot delete your own account")
    owned = db.query(Project.id).filter(Project.supervisor_id == user.id).count()
    if owned:
        raise Conflict("User still supervises projects; reassign them first", projects=owned)
    db.delete(user)
    db.commit()
    structlog.get_logger().info("user_deleted", user_id=str(user_id))
    return {"message": "User deleted successfully"}
