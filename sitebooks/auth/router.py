from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..config import settings
from ..models.models import User
from ..schemas.auth import LoginRequest, TokenResponse, MeResponse
from .security import verify_password, create_access_token, get_current_user
from ..logging import structlog


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    identifier = req.identifier.strip()
    user = db.query(User).filter((User.username == identifier) | (User.email == identifier.lower())).first()
    if not user or not user.is_active or not verify_password(req.password, user.password_hash):
        structlog.get_logger().info("login_failed", identifier=identifier)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    access = create_access_token(str(user.id), user.role)
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    structlog.get_logger().info("login_succeeded", user_id=str(user.id), role=user.role.value)
    return TokenResponse(access_token=access, expires_in=settings.jwt_ttl_seconds)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return user
