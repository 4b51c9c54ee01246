import uuid
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..config import settings
from ..db import get_db
from ..models.models import User
from ..schemas.auth import (
    LoginRequest,
    RefreshRequest,
    TokenResponse,
    MeResponse,
    UserCreate,
    UserResponse,
)
from .security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    require_admin,
)


router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger(__name__)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == req.email.lower()).first()
    if not user or not user.is_active or not verify_password(req.password, user.password_hash):
        logger.info("login_failed", email=req.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    access = create_access_token(str(user.id), role=user.role, centre=user.centre)
    refresh = create_refresh_token(str(user.id))
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("login_succeeded", user_id=str(user.id), role=user.role, centre=user.centre)
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/refresh", response_model=TokenResponse)
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    user = db.query(User).filter(User.id == _uuid_or_401(payload.get("sub"))).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    access = create_access_token(str(user.id), role=user.role, centre=user.centre)
    return TokenResponse(access_token=access, refresh_token=create_refresh_token(str(user.id)))


def _uuid_or_401(raw):
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid subject")


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(id=str(user.id), email=user.email, role=user.role, centre=user.centre)


@router.get("/users", response_model=List[UserResponse])
def list_users(db: Session = Depends(get_db), _=Depends(require_admin)):
    return db.query(User).order_by(User.email.asc()).all()


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(req: UserCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    email = req.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="User already exists")
    if req.role == "staff":
        if not req.centre:
            raise HTTPException(status_code=400, detail="Staff users need a centre")
        if settings.centres and req.centre not in settings.centres:
            raise HTTPException(status_code=400, detail=f"Unknown centre: {req.centre}")
    user = User(
        email=email,
        password_hash=get_password_hash(req.password),
        role=req.role,
        centre=req.centre if req.role == "staff" else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_created", user_id=str(user.id), role=user.role, centre=user.centre, by=admin.email)
    return user
