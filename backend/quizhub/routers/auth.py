from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import Field
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizhub.core.config import settings
from quizhub.core.rate_limit import rate_limit
from quizhub.core.security import (
    create_access_token,
    get_current_user,
    hash_password,
    password_problem,
    verify_password,
)
from quizhub.core.security_audit_log import audit_log
from quizhub.db.session import get_db
from quizhub.models.user import User, UserRole
from quizhub.schemas.base import ApiModel
from quizhub.schemas.user import EMAIL_PATTERN, USERNAME_PATTERN, UserPublic

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(ApiModel):
    username: str = Field(pattern=USERNAME_PATTERN)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=254)
    password: str


class TokenResponse(ApiModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None


class RegisterResponse(TokenResponse):
    message: str
    user: UserPublic


def user_public(user: User) -> dict[str, object]:
    return {
        "id": str(user.id),
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "created_at": user.created_at,
    }


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    request: Request,
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    _: object = rate_limit(key_prefix="auth_register", limit=10, window_seconds=60),
):
    if not settings.allow_public_register:
        raise HTTPException(status_code=403, detail="registration disabled")

    problem = password_problem(payload.password)
    if problem:
        raise HTTPException(status_code=400, detail=problem)

    email = payload.email.strip().lower()
    existing = db.scalar(select(User).where(or_(User.username == payload.username, User.email == email)))
    if existing is not None:
        audit_log(db=db, request=request, event_type="auth_register_failed", meta={"reason": "user_exists", "username": payload.username})
        db.commit()
        raise HTTPException(status_code=409, detail="user already exists")

    # Admins are created with scripts/create_admin.py, never through the API.
    user = User(
        username=payload.username,
        email=email,
        role=UserRole.user,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent registration of the same name or email.
        db.rollback()
        raise HTTPException(status_code=409, detail="user already exists") from e
    db.refresh(user)

    audit_log(db=db, request=request, event_type="auth_register_success", actor_user_id=user.id, resource_type="user", resource_id=user.id)
    db.commit()

    return {
        "message": "User registered successfully",
        "user": user_public(user),
        "access_token": create_access_token(user=user),
        "expires_in": int(settings.jwt_access_token_minutes) * 60,
    }


@router.post("/token", response_model=TokenResponse)
def token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    _: object = rate_limit(key_prefix="auth_token", limit=20, window_seconds=60),
):
    login = form_data.username.strip()
    user = db.scalar(select(User).where(or_(User.username == login, User.email == login.lower())))
    if user is None or not verify_password(form_data.password, user.password_hash):
        audit_log(db=db, request=request, event_type="auth_login_failed", meta={"username": login})
        db.commit()
        raise HTTPException(status_code=401, detail="invalid username or password")

    audit_log(db=db, request=request, event_type="auth_login_success", actor_user_id=user.id, resource_type="user", resource_id=user.id)
    db.commit()

    return {
        "access_token": create_access_token(user=user),
        "expires_in": int(settings.jwt_access_token_minutes) * 60,
    }


@router.get("/me", response_model=UserPublic)
def me(user: User = Depends(get_current_user)):
    return user_public(user)
