from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from quizhub.core.config import settings
from quizhub.db.session import get_db
from quizhub.models.user import User, UserRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/auth/token", auto_error=False)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(*, user: User) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.jwt_access_token_minutes)
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "iat": now,
        "exp": expire,
        "iss": settings.jwt_issuer,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    token: str | None = Depends(oauth2_scheme),
) -> User:
    if not token:
        raise HTTPException(status_code=401, detail="access denied, no token provided")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except ExpiredSignatureError as e:
        raise HTTPException(status_code=401, detail="token expired, please login again") from e
    except JWTError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    try:
        user_id = uuid.UUID(str(payload.get("sub") or ""))
    except ValueError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    user = db.scalar(select(User).where(User.id == user_id))
    if user is None:
        raise HTTPException(status_code=401, detail="invalid token")

    request.state.user_id = str(user.id)
    return user


def is_admin(user: User) -> bool:
    return user.role == UserRole.admin


def require_roles(*roles: UserRole):
    def _dep(user: User = Depends(get_current_user)) -> User:
        # admin can access everything
        if user.role == UserRole.admin:
            return user

        if user.role not in roles:
            raise HTTPException(status_code=403, detail="access denied, admin privileges required")
        return user

    return _dep


require_admin = require_roles(UserRole.admin)


_PASSWORD_SPECIALS = "@$!%*?&"


def password_problem(password: str) -> str | None:
    """Return why ``password`` is too weak, or None when it is acceptable."""
    min_len = int(settings.password_min_length or 0)
    if len(password) < min_len:
        return "password too short"
    if not any(c.islower() for c in password):
        return "password must contain a lowercase letter"
    if not any(c.isupper() for c in password):
        return "password must contain an uppercase letter"
    if not any(c.isdigit() for c in password):
        return "password must contain a digit"
    if not any(c in _PASSWORD_SPECIALS for c in password):
        return f"password must contain one of {_PASSWORD_SPECIALS}"
    return None
