from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizhub.core.errors import parse_uuid
from quizhub.core.rate_limit import rate_limit
from quizhub.core.security import (
    get_current_user,
    hash_password,
    is_admin,
    password_problem,
    require_admin,
    verify_password,
)
from quizhub.core.security_audit_log import audit_log
from quizhub.db.session import get_db, storage_guard
from quizhub.models.quiz import Quiz
from quizhub.models.result import Result, ResultAnswer
from quizhub.models.security_audit import SecurityAuditEvent
from quizhub.models.user import User, UserRole
from quizhub.routers.auth import user_public
from quizhub.schemas.base import MessageResponse
from quizhub.schemas.user import (
    ProfileUpdateRequest,
    UserListResponse,
    UserMutationResponse,
    UserResponse,
    UserUpdateRequest,
)

router = APIRouter(prefix="/users", tags=["users"])

_NON_NULLABLE = ("username", "email", "password", "role")


def _get_user(db: Session, user_id: uuid.UUID) -> User:
    u = db.scalar(select(User).where(User.id == user_id))
    if u is None:
        raise HTTPException(status_code=404, detail="user not found")
    return u


def _ensure_other_admin(db: Session) -> None:
    admins = int(db.scalar(select(func.count()).select_from(User).where(User.role == UserRole.admin)) or 0)
    if admins <= 1:
        raise HTTPException(status_code=400, detail="cannot remove last admin")


def _apply_changes(db: Session, target: User, changes: dict[str, Any], *, actor: User) -> list[str]:
    """Apply the present fields of a profile/user update to ``target``.

    Returns the names of the changed fields (for the audit trail).
    """
    for field in _NON_NULLABLE:
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=400, detail=f"{field} cannot be null")

    if "role" in changes and not is_admin(actor):
        raise HTTPException(status_code=403, detail="not authorized to change role")

    if "username" in changes:
        taken = db.scalar(select(User.id).where(User.username == changes["username"], User.id != target.id))
        if taken is not None:
            raise HTTPException(status_code=409, detail="username already taken")
        target.username = changes["username"]

    if "email" in changes:
        email = str(changes["email"]).strip().lower()
        taken = db.scalar(select(User.id).where(User.email == email, User.id != target.id))
        if taken is not None:
            raise HTTPException(status_code=409, detail="email already in use")
        target.email = email

    if "password" in changes:
        # Changing your own password needs the current one; admins resetting someone else's do not.
        if actor.id == target.id:
            current = changes.get("current_password")
            if not current or not verify_password(current, target.password_hash):
                raise HTTPException(status_code=401, detail="invalid credentials")
        problem = password_problem(changes["password"])
        if problem:
            raise HTTPException(status_code=400, detail=problem)
        target.password_hash = hash_password(changes["password"])

    if "role" in changes:
        next_role = UserRole(changes["role"])
        if target.role == UserRole.admin and next_role != UserRole.admin:
            _ensure_other_admin(db)
        target.role = next_role

    return sorted(f for f in changes if f != "current_password")


def _commit_user(db: Session, user: User) -> None:
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail="username or email already in use") from e
    db.refresh(user)


def _delete_account(db: Session, user: User) -> None:
    """Remove a user with their results. Authored quizzes and audit rows are kept, unattributed."""
    if user.role == UserRole.admin:
        _ensure_other_admin(db)

    with storage_guard(db, "deleting user"):
        own_results = select(Result.id).where(Result.user_id == user.id)
        db.execute(delete(ResultAnswer).where(ResultAnswer.result_id.in_(own_results)))
        db.execute(delete(Result).where(Result.user_id == user.id))
        db.execute(update(Quiz).where(Quiz.created_by == user.id).values(created_by=None))
        db.execute(
            update(SecurityAuditEvent).where(SecurityAuditEvent.actor_user_id == user.id).values(actor_user_id=None)
        )
        db.execute(delete(User).where(User.id == user.id))


@router.get("/profile/me", response_model=UserResponse)
def get_my_profile(user: User = Depends(get_current_user)):
    return {"user": user_public(user)}


@router.put("/profile/me", response_model=UserMutationResponse)
def update_my_profile(
    request: Request,
    body: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="user_update_profile", limit=20, window_seconds=60),
):
    fields = _apply_changes(db, user, body.model_dump(exclude_unset=True), actor=user)
    _commit_user(db, user)
    audit_log(
        db=db,
        request=request,
        event_type="user_update_profile",
        actor_user_id=user.id,
        resource_type="user",
        resource_id=user.id,
        meta={"fields": fields},
    )
    db.commit()
    return {"message": "Profile updated successfully", "user": user_public(user)}


@router.delete("/profile/me", response_model=MessageResponse)
def delete_my_account(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="user_delete_account", limit=5, window_seconds=60),
):
    uid = user.id
    _delete_account(db, user)
    audit_log(db=db, request=request, event_type="user_delete_account", resource_type="user", resource_id=uid)
    db.commit()
    return {"message": "Account deleted successfully"}


@router.get("", response_model=UserListResponse)
def list_users(db: Session = Depends(get_db), current: User = Depends(require_admin)):
    users = list(db.scalars(select(User).order_by(User.created_at.desc())))
    return {"count": len(users), "users": [user_public(u) for u in users]}


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    uid = parse_uuid(user_id, field="user id")
    if uid != current.id and not is_admin(current):
        raise HTTPException(status_code=403, detail="access denied")
    return {"user": user_public(_get_user(db, uid))}


@router.put("/{user_id}", response_model=UserMutationResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserUpdateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="update_user", limit=60, window_seconds=60),
):
    uid = parse_uuid(user_id, field="user id")
    if uid != current.id and not is_admin(current):
        raise HTTPException(status_code=403, detail="not authorized to update this user")

    target = current if uid == current.id else _get_user(db, uid)
    fields = _apply_changes(db, target, body.model_dump(exclude_unset=True), actor=current)
    _commit_user(db, target)
    audit_log(
        db=db,
        request=request,
        event_type="admin_update_user" if target.id != current.id else "user_update_profile",
        actor_user_id=current.id,
        resource_type="user",
        resource_id=target.id,
        meta={"fields": fields},
    )
    db.commit()
    return {"message": "User updated successfully", "user": user_public(target)}


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_admin),
    _: object = rate_limit(key_prefix="admin_delete_user", limit=30, window_seconds=60),
):
    uid = parse_uuid(user_id, field="user id")
    actor_id = current.id
    target = _get_user(db, uid)
    _delete_account(db, target)
    audit_log(
        db=db,
        request=request,
        event_type="admin_delete_user",
        # The admin may have just deleted themselves.
        actor_user_id=actor_id if uid != actor_id else None,
        resource_type="user",
        resource_id=uid,
    )
    db.commit()
    return {"message": "User deleted successfully"}
