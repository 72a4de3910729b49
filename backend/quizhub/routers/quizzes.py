from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from quizhub.core.errors import parse_uuid
from quizhub.core.rate_limit import rate_limit
from quizhub.core.security import get_current_user, is_admin, require_admin
from quizhub.core.security_audit_log import audit_log
from quizhub.db.session import get_db
from quizhub.models.quiz import Quiz
from quizhub.models.user import User
from quizhub.schemas.base import MessageResponse
from quizhub.schemas.quiz import (
    QuizCreateRequest,
    QuizListResponse,
    QuizMutationResponse,
    QuizResponse,
    QuizUpdateRequest,
)
from quizhub.services.catalog import QuizCatalog

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


def quiz_public(q: Quiz) -> dict[str, object]:
    return {
        "id": str(q.id),
        "title": q.title,
        "description": q.description,
        "category": q.category,
        "time_limit": int(q.time_limit),
        "status": q.status,
        "created_by": str(q.created_by) if q.created_by else None,
        "created_at": q.created_at,
        "updated_at": q.updated_at,
    }


@router.get("", response_model=QuizListResponse)
def list_quizzes(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    # Regular users only ever see published quizzes.
    quizzes = QuizCatalog(db).list_quizzes(published_only=not is_admin(user))
    return {"count": len(quizzes), "quizzes": [quiz_public(q) for q in quizzes]}


@router.get("/{quiz_id}", response_model=QuizResponse)
def get_quiz(quiz_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    quiz = QuizCatalog(db).require_quiz(parse_uuid(quiz_id, field="quiz id"))
    return {"quiz": quiz_public(quiz)}


@router.post("", response_model=QuizMutationResponse, status_code=201)
def create_quiz(
    request: Request,
    body: QuizCreateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_admin),
    _: object = rate_limit(key_prefix="admin_create_quiz", limit=30, window_seconds=60),
):
    quiz = QuizCatalog(db).create_quiz(created_by=current.id, data=body.model_dump())
    audit_log(
        db=db,
        request=request,
        event_type="admin_create_quiz",
        actor_user_id=current.id,
        resource_type="quiz",
        resource_id=quiz.id,
        meta={"title": quiz.title, "status": quiz.status.value},
    )
    db.commit()
    return {"message": "Quiz created successfully", "quiz": quiz_public(quiz)}


@router.put("/{quiz_id}", response_model=QuizMutationResponse)
def update_quiz(
    request: Request,
    quiz_id: str,
    body: QuizUpdateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_admin),
    _: object = rate_limit(key_prefix="admin_update_quiz", limit=60, window_seconds=60),
):
    changes = body.model_dump(exclude_unset=True)
    quiz = QuizCatalog(db).update_quiz(parse_uuid(quiz_id, field="quiz id"), changes)
    audit_log(
        db=db,
        request=request,
        event_type="admin_update_quiz",
        actor_user_id=current.id,
        resource_type="quiz",
        resource_id=quiz.id,
        meta={"fields": sorted(changes)},
    )
    db.commit()
    return {"message": "Quiz updated successfully", "quiz": quiz_public(quiz)}


@router.delete("/{quiz_id}", response_model=MessageResponse)
def delete_quiz(
    request: Request,
    quiz_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_admin),
    _: object = rate_limit(key_prefix="admin_delete_quiz", limit=30, window_seconds=60),
):
    qid = parse_uuid(quiz_id, field="quiz id")
    deleted_questions = QuizCatalog(db).delete_quiz(qid)
    audit_log(
        db=db,
        request=request,
        event_type="admin_delete_quiz",
        actor_user_id=current.id,
        resource_type="quiz",
        resource_id=qid,
        meta={"deleted_questions": deleted_questions},
    )
    db.commit()
    return {"message": "Quiz deleted successfully"}
