from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from quizhub.core.errors import parse_uuid
from quizhub.core.rate_limit import rate_limit
from quizhub.core.security import get_current_user, is_admin, require_admin
from quizhub.core.security_audit_log import audit_log
from quizhub.db.session import get_db
from quizhub.models.quiz import Question
from quizhub.models.user import User
from quizhub.schemas.base import MessageResponse
from quizhub.schemas.question import (
    QuestionCreateRequest,
    QuestionMutationResponse,
    QuestionPublic,
    QuestionUpdateRequest,
)
from quizhub.services.catalog import QuizCatalog

router = APIRouter(prefix="/questions", tags=["questions"])


def question_public(q: Question, *, with_answer: bool) -> dict[str, object]:
    return {
        "id": str(q.id),
        "quiz_id": str(q.quiz_id),
        "question_text": q.question_text,
        "options": list(q.options or []),
        "correct_answer": q.correct_answer if with_answer else None,
        "marks": int(q.marks),
        "created_at": q.created_at,
        "updated_at": q.updated_at,
    }


@router.post("", response_model=QuestionMutationResponse, status_code=201)
def create_question(
    request: Request,
    body: QuestionCreateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_admin),
    _: object = rate_limit(key_prefix="admin_create_question", limit=60, window_seconds=60),
):
    data = body.model_dump()
    data["quiz_id"] = parse_uuid(body.quiz_id, field="quiz id")
    q = QuizCatalog(db).create_question(data)
    audit_log(
        db=db,
        request=request,
        event_type="admin_create_question",
        actor_user_id=current.id,
        resource_type="question",
        resource_id=q.id,
        meta={"quiz_id": str(q.quiz_id), "marks": q.marks},
    )
    db.commit()
    return {"message": "Question created successfully", "question": question_public(q, with_answer=True)}


@router.get("/quiz/{quiz_id}", response_model=list[QuestionPublic], response_model_exclude_none=True)
def list_questions_for_quiz(quiz_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    questions = QuizCatalog(db).list_questions(parse_uuid(quiz_id, field="quiz id"))
    admin = is_admin(user)
    return [question_public(q, with_answer=admin) for q in questions]


@router.get("/{question_id}", response_model=QuestionPublic, response_model_exclude_none=True)
def get_question(question_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    q = QuizCatalog(db).get_question(parse_uuid(question_id, field="question id"))
    return question_public(q, with_answer=is_admin(user))


@router.put("/{question_id}", response_model=QuestionMutationResponse)
def update_question(
    request: Request,
    question_id: str,
    body: QuestionUpdateRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_admin),
    _: object = rate_limit(key_prefix="admin_update_question", limit=120, window_seconds=60),
):
    changes = body.model_dump(exclude_unset=True)
    q = QuizCatalog(db).update_question(parse_uuid(question_id, field="question id"), changes)
    audit_log(
        db=db,
        request=request,
        event_type="admin_update_question",
        actor_user_id=current.id,
        resource_type="question",
        resource_id=q.id,
        meta={"quiz_id": str(q.quiz_id), "fields": sorted(changes)},
    )
    db.commit()
    return {"message": "Question updated successfully", "question": question_public(q, with_answer=True)}


@router.delete("/{question_id}", response_model=MessageResponse)
def delete_question(
    request: Request,
    question_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_admin),
    _: object = rate_limit(key_prefix="admin_delete_question", limit=60, window_seconds=60),
):
    qid = parse_uuid(question_id, field="question id")
    quiz_id = QuizCatalog(db).delete_question(qid)
    audit_log(
        db=db,
        request=request,
        event_type="admin_delete_question",
        actor_user_id=current.id,
        resource_type="question",
        resource_id=qid,
        meta={"quiz_id": str(quiz_id)},
    )
    db.commit()
    return {"message": "Question deleted successfully"}
