from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from quizhub.core.errors import parse_uuid
from quizhub.core.rate_limit import rate_limit
from quizhub.core.security import get_current_user, is_admin, require_admin
from quizhub.core.security_audit_log import audit_log
from quizhub.db.session import get_db
from quizhub.models.result import Result, ResultAnswer
from quizhub.models.user import User
from quizhub.schemas.base import MessageResponse
from quizhub.schemas.result import ResultDetailPublic, ResultSummary, SubmitRequest, SubmitResponse
from quizhub.services.results import ResultDetail, ResultService, StoredResult
from quizhub.services.scoring import SubmittedAnswer

router = APIRouter(prefix="/results", tags=["results"])


def _answer_public(a: ResultAnswer) -> dict[str, object]:
    return {
        "question_id": a.question_id,
        "selected_answer": a.selected_answer,
        "is_correct": bool(a.is_correct),
        "marks_obtained": int(a.marks_obtained),
    }


def _result_fields(r: Result) -> dict[str, object]:
    return {
        "id": str(r.id),
        "user_id": str(r.user_id),
        "quiz_id": str(r.quiz_id),
        "score": int(r.score),
        "total_marks": int(r.total_marks),
        "completed_at": r.completed_at,
        "time_taken": int(r.time_taken),
        "created_at": r.created_at,
        "updated_at": r.updated_at,
    }


def result_public(stored: StoredResult) -> dict[str, object]:
    return {**_result_fields(stored.result), "answers": [_answer_public(a) for a in stored.answers]}


def result_summary(stored: StoredResult) -> dict[str, object]:
    out = result_public(stored)
    out["quiz"] = {"id": str(stored.result.quiz_id), "title": stored.quiz_title}
    return out


def result_detail(detail: ResultDetail) -> dict[str, object]:
    answers = []
    for item in detail.answers:
        q = item.question
        answers.append(
            {
                **_answer_public(item.answer),
                "question": (
                    {
                        "id": str(q.id),
                        "question_text": q.question_text,
                        "options": list(q.options or []),
                        "correct_answer": q.correct_answer,
                    }
                    if q is not None
                    else None
                ),
            }
        )
    return {
        **_result_fields(detail.result),
        "quiz": {"id": str(detail.result.quiz_id), "title": detail.quiz_title},
        "answers": answers,
    }


@router.post("/submit", response_model=SubmitResponse, status_code=201)
def submit_quiz(
    body: SubmitRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="quiz_submit", limit=20, window_seconds=60),
):
    stored = ResultService(db).submit(
        user_id=user.id,
        quiz_id=parse_uuid(body.quiz_id, field="quizId"),
        answers=[SubmittedAnswer(a.question_id, a.selected_answer) for a in body.answers],
        time_taken=body.time_taken,
    )
    return {"message": "Quiz submitted successfully", "result": result_public(stored)}


@router.get("/my-results", response_model=list[ResultSummary])
def my_results(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return [result_summary(s) for s in ResultService(db).get_by_user(user.id)]


@router.get("/all", response_model=list[ResultSummary])
def all_results(db: Session = Depends(get_db), current: User = Depends(require_admin)):
    return [result_summary(s) for s in ResultService(db).list_all()]


@router.get("/{result_id}", response_model=ResultDetailPublic)
def get_result(result_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    detail = ResultService(db).get_by_id(parse_uuid(result_id, field="result id"))
    if detail.result.user_id != user.id and not is_admin(user):
        raise HTTPException(status_code=403, detail="access denied")
    return result_detail(detail)


@router.delete("/{result_id}", response_model=MessageResponse)
def delete_result(
    request: Request,
    result_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_admin),
):
    rid = parse_uuid(result_id, field="result id")
    ResultService(db).delete(rid)
    audit_log(
        db=db,
        request=request,
        event_type="admin_delete_result",
        actor_user_id=current.id,
        resource_type="result",
        resource_id=rid,
    )
    db.commit()
    return {"message": "Result deleted successfully"}
