from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from quizhub.core.errors import NotFound
from quizhub.db.base import utcnow
from quizhub.db.session import storage_guard
from quizhub.models.quiz import Question, Quiz
from quizhub.models.result import Result, ResultAnswer
from quizhub.services.catalog import QuizCatalog
from quizhub.services.scoring import EvaluationOutcome, SubmittedAnswer, evaluate

logger = logging.getLogger("quizhub.results")


@dataclass
class StoredResult:
    result: Result
    answers: list[ResultAnswer]
    quiz_title: str | None = None


@dataclass
class ReviewedAnswer:
    answer: ResultAnswer
    question: Question | None


@dataclass
class ResultDetail:
    result: Result
    quiz_title: str | None
    answers: list[ReviewedAnswer]


def _as_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class ResultService:
    """Create / read / delete for scored submissions. Results are never updated."""

    def __init__(self, db: Session):
        self.db = db
        self.catalog = QuizCatalog(db)

    def submit(
        self,
        *,
        user_id: uuid.UUID,
        quiz_id: uuid.UUID,
        answers: Sequence[SubmittedAnswer],
        time_taken: int = 0,
    ) -> StoredResult:
        outcome = evaluate(quiz_id, answers, catalog=self.catalog)
        stored = self.create(user_id=user_id, outcome=outcome, time_taken=time_taken)
        logger.info(
            "result %s: user=%s quiz=%s score=%d/%d",
            stored.result.id,
            user_id,
            quiz_id,
            outcome.score,
            outcome.total_marks,
        )
        return stored

    def create(self, *, user_id: uuid.UUID, outcome: EvaluationOutcome, time_taken: int = 0) -> StoredResult:
        now = utcnow()
        result = Result(
            id=uuid.uuid4(),
            user_id=user_id,
            quiz_id=outcome.quiz_id,
            score=outcome.score,
            total_marks=outcome.total_marks,
            completed_at=now,
            time_taken=max(0, int(time_taken or 0)),
            created_at=now,
            updated_at=now,
        )
        rows = [
            ResultAnswer(
                result_id=result.id,
                position=i,
                question_id=a.question_id,
                selected_answer=a.selected_answer,
                is_correct=a.is_correct,
                marks_obtained=a.marks_obtained,
            )
            for i, a in enumerate(outcome.answers)
        ]

        # One transaction: either the result and all its answers land, or nothing does.
        with storage_guard(self.db, "saving result"):
            self.db.add(result)
            self.db.flush()
            self.db.add_all(rows)
            self.db.commit()
            self.db.refresh(result)
            for r in rows:
                self.db.refresh(r)
        return StoredResult(result=result, answers=rows)

    def _answers_for(self, result_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[ResultAnswer]]:
        if not result_ids:
            return {}
        rows = self.db.scalars(
            select(ResultAnswer)
            .where(ResultAnswer.result_id.in_(result_ids))
            .order_by(ResultAnswer.result_id, ResultAnswer.position)
        )
        out: dict[uuid.UUID, list[ResultAnswer]] = {rid: [] for rid in result_ids}
        for a in rows:
            out.setdefault(a.result_id, []).append(a)
        return out

    def _summaries(self, stmt) -> list[StoredResult]:
        with storage_guard(self.db, "fetching results"):
            rows = self.db.execute(stmt).all()
            answers = self._answers_for([r.id for r, _ in rows])
        return [StoredResult(result=r, answers=answers.get(r.id, []), quiz_title=title) for r, title in rows]

    def _base_listing(self):
        return (
            select(Result, Quiz.title)
            .join(Quiz, Quiz.id == Result.quiz_id, isouter=True)
            .order_by(Result.created_at.desc(), Result.completed_at.desc(), Result.id.desc())
        )

    def get_by_user(self, user_id: uuid.UUID) -> list[StoredResult]:
        """Every result of ``user_id``, newest first. Re-queries on each call."""
        return self._summaries(self._base_listing().where(Result.user_id == user_id))

    def list_all(self) -> list[StoredResult]:
        return self._summaries(self._base_listing())

    def get(self, result_id: uuid.UUID) -> Result:
        with storage_guard(self.db, "fetching result"):
            result = self.db.scalar(select(Result).where(Result.id == result_id))
        if result is None:
            raise NotFound("result not found")
        return result

    def get_by_id(self, result_id: uuid.UUID) -> ResultDetail:
        """Result plus quiz title and, per answer, the question under review."""
        result = self.get(result_id)
        with storage_guard(self.db, "fetching result"):
            quiz_title = self.db.scalar(select(Quiz.title).where(Quiz.id == result.quiz_id))
            answers = self._answers_for([result.id]).get(result.id, [])

        qids = [u for u in (_as_uuid(a.question_id) for a in answers) if u is not None]
        questions = self.catalog.questions_by_ids(qids)

        reviewed = []
        for a in answers:
            u = _as_uuid(a.question_id)
            reviewed.append(ReviewedAnswer(answer=a, question=questions.get(str(u)) if u else None))
        return ResultDetail(result=result, quiz_title=quiz_title, answers=reviewed)

    def delete(self, result_id: uuid.UUID) -> None:
        result = self.get(result_id)
        with storage_guard(self.db, "deleting result"):
            self.db.execute(delete(ResultAnswer).where(ResultAnswer.result_id == result.id))
            self.db.execute(delete(Result).where(Result.id == result.id))
            self.db.commit()
        logger.info("result %s deleted", result_id)
