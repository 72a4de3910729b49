from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from quizhub.core.errors import InvalidInput, NotFound
from quizhub.db.session import storage_guard
from quizhub.models.quiz import Question, Quiz, QuizStatus

logger = logging.getLogger("quizhub.catalog")

_QUIZ_FIELDS = ("title", "description", "category", "time_limit", "status")
_QUESTION_FIELDS = ("question_text", "options", "correct_answer", "marks")


def _check_time_limit(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInput("time limit must be a positive number (in minutes)")
    return value


def _check_question(*, options, correct_answer, marks) -> None:
    if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
        raise InvalidInput("options must be a list of strings")
    if len(options) < 2:
        raise InvalidInput("at least 2 options are required")
    if correct_answer not in options:
        raise InvalidInput("correct answer must be one of the options")
    if isinstance(marks, bool) or not isinstance(marks, int) or marks < 1:
        raise InvalidInput("marks must be a positive integer")


class QuizCatalog:
    """Quiz directory and question bank over one SQLAlchemy session.

    ``get_quiz`` and ``list_questions`` are what the scoring engine reads;
    everything else backs the admin CRUD endpoints.
    """

    def __init__(self, db: Session):
        self.db = db

    # -- reads -------------------------------------------------------------

    def get_quiz(self, quiz_id: uuid.UUID) -> Quiz | None:
        with storage_guard(self.db, "fetching quiz"):
            return self.db.scalar(select(Quiz).where(Quiz.id == quiz_id))

    def require_quiz(self, quiz_id: uuid.UUID) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("quiz not found")
        return quiz

    def list_quizzes(self, *, published_only: bool) -> list[Quiz]:
        stmt = select(Quiz).order_by(Quiz.created_at.desc())
        if published_only:
            stmt = stmt.where(Quiz.status == QuizStatus.published)
        with storage_guard(self.db, "listing quizzes"):
            return list(self.db.scalars(stmt))

    def list_questions(self, quiz_id: uuid.UUID) -> list[Question]:
        with storage_guard(self.db, "fetching questions"):
            return list(
                self.db.scalars(
                    select(Question).where(Question.quiz_id == quiz_id).order_by(Question.created_at, Question.id)
                )
            )

    def get_question(self, question_id: uuid.UUID) -> Question:
        with storage_guard(self.db, "fetching question"):
            q = self.db.scalar(select(Question).where(Question.id == question_id))
        if q is None:
            raise NotFound("question not found")
        return q

    def questions_by_ids(self, question_ids: list[uuid.UUID]) -> dict[str, Question]:
        if not question_ids:
            return {}
        with storage_guard(self.db, "fetching questions"):
            rows = self.db.scalars(select(Question).where(Question.id.in_(question_ids)))
            return {str(q.id): q for q in rows}

    # -- quiz mutations ----------------------------------------------------

    def create_quiz(self, *, created_by: uuid.UUID, data: dict[str, Any]) -> Quiz:
        quiz = Quiz(
            title=str(data["title"]).strip(),
            description=data["description"],
            category=str(data["category"]).strip(),
            time_limit=_check_time_limit(data["time_limit"]),
            status=QuizStatus(data.get("status") or QuizStatus.draft),
            created_by=created_by,
        )
        with storage_guard(self.db, "creating quiz"):
            self.db.add(quiz)
            self.db.commit()
            self.db.refresh(quiz)
        logger.info("quiz %s created by %s", quiz.id, created_by)
        return quiz

    def update_quiz(self, quiz_id: uuid.UUID, changes: dict[str, Any]) -> Quiz:
        """Apply only the attributes present in ``changes``.

        Presence, not truthiness, decides what is written; ``None`` is
        rejected since every quiz attribute is required.
        """
        quiz = self.require_quiz(quiz_id)
        for field, value in changes.items():
            if field not in _QUIZ_FIELDS:
                continue
            if value is None:
                raise InvalidInput(f"{field} cannot be null")
            if field in ("title", "category"):
                value = str(value).strip()
                if not value:
                    raise InvalidInput(f"{field} cannot be empty")
            elif field == "time_limit":
                value = _check_time_limit(value)
            elif field == "status":
                value = QuizStatus(value)
            setattr(quiz, field, value)

        with storage_guard(self.db, "updating quiz"):
            self.db.add(quiz)
            self.db.commit()
            self.db.refresh(quiz)
        return quiz

    def delete_quiz(self, quiz_id: uuid.UUID) -> int:
        """Delete a quiz and its questions. Results are left untouched."""
        quiz = self.require_quiz(quiz_id)
        with storage_guard(self.db, "deleting quiz"):
            deleted_questions = self.db.execute(delete(Question).where(Question.quiz_id == quiz.id)).rowcount
            self.db.execute(delete(Quiz).where(Quiz.id == quiz.id))
            self.db.commit()
        return int(deleted_questions or 0)

    # -- question mutations ------------------------------------------------

    def create_question(self, data: dict[str, Any]) -> Question:
        quiz = self.require_quiz(data["quiz_id"])
        marks = data.get("marks", 1)
        _check_question(options=data["options"], correct_answer=data["correct_answer"], marks=marks)

        question = Question(
            quiz_id=quiz.id,
            question_text=str(data["question_text"]).strip(),
            options=list(data["options"]),
            correct_answer=data["correct_answer"],
            marks=marks,
        )
        with storage_guard(self.db, "creating question"):
            self.db.add(question)
            self.db.commit()
            self.db.refresh(question)
        return question

    def update_question(self, question_id: uuid.UUID, changes: dict[str, Any]) -> Question:
        q = self.get_question(question_id)

        final = {f: getattr(q, f) for f in _QUESTION_FIELDS}
        for field, value in changes.items():
            if field not in _QUESTION_FIELDS:
                continue
            if value is None:
                raise InvalidInput(f"{field} cannot be null")
            final[field] = value

        # Checked against the post-update state, so changing options alone
        # can invalidate the stored correct answer.
        _check_question(options=final["options"], correct_answer=final["correct_answer"], marks=final["marks"])
        if not str(final["question_text"]).strip():
            raise InvalidInput("question text cannot be empty")

        q.question_text = str(final["question_text"]).strip()
        q.options = list(final["options"])
        q.correct_answer = final["correct_answer"]
        q.marks = final["marks"]

        with storage_guard(self.db, "updating question"):
            self.db.add(q)
            self.db.commit()
            self.db.refresh(q)
        return q

    def delete_question(self, question_id: uuid.UUID) -> uuid.UUID:
        """Delete one question and return the id of the quiz it belonged to."""
        q = self.get_question(question_id)
        quiz_id = q.quiz_id
        with storage_guard(self.db, "deleting question"):
            self.db.execute(delete(Question).where(Question.id == q.id))
            self.db.commit()
        return quiz_id
