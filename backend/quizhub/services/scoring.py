"""Submission scoring.

``evaluate`` is the only place answers are judged. It reads the quiz and its
question bank through a catalog object (anything with ``get_quiz`` and
``list_questions``) and never writes.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from quizhub.core.errors import InvalidInput, NotFound

logger = logging.getLogger("quizhub.scoring")


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: str
    selected_answer: str


@dataclass(frozen=True)
class EvaluatedAnswer:
    question_id: str
    selected_answer: str
    is_correct: bool
    marks_obtained: int


@dataclass(frozen=True)
class EvaluationOutcome:
    quiz_id: uuid.UUID
    answers: tuple[EvaluatedAnswer, ...]
    score: int
    total_marks: int


def question_key(question_id) -> str:
    """Canonical lookup key: UUIDs in their lowercase hyphenated form, anything else verbatim."""
    raw = str(question_id)
    try:
        return str(uuid.UUID(raw))
    except ValueError:
        return raw


def _validate(answers: Sequence[SubmittedAnswer]) -> None:
    # Shape only. Blank, unknown or repeated question ids are scored, not rejected.
    if not answers:
        raise InvalidInput("answers must be a non-empty list")
    for i, a in enumerate(answers):
        if not isinstance(a.question_id, str):
            raise InvalidInput(f"answers[{i}].questionId must be a string")
        if not isinstance(a.selected_answer, str):
            raise InvalidInput(f"answers[{i}].selectedAnswer must be a string")


def evaluate(quiz_id: uuid.UUID, answers: Sequence[SubmittedAnswer], *, catalog) -> EvaluationOutcome:
    _validate(answers)

    quiz = catalog.get_quiz(quiz_id)
    if quiz is None:
        raise NotFound("quiz not found")

    questions = catalog.list_questions(quiz_id)
    by_id = {}
    total_marks = 0
    for q in questions:
        by_id[question_key(q.id)] = q
        total_marks += int(q.marks)

    score = 0
    evaluated: list[EvaluatedAnswer] = []
    unresolved = 0
    repeated = 0
    seen: set[str] = set()
    for a in answers:
        key = question_key(a.question_id)
        q = by_id.get(key)
        if q is None:
            unresolved += 1
            evaluated.append(EvaluatedAnswer(a.question_id, a.selected_answer, False, 0))
            continue
        if key in seen:
            # Only the first answer to a question counts; repeats are kept but score nothing.
            repeated += 1
            evaluated.append(EvaluatedAnswer(a.question_id, a.selected_answer, False, 0))
            continue
        seen.add(key)

        # Exact match: no trimming, no case folding.
        ok = a.selected_answer == q.correct_answer
        marks = int(q.marks) if ok else 0
        score += marks
        evaluated.append(EvaluatedAnswer(a.question_id, a.selected_answer, ok, marks))

    if unresolved:
        logger.info("quiz %s: %d answer(s) reference unknown questions", quiz_id, unresolved)
    if repeated:
        logger.info("quiz %s: %d repeated answer(s) ignored for scoring", quiz_id, repeated)

    return EvaluationOutcome(quiz_id=quiz_id, answers=tuple(evaluated), score=score, total_marks=total_marks)
