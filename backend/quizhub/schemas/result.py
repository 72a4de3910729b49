from __future__ import annotations

from datetime import datetime

from pydantic import Field

from quizhub.schemas.base import ApiModel


class SubmitAnswer(ApiModel):
    question_id: str
    selected_answer: str


class SubmitRequest(ApiModel):
    quiz_id: str = Field(min_length=1)
    answers: list[SubmitAnswer]
    time_taken: int = Field(default=0, ge=0)  # seconds


class EvaluatedAnswerPublic(ApiModel):
    question_id: str
    selected_answer: str
    is_correct: bool
    marks_obtained: int


class ResultPublic(ApiModel):
    id: str
    user_id: str
    quiz_id: str
    answers: list[EvaluatedAnswerPublic]
    score: int
    total_marks: int
    completed_at: datetime
    time_taken: int
    created_at: datetime
    updated_at: datetime


class SubmitResponse(ApiModel):
    message: str
    result: ResultPublic


class QuizRef(ApiModel):
    id: str
    title: str | None


class ResultSummary(ResultPublic):
    quiz: QuizRef


class ReviewedQuestion(ApiModel):
    id: str
    question_text: str
    options: list[str]
    correct_answer: str


class ReviewedAnswerPublic(EvaluatedAnswerPublic):
    question: ReviewedQuestion | None


class ResultDetailPublic(ApiModel):
    id: str
    user_id: str
    quiz_id: str
    quiz: QuizRef
    answers: list[ReviewedAnswerPublic]
    score: int
    total_marks: int
    completed_at: datetime
    time_taken: int
    created_at: datetime
    updated_at: datetime
