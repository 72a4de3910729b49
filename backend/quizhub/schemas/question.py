from __future__ import annotations

from datetime import datetime

from pydantic import Field

from quizhub.schemas.base import ApiModel


class QuestionCreateRequest(ApiModel):
    quiz_id: str
    question_text: str = Field(min_length=1)
    options: list[str] = Field(min_length=2)
    correct_answer: str
    marks: int = Field(default=1, ge=1)


class QuestionUpdateRequest(ApiModel):
    question_text: str | None = None
    options: list[str] | None = Field(default=None, min_length=2)
    correct_answer: str | None = None
    marks: int | None = Field(default=None, ge=1)


class QuestionPublic(ApiModel):
    id: str
    quiz_id: str
    question_text: str
    options: list[str]
    # Only filled in for admins.
    correct_answer: str | None = None
    marks: int
    created_at: datetime
    updated_at: datetime


class QuestionMutationResponse(ApiModel):
    message: str
    question: QuestionPublic
