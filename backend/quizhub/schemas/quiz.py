from __future__ import annotations

from datetime import datetime

from pydantic import Field

from quizhub.models.quiz import QuizStatus
from quizhub.schemas.base import ApiModel


class QuizCreateRequest(ApiModel):
    title: str = Field(min_length=1, max_length=300)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1, max_length=200)
    time_limit: int = Field(gt=0)  # minutes
    status: QuizStatus = QuizStatus.draft


class QuizUpdateRequest(ApiModel):
    # Absent fields are left alone; see QuizCatalog.update_quiz.
    title: str | None = Field(default=None, max_length=300)
    description: str | None = None
    category: str | None = Field(default=None, max_length=200)
    time_limit: int | None = Field(default=None, gt=0)
    status: QuizStatus | None = None


class QuizPublic(ApiModel):
    id: str
    title: str
    description: str
    category: str
    time_limit: int
    status: QuizStatus
    created_by: str | None
    created_at: datetime
    updated_at: datetime


class QuizListResponse(ApiModel):
    count: int
    quizzes: list[QuizPublic]


class QuizResponse(ApiModel):
    quiz: QuizPublic


class QuizMutationResponse(ApiModel):
    message: str
    quiz: QuizPublic
