import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from quizhub.db.base import Base, utcnow


class Result(Base):
    __tablename__ = "results"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    # No FK: results are kept when the quiz is deleted.
    quiz_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)

    score: Mapped[int] = mapped_column(Integer, default=0)
    total_marks: Mapped[int] = mapped_column(Integer, default=0)

    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    # seconds
    time_taken: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ResultAnswer(Base):
    __tablename__ = "result_answers"
    __table_args__ = (UniqueConstraint("result_id", "position", name="uq_result_answers_position"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    result_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("results.id"), index=True)
    position: Mapped[int] = mapped_column(Integer)

    # Any submitted string, unbounded: may reference a deleted or unknown question.
    question_id: Mapped[str] = mapped_column(Text)
    selected_answer: Mapped[str] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    marks_obtained: Mapped[int] = mapped_column(Integer, default=0)
