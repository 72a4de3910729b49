"""create quizzes and questions

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


quiz_status_enum = sa.Enum("draft", "published", "archived", name="quizstatus")


def upgrade() -> None:
    op.create_table(
        "quizzes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=200), nullable=False),
        sa.Column("time_limit", sa.Integer(), nullable=False),
        sa.Column("status", quiz_status_enum, nullable=False, server_default="draft"),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("time_limit > 0", name="ck_quizzes_time_limit_positive"),
    )
    op.create_index("ix_quizzes_title", "quizzes", ["title"], unique=False)
    op.create_index("ix_quizzes_category", "quizzes", ["category"], unique=False)
    op.create_index("ix_quizzes_status", "quizzes", ["status"], unique=False)
    op.create_index("ix_quizzes_created_by", "quizzes", ["created_by"], unique=False)

    op.create_table(
        "questions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_answer", sa.Text(), nullable=False),
        sa.Column("marks", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("marks >= 1", name="ck_questions_marks_positive"),
    )
    op.create_index("ix_questions_quiz_id", "questions", ["quiz_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_questions_quiz_id", table_name="questions")
    op.drop_table("questions")
    op.drop_index("ix_quizzes_created_by", table_name="quizzes")
    op.drop_index("ix_quizzes_status", table_name="quizzes")
    op.drop_index("ix_quizzes_category", table_name="quizzes")
    op.drop_index("ix_quizzes_title", table_name="quizzes")
    op.drop_table("quizzes")
    quiz_status_enum.drop(op.get_bind(), checkfirst=True)
