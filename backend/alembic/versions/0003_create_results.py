"""create results

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # quiz_id has no FK so results outlive their quiz.
    op.create_table(
        "results",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_marks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("time_taken", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_results_user_id", "results", ["user_id"], unique=False)
    op.create_index("ix_results_quiz_id", "results", ["quiz_id"], unique=False)
    op.create_index("ix_results_created_at", "results", ["created_at"], unique=False)

    op.create_table(
        "result_answers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("result_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("results.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("question_id", sa.Text(), nullable=False),
        sa.Column("selected_answer", sa.Text(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("marks_obtained", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("result_id", "position", name="uq_result_answers_position"),
    )
    op.create_index("ix_result_answers_result_id", "result_answers", ["result_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_result_answers_result_id", table_name="result_answers")
    op.drop_table("result_answers")
    op.drop_index("ix_results_created_at", table_name="results")
    op.drop_index("ix_results_quiz_id", table_name="results")
    op.drop_index("ix_results_user_id", table_name="results")
    op.drop_table("results")
