"""quiz author nullable

Revision ID: 0005
Revises: 0004
Create Date: 2026-10-18

"""

from alembic import op
from sqlalchemy.dialects import postgresql


revision = "0005"
down_revision = "0004"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Quizzes outlive their author's account.
    op.alter_column("quizzes", "created_by", existing_type=postgresql.UUID(as_uuid=True), nullable=True)


def downgrade() -> None:
    op.alter_column("quizzes", "created_by", existing_type=postgresql.UUID(as_uuid=True), nullable=False)
