"""quiz, question, result and document tables

Revision ID: 20261019_0001
Revises: 
Create Date: 2026-10-19 10:30:00
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("content_type", sa.String(length=255), nullable=False),
        sa.Column("size_bytes", sa.Integer(), server_default="0", nullable=False),
        sa.Column("storage_url", sa.String(length=1024), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_documents_owner_id", "documents", ["owner_id"])

    op.create_table(
        "quizzes",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("document_id", sa.Integer(), sa.ForeignKey("documents.id"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("question_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_public", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("is_pinned", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_quizzes_owner_id", "quizzes", ["owner_id"])
    op.create_index("ix_quizzes_document_id", "quizzes", ["document_id"])

    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quiz_id", sa.String(length=64), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("question_key", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("options_json", sa.JSON(), nullable=False),
        sa.Column("correct_answer_index", sa.Integer(), nullable=False),
        sa.UniqueConstraint("quiz_id", "question_key", name="uq_quiz_questions_quiz_key"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_quiz_questions_quiz_id", "quiz_questions", ["quiz_id"])

    op.create_table(
        "quiz_results",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("quiz_id", sa.String(length=64), sa.ForeignKey("quizzes.id"), nullable=True),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("quiz_title", sa.String(length=255), nullable=True),
        sa.Column("answers_json", sa.JSON(), nullable=False),
        sa.Column("correct", sa.Integer(), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("questions_snapshot_json", sa.JSON(), nullable=False),
        sa.Column(
            "submitted_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_quiz_results_quiz_id", "quiz_results", ["quiz_id"])
    op.create_index("ix_quiz_results_owner_id", "quiz_results", ["owner_id"])
    op.create_index("ix_quiz_results_submitted_at", "quiz_results", ["submitted_at"])


def downgrade() -> None:
    op.drop_table("quiz_results")

    op.drop_table("quiz_questions")

    op.drop_table("quizzes")

    op.drop_table("documents")
