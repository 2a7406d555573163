"""E-learning modules, quizzes and certificates.

Adds tenant-scoped tables with UUID PKs, timestamps and RLS policies:
- course_modules (plus lessons.module_id)
- quizzes, quiz_questions, quiz_attempts
- certificates
"""

from typing import List, Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "d5a8b3e6f912"
down_revision: Union[str, None] = "3c1d9e7a5b20"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


TENANT_DEFAULT = sa.text("current_setting('app.tenant_id', true)::uuid")
UUID_DEFAULT = sa.text("uuid_generate_v4()")
NOW = sa.text("now()")
JSONB_EMPTY = sa.text("'{}'::jsonb")
JSONB_EMPTY_LIST = sa.text("'[]'::jsonb")

NEW_TABLES = [
    "course_modules",
    "quizzes",
    "quiz_questions",
    "quiz_attempts",
    "certificates",
]


def _common() -> List[sa.SchemaItem]:
    return [
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("tenant_id", sa.UUID(), nullable=False, server_default=TENANT_DEFAULT, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
    ]


def _enable_rls_with_policy(table: str) -> None:
    op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;")
    op.execute(
        f"""
        CREATE POLICY {table}_tenant_isolation ON {table}
        USING (tenant_id = current_setting('app.tenant_id', true)::uuid)
        WITH CHECK (tenant_id = current_setting('app.tenant_id', true)::uuid);
        """
    )


def upgrade() -> None:
    op.create_table(
        "course_modules",
        *_common(),
        sa.Column("course_id", sa.UUID(), nullable=False, index=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
    )
    op.add_column("lessons", sa.Column("module_id", sa.UUID(), nullable=True))
    op.create_foreign_key(
        "fk_lessons_module_id_course_modules", "lessons", "course_modules", ["module_id"], ["id"], ondelete="SET NULL"
    )

    op.create_table(
        "quizzes",
        *_common(),
        sa.Column("course_id", sa.UUID(), nullable=False, index=True),
        sa.Column("module_id", sa.UUID(), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("passing_score", sa.Integer(), server_default=sa.text("70"), nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["module_id"], ["course_modules.id"], ondelete="SET NULL"),
    )
    op.create_table(
        "quiz_questions",
        *_common(),
        sa.Column("quiz_id", sa.UUID(), nullable=False, index=True),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("options", postgresql.JSONB(), server_default=JSONB_EMPTY_LIST, nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("points", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("order_index", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.ForeignKeyConstraint(["quiz_id"], ["quizzes.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "quiz_attempts",
        *_common(),
        sa.Column("quiz_id", sa.UUID(), nullable=False, index=True),
        sa.Column("user_id", sa.UUID(), nullable=False, index=True),
        sa.Column("answers", postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
        sa.Column("score", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("passed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.ForeignKeyConstraint(["quiz_id"], ["quizzes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "certificates",
        *_common(),
        sa.Column("course_id", sa.UUID(), nullable=False, index=True),
        sa.Column("user_id", sa.UUID(), nullable=False, index=True),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("code", name="uq_certificates_code"),
        sa.UniqueConstraint("course_id", "user_id", name="uq_certificates_course_user"),
    )

    for tbl in NEW_TABLES:
        _enable_rls_with_policy(tbl)


def downgrade() -> None:
    for tbl in NEW_TABLES:
        op.execute(f"DROP POLICY IF EXISTS {tbl}_tenant_isolation ON {tbl};")
    for tbl in ("certificates", "quiz_attempts", "quiz_questions", "quizzes"):
        op.drop_table(tbl)
    op.drop_constraint("fk_lessons_module_id_course_modules", "lessons", type_="foreignkey")
    op.drop_column("lessons", "module_id")
    op.drop_table("course_modules")
