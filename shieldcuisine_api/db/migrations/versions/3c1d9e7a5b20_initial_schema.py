"""Initial ShieldCuisine schema with multi-tenancy and RLS.

- tenants, locations
- users, roles, user_roles
- control_templates, control_records (APPCC)
- suppliers, products, stock_movements (warehouse)
- cms_pages, cms_page_versions, media_categories, media_files, cms_form_submissions
- courses, lessons, enrollments, lesson_progress
- notifications, notification_preferences

Also creates helper function set_tenant_id(uuid) to set the app.tenant_id GUC.
"""

from typing import List, Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1d9e7a5b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


TENANT_DEFAULT = sa.text("current_setting('app.tenant_id', true)::uuid")
UUID_DEFAULT = sa.text("uuid_generate_v4()")
NOW = sa.text("now()")
JSONB_EMPTY = sa.text("'{}'::jsonb")
JSONB_EMPTY_LIST = sa.text("'[]'::jsonb")

TENANT_SCOPED_TABLES = [
    "locations",
    "users",
    "roles",
    "user_roles",
    "control_templates",
    "control_records",
    "suppliers",
    "products",
    "stock_movements",
    "cms_pages",
    "cms_page_versions",
    "media_categories",
    "media_files",
    "cms_form_submissions",
    "courses",
    "lessons",
    "enrollments",
    "lesson_progress",
    "notifications",
    "notification_preferences",
]


def _common() -> List[sa.SchemaItem]:
    """id, tenant_id and timestamp columns shared by every tenant-scoped table."""
    return [
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("tenant_id", sa.UUID(), nullable=False, server_default=TENANT_DEFAULT, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
    ]


def _user_fk(column: str) -> List[sa.SchemaItem]:
    return [
        sa.Column(column, sa.UUID(), nullable=True),
        sa.ForeignKeyConstraint([column], ["users.id"], ondelete="SET NULL"),
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
    # Extensions
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp";')

    # Helper function to set tenant in the current session
    op.execute(
        """
        CREATE OR REPLACE FUNCTION set_tenant_id(p_tenant_id uuid)
        RETURNS void AS $$
        BEGIN
            PERFORM set_config('app.tenant_id', p_tenant_id::text, false);
        END;
        $$ LANGUAGE plpgsql;
        """
    )

    # TENANCY
    op.create_table(
        "tenants",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_table(
        "locations",
        *_common(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.UniqueConstraint("tenant_id", "name", name="uq_locations_tenant_name"),
    )

    # SECURITY
    op.create_table(
        "users",
        *_common(),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("hashed_password", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("is_superadmin", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("location_id", sa.UUID(), nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
        sa.UniqueConstraint("tenant_id", "username", name="uq_users_tenant_username"),
    )
    op.create_table(
        "roles",
        *_common(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.UniqueConstraint("tenant_id", "name", name="uq_roles_tenant_name"),
    )
    op.create_table(
        "user_roles",
        *_common(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("role_id", sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "user_id", "role_id", name="uq_user_roles_tenant_user_role"),
    )

    # APPCC
    op.create_table(
        "control_templates",
        *_common(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("frequency", sa.Text(), nullable=False),
        sa.Column("fields", postgresql.JSONB(), server_default=JSONB_EMPTY_LIST, nullable=False),
    )
    op.create_table(
        "control_records",
        *_common(),
        sa.Column("template_id", sa.UUID(), nullable=False, index=True),
        sa.Column("location_id", sa.UUID(), nullable=False, index=True),
        sa.Column("status", sa.Text(), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("data", postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        *_user_fk("created_by"),
        *_user_fk("completed_by"),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["template_id"], ["control_templates.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.Index("ix_control_records_tenant_status_scheduled", "tenant_id", "status", "scheduled_for"),
    )

    # WAREHOUSE
    op.create_table(
        "suppliers",
        *_common(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("contact_name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_table(
        "products",
        *_common(),
        sa.Column("sku", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("unit", sa.Text(), server_default=sa.text("'ud'"), nullable=False),
        sa.Column("stock_quantity", sa.Numeric(18, 3), server_default=sa.text("0"), nullable=False),
        sa.Column("min_stock", sa.Numeric(18, 3), server_default=sa.text("0"), nullable=False),
        sa.Column("cost_price", sa.Numeric(18, 4), nullable=True),
        sa.Column("supplier_id", sa.UUID(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),
    )
    op.create_table(
        "stock_movements",
        *_common(),
        sa.Column("product_id", sa.UUID(), nullable=False, index=True),
        sa.Column("movement_type", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("stock_after", sa.Numeric(18, 3), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("reference", sa.Text(), nullable=True),
        *_user_fk("created_by"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.CheckConstraint("movement_type IN ('in', 'out', 'adjustment')", name="ck_stock_movements_type"),
    )

    # CMS
    op.create_table(
        "cms_pages",
        *_common(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("content", postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
        sa.Column("status", sa.Text(), server_default=sa.text("'draft'"), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("seo_title", sa.Text(), nullable=True),
        sa.Column("seo_description", sa.Text(), nullable=True),
        sa.Column("featured", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("thumbnail", sa.Text(), nullable=True),
        sa.Column("page_type", sa.Text(), server_default=sa.text("'page'"), nullable=False),
        *_user_fk("created_by"),
        *_user_fk("last_updated_by"),
        sa.UniqueConstraint("tenant_id", "slug", name="uq_cms_pages_tenant_slug"),
    )
    op.create_table(
        "cms_page_versions",
        *_common(),
        sa.Column("page_id", sa.UUID(), nullable=False, index=True),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        *_user_fk("created_by"),
        sa.ForeignKeyConstraint(["page_id"], ["cms_pages.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("page_id", "version_number", name="uq_cms_page_versions_page_version"),
    )
    op.create_table(
        "media_categories",
        *_common(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.UniqueConstraint("tenant_id", "slug", name="uq_media_categories_tenant_slug"),
    )
    op.create_table(
        "media_files",
        *_common(),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("original_name", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.Text(), nullable=False),
        sa.Column("file_type", sa.Text(), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("alt", sa.Text(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_id", sa.UUID(), nullable=True),
        *_user_fk("uploaded_by"),
        sa.ForeignKeyConstraint(["category_id"], ["media_categories.id"], ondelete="SET NULL"),
    )
    op.create_table(
        "cms_form_submissions",
        *_common(),
        sa.Column("form_id", sa.Text(), nullable=False),
        sa.Column("page_id", sa.UUID(), nullable=True),
        sa.Column("data", postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
        sa.Column("ip_address", sa.Text(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["page_id"], ["cms_pages.id"], ondelete="SET NULL"),
    )

    # E-LEARNING
    op.create_table(
        "courses",
        *_common(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("level", sa.Text(), server_default=sa.text("'beginner'"), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("is_published", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("thumbnail", sa.Text(), nullable=True),
    )
    op.create_table(
        "lessons",
        *_common(),
        sa.Column("course_id", sa.UUID(), nullable=False, index=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "enrollments",
        *_common(),
        sa.Column("course_id", sa.UUID(), nullable=False, index=True),
        sa.Column("user_id", sa.UUID(), nullable=False, index=True),
        sa.Column("status", sa.Text(), server_default=sa.text("'enrolled'"), nullable=False),
        sa.Column("progress", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("course_id", "user_id", name="uq_enrollments_course_user"),
    )
    op.create_table(
        "lesson_progress",
        *_common(),
        sa.Column("enrollment_id", sa.UUID(), nullable=False),
        sa.Column("lesson_id", sa.UUID(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["lesson_id"], ["lessons.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("enrollment_id", "lesson_id", name="uq_lesson_progress_enrollment_lesson"),
    )

    # NOTIFICATIONS
    op.create_table(
        "notifications",
        *_common(),
        sa.Column("user_id", sa.UUID(), nullable=False, index=True),
        sa.Column("type", sa.Text(), server_default=sa.text("'system'"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.Index("ix_notifications_tenant_user_created_at", "tenant_id", "user_id", "created_at"),
    )
    op.create_table(
        "notification_preferences",
        *_common(),
        sa.Column("user_id", sa.UUID(), nullable=False, unique=True),
        sa.Column("appcc_notifications", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("inventory_notifications", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("learning_notifications", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("banking_notifications", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("system_notifications", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("security_notifications", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("purchasing_notifications", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("email_notifications", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("email_frequency", sa.Text(), server_default=sa.text("'daily'"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )

    # Tenants stay readable without a tenant context (registration, public site);
    # every tenant-scoped table is isolated by RLS.
    for tbl in TENANT_SCOPED_TABLES:
        _enable_rls_with_policy(tbl)


def downgrade() -> None:
    for tbl in TENANT_SCOPED_TABLES:
        op.execute(f"DROP POLICY IF EXISTS {tbl}_tenant_isolation ON {tbl};")
    for tbl in reversed(TENANT_SCOPED_TABLES):
        op.drop_table(tbl)
    op.drop_table("tenants")
    op.execute("DROP FUNCTION IF EXISTS set_tenant_id(uuid);")
