"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("image", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("job_title", sa.String(100), nullable=True),
        sa.Column("employee_id", sa.String(50), nullable=True, unique=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('viewer', 'user', 'manager', 'admin', 'super_admin')",
            name="ck_user_role",
        ),
    )
    op.create_index("idx_users_department", "users", ["department"])
    op.create_index("idx_users_is_active", "users", ["is_active"])

    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("asset_tag", sa.String(50), nullable=False, unique=True),
        sa.Column("serial_number", sa.String(255), nullable=True, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("manufacturer", sa.String(255), nullable=True),
        sa.Column("model", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        sa.Column("condition", sa.String(20), nullable=False, server_default="good"),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(255), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('available', 'assigned', 'maintenance', 'repair', 'retired', 'lost', 'stolen')",
            name="ck_asset_status",
        ),
        sa.CheckConstraint(
            "condition IN ('new', 'excellent', 'good', 'fair', 'poor', 'damaged')",
            name="ck_asset_condition",
        ),
    )
    op.create_index("idx_assets_status", "assets", ["status"])
    op.create_index("idx_assets_category", "assets", ["category"])

    op.create_table(
        "asset_counters",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("category", sa.String(50), nullable=False, unique=True),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("next_number >= 1", name="ck_asset_counter_positive"),
    )

    op.create_table(
        "asset_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("asset_id", sa.Integer(), sa.ForeignKey("assets.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.Column("expected_return_at", sa.DateTime(), nullable=True),
        sa.Column("returned_at", sa.DateTime(), nullable=True),
        sa.Column("assigned_by", sa.String(255), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("returned_by", sa.String(255), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("purpose", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("return_notes", sa.Text(), nullable=True),
        sa.Column("actual_return_condition", sa.String(20), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'returned', 'overdue', 'lost')",
            name="ck_assignment_status",
        ),
    )
    op.create_index(
        "uq_asset_assignments_active_asset",
        "asset_assignments",
        ["asset_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )
    op.create_index("idx_asset_assignments_user_status", "asset_assignments", ["user_id", "status"])
    op.create_index("idx_asset_assignments_expected_return", "asset_assignments", ["expected_return_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(255), nullable=False),
        sa.Column("actor_id", sa.String(255), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("changed_fields", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("extra_data", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_audit_logs_entity", "audit_logs", ["entity_type", "entity_id", "timestamp"])
    op.create_index("idx_audit_logs_actor", "audit_logs", ["actor_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("asset_assignments")
    op.drop_table("asset_counters")
    op.drop_table("assets")
    op.drop_table("users")
