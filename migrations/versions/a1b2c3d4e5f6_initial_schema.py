"""initial schema: users, tokos, metrics store, rules and execution logs

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column(
            "role",
            sa.Enum("SUPERADMIN", "ADMIN", "MANAGER", "STAFF", "USER", name="userrole"),
            nullable=False,
        ),
        sa.Column("telegram_chat_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "data_toko",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("id_toko", sa.String(length=100), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("nama_toko", sa.String(length=255), nullable=True),
        sa.Column("cookies", sa.Text(), nullable=True),
        sa.Column("status_cookies", sa.String(length=20), nullable=False, server_default="aktif"),
        sa.Column("saldo", sa.Float(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_data_toko_id", "data_toko", ["id"])
    op.create_index("ix_data_toko_id_toko", "data_toko", ["id_toko"], unique=True)
    op.create_index("ix_data_toko_user_id", "data_toko", ["user_id"])

    op.create_table(
        "data_produk",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("id_toko", sa.String(length=100), nullable=False),
        sa.Column("campaign_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=True),
        sa.Column("daily_budget", sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("id_toko", "campaign_id", name="uq_data_produk_toko_campaign"),
    )
    op.create_index("ix_data_produk_id", "data_produk", ["id"])
    op.create_index("ix_data_produk_id_toko", "data_produk", ["id_toko"])
    op.create_index("ix_data_produk_campaign_id", "data_produk", ["campaign_id"])

    op.create_table(
        "data_produk_report",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("id_toko", sa.String(length=100), nullable=False),
        sa.Column("campaign_id", sa.String(length=64), nullable=False),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("click", sa.Float(), nullable=True),
        sa.Column("impression", sa.Float(), nullable=True),
        sa.Column("view", sa.Float(), nullable=True),
        sa.Column("broad_order", sa.Float(), nullable=True),
        sa.Column("cost", sa.Float(), nullable=True),
        sa.Column("broad_gmv", sa.Float(), nullable=True),
        sa.Column("cpc", sa.Float(), nullable=True),
        sa.Column("cpm", sa.Float(), nullable=True),
        sa.Column("ctr", sa.Float(), nullable=True),
        sa.Column("broad_roi", sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("id_toko", "campaign_id", "report_date", name="uq_report_toko_campaign_date"),
    )
    op.create_index("ix_data_produk_report_id", "data_produk_report", ["id"])
    op.create_index("ix_data_produk_report_id_toko", "data_produk_report", ["id_toko"])
    op.create_index("ix_data_produk_report_campaign_id", "data_produk_report", ["campaign_id"])

    op.create_table(
        "data_rules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("conditions", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("campaign_assignments", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("execution_mode", sa.String(length=20), nullable=False, server_default="continuous"),
        sa.Column("selected_interval", sa.Integer(), nullable=True),
        sa.Column("selected_times", sa.JSON(), nullable=True),
        sa.Column("selected_days", sa.JSON(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("telegram_notification", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("triggers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("success_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("success_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_executed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_data_rules_id", "data_rules", ["id"])
    op.create_index("ix_data_rules_user_id", "data_rules", ["user_id"])
    op.create_index("ix_data_rules_status", "data_rules", ["status"])

    op.create_table(
        "rule_execution_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("rule_id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.String(length=64), nullable=False),
        sa.Column("toko_id", sa.String(length=100), nullable=False),
        sa.Column("action_type", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("execution_data", sa.JSON(), nullable=True),
        sa.Column("run_id", sa.String(length=36), nullable=True),
        sa.Column("executed_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["rule_id"], ["data_rules.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rule_execution_logs_id", "rule_execution_logs", ["id"])
    op.create_index("ix_rule_execution_logs_rule_id", "rule_execution_logs", ["rule_id"])
    op.create_index("ix_rule_execution_logs_toko_id", "rule_execution_logs", ["toko_id"])
    op.create_index("ix_rule_execution_logs_run_id", "rule_execution_logs", ["run_id"])
    op.create_index("ix_rule_execution_logs_rule_executed", "rule_execution_logs", ["rule_id", "executed_at"])


def downgrade() -> None:
    op.drop_table("rule_execution_logs")
    op.drop_table("data_rules")
    op.drop_table("data_produk_report")
    op.drop_table("data_produk")
    op.drop_table("data_toko")
    op.drop_table("users")
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
