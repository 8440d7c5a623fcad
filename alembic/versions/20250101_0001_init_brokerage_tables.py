"""init brokerage tables

Revision ID: 20250101_0001
Revises: None
Create Date: 2025-01-01
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20250101_0001_init_brokerage_tables"
down_revision = None
branch_labels = None
depends_on = None


def _enum(*values: str, name: str) -> sa.Enum:
    # Stored as plain strings on every backend; new values never need ALTER TYPE.
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=False)


department_enum = _enum(
    "Marine", "Property & Engineering", "Liability & Financial", name="department"
)
role_enum = _enum("admin", "staff", name="rolename")
quotation_status_enum = _enum("Open", "Confirmed", "Decline", name="quotationstatus")
business_type_enum = _enum("New Business", "Renewal", name="businesstype")
currency_enum = _enum("AED", "USD", "EUR", name="currency")
cover_group_enum = _enum("ENGINEERING", "PROPERTY", name="covergroup")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("department", department_enum, nullable=False),
        sa.Column("role", role_enum, nullable=False, server_default="staff"),
        sa.Column("active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "app_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "quotations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("department", department_enum, nullable=False),
        sa.Column("broker_name", sa.String(length=255), nullable=False),
        sa.Column("insured_name", sa.String(length=255), nullable=False),
        sa.Column("product_type", sa.String(length=255), nullable=False),
        sa.Column("cover_group", cover_group_enum, nullable=True),
        sa.Column("estimated_premium", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("currency", currency_enum, nullable=False, server_default="AED"),
        sa.Column("quotation_date", sa.DateTime(), nullable=False),
        sa.Column("status", quotation_status_enum, nullable=False, server_default="Open"),
        sa.Column("decline_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "requires_pre_condition_survey",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("year", sa.SmallInteger(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_quotations_department", "quotations", ["department"])
    op.create_index("ix_quotations_broker_name", "quotations", ["broker_name"])
    op.create_index("ix_quotations_insured_name", "quotations", ["insured_name"])
    op.create_index("ix_quotations_status", "quotations", ["status"])
    op.create_index("ix_quotations_year", "quotations", ["year"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("department", department_enum, nullable=False),
        sa.Column(
            "quotation_id",
            sa.Integer(),
            sa.ForeignKey("quotations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("broker_name", sa.String(length=255), nullable=False),
        sa.Column("insured_name", sa.String(length=255), nullable=False),
        sa.Column("product_type", sa.String(length=255), nullable=False),
        sa.Column("cover_group", cover_group_enum, nullable=True),
        sa.Column(
            "business_type", business_type_enum, nullable=False, server_default="New Business"
        ),
        sa.Column("premium", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", currency_enum, nullable=False, server_default="AED"),
        sa.Column("order_date", sa.DateTime(), nullable=False),
        sa.Column("statuses", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "requires_pre_condition_survey",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("year", sa.SmallInteger(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_orders_department", "orders", ["department"])
    op.create_index("ix_orders_quotation_id", "orders", ["quotation_id"])
    op.create_index("ix_orders_broker_name", "orders", ["broker_name"])
    op.create_index("ix_orders_insured_name", "orders", ["insured_name"])
    op.create_index("ix_orders_year", "orders", ["year"])

    op.create_table(
        "status_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("statuses", sa.JSON(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_status_logs_order_id", "status_logs", ["order_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=256), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_request_id", "audit_logs", ["request_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("status_logs")
    op.drop_table("orders")
    op.drop_table("quotations")
    op.drop_table("app_settings")
    op.drop_table("users")
