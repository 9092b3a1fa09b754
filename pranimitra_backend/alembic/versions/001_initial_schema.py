"""Initial schema: users, plans, subscriptions, vouchers, payments.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum("farmer", "admin", "support", name="userrole")
plan_type = sa.Enum("free", "basic", "premium", "enterprise", name="plantype")
subscription_status = sa.Enum("free", "active", "expired", "cancelled", name="subscriptionstatus")
discount_type = sa.Enum("percentage", "fixed", "free_trial", name="discounttype")
payment_status = sa.Enum("created", "pending", "paid", "failed", "refunded", "cancelled", name="paymentstatus")
billing_cycle = sa.Enum("monthly", "yearly", name="billingcycle")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("phone_number", sa.String(15), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("district", sa.String(), nullable=True),
        sa.Column("village", sa.String(), nullable=True),
        sa.Column("pincode", sa.String(6), nullable=True),
        sa.Column("farming_types", sa.JSON(), nullable=True),
        sa.Column("preferred_language", sa.String(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("total_calls", sa.Integer(), nullable=True),
        sa.Column("monthly_calls_used", sa.Integer(), nullable=True),
        sa.Column("last_call_date", sa.DateTime(), nullable=True),
        sa.Column("last_reset_date", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_phone_number", "users", ["phone_number"], unique=True)

    op.create_table(
        "plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("plan_type", plan_type, nullable=False),
        sa.Column("display_name", sa.JSON(), nullable=False),
        sa.Column("description", sa.JSON(), nullable=True),
        sa.Column("price_monthly", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_yearly", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("features", sa.JSON(), nullable=True),
        sa.Column("call_limit", sa.Integer(), nullable=False),
        sa.Column("call_duration_limit", sa.Integer(), nullable=True),
        sa.Column("sms_limit", sa.Integer(), nullable=True),
        sa.Column("priority_support", sa.Boolean(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_plans_id", "plans", ["id"])
    op.create_index("ix_plans_name", "plans", ["name"], unique=True)

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("plans.id"), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("razorpay_order_id", sa.String(), nullable=False),
        sa.Column("razorpay_payment_id", sa.String(), nullable=True, unique=True),
        sa.Column("razorpay_signature", sa.String(), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("billing_cycle", billing_cycle, nullable=False),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("coupon_code", sa.String(), nullable=True),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("gst", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("total_tax", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("subscription_start_date", sa.DateTime(), nullable=True),
        sa.Column("subscription_end_date", sa.DateTime(), nullable=True),
        sa.Column("subscription_auto_renewal", sa.Boolean(), nullable=True),
        sa.Column("customer_name", sa.String(), nullable=True),
        sa.Column("customer_email", sa.String(), nullable=True),
        sa.Column("customer_phone", sa.String(), nullable=True),
        sa.Column("customer_address", sa.JSON(), nullable=True),
        sa.Column("invoice_number", sa.String(), nullable=True, unique=True),
        sa.Column("invoice_date", sa.DateTime(), nullable=True),
        sa.Column("invoice_url", sa.String(500), nullable=True),
        sa.Column("refund_id", sa.String(), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refund_date", sa.DateTime(), nullable=True),
        sa.Column("refund_reason", sa.String(200), nullable=True),
        sa.Column("refund_status", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    op.create_index("ix_payments_order_id", "payments", ["order_id"], unique=True)
    op.create_index("ix_payments_razorpay_order_id", "payments", ["razorpay_order_id"])
    op.create_index("ix_payments_status", "payments", ["status"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("plans.id"), nullable=True),
        sa.Column("status", subscription_status, nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("auto_renewal", sa.Boolean(), nullable=True),
        sa.Column("last_payment_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_subscriptions_id", "subscriptions", ["id"])

    op.create_table(
        "vouchers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.JSON(), nullable=True),
        sa.Column("discount_type", discount_type, nullable=False),
        sa.Column("value", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_discount", sa.Numeric(10, 2), nullable=True),
        sa.Column("min_order_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("applicable_plans", sa.JSON(), nullable=True),
        sa.Column("billing_cycles", sa.JSON(), nullable=True),
        sa.Column("total_limit", sa.Integer(), nullable=True),
        sa.Column("per_user_limit", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=True),
        sa.Column("first_time_user", sa.Boolean(), nullable=True),
        sa.Column("user_types", sa.JSON(), nullable=True),
        sa.Column("locations", sa.JSON(), nullable=True),
        sa.Column("farming_types", sa.JSON(), nullable=True),
        sa.Column("campaign", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("total_limit IS NULL OR total_used <= total_limit", name="ck_vouchers_total_used"),
    )
    op.create_index("ix_vouchers_id", "vouchers", ["id"])
    op.create_index("ix_vouchers_code", "vouchers", ["code"], unique=True)
    op.create_index("ix_vouchers_is_active", "vouchers", ["is_active"])

    op.create_table(
        "voucher_usages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("voucher_id", sa.Integer(), sa.ForeignKey("vouchers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_used", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("voucher_id", "user_id", name="uq_voucher_usage_user"),
    )
    op.create_index("ix_voucher_usages_id", "voucher_usages", ["id"])
    op.create_index("ix_voucher_usages_voucher_id", "voucher_usages", ["voucher_id"])

    op.create_table(
        "payment_webhook_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("event_data", sa.JSON(), nullable=True),
        sa.Column("received_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_payment_webhook_events_id", "payment_webhook_events", ["id"])
    op.create_index("ix_payment_webhook_events_payment_id", "payment_webhook_events", ["payment_id"])


def downgrade() -> None:
    op.drop_table("payment_webhook_events")
    op.drop_table("voucher_usages")
    op.drop_table("vouchers")
    op.drop_table("subscriptions")
    op.drop_table("payments")
    op.drop_table("plans")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (billing_cycle, payment_status, discount_type, subscription_status, plan_type, user_role):
        enum_type.drop(bind, checkfirst=True)
