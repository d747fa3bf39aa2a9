"""Track seats held per booking; add offers and offer usage.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "bookings",
        sa.Column("reserved_seats", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )
    # Bookings not cancelled so far are exactly the ones whose seats were taken
    op.execute("UPDATE bookings SET reserved_seats = passenger_count WHERE status <> 'cancelled'")
    op.create_check_constraint(
        "check_booking_reserved_seats_non_negative", "bookings", "reserved_seats >= 0"
    )

    op.create_table(
        "offers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(20), nullable=False, server_default=sa.text("'percentage'")),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("min_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("max_discount", sa.Numeric(10, 2), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("applicable_to", sa.String(20), nullable=False, server_default=sa.text("'all'")),
        sa.Column("created_by", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("discount_value > 0", name="check_offer_discount_positive"),
        sa.CheckConstraint("used_count >= 0", name="check_offer_used_count_non_negative"),
        sa.CheckConstraint("max_uses IS NULL OR used_count <= max_uses", name="check_offer_used_lte_max"),
        sa.CheckConstraint("discount_type IN ('percentage', 'fixed')", name="check_offer_discount_type"),
        sa.CheckConstraint(
            "applicable_to IN ('all', 'new_users', 'specific_users')",
            name="check_offer_applicable_to",
        ),
    )
    op.create_index("ix_offers_code", "offers", ["code"], unique=True)
    op.create_index("ix_offers_validity", "offers", ["valid_from", "valid_until", "is_active"])

    op.create_table(
        "offer_usage",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("offer_id", sa.String(36), sa.ForeignKey("offers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("original_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("final_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_offer_usage_offer_id", "offer_usage", ["offer_id"])
    op.create_index("ix_offer_usage_user_id", "offer_usage", ["user_id"])
    op.create_index("ix_offer_usage_booking_id", "offer_usage", ["booking_id"])


def downgrade() -> None:
    op.drop_table("offer_usage")
    op.drop_table("offers")
    op.drop_constraint("check_booking_reserved_seats_non_negative", "bookings", type_="check")
    op.drop_column("bookings", "reserved_seats")
