"""initial ledger tables: listings, participants, subscriptions, treasury, events

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "ledger_counters",
        sa.Column("name", sa.String(32), primary_key=True),
        sa.Column("value", sa.Integer, nullable=False),
    )

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("owner", sa.String(128), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("price_usd_per_period", sa.String(78), nullable=False),
        sa.Column("created_at", sa.Integer, nullable=False),
        sa.Column("updated_at", sa.Integer, nullable=False),
    )
    op.create_index("ix_listings_owner", "listings", ["owner"])

    op.create_table(
        "participants",
        sa.Column("position", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("principal", sa.String(128), nullable=False),
        sa.Column("joined_at", sa.Integer, nullable=False),
    )
    op.create_index("ix_participants_principal", "participants", ["principal"], unique=True)

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("consumer", sa.String(128), nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("listing_id", sa.Integer, nullable=False),
        sa.Column("provider", sa.String(128), nullable=False),
        sa.Column("amount_paid_native", sa.String(78), nullable=False),
        sa.Column("start_time", sa.Integer, nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("service_url", sa.String(2048), nullable=False),
        sa.Column("resolved_at", sa.Integer, nullable=True),
        sa.Column("resolution_cause", sa.String(16), nullable=True),
        sa.UniqueConstraint("consumer", "position", name="uq_subscription_consumer_position"),
    )
    op.create_index("ix_subscriptions_consumer", "subscriptions", ["consumer"])
    op.create_index("ix_subscriptions_listing_id", "subscriptions", ["listing_id"])
    op.create_index("ix_subscriptions_status", "subscriptions", ["status"])

    op.create_table(
        "treasury_accounts",
        sa.Column("name", sa.String(32), primary_key=True),
        sa.Column("balance", sa.String(78), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.Integer, nullable=False),
    )

    op.create_table(
        "payouts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("account", sa.String(32), nullable=False),
        sa.Column("recipient", sa.String(128), nullable=False),
        sa.Column("amount", sa.String(78), nullable=False),
        sa.Column("reason", sa.String(32), nullable=False),
        sa.Column("subscription_id", sa.Integer, nullable=True),
        sa.Column("created_at", sa.Integer, nullable=False),
    )
    op.create_index("ix_payouts_account", "payouts", ["account"])
    op.create_index("ix_payouts_recipient", "payouts", ["recipient"])

    op.create_table(
        "ledger_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(64), nullable=False),
        sa.Column("principal", sa.String(128), nullable=True),
        sa.Column("listing_id", sa.Integer, nullable=True),
        sa.Column("payload", sa.Text, nullable=False),
        sa.Column("created_at", sa.Integer, nullable=False),
    )
    op.create_index("ix_ledger_events_kind", "ledger_events", ["kind"])
    op.create_index("ix_ledger_events_principal", "ledger_events", ["principal"])
    op.create_index("ix_ledger_events_listing_id", "ledger_events", ["listing_id"])


def downgrade() -> None:
    op.drop_table("ledger_events")
    op.drop_table("payouts")
    op.drop_table("treasury_accounts")
    op.drop_table("subscriptions")
    op.drop_table("participants")
    op.drop_table("listings")
    op.drop_table("ledger_counters")
