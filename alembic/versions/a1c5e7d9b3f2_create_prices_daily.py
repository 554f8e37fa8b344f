"""create_prices_daily

Revision ID: a1c5e7d9b3f2
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c5e7d9b3f2"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "prices_daily",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("symbol", sa.String(length=20), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("open", sa.Numeric(14, 2)),
        sa.Column("high", sa.Numeric(14, 2)),
        sa.Column("low", sa.Numeric(14, 2)),
        sa.Column("close", sa.Numeric(14, 2)),
        sa.Column("volume", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("percentage_change", sa.Numeric(10, 2)),
        sa.Column("price_change", sa.Numeric(14, 2)),
        sa.Column("source", sa.String(length=50), nullable=False, server_default="yfinance"),
        sa.Column("ma_50", sa.Numeric(14, 2)),
        sa.Column("ma_100", sa.Numeric(14, 2)),
        sa.Column("ma_200", sa.Numeric(14, 2)),
        sa.Column("signal_50", sa.String(length=20)),
        sa.Column("signal_100", sa.String(length=20)),
        sa.Column("signal_200", sa.String(length=20)),
        sa.Column("cross_signal", sa.String(length=20)),
        sa.Column("signal_strength", sa.String(length=20)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime()),
        sa.UniqueConstraint("symbol", "date", name="uq_prices_daily_symbol_date"),
    )
    op.create_index("ix_prices_daily_symbol", "prices_daily", ["symbol"])
    op.create_index("ix_prices_daily_date", "prices_daily", ["date"])
    op.create_index("ix_prices_daily_cross_signal", "prices_daily", ["cross_signal"])
    op.create_index("ix_prices_daily_signal_strength", "prices_daily", ["signal_strength"])


def downgrade() -> None:
    op.drop_index("ix_prices_daily_signal_strength", table_name="prices_daily")
    op.drop_index("ix_prices_daily_cross_signal", table_name="prices_daily")
    op.drop_index("ix_prices_daily_date", table_name="prices_daily")
    op.drop_index("ix_prices_daily_symbol", table_name="prices_daily")
    op.drop_table("prices_daily")
