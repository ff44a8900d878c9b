"""Initial schema for recommenders, trust metrics, token performance and trades.

Revision ID: 001_trust_schema
Revises:
Create Date: 2026-10-17 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_trust_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _metric_columns() -> list[sa.Column]:
    return [
        sa.Column("trust_score", sa.Float(), nullable=False),
        sa.Column("total_recommendations", sa.Integer(), nullable=False),
        sa.Column("successful_recs", sa.Integer(), nullable=False),
        sa.Column("avg_token_performance", sa.Float(), nullable=False),
        sa.Column("risk_score", sa.Float(), nullable=False),
        sa.Column("consistency_score", sa.Float(), nullable=False),
        sa.Column("virtual_confidence", sa.Float(), nullable=False),
        sa.Column("trust_decay", sa.Float(), nullable=False),
    ]


def upgrade() -> None:
    # Recommenders table
    op.create_table(
        "recommenders",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("address", sa.String(128), nullable=False),
        sa.Column("solana_pubkey", sa.String(64), nullable=True),
        sa.Column("telegram_id", sa.String(64), nullable=True),
        sa.Column("discord_id", sa.String(64), nullable=True),
        sa.Column("twitter_id", sa.String(64), nullable=True),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("address"),
        sa.UniqueConstraint("solana_pubkey"),
        sa.UniqueConstraint("telegram_id"),
        sa.UniqueConstraint("discord_id"),
        sa.UniqueConstraint("twitter_id"),
    )

    # Current metrics, one row per recommender
    op.create_table(
        "recommender_metrics",
        sa.Column("recommender_id", sa.String(64), nullable=False),
        *_metric_columns(),
        sa.Column("last_active_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("recommender_id"),
    )

    # Metrics history (append-only)
    op.create_table(
        "recommender_metrics_history",
        sa.Column("history_id", sa.String(32), nullable=False),
        sa.Column("recommender_id", sa.String(64), nullable=False),
        *_metric_columns(),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("history_id"),
    )
    op.create_index(
        "idx_metrics_history_recommender_recorded",
        "recommender_metrics_history",
        ["recommender_id", "recorded_at"],
    )

    # Token performance table
    op.create_table(
        "token_performance",
        sa.Column("token_address", sa.String(64), nullable=False),
        sa.Column("symbol", sa.String(32), nullable=False),
        sa.Column("price_change_24h", sa.Float(), nullable=False),
        sa.Column("volume_change_24h", sa.Float(), nullable=False),
        sa.Column("trade_24h_change", sa.Float(), nullable=False),
        sa.Column("liquidity", sa.Float(), nullable=False),
        sa.Column("liquidity_change_24h", sa.Float(), nullable=False),
        sa.Column("holder_change_24h", sa.Float(), nullable=False),
        sa.Column("rug_pull", sa.Boolean(), nullable=False),
        sa.Column("is_scam", sa.Boolean(), nullable=False),
        sa.Column("market_cap_change_24h", sa.Float(), nullable=False),
        sa.Column("sustained_growth", sa.Boolean(), nullable=False),
        sa.Column("rapid_dump", sa.Boolean(), nullable=False),
        sa.Column("suspicious_volume", sa.Boolean(), nullable=False),
        sa.Column("validation_trust", sa.Float(), nullable=False),
        sa.Column("balance", sa.Float(), nullable=False),
        sa.Column("initial_market_cap", sa.Float(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("token_address"),
    )
    op.create_index("idx_token_performance_balance", "token_performance", ["balance"])

    # Token recommendations table
    op.create_table(
        "token_recommendations",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("recommender_id", sa.String(64), nullable=False),
        sa.Column("token_address", sa.String(64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("initial_market_cap", sa.Float(), nullable=True),
        sa.Column("initial_liquidity", sa.Float(), nullable=True),
        sa.Column("initial_price", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_token_recommendations_token", "token_recommendations", ["token_address"])
    op.create_index("idx_token_recommendations_recommender", "token_recommendations", ["recommender_id"])
    op.create_index("idx_token_recommendations_timestamp", "token_recommendations", ["timestamp"])

    # Trade performance table
    op.create_table(
        "trade_performance",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("token_address", sa.String(64), nullable=False),
        sa.Column("recommender_id", sa.String(64), nullable=False),
        sa.Column("is_simulation", sa.Boolean(), nullable=False),
        sa.Column("buy_price", sa.Float(), nullable=False),
        sa.Column("buy_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("buy_amount", sa.Float(), nullable=False),
        sa.Column("buy_sol", sa.Float(), nullable=False),
        sa.Column("buy_value_usd", sa.Float(), nullable=False),
        sa.Column("buy_market_cap", sa.Float(), nullable=False),
        sa.Column("buy_liquidity", sa.Float(), nullable=False),
        sa.Column("sell_price", sa.Float(), nullable=True),
        sa.Column("sell_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sell_amount", sa.Float(), nullable=True),
        sa.Column("received_sol", sa.Float(), nullable=True),
        sa.Column("sell_value_usd", sa.Float(), nullable=True),
        sa.Column("profit_usd", sa.Float(), nullable=True),
        sa.Column("profit_percent", sa.Float(), nullable=True),
        sa.Column("sell_market_cap", sa.Float(), nullable=True),
        sa.Column("market_cap_change", sa.Float(), nullable=True),
        sa.Column("sell_liquidity", sa.Float(), nullable=True),
        sa.Column("liquidity_change", sa.Float(), nullable=True),
        sa.Column("rapid_dump", sa.Boolean(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "token_address",
            "recommender_id",
            "buy_timestamp",
            "is_simulation",
            name="uq_trade_performance_buy",
        ),
    )
    op.create_index(
        "idx_trade_performance_open",
        "trade_performance",
        ["token_address", "recommender_id", "sell_timestamp"],
    )

    # Transaction ledger
    op.create_table(
        "transactions",
        sa.Column("transaction_hash", sa.String(128), nullable=False),
        sa.Column("token_address", sa.String(64), nullable=False),
        sa.Column("type", sa.String(4), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("is_simulation", sa.Boolean(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("transaction_hash"),
    )
    op.create_index("idx_transactions_token_ts", "transactions", ["token_address", "timestamp"])


def downgrade() -> None:
    op.drop_index("idx_transactions_token_ts", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("idx_trade_performance_open", table_name="trade_performance")
    op.drop_table("trade_performance")
    op.drop_index("idx_token_recommendations_timestamp", table_name="token_recommendations")
    op.drop_index("idx_token_recommendations_recommender", table_name="token_recommendations")
    op.drop_index("idx_token_recommendations_token", table_name="token_recommendations")
    op.drop_table("token_recommendations")
    op.drop_index("idx_token_performance_balance", table_name="token_performance")
    op.drop_table("token_performance")
    op.drop_index("idx_metrics_history_recommender_recorded", table_name="recommender_metrics_history")
    op.drop_table("recommender_metrics_history")
    op.drop_table("recommender_metrics")
    op.drop_table("recommenders")
