"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table("channels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slack_channel_id", sa.String(32), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("team_id", sa.String(64), nullable=False),
        sa.Column("team_name", sa.String(255), nullable=False),
        sa.Column("is_monitored", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("include_bots", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("include_threads", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_message_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_channels_team_id", "channels", ["team_id"])
    op.create_table("messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slack_channel_id", sa.String(32), nullable=False),
        sa.Column("slack_channel_name", sa.String(255), nullable=False),
        sa.Column("slack_user_id", sa.String(32), nullable=False),
        sa.Column("slack_user_name", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("slack_timestamp", sa.String(32), nullable=False, unique=True),
        sa.Column("sentiment_score", sa.Float(), nullable=False),
        sa.Column("sentiment_label", sa.String(16), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("burnout_signals", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("reactions_json", sa.JSON(), nullable=False),
        sa.Column("thread_ts", sa.String(32), nullable=True),
        sa.Column("is_thread", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("message_type", sa.String(32), nullable=False, server_default="message"),
        sa.Column("has_links", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("has_emojis", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("word_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_messages_channel_timestamp", "messages", ["slack_channel_id", "timestamp"])
    op.create_index("ix_messages_timestamp", "messages", ["timestamp"])
    op.create_index("ix_messages_slack_user_id", "messages", ["slack_user_id"])
    op.create_table("daily_aggregates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("channel_id", sa.String(32), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("channel_name", sa.String(255), nullable=False),
        sa.Column("avg_sentiment", sa.Float(), nullable=False),
        sa.Column("message_count", sa.Integer(), nullable=False),
        sa.Column("positive_count", sa.Integer(), nullable=False),
        sa.Column("neutral_count", sa.Integer(), nullable=False),
        sa.Column("negative_count", sa.Integer(), nullable=False),
        sa.Column("burnout_risk", sa.Float(), nullable=False),
        sa.Column("top_emojis_json", sa.JSON(), nullable=False),
        sa.Column("active_users", sa.Integer(), nullable=False),
        sa.Column("sentiment_trend", sa.String(16), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("channel_id", "date", name="uq_daily_aggregate_channel_date"),
    )
    op.create_index("ix_daily_aggregates_date", "daily_aggregates", ["date"])
    op.create_table("weekly_insights",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("team_id", sa.String(64), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("week_end", sa.Date(), nullable=False),
        sa.Column("team_name", sa.String(255), nullable=False),
        sa.Column("channels_json", sa.JSON(), nullable=False),
        sa.Column("overall_trend", sa.String(16), nullable=False),
        sa.Column("overall_sentiment", sa.Float(), nullable=False),
        sa.Column("total_messages", sa.Integer(), nullable=False),
        sa.Column("insights_json", sa.JSON(), nullable=False),
        sa.Column("recommendations_json", sa.JSON(), nullable=False),
        sa.Column("burnout_alerts_json", sa.JSON(), nullable=False),
        sa.Column("engagement_score", sa.Float(), nullable=False),
        sa.Column("participation_rate", sa.Float(), nullable=False),
        sa.Column("response_time", sa.Float(), nullable=False),
        sa.Column("positivity_ratio", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("team_id", "week_start", name="uq_weekly_insight_team_week"),
    )
    op.create_index("ix_weekly_insights_week_start", "weekly_insights", ["week_start"])


def downgrade() -> None:
    op.drop_table("weekly_insights")
    op.drop_table("daily_aggregates")
    op.drop_table("messages")
    op.drop_table("channels")
