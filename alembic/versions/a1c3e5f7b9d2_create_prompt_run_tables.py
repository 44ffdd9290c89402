"""Create prompt run tables

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op  # type: ignore

# revision identifiers, used by Alembic.
revision: str = "a1c3e5f7b9d2"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # ### Domain and topic ###
    op.create_table(
        "domain",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("domain", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column(
            "prompt_run_status", sa.String(), nullable=False, server_default="pending"
        ),
        sa.Column("prompt_run_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("prompt_run_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("prompt_run_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("prompt_run_completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "topic",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "domain_id",
            sa.String(length=32),
            sa.ForeignKey("domain.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_topic_domain_id", "topic", ["domain_id"])

    # ### Prompt ###
    op.create_table(
        "prompt",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "domain_id",
            sa.String(length=32),
            sa.ForeignKey("domain.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "topic_id",
            sa.String(length=32),
            sa.ForeignKey("topic.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("prompt_text", sa.Text(), nullable=False),
        sa.Column("category", sa.String(), nullable=False, server_default="recommendation"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("selected_providers", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_prompt_domain_id", "prompt", ["domain_id"])
    op.create_index("ix_prompt_topic_id", "prompt", ["topic_id"])

    # ### Runs and their analyses ###
    op.create_table(
        "prompt_run",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "prompt_id",
            sa.String(length=32),
            sa.ForeignKey("prompt.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("llm_provider", sa.String(), nullable=False),
        sa.Column("response_text", sa.Text(), nullable=True),
        sa.Column("response_metadata", sa.JSON(), nullable=True),
        sa.Column("search_queries", sa.JSON(), nullable=True),
        sa.Column("citations", sa.JSON(), nullable=True),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_prompt_run_prompt_id", "prompt_run", ["prompt_id"])
    op.create_index("ix_prompt_run_llm_provider", "prompt_run", ["llm_provider"])
    op.create_index("ix_prompt_run_executed_at", "prompt_run", ["executed_at"])

    op.create_table(
        "mention_analysis",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "prompt_run_id",
            sa.String(length=32),
            sa.ForeignKey("prompt_run.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "domain_id",
            sa.String(length=32),
            sa.ForeignKey("domain.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("mentioned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("sentiment_score", sa.String(), nullable=True),
        sa.Column("context_snippet", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "prompt_run_id", "domain_id", name="uq_mention_analysis_run_domain"
        ),
    )
    op.create_index(
        "ix_mention_analysis_prompt_run_id", "mention_analysis", ["prompt_run_id"]
    )
    op.create_index("ix_mention_analysis_domain_id", "mention_analysis", ["domain_id"])

    op.create_table(
        "brand_mention",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "prompt_run_id",
            sa.String(length=32),
            sa.ForeignKey("prompt_run.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("brand_name", sa.String(), nullable=False),
        sa.Column("brand_domain", sa.String(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("mentioned", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sentiment_score", sa.String(), nullable=True),
        sa.Column("citation_url", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_brand_mention_prompt_run_id", "brand_mention", ["prompt_run_id"])
    op.create_index("ix_brand_mention_brand_name", "brand_mention", ["brand_name"])


def downgrade() -> None:
    op.drop_index("ix_brand_mention_brand_name", table_name="brand_mention")
    op.drop_index("ix_brand_mention_prompt_run_id", table_name="brand_mention")
    op.drop_table("brand_mention")

    op.drop_index("ix_mention_analysis_domain_id", table_name="mention_analysis")
    op.drop_index("ix_mention_analysis_prompt_run_id", table_name="mention_analysis")
    op.drop_table("mention_analysis")

    op.drop_index("ix_prompt_run_executed_at", table_name="prompt_run")
    op.drop_index("ix_prompt_run_llm_provider", table_name="prompt_run")
    op.drop_index("ix_prompt_run_prompt_id", table_name="prompt_run")
    op.drop_table("prompt_run")

    op.drop_index("ix_prompt_topic_id", table_name="prompt")
    op.drop_index("ix_prompt_domain_id", table_name="prompt")
    op.drop_table("prompt")

    op.drop_index("ix_topic_domain_id", table_name="topic")
    op.drop_table("topic")

    op.drop_table("domain")
