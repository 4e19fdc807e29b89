from __future__ import annotations

"""assistants and channel messages"""

from alembic import op
import sqlalchemy as sa


revision = "0001_assistants_and_messages"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.create_table(
        "assistants",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("workspace_id", sa.dialects.postgresql.UUID(as_uuid=True)),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=200), server_default=""),
        sa.Column("system_prompt", sa.Text, nullable=False, server_default=""),
        sa.Column("model_provider", sa.String(length=20), nullable=False),
        sa.Column("model_name", sa.String(length=100), nullable=False),
        sa.Column("temperature", sa.Float),
        sa.Column("max_tokens", sa.Integer),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_assistants_workspace", "assistants", ["workspace_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("channel_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("author_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("author_type", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("mentions", sa.dialects.postgresql.ARRAY(sa.Text), nullable=False, server_default=sa.text("'{}'::text[]")),
        sa.Column("counts_toward_limit", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint("author_type IN ('human', 'assistant')", name="ck_messages_author_type"),
    )
    op.create_index("idx_messages_channel_created", "messages", ["channel_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_messages_channel_created", table_name="messages")
    op.drop_table("messages")
    op.drop_index("idx_assistants_workspace", table_name="assistants")
    op.drop_table("assistants")
