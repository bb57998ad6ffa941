"""add messages table

Revision ID: 3f9a2c1d7b42
Revises:
Create Date: 2026-10-19 09:12:44.118203

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f9a2c1d7b42"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema: messages table."""
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("timezone('utc', now())"),
        ),
        sa.Column("session_id", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "role IN ('user', 'ai', 'human_agent')", name="ck_messages_role"
        ),
        sa.CheckConstraint(
            "status IN ('pending_human', 'resolved')", name="ck_messages_status"
        ),
        sa.CheckConstraint(
            "source IN ('web', 'whatsapp')", name="ck_messages_source"
        ),
    )
    op.create_index(
        "ix_messages_session_id_created_at",
        "messages",
        ["session_id", "created_at"],
        unique=False,
    )
    op.create_index("ix_messages_status", "messages", ["status"], unique=False)


def downgrade() -> None:
    """Drop messages table."""
    op.drop_index("ix_messages_status", table_name="messages")
    op.drop_index("ix_messages_session_id_created_at", table_name="messages")
    op.drop_table("messages")
