"""Add user_settings and push_tokens tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS user_settings (
            user_id TEXT PRIMARY KEY,
            language TEXT DEFAULT 'he',
            theme TEXT DEFAULT 'light',
            notifications INTEGER DEFAULT 1,
            api_key TEXT,
            updated_at TEXT
        )
    """))

    # One messaging token per user, replaced on re-registration
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS push_tokens (
            user_id TEXT PRIMARY KEY,
            token TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS push_tokens"))
    conn.execute(text("DROP TABLE IF EXISTS user_settings"))
