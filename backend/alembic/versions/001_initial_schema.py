"""Initial schema - tasks, projects and the chat conversation

Revision ID: 001
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # due and created are ISO-8601 UTC strings (YYYY-MM-DDTHH:MM:SSZ); due is NULL when unset
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created TEXT NOT NULL,
            due TEXT,
            tags TEXT DEFAULT '[]',
            project TEXT DEFAULT 'default',
            priority TEXT DEFAULT 'medium',
            status TEXT DEFAULT 'pending',
            note TEXT
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS projects (
            name TEXT PRIMARY KEY,
            created_at TEXT NOT NULL
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS conversations (
            id INTEGER PRIMARY KEY,
            messages TEXT DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS conversations"))
    conn.execute(text("DROP TABLE IF EXISTS projects"))
    conn.execute(text("DROP TABLE IF EXISTS tasks"))
