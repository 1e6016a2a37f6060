"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test and fixed clocks for date parsing.
"""
import pytest
import sqlite3
import sys
import os
from datetime import datetime

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database

# Wednesday 2026-10-14, mid-afternoon
NOW = datetime(2026, 10, 14, 15, 20, 0)


def fixed_clock(moment: datetime):
    """Clock that always returns moment."""
    return lambda: moment


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return fixed_clock(NOW)


@pytest.fixture
def clock_at():
    """Factory for clocks frozen at an arbitrary local time: clock_at(2026, 5, 21, 8, 0)."""
    def make(*args):
        return fixed_clock(datetime(*args))
    return make


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created TEXT NOT NULL,
            due TEXT,
            tags TEXT DEFAULT '[]',
            project TEXT DEFAULT 'default',
            priority TEXT DEFAULT 'medium',
            status TEXT DEFAULT 'pending',
            note TEXT
        );

        CREATE TABLE projects (
            name TEXT PRIMARY KEY,
            created_at TEXT NOT NULL
        );

        CREATE TABLE conversations (
            id INTEGER PRIMARY KEY,
            messages TEXT DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app with the clock frozen at NOW.
    Mocks init_db to skip alembic migrations.
    """
    from fastapi.testclient import TestClient
    import main

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(main, "CLOCK", fixed_clock(NOW))

    with TestClient(main.app) as client:
        yield client
