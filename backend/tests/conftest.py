"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test for isolation.
"""
import pytest
import sqlite3
import sys
import os
from unittest.mock import AsyncMock

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database

OWNER = "user-1"
OTHER_OWNER = "user-2"


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
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            due_date TEXT,
            due_date_type TEXT DEFAULT 'date',
            status TEXT DEFAULT 'pending',
            is_recurring INTEGER DEFAULT 0,
            recurrence_pattern TEXT,
            is_archived INTEGER DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE recommendations (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            content TEXT NOT NULL,
            type TEXT NOT NULL,
            reasoning TEXT,
            position INTEGER DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE user_settings (
            user_id TEXT PRIMARY KEY,
            language TEXT DEFAULT 'he',
            theme TEXT DEFAULT 'light',
            notifications INTEGER DEFAULT 1,
            api_key TEXT,
            updated_at TEXT
        );

        CREATE TABLE push_tokens (
            user_id TEXT PRIMARY KEY,
            token TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


class FakeGateway:
    """Stands in for LLMGateway; complete() is an AsyncMock returning reply."""

    def __init__(self, reply: str = "תשובה מהמודל"):
        self.complete = AsyncMock(return_value=reply)


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def app_client(test_db, fake_gateway, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Skips alembic migrations and routes model calls to the fake gateway.
    """
    from fastapi.testclient import TestClient
    import main

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(main, "gateway_for", lambda api_key=None: fake_gateway)

    with TestClient(main.app, headers={"X-User-Id": OWNER}) as client:
        yield client
