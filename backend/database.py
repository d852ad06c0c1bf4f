import asyncio
import logging
import sqlite3
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional
from contextlib import contextmanager

import config
from models import Task, Recommendation, RecommendationDraft, UserSettings

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH

TASK_COLUMNS = (
    "title",
    "description",
    "due_date",
    "due_date_type",
    "status",
    "is_recurring",
    "recurrence_pattern",
    "is_archived",
)


class StoreError(Exception):
    """Raised when the task or recommendation store cannot complete an operation."""


@contextmanager
def get_db():
    """Context manager for database connections.
    sqlite3 errors raised inside the block surface as StoreError.
    """
    try:
        conn = sqlite3.connect(DATABASE_PATH)
    except sqlite3.Error as e:
        raise StoreError(f"Could not open database: {e}") from e
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    except sqlite3.Error as e:
        logger.exception("Database operation failed")
        raise StoreError(str(e)) from e
    finally:
        conn.close()


def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )


def _db_value(value):
    """Convert model values to what SQLite stores."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    return Task(
        id=row["id"],
        owner=row["user_id"],
        title=row["title"],
        description=row["description"],
        due_date=row["due_date"],
        due_date_type=row["due_date_type"] or "date",
        status=row["status"] or "pending",
        is_recurring=bool(row["is_recurring"]),
        recurrence_pattern=row["recurrence_pattern"] or None,
        is_archived=bool(row["is_archived"]),
        created_at=row["created_at"],
    )


def _row_to_recommendation(row) -> Recommendation:
    return Recommendation(
        id=row["id"],
        owner=row["user_id"],
        content=row["content"],
        type=row["type"],
        reasoning=row["reasoning"],
        created_at=row["created_at"],
    )


# Task operations
def get_tasks(
    owner: str,
    archived: bool = False,
    status: Optional[str] = None,
    search: Optional[str] = None
) -> list[Task]:
    """
    Get an owner's tasks filtered by archival flag and optionally by status.
    search matches title or description, case-insensitive.
    Ordered by due_date ascending, undated tasks last.
    """
    query = "SELECT * FROM tasks WHERE user_id = ? AND is_archived = ?"
    params: list = [owner, int(archived)]
    if status:
        query += " AND status = ?"
        params.append(_db_value(status))
    query += " ORDER BY due_date IS NULL, due_date, created_at"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    tasks = [_row_to_task(row) for row in rows]

    if search:
        needle = search.lower()
        tasks = [
            task for task in tasks
            if needle in task.title.lower() or needle in (task.description or "").lower()
        ]
    return tasks


async def get_tasks_with_retry(
    owner: str,
    attempts: int = config.TASK_FETCH_ATTEMPTS,
    delay: float = config.TASK_FETCH_RETRY_DELAY
) -> list[Task]:
    """Fetch an owner's active tasks, retrying a failed fetch after a fixed delay."""
    for attempt in range(1, attempts + 1):
        try:
            return get_tasks(owner, archived=False)
        except StoreError:
            if attempt == attempts:
                raise
            logger.warning("Task fetch for %s failed (attempt %d/%d), retrying", owner, attempt, attempts)
            await asyncio.sleep(delay)
    return []


def get_task(task_id: str, owner: str) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM tasks WHERE id = ? AND user_id = ?",
            (task_id, owner)
        ).fetchone()
    return _row_to_task(row) if row else None


def create_task_db(
    task_id: str,
    owner: str,
    title: str,
    description: Optional[str] = None,
    due_date: Optional[str] = None,
    due_date_type: str = "date",
    status: str = "pending",
    is_recurring: bool = False,
    recurrence_pattern: Optional[str] = None
) -> Task:
    """Create a task for owner.
    recurrence_pattern is dropped when the task is not recurring.
    """
    if not is_recurring:
        recurrence_pattern = None
    created_at = datetime.now().isoformat()

    with get_db() as conn:
        conn.execute(
            """INSERT INTO tasks
               (id, user_id, title, description, due_date, due_date_type, status, is_recurring, recurrence_pattern, is_archived, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)""",
            (
                task_id, owner, title, description, due_date,
                _db_value(due_date_type), _db_value(status), int(is_recurring),
                _db_value(recurrence_pattern), created_at
            )
        )
        conn.commit()

    return Task(
        id=task_id,
        owner=owner,
        title=title,
        description=description,
        due_date=due_date,
        due_date_type=due_date_type,
        status=status,
        is_recurring=is_recurring,
        recurrence_pattern=recurrence_pattern,
        is_archived=False,
        created_at=created_at,
    )


def update_task_db(task_id: str, owner: str, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values.

    Args:
        task_id: Task ID to update
        owner: Owning user, the update is a no-op for anyone else's task
        **updates: Field names and values to update (title, status, is_archived, ...)
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM tasks WHERE id = ? AND user_id = ?",
            (task_id, owner)
        ).fetchone()
        if not row:
            return None

        if updates.get("is_recurring") is False:
            updates["recurrence_pattern"] = None

        changes = {}
        for field, new_value in updates.items():
            if field not in TASK_COLUMNS:
                continue
            new_value = _db_value(new_value)
            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            conn.commit()

        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)


def delete_task_db(task_id: str, owner: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM tasks WHERE id = ? AND user_id = ?",
            (task_id, owner)
        )
        conn.commit()
        return cursor.rowcount > 0


# Recommendation operations
def get_recommendations(owner: str) -> list[Recommendation]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM recommendations WHERE user_id = ? ORDER BY position",
            (owner,)
        ).fetchall()
    return [_row_to_recommendation(row) for row in rows]


def delete_recommendations(owner: str) -> int:
    """Delete every recommendation owned by owner. Returns the number removed."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM recommendations WHERE user_id = ?", (owner,))
        conn.commit()
        return cursor.rowcount


def insert_recommendations(owner: str, drafts: list[RecommendationDraft]) -> list[Recommendation]:
    """Bulk insert recommendations, keeping the order they were generated in."""
    created_at = datetime.now().isoformat()
    records = [
        Recommendation(
            id=str(uuid.uuid4()),
            owner=owner,
            content=draft.content,
            type=draft.type,
            reasoning=draft.reasoning,
            created_at=created_at,
        )
        for draft in drafts
    ]
    with get_db() as conn:
        conn.executemany(
            """INSERT INTO recommendations (id, user_id, content, type, reasoning, position, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            [
                (rec.id, owner, rec.content, rec.type.value, rec.reasoning, position, created_at)
                for position, rec in enumerate(records)
            ]
        )
        conn.commit()
    return records


# User settings
def get_settings(owner: str) -> UserSettings:
    """Get an owner's settings, defaults when none were saved yet."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM user_settings WHERE user_id = ?",
            (owner,)
        ).fetchone()
    if not row:
        return UserSettings()
    return UserSettings(
        language=row["language"] or "he",
        theme=row["theme"] or "light",
        notifications=bool(row["notifications"]) if row["notifications"] is not None else True,
        api_key=row["api_key"],
        updated_at=row["updated_at"],
    )


def save_settings(owner: str, settings: UserSettings) -> UserSettings:
    now = datetime.now().isoformat()
    with get_db() as conn:
        conn.execute(
            """INSERT INTO user_settings (user_id, language, theme, notifications, api_key, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   language = excluded.language,
                   theme = excluded.theme,
                   notifications = excluded.notifications,
                   api_key = excluded.api_key,
                   updated_at = excluded.updated_at""",
            (owner, settings.language, settings.theme, int(settings.notifications), settings.api_key, now)
        )
        conn.commit()
    return settings.model_copy(update={"updated_at": now})


# Push notification tokens
def save_push_token(owner: str, token: str) -> None:
    now = datetime.now().isoformat()
    with get_db() as conn:
        conn.execute(
            """INSERT INTO push_tokens (user_id, token, created_at, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   token = excluded.token,
                   updated_at = excluded.updated_at""",
            (owner, token, now, now)
        )
        conn.commit()


def get_push_token(owner: str) -> Optional[str]:
    with get_db() as conn:
        row = conn.execute(
            "SELECT token FROM push_tokens WHERE user_id = ?",
            (owner,)
        ).fetchone()
    return row["token"] if row else None
