import sqlite3
import json
import logging
from datetime import datetime, timedelta
from typing import Optional
from contextlib import contextmanager

import config
from models import (
    Task,
    Priority,
    Status,
    PRIORITY_RANK,
    DEFAULT_PROJECT,
    MAX_TAGS,
    MAX_TAG_LEN,
)
from utils import time_to_iso8601, iso8601_to_time

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH

DATE_PRESETS = ("today", "tomorrow", "this_week", "next_week", "overdue")
SORT_FIELDS = ("name", "due", "creation")

@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory against the same file the app opens
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    env = {**os.environ, "TSKR_DATABASE_PATH": os.path.abspath(DATABASE_PATH)}
    logger.info("Migrating %s", env["TSKR_DATABASE_PATH"])
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        env=env,
        check=True
    )

def _clean_tags(tags: Optional[list[str]]) -> list[str]:
    """Drop empty tags, clip each to MAX_TAG_LEN and keep at most MAX_TAGS."""
    cleaned = [tag.strip()[:MAX_TAG_LEN] for tag in tags or [] if tag and tag.strip()]
    return cleaned[:MAX_TAGS]

def _encode_due(due: int) -> Optional[str]:
    return time_to_iso8601(due) if due else None

def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    return Task(
        id=row["id"],
        name=row["name"],
        created=iso8601_to_time(row["created"]),
        due=iso8601_to_time(row["due"]),
        tags=json.loads(row["tags"] or "[]"),
        project=row["project"] or DEFAULT_PROJECT,
        priority=Priority(row["priority"]),
        status=Status(row["status"]),
        note=row["note"],
    )


# Task operations
def get_all_tasks(project: Optional[str] = None) -> list[Task]:
    with get_db() as conn:
        if project:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE project = ? ORDER BY created, rowid",
                (project,)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM tasks ORDER BY created, rowid").fetchall()
        return [_row_to_task(row) for row in rows]

def get_task_db(task_id: str) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row:
            return _row_to_task(row)
    return None

def create_task_db(
    task_id: str,
    name: str,
    due: int = 0,
    tags: Optional[list[str]] = None,
    project: str = DEFAULT_PROJECT,
    priority: Priority = Priority.MEDIUM,
    note: Optional[str] = None,
    created: Optional[int] = None
) -> Task:
    """Create a pending task.
    due and created are epoch seconds; due=0 means no due date.
    created defaults to now.
    """
    if created is None:
        created = int(datetime.now().timestamp())
    tags = _clean_tags(tags)
    project = project or DEFAULT_PROJECT

    with get_db() as conn:
        conn.execute(
            """INSERT INTO tasks
               (id, name, created, due, tags, project, priority, status, note)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (task_id, name, time_to_iso8601(created), _encode_due(due), json.dumps(tags),
             project, Priority(priority).value, Status.PENDING.value, note)
        )
        conn.commit()

    return Task(
        id=task_id,
        name=name,
        created=created,
        due=due,
        tags=tags,
        project=project,
        priority=priority,
        status=Status.PENDING,
        note=note,
    )

def _to_column(field: str, value):
    """Convert a Task field value to its stored form."""
    if field == "due":
        return _encode_due(value)
    if field == "tags":
        return json.dumps(_clean_tags(value))
    if isinstance(value, (Priority, Status)):
        return value.value
    return value

def update_task_db(task_id: str, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values.

    Args:
        task_id: Task ID to update
        **updates: Field names and values to update (name, due, tags, project, priority, status, note)
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None

        keys = row.keys()

        # Filter updates: only include fields that differ from current values
        changes = {}
        for field, new_value in updates.items():
            if field not in keys or field in ("id", "created"):
                continue
            stored = _to_column(field, new_value)
            if stored != row[field]:
                changes[field] = stored

        # Execute UPDATE only if there are actual changes
        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            conn.commit()
            logger.debug("Updated task %s: %s", task_id, sorted(changes))

        # Return updated task (re-fetch to get current state)
        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)

def toggle_task_status_db(task_id: str) -> Optional[Task]:
    """Flip a task between pending and done."""
    task = get_task_db(task_id)
    if not task:
        return None
    new_status = Status.PENDING if task.status == Status.DONE else Status.DONE
    return update_task_db(task_id, status=new_status)

def delete_task_db(task_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        conn.commit()
        return cursor.rowcount > 0


# Filtering and sorting (operate on already-loaded task lists)
def filter_by_search(tasks: list[Task], term: Optional[str]) -> list[Task]:
    """Case-insensitive substring match on name or any tag. Empty term keeps all."""
    if not term:
        return list(tasks)
    term = term.lower()
    return [
        task for task in tasks
        if term in task.name.lower() or any(term in tag.lower() for tag in task.tags)
    ]

def filter_by_date_range(tasks: list[Task], start: int = 0, end: int = 0) -> list[Task]:
    """
    Tasks due within [start, end] (epoch seconds, inclusive).
    0 leaves that side unbounded. Tasks without a due date never match.
    """
    return [
        task for task in tasks
        if task.due
        and (not start or task.due >= start)
        and (not end or task.due <= end)
    ]

def _epoch(moment: datetime) -> int:
    return int(moment.timestamp())

def filter_by_date_preset(tasks: list[Task], preset: str, now: datetime) -> list[Task]:
    """
    Filter by one of DATE_PRESETS relative to now (local wall clock).
    Weeks run Sunday to Saturday; this_week starts at midnight today.
    Raises ValueError for an unknown preset.
    """
    preset = preset.lower().strip()
    midnight = datetime(now.year, now.month, now.day)
    # Days until the coming Sunday (1-7)
    to_sunday = 7 - (now.weekday() + 1) % 7

    if preset == "today":
        return filter_by_date_range(tasks, _epoch(midnight), _epoch(midnight + timedelta(days=1)) - 1)
    if preset == "tomorrow":
        start = midnight + timedelta(days=1)
        return filter_by_date_range(tasks, _epoch(start), _epoch(start + timedelta(days=1)) - 1)
    if preset == "this_week":
        end = midnight + timedelta(days=to_sunday)
        return filter_by_date_range(tasks, _epoch(midnight), _epoch(end) - 1)
    if preset == "next_week":
        start = midnight + timedelta(days=to_sunday)
        return filter_by_date_range(tasks, _epoch(start), _epoch(start + timedelta(days=7)) - 1)
    if preset == "overdue":
        cutoff = _epoch(now)
        return [
            task for task in tasks
            if task.due and task.due < cutoff and task.status == Status.PENDING
        ]
    raise ValueError(f"Unknown date range: {preset}")

def filter_by_priority(tasks: list[Task], priority: Priority) -> list[Task]:
    return [task for task in tasks if task.priority == priority]

def filter_by_status(tasks: list[Task], status: Status) -> list[Task]:
    return [task for task in tasks if task.status == status]

def sort_tasks(tasks: list[Task], by: str) -> list[Task]:
    """
    Sort by "name", "due" or "creation".
    Due: tasks without a due date go last; equal due dates put higher priority first.
    Raises ValueError for an unknown field.
    """
    by = by.lower().strip()
    if by == "name":
        return sorted(tasks, key=lambda task: task.name)
    if by == "due":
        return sorted(
            tasks,
            key=lambda task: (task.due == 0, task.due, -PRIORITY_RANK[task.priority])
        )
    if by == "creation":
        return sorted(tasks, key=lambda task: task.created)
    raise ValueError(f"Invalid sort field: {by}. Use 'name', 'due', or 'creation'.")


# Project operations
def get_projects() -> list[str]:
    """Project names in creation order, always starting with the default project."""
    with get_db() as conn:
        rows = conn.execute("SELECT name FROM projects ORDER BY created_at, rowid").fetchall()
    names = [row["name"] for row in rows if row["name"] != DEFAULT_PROJECT]
    return [DEFAULT_PROJECT] + names

def add_project_db(name: str) -> bool:
    """Add a project. Returns False if it already exists."""
    name = name.strip()
    if not name or name in get_projects():
        return False
    with get_db() as conn:
        conn.execute(
            "INSERT INTO projects (name, created_at) VALUES (?, ?)",
            (name, datetime.now().isoformat())
        )
        conn.commit()
    return True


# Conversation operations
def get_conversation() -> list[dict]:
    """Get the saved conversation messages."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT messages FROM conversations ORDER BY updated_at DESC LIMIT 1"
        ).fetchone()
        if row:
            return json.loads(row["messages"])
        return []

def save_conversation(messages: list[dict]):
    """Save conversation messages, replacing the previous ones."""
    now = datetime.now().isoformat()
    messages_json = json.dumps(messages)
    with get_db() as conn:
        row = conn.execute("SELECT id FROM conversations ORDER BY updated_at DESC LIMIT 1").fetchone()
        if row:
            conn.execute(
                "UPDATE conversations SET messages = ?, updated_at = ? WHERE id = ?",
                (messages_json, now, row["id"])
            )
        else:
            conn.execute(
                "INSERT INTO conversations (messages, created_at, updated_at) VALUES (?, ?, ?)",
                (messages_json, now, now)
            )
        conn.commit()
