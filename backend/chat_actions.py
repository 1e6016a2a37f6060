"""
Execute the JSON actions returned by the chat model.

Every handler gets the action params, the task list the model was shown
(tasks are addressed by 1-based index into it) and the current time. Bad
params are reported back as a failed ActionResult, never raised.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from database import (
    create_task_db,
    update_task_db,
    delete_task_db,
    add_project_db,
    get_projects,
    get_all_tasks,
    filter_by_search,
    filter_by_date_preset,
    filter_by_priority,
    filter_by_status,
    sort_tasks,
    DATE_PRESETS,
)
from date_parser import format_natural_date
from models import Task, Priority, Status, DEFAULT_PROJECT
from utils import parse_machine_date

logger = logging.getLogger(__name__)


class ActionError(ValueError):
    """Invalid or missing action params."""


@dataclass
class ActionResult:
    ok: bool
    message: str
    tasks: Optional[list[Task]] = None  # filtered/sorted view; None means the full list


def format_task_list(tasks: list[Task], now: datetime) -> str:
    """Numbered task list for the system prompt."""
    if not tasks:
        return "(no tasks)"
    lines = []
    for i, task in enumerate(tasks, start=1):
        mark = "x" if task.status == Status.DONE else " "
        line = f"{i}. [{mark}] {task.name} ({task.priority.value})"
        if task.due:
            line += f" due {format_natural_date(task.due, clock=lambda: now)}"
        if task.tags:
            line += " " + " ".join(f"#{tag}" for tag in task.tags)
        if task.project != DEFAULT_PROJECT:
            line += f" [{task.project}]"
        lines.append(line)
    return "\n".join(lines)


def _require_str(params: dict, key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ActionError(f"Missing '{key}' parameter.")
    return value.strip()


def _task_at(params: dict, tasks: list[Task]) -> Task:
    index = params.get("index")
    if isinstance(index, bool) or not isinstance(index, int):
        raise ActionError("Missing or invalid 'index' parameter.")
    if not 1 <= index <= len(tasks):
        raise ActionError(f"Task index {index} out of range (1-{len(tasks)}).")
    return tasks[index - 1]


def _priority(value) -> Priority:
    try:
        return Priority(str(value).lower())
    except ValueError:
        raise ActionError(f"Invalid priority: {value}. Use 'low', 'medium', or 'high'.")


def _status(value) -> Status:
    try:
        return Status(str(value).lower())
    except ValueError:
        raise ActionError(f"Invalid status: {value}. Use 'pending' or 'done'.")


def _due(value) -> int:
    """Machine-formatted due date from the model; "" or null clears it."""
    if not value:
        return 0
    due = parse_machine_date(str(value))
    if not due:
        raise ActionError(f"Invalid due date: {value}. Use YYYY-MM-DD.")
    return due


def _tags(value) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ActionError("'tags' must be a list of strings.")
    return [str(tag) for tag in value]


def handle_add_task(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    name = _require_str(params, "name")
    project = params.get("project") or DEFAULT_PROJECT
    if project not in get_projects():
        add_project_db(project)
    task = create_task_db(
        str(uuid.uuid4()),
        name,
        due=_due(params.get("due")),
        tags=_tags(params.get("tags")),
        project=project,
        priority=_priority(params.get("priority") or "medium"),
    )
    return ActionResult(True, f"Added task '{task.name}'.")


def handle_edit_task(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    task = _task_at(params, tasks)
    updates = {}
    if "name" in params:
        updates["name"] = _require_str(params, "name")
    if "due" in params:
        updates["due"] = _due(params["due"])
    if "tags" in params:
        updates["tags"] = _tags(params["tags"])
    if "priority" in params:
        updates["priority"] = _priority(params["priority"])
    if "status" in params:
        updates["status"] = _status(params["status"])
    if not updates:
        raise ActionError("Nothing to change for edit_task.")
    update_task_db(task.id, **updates)
    return ActionResult(True, f"Updated task '{task.name}'.")


def handle_mark_done(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    task = _task_at(params, tasks)
    update_task_db(task.id, status=Status.DONE)
    return ActionResult(True, f"Marked '{task.name}' as done.")


def handle_delete_task(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    task = _task_at(params, tasks)
    delete_task_db(task.id)
    return ActionResult(True, f"Deleted task '{task.name}'.")


def handle_add_project(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    name = _require_str(params, "name")
    if not add_project_db(name):
        return ActionResult(False, f"Project '{name}' already exists.")
    return ActionResult(True, f"Created project '{name}'.")


def handle_search_tasks(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    term = params.get("term") or ""
    return ActionResult(True, f"Searching for '{term}'.", filter_by_search(get_all_tasks(), term))


def handle_sort_tasks(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    by = _require_str(params, "by")
    try:
        ordered = sort_tasks(get_all_tasks(), by)
    except ValueError as e:
        raise ActionError(str(e))
    return ActionResult(True, f"Tasks sorted by {by.lower()}.", ordered)


def handle_filter_by_date(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    preset = _require_str(params, "range").lower()
    if preset not in DATE_PRESETS:
        raise ActionError(f"Invalid range: {preset}. Use one of {', '.join(DATE_PRESETS)}.")
    label = preset.replace("_", " ")
    return ActionResult(True, f"Filtering tasks due {label}.",
                        filter_by_date_preset(get_all_tasks(), preset, now))


def handle_filter_by_priority(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    priority = _priority(_require_str(params, "level"))
    return ActionResult(True, f"Showing {priority.value} priority tasks.",
                        filter_by_priority(get_all_tasks(), priority))


def handle_filter_by_status(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    status = _status(_require_str(params, "status"))
    return ActionResult(True, f"Showing {status.value} tasks.",
                        filter_by_status(get_all_tasks(), status))


def handle_list_tasks(params: dict, tasks: list[Task], now: datetime) -> ActionResult:
    return ActionResult(True, "Showing all tasks.")


ACTION_HANDLERS: dict[str, Callable[[dict, list[Task], datetime], ActionResult]] = {
    "add_task": handle_add_task,
    "edit_task": handle_edit_task,
    "mark_done": handle_mark_done,
    "delete_task": handle_delete_task,
    "add_project": handle_add_project,
    "search_tasks": handle_search_tasks,
    "sort_tasks": handle_sort_tasks,
    "filter_by_date": handle_filter_by_date,
    "filter_by_priority": handle_filter_by_priority,
    "filter_by_status": handle_filter_by_status,
    "list_tasks": handle_list_tasks,
}


def dispatch_action(action: str, params: Optional[dict], tasks: list[Task], now: datetime) -> ActionResult:
    """Run one model action. "none" is a plain reply with nothing to execute."""
    if action == "none":
        return ActionResult(True, "")
    handler = ACTION_HANDLERS.get(action)
    if handler is None:
        return ActionResult(False, f"Unknown action: {action}")
    if params is None:
        params = {}
    if not isinstance(params, dict):
        return ActionResult(False, f"Invalid params for {action}.")
    try:
        return handler(params, tasks, now)
    except ActionError as e:
        logger.warning("Action %s failed: %s", action, e)
        return ActionResult(False, str(e))
