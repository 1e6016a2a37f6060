from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import uuid
import json
import logging
import anthropic

import config
from models import (
    Task,
    TaskCreate,
    TaskUpdate,
    Priority,
    Status,
    DateParseRequest,
    DateParseResponse,
    ProjectCreate,
    ChatRequest,
)
from database import (
    init_db,
    get_all_tasks,
    create_task_db,
    update_task_db,
    toggle_task_status_db,
    delete_task_db,
    filter_by_search,
    filter_by_date_preset,
    filter_by_priority,
    filter_by_status,
    sort_tasks,
    get_projects,
    add_project_db,
    get_conversation,
    save_conversation
)
from date_parser import (
    ParseOutcome,
    Success,
    system_clock,
    parse_natural_date,
    parse_time_today,
    format_natural_date,
)
from prompts import SYSTEM_PROMPT
from chat_actions import dispatch_action, format_task_list
from utils import parse_due, time_to_iso8601

config.configure_logging()
logger = logging.getLogger(__name__)

# Source of "now" for every date parsed or formatted by the API
CLOCK = system_clock

@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

client = anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY)


def _parse_due_or_422(text: str) -> int:
    """Free-text due date to epoch seconds; 422 asks the caller to re-enter it."""
    due = parse_due(text, clock=CLOCK)
    if not due:
        logger.warning("Could not parse due date %r", text)
        raise HTTPException(
            status_code=422,
            detail=f"Could not understand due date '{text}'. Try e.g. 'tomorrow 2pm', 'next monday', 'in 3 days' or 'may 20'."
        )
    return due


def _preview(outcome: ParseOutcome) -> DateParseResponse:
    if not isinstance(outcome, Success):
        return DateParseResponse(ok=False)
    return DateParseResponse(
        ok=True,
        due=outcome.timestamp,
        iso=time_to_iso8601(outcome.timestamp),
        label=format_natural_date(outcome.instant, clock=CLOCK),
    )


@app.get("/tasks")
def get_tasks(
    search: Optional[str] = None,
    project: Optional[str] = None,
    due_range: Optional[str] = Query(default=None, alias="range"),
    priority: Optional[Priority] = None,
    status: Optional[Status] = None,
    sort: Optional[str] = None
) -> list[Task]:
    tasks = filter_by_search(get_all_tasks(project), search)
    try:
        if due_range:
            tasks = filter_by_date_preset(tasks, due_range, CLOCK())
        if sort:
            tasks = sort_tasks(tasks, sort)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if priority:
        tasks = filter_by_priority(tasks, priority)
    if status:
        tasks = filter_by_status(tasks, status)
    return tasks


@app.post("/tasks")
def create_task(task_data: TaskCreate) -> Task:
    due = _parse_due_or_422(task_data.due) if task_data.due else 0
    if task_data.project not in get_projects():
        add_project_db(task_data.project)
    return create_task_db(
        str(uuid.uuid4()),
        task_data.name,
        due=due,
        tags=task_data.tags,
        project=task_data.project,
        priority=task_data.priority,
        note=task_data.note
    )


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskUpdate) -> Task:
    updates = task_data.model_dump(exclude_none=True)
    if "due" in updates:
        updates["due"] = _parse_due_or_422(updates["due"]) if updates["due"].strip() else 0
    result = update_task_db(task_id, **updates)
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


@app.post("/tasks/{task_id}/toggle")
def toggle_task(task_id: str) -> Task:
    result = toggle_task_status_db(task_id)
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str) -> dict:
    if not delete_task_db(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "deleted"}


@app.post("/dates/parse")
def parse_date_endpoint(request: DateParseRequest) -> DateParseResponse:
    """Preview a free-text due date before saving it."""
    return _preview(parse_natural_date(request.text, clock=CLOCK))


@app.post("/dates/time")
def parse_time_endpoint(request: DateParseRequest) -> DateParseResponse:
    """Preview a time of day; a time already passed today means tomorrow."""
    return _preview(parse_time_today(request.text, clock=CLOCK))


@app.get("/projects")
def list_projects() -> list[str]:
    return get_projects()


@app.post("/projects")
def create_project(project: ProjectCreate) -> list[str]:
    if not add_project_db(project.name):
        raise HTTPException(status_code=409, detail="Project already exists")
    return get_projects()


@app.get("/conversation")
def get_conversation_endpoint() -> list[dict]:
    """Get saved conversation history."""
    return get_conversation()


def _strip_code_fence(text: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]  # Remove last line (```)
        text = "\n".join(lines)
    return text


@app.post("/chat")
async def chat(chat_request: ChatRequest) -> dict:
    """Process user message through Claude and execute the returned action."""

    if not config.ANTHROPIC_API_KEY or config.ANTHROPIC_API_KEY == "your-api-key-here":
        return {"response": "API key not configured", "tasks": get_all_tasks()}

    now = CLOCK()
    tasks = get_all_tasks()

    # Convert messages to Claude API format
    api_messages = [{"role": m.role, "content": m.content} for m in chat_request.messages]
    system_prompt = SYSTEM_PROMPT.format(
        today=now.strftime("%Y-%m-%d"),
        task_list=format_task_list(tasks, now)
    )

    try:
        response = await client.messages.create(
            model=config.MODEL,
            max_tokens=512,
            system=system_prompt,
            messages=api_messages
        )
    except anthropic.APIError as e:
        logger.warning("Claude API error: %s", e)
        return {"response": f"API error: {e}", "tasks": tasks}

    ai_text = _strip_code_fence(response.content[0].text)
    logger.debug("Claude response: %s", ai_text)

    try:
        parsed = json.loads(ai_text)
    except json.JSONDecodeError:
        logger.warning("Unparseable Claude response: %r", ai_text)
        return {"response": "Failed to parse AI response", "tasks": tasks}
    if not isinstance(parsed, dict):
        return {"response": "Failed to parse AI response", "tasks": tasks}

    result = dispatch_action(parsed.get("action", "none"), parsed.get("params"), tasks, now)
    if result.ok:
        message = parsed.get("message") or result.message or "Done"
    else:
        message = result.message

    # Save conversation with assistant response
    conversation = [{"role": m.role, "content": m.content} for m in chat_request.messages]
    conversation.append({"role": "assistant", "content": message})
    save_conversation(conversation)

    shown = result.tasks if result.tasks is not None else get_all_tasks()
    return {"response": message, "tasks": shown}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
