from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

MAX_TAGS = 5
MAX_TAG_LEN = 20
MAX_PROJECT_LEN = 40
MAX_NOTE_LEN = 512
DEFAULT_PROJECT = "default"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Higher rank sorts first among tasks due at the same time
PRIORITY_RANK = {Priority.LOW: 0, Priority.MEDIUM: 1, Priority.HIGH: 2}


class Status(str, Enum):
    PENDING = "pending"
    DONE = "done"


class Task(BaseModel):
    id: str
    name: str
    created: int  # epoch seconds
    due: int = 0  # epoch seconds, 0 = no due date
    tags: list[str] = []
    project: str = DEFAULT_PROJECT
    priority: Priority = Priority.MEDIUM
    status: Status = Status.PENDING
    note: Optional[str] = None

class TaskCreate(BaseModel):
    name: str = Field(min_length=1)
    due: Optional[str] = None  # free text: "tomorrow 2pm", "may 20", "2025-01-21"
    tags: list[str] = Field(default=[], max_length=MAX_TAGS)
    project: str = Field(default=DEFAULT_PROJECT, max_length=MAX_PROJECT_LEN)
    priority: Priority = Priority.MEDIUM
    note: Optional[str] = Field(default=None, max_length=MAX_NOTE_LEN)

class TaskUpdate(BaseModel):
    name: Optional[str] = None
    due: Optional[str] = None  # free text; "" clears the due date
    tags: Optional[list[str]] = Field(default=None, max_length=MAX_TAGS)
    project: Optional[str] = Field(default=None, max_length=MAX_PROJECT_LEN)
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    note: Optional[str] = Field(default=None, max_length=MAX_NOTE_LEN)

class DateParseRequest(BaseModel):
    text: Optional[str] = None

class DateParseResponse(BaseModel):
    ok: bool
    due: int = 0
    iso: Optional[str] = None
    label: Optional[str] = None

class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=MAX_PROJECT_LEN)

class Message(BaseModel):
    role: str  # "user" or "assistant"
    content: str

class ChatRequest(BaseModel):
    messages: list[Message]
