from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator


class DueDateType(str, Enum):
    DATE = "date"
    UNKNOWN = "unknown"
    URGENT = "urgent"
    ASAP = "asap"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecommendationType(str, Enum):
    URGENT = "urgent"
    OVERDUE = "overdue"
    MOTIVATION = "motivation"
    TASK_ANALYSIS = "task_analysis"


class Task(BaseModel):
    id: str
    owner: str
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None  # ISO format, only meaningful when due_date_type is "date"
    due_date_type: DueDateType = DueDateType.DATE
    status: TaskStatus = TaskStatus.PENDING
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    is_archived: bool = False
    created_at: str  # ISO format datetime string


def _clean_title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Task title must not be empty")
    return value


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    due_date_type: DueDateType = DueDateType.DATE
    status: TaskStatus = TaskStatus.PENDING
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, value: str) -> str:
        return _clean_title(value)

    @model_validator(mode="after")
    def check_recurrence_pattern(self):
        if not self.is_recurring:
            self.recurrence_pattern = None
        elif self.recurrence_pattern is None:
            raise ValueError("Recurring tasks need a recurrence pattern")
        return self


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    due_date_type: Optional[DueDateType] = None
    status: Optional[TaskStatus] = None
    is_recurring: Optional[bool] = None
    recurrence_pattern: Optional[RecurrencePattern] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, value: Optional[str]) -> Optional[str]:
        # an omitted title is never validated, so None here was sent explicitly
        if value is None:
            raise ValueError("Task title must not be empty")
        return _clean_title(value)


class TaskSummary(BaseModel):
    """The part of a task that is handed to the language model."""
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    due_date_type: DueDateType = DueDateType.DATE
    status: TaskStatus = TaskStatus.PENDING

    @classmethod
    def from_task(cls, task: Task) -> "TaskSummary":
        return cls(
            title=task.title,
            description=task.description,
            due_date=task.due_date,
            due_date_type=task.due_date_type,
            status=task.status,
        )


class RecommendationDraft(BaseModel):
    content: str
    type: RecommendationType
    reasoning: Optional[str] = None


class Recommendation(RecommendationDraft):
    id: str
    owner: str
    created_at: str


class Message(BaseModel):
    role: str  # "user" or "assistant"
    content: str


class AssistantPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    AWAITING_NAME = "awaiting_name"
    CHATTING = "chatting"


class AssistantState(BaseModel):
    phase: AssistantPhase = AssistantPhase.UNINITIALIZED
    user_name: Optional[str] = None
    messages: list[Message] = []


class AssistantMessageRequest(BaseModel):
    state: AssistantState
    content: str


class AssistantResponse(BaseModel):
    state: AssistantState
    reply: Optional[str] = None
    html: Optional[str] = None


class AIAssistantRequest(BaseModel):
    prompt: str
    type: str = "general"  # prioritize | split | motivate | general
    task_data: Optional[list[TaskSummary]] = None


class UserSettings(BaseModel):
    language: str = "he"
    theme: str = "light"
    notifications: bool = True
    api_key: Optional[str] = None
    updated_at: Optional[str] = None


class ApiKeyValidationRequest(BaseModel):
    api_key: Optional[str] = None


class PushTokenCreate(BaseModel):
    token: str

    @field_validator("token")
    @classmethod
    def token_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Token must not be empty")
        return value
