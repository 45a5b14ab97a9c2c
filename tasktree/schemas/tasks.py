import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from tasktree.models.enums import TaskCategory, TaskStatus

class TaskCreateIn(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str = ""
    status: TaskStatus = TaskStatus.todo
    category: TaskCategory = TaskCategory.work
    priority: int = 0
    due_date: datetime | None = None
    # defaults to the caller's own org
    organization_id: uuid.UUID | None = None

class TaskUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = None
    status: TaskStatus | None = None
    category: TaskCategory | None = None
    priority: int | None = None
    due_date: datetime | None = None

class TaskOut(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str
    status: TaskStatus
    category: TaskCategory
    priority: int
    due_date: datetime | None
    created_at: datetime
    updated_at: datetime
