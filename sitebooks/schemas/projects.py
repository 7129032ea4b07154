import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from ..models.enums import ProjectStatus, TaskPriority, TaskStatus


class ProjectBase(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    supervisor_id: Optional[uuid.UUID] = None
    estimated_amount: Optional[Decimal] = None


class ProjectCreate(ProjectBase):
    # Status arrives as text; the service rejects values outside ProjectStatus
    status: Optional[str] = None


class ProjectUpdate(ProjectBase):
    status: Optional[str] = None


class ProjectStatusUpdate(BaseModel):
    status: str


class TaskCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[date] = None
    assigned_to: Optional[uuid.UUID] = None


class TaskUpdate(TaskCreate):
    pass


class TaskResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[date] = None
    assigned_to: Optional[uuid.UUID] = None
    completed_at: Optional[datetime] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ImageAttach(BaseModel):
    url: str
    caption: Optional[str] = None


class ImageResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    url: str
    caption: Optional[str] = None
    uploaded_by: Optional[uuid.UUID] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


class ProjectResponse(BaseModel):
    id: uuid.UUID
    name: str
    location: str
    description: Optional[str] = None
    status: ProjectStatus
    start_date: date
    end_date: Optional[date] = None
    supervisor_id: uuid.UUID
    estimated_amount: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class ProjectDetailResponse(ProjectResponse):
    tasks: List[TaskResponse] = []
    images: List[ImageResponse] = []
