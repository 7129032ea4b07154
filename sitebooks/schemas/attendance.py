import uuid
import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from ..models.enums import AttendanceStatus


class AttendanceCreate(BaseModel):
    project_id: uuid.UUID
    worker_id: uuid.UUID
    date: Optional[dt.date] = None
    status: Optional[str] = None
    hours_worked: Optional[Decimal] = None
    overtime_hours: Optional[Decimal] = None
    overtime_rate: Optional[Decimal] = None
    daily_wage: Optional[Decimal] = None
    notes: Optional[str] = None


class AttendanceUpdate(BaseModel):
    status: Optional[str] = None
    hours_worked: Optional[Decimal] = None
    overtime_hours: Optional[Decimal] = None
    overtime_rate: Optional[Decimal] = None
    daily_wage: Optional[Decimal] = None
    notes: Optional[str] = None


class AttendanceResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    worker_id: uuid.UUID
    date: dt.date
    status: AttendanceStatus
    hours_worked: Optional[Decimal] = None
    overtime_hours: Decimal
    overtime_rate: Decimal
    daily_wage: Decimal
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: dt.datetime

    class Config:
        from_attributes = True
