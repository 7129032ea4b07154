import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator


class WorkerBase(BaseModel):
    name: Optional[str] = None
    trade: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    daily_wage: Optional[Decimal] = None
    joining_date: Optional[date] = None
    project_id: Optional[uuid.UUID] = None

    @field_validator("phone", "address", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class WorkerCreate(WorkerBase):
    pass


class WorkerUpdate(WorkerBase):
    pass


class WorkerResponse(BaseModel):
    id: uuid.UUID
    name: str
    trade: str
    phone: Optional[str] = None
    address: Optional[str] = None
    daily_wage: Decimal
    joining_date: date
    project_id: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True
