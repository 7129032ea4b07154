import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from ..models.enums import PartyType, TransactionStatus, TransactionType


class TransactionCreate(BaseModel):
    project_id: uuid.UUID
    type: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[Decimal] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    attachment_url: Optional[str] = None
    party_name: Optional[str] = None
    party_type: Optional[str] = None
    worker_id: Optional[uuid.UUID] = None
    material_id: Optional[uuid.UUID] = None
    status: Optional[str] = None


class TransactionUpdate(BaseModel):
    # Financial fields are accepted here so that an attempt to change them is
    # reported as such instead of being silently dropped
    type: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[Decimal] = None
    project_id: Optional[uuid.UUID] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    attachment_url: Optional[str] = None
    party_name: Optional[str] = None
    party_type: Optional[str] = None
    status: Optional[str] = None


class WorkerPayment(BaseModel):
    project_id: uuid.UUID
    amount: Optional[Decimal] = None
    payment_type: Optional[str] = None
    description: Optional[str] = None
    payment_method: Optional[str] = None


class TransactionResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    type: TransactionType
    category: str
    amount: Decimal
    date: datetime
    description: Optional[str] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    attachment_url: Optional[str] = None
    party_name: Optional[str] = None
    party_type: Optional[PartyType] = None
    worker_id: Optional[uuid.UUID] = None
    material_id: Optional[uuid.UUID] = None
    status: TransactionStatus
    created_by: Optional[uuid.UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ProjectSummaryResponse(BaseModel):
    project_id: uuid.UUID
    project_name: str
    income: Decimal
    expense: Decimal
    balance: Decimal


class WorkerSummaryResponse(BaseModel):
    worker_id: uuid.UUID
    worker_name: str
    total_salary: Decimal
    total_advance: Decimal
