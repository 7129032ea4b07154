import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from ..models.enums import MaterialStatus
from .transactions import TransactionResponse


class MaterialCreate(BaseModel):
    project_id: uuid.UUID
    name: Optional[str] = None
    unit: Optional[str] = None
    quantity: Optional[Decimal] = None
    cost: Optional[Decimal] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None
    date: Optional[datetime] = None


class MaterialUpdate(BaseModel):
    project_id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    unit: Optional[str] = None
    quantity: Optional[Decimal] = None
    cost: Optional[Decimal] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None
    date: Optional[datetime] = None
    status: Optional[str] = None


class MaterialApprove(BaseModel):
    approved_quantity: Optional[Decimal] = None
    notes: Optional[str] = None


class MaterialReject(BaseModel):
    notes: Optional[str] = None


class MaterialReceive(BaseModel):
    received_quantity: Optional[Decimal] = None
    cost: Optional[Decimal] = None
    received_image: Optional[str] = None
    notes: Optional[str] = None


class MaterialConsume(BaseModel):
    used_quantity: Decimal
    notes: Optional[str] = None


class MaterialResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    unit: str
    supplier: Optional[str] = None
    quantity: Decimal
    cost: Decimal
    date: datetime
    status: MaterialStatus
    approved_quantity: Optional[Decimal] = None
    received_quantity: Optional[Decimal] = None
    used_quantity: Optional[Decimal] = None
    requested_by: Optional[uuid.UUID] = None
    approved_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    received_image: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MaterialOutcomeResponse(BaseModel):
    material: MaterialResponse
    transactions: List[TransactionResponse] = []
