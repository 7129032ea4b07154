import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.principal import Principal
from ..auth.security import get_current_principal
from ..schemas.materials import (
    MaterialCreate,
    MaterialUpdate,
    MaterialApprove,
    MaterialReject,
    MaterialReceive,
    MaterialConsume,
    MaterialResponse,
    MaterialOutcomeResponse,
)
from ..services import workflow


router = APIRouter(prefix="/materials", tags=["materials"])


def _committed(db: Session, outcome: workflow.Outcome):
    db.commit()
    db.refresh(outcome.entity)
    for txn in outcome.transactions:
        db.refresh(txn)
    return outcome


@router.get("", response_model=List[MaterialResponse])
def list_materials(
    project_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return workflow.list_materials(db, principal, project_id=project_id, status=status)


@router.post("", response_model=MaterialResponse, status_code=201)
def create_material(body: MaterialCreate, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    outcome = workflow.create_material(db, principal, **body.model_dump())
    return _committed(db, outcome).entity


@router.get("/{material_id}", response_model=MaterialResponse)
def get_material(material_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return workflow.get_material(db, principal, material_id)


@router.put("/{material_id}", response_model=MaterialResponse)
def update_material(
    material_id: uuid.UUID,
    body: MaterialUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.update_material(db, principal, material_id, body.model_dump(exclude_unset=True))
    return _committed(db, outcome).entity


@router.delete("/{material_id}")
def delete_material(material_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    workflow.delete_material(db, principal, material_id)
    db.commit()
    return {"message": "Material deleted successfully"}


# ---------- LIFECYCLE ----------
@router.post("/{material_id}/approve", response_model=MaterialResponse)
def approve_material(
    material_id: uuid.UUID,
    body: MaterialApprove,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.approve_material(db, principal, material_id, body.approved_quantity, body.notes)
    return _committed(db, outcome).entity


@router.post("/{material_id}/reject", response_model=MaterialResponse)
def reject_material(
    material_id: uuid.UUID,
    body: MaterialReject,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.reject_material(db, principal, material_id, body.notes)
    return _committed(db, outcome).entity


@router.post("/{material_id}/receive", response_model=MaterialOutcomeResponse)
def receive_material(
    material_id: uuid.UUID,
    body: MaterialReceive,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = _committed(db, workflow.receive_material(db, principal, material_id, **body.model_dump()))
    return {"material": outcome.entity, "transactions": outcome.transactions}


@router.post("/{material_id}/consume", response_model=MaterialResponse)
def consume_material(
    material_id: uuid.UUID,
    body: MaterialConsume,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.consume_material(db, principal, material_id, body.used_quantity, body.notes)
    return _committed(db, outcome).entity
