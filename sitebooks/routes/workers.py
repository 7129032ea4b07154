import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.principal import Principal
from ..auth.security import get_current_principal
from ..schemas.workers import WorkerCreate, WorkerUpdate, WorkerResponse
from ..schemas.transactions import (
    WorkerPayment,
    WorkerSummaryResponse,
    TransactionResponse,
)
from ..services import workflow


router = APIRouter(prefix="/workers", tags=["workers"])


@router.get("", response_model=List[WorkerResponse])
def list_workers(
    project_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return workflow.list_workers(db, principal, project_id=project_id)


@router.post("", response_model=WorkerResponse, status_code=201)
def create_worker(body: WorkerCreate, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    outcome = workflow.create_worker(db, principal, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.get("/{worker_id}", response_model=WorkerResponse)
def get_worker(worker_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return workflow.get_worker(db, principal, worker_id)


@router.put("/{worker_id}", response_model=WorkerResponse)
def update_worker(
    worker_id: uuid.UUID,
    body: WorkerUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.update_worker(db, principal, worker_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.delete("/{worker_id}")
def delete_worker(worker_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    workflow.delete_worker(db, principal, worker_id)
    db.commit()
    return {"message": "Worker deleted successfully"}


# ---------- PAYMENTS ----------
@router.get("/{worker_id}/payments", response_model=List[TransactionResponse])
def list_payments(worker_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return workflow.list_worker_payments(db, principal, worker_id)


@router.get("/{worker_id}/payments/summary", response_model=WorkerSummaryResponse)
def payment_summary(worker_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return workflow.worker_payment_summary(db, principal, worker_id)


@router.post("/{worker_id}/payments", response_model=TransactionResponse, status_code=201)
def pay_worker(
    worker_id: uuid.UUID,
    body: WorkerPayment,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.pay_worker(db, principal, worker_id=worker_id, **body.model_dump())
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity
