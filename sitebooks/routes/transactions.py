import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.principal import Principal
from ..auth.security import get_current_principal
from ..schemas.transactions import (
    TransactionCreate,
    TransactionUpdate,
    TransactionResponse,
    ProjectSummaryResponse,
)
from ..services import workflow


router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=List[TransactionResponse])
def list_transactions(
    project_id: Optional[uuid.UUID] = None,
    type: Optional[str] = None,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return workflow.list_transactions(
        db,
        principal,
        project_id=project_id,
        type=type,
        category=category,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", response_model=TransactionResponse, status_code=201)
def create_transaction(body: TransactionCreate, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    outcome = workflow.create_transaction(db, principal, body.model_dump())
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.get("/summary", response_model=List[ProjectSummaryResponse])
def project_summary(
    project_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return workflow.project_transaction_summary(db, principal, project_id=project_id)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return workflow.get_transaction(db, principal, transaction_id)


@router.put("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: uuid.UUID,
    body: TransactionUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.update_transaction(db, principal, transaction_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.delete("/{transaction_id}")
def delete_transaction(transaction_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    workflow.delete_transaction(db, principal, transaction_id)
    db.commit()
    return {"message": "Transaction deleted successfully"}
