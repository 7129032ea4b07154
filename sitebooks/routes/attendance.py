import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.principal import Principal
from ..auth.security import get_current_principal
from ..schemas.attendance import AttendanceCreate, AttendanceUpdate, AttendanceResponse
from ..services import workflow


router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.get("", response_model=List[AttendanceResponse])
def list_attendance(
    project_id: Optional[uuid.UUID] = None,
    worker_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return workflow.list_attendance(
        db,
        principal,
        project_id=project_id,
        worker_id=worker_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", response_model=AttendanceResponse, status_code=201)
def record_attendance(body: AttendanceCreate, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    outcome = workflow.record_attendance(db, principal, **body.model_dump())
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.get("/{attendance_id}", response_model=AttendanceResponse)
def get_attendance(attendance_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return workflow.get_attendance(db, principal, attendance_id)


@router.put("/{attendance_id}", response_model=AttendanceResponse)
def update_attendance(
    attendance_id: uuid.UUID,
    body: AttendanceUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.update_attendance(db, principal, attendance_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.delete("/{attendance_id}")
def delete_attendance(attendance_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    workflow.delete_attendance(db, principal, attendance_id)
    db.commit()
    return {"message": "Attendance record deleted successfully"}
