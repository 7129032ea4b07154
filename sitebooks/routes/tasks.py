import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.principal import Principal
from ..auth.security import get_current_principal
from ..schemas.projects import TaskUpdate, TaskResponse
from ..services import workflow


router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    project_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return workflow.list_tasks(db, principal, project_id=project_id)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(task_id: uuid.UUID, body: TaskUpdate, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    outcome = workflow.update_task(db, principal, task_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.delete("/{task_id}")
def delete_task(task_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    workflow.delete_task(db, principal, task_id)
    db.commit()
    return {"message": "Task deleted successfully"}
