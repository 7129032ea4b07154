import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.principal import Principal
from ..auth.security import get_current_principal
from ..schemas.projects import (
    ProjectCreate,
    ProjectUpdate,
    ProjectStatusUpdate,
    ProjectResponse,
    ProjectDetailResponse,
    TaskCreate,
    TaskResponse,
    ImageAttach,
    ImageResponse,
)
from ..services import workflow


router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=List[ProjectResponse])
def list_projects(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return workflow.list_projects(db, principal, status=status)


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(body: ProjectCreate, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    outcome = workflow.create_project(db, principal, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.get("/{project_id}", response_model=ProjectDetailResponse)
def get_project(project_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    project = workflow.get_project(db, principal, project_id)
    detail = ProjectResponse.model_validate(project).model_dump()
    detail["tasks"] = workflow.list_tasks(db, principal, project_id=project.id)
    detail["images"] = workflow.list_project_images(db, principal, project.id)
    return detail


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.update_project(db, principal, project_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.patch("/{project_id}/status", response_model=ProjectResponse)
def update_project_status(
    project_id: uuid.UUID,
    body: ProjectStatusUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.update_project_status(db, principal, project_id, body.status)
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


@router.delete("/{project_id}")
def delete_project(project_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    workflow.delete_project(db, principal, project_id)
    db.commit()
    return {"message": "Project deleted successfully"}


# ---------- TASKS ----------
@router.post("/{project_id}/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    project_id: uuid.UUID,
    body: TaskCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.create_task(db, principal, project_id, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity


# ---------- IMAGES ----------
@router.get("/{project_id}/images", response_model=List[ImageResponse])
def list_images(project_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return workflow.list_project_images(db, principal, project_id)


@router.post("/{project_id}/images", response_model=ImageResponse, status_code=201)
def attach_image(
    project_id: uuid.UUID,
    body: ImageAttach,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    outcome = workflow.attach_project_image(db, principal, project_id, body.url, body.caption)
    db.commit()
    db.refresh(outcome.entity)
    return outcome.entity
