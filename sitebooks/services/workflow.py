"""
Domain operations.

Each mutating operation runs the same sequence:

1. resolve the target project(s), ``NotFound`` for unknown ids
2. authorize, ``Forbidden`` on deny
3. validate input, ``InvalidInput`` on bad shape or range
4. apply the transition or ledger write
5. return the entity plus any transactions created on the way

Steps 1-3 never write. Callers own the unit of work: they commit on success
and roll back on any error.
"""
import datetime as dt
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..auth.principal import Principal
from ..errors import InvalidInput, NotFound
from ..models.enums import (
    AttendanceStatus,
    MaterialStatus,
    ProjectStatus,
    TaskStatus,
    TaskPriority,
    TransactionType,
    PaymentType,
    PartyType,
    CATEGORY_WORKER_ADVANCE,
    CATEGORY_WORKER_SALARY,
)
from ..models.models import (
    Attendance,
    Material,
    Project,
    ProjectImage,
    ProjectTask,
    Transaction,
    User,
    Worker,
)
from . import attendance as attendance_recorder
from . import ledger
from . import material_lifecycle as lifecycle
from .ledger import ZERO, coerce_enum, to_decimal
from .policy import Action, ensure_authorized, ensure_can_reassign
from .scope import apply_scope, resolve_scope


logger = structlog.get_logger(__name__)


@dataclass
class Outcome:
    entity: Any
    transactions: List[Transaction] = field(default_factory=list)


# ---------- RESOLUTION ----------

def _get(db: Session, model, entity_id: Optional[uuid.UUID], label: str):
    row = db.get(model, entity_id) if entity_id is not None else None
    if row is None:
        raise NotFound(f"{label} not found", id=str(entity_id) if entity_id else None)
    return row


def _project(db: Session, project_id: Optional[uuid.UUID]) -> Project:
    return _get(db, Project, project_id, "Project")


def _worker(db: Session, worker_id: Optional[uuid.UUID]) -> Worker:
    return _get(db, Worker, worker_id, "Worker")


def _material(db: Session, material_id: uuid.UUID) -> Material:
    return _get(db, Material, material_id, "Material")


def _scoped(db: Session, principal: Principal, query, column, project_id: Optional[uuid.UUID] = None):
    """Apply the principal's scope to ``query``; an explicit project filter must be in scope."""
    if project_id is not None:
        _project(db, project_id)
        ensure_authorized(db, principal, Action.read, project_id)
        return query.filter(column == project_id)
    return apply_scope(query, column, resolve_scope(db, principal))


def _required_text(value: Any, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{field_name} is required", field=field_name)
    return str(value).strip()


def _check_fields(changes: Dict[str, Any], allowed) -> None:
    unknown = sorted(set(changes) - set(allowed))
    if unknown:
        raise InvalidInput("Unknown fields", fields=unknown)


def _day_bounds(start: Optional[dt.date], end: Optional[dt.date]):
    lower = dt.datetime.combine(start, dt.time.min) if start else None
    upper = dt.datetime.combine(end + dt.timedelta(days=1), dt.time.min) if end else None
    return lower, upper


# ---------- PROJECTS ----------

PROJECT_FIELDS = ("name", "location", "description", "start_date", "end_date", "supervisor_id", "status", "estimated_amount")


def _check_project_fields(db: Session, values: Dict[str, Any]) -> Dict[str, Any]:
    clean = dict(values)
    for name in ("name", "location"):
        if name in clean:
            clean[name] = _required_text(clean[name], name)
    if "start_date" in clean and clean["start_date"] is None:
        raise InvalidInput("start_date is required", field="start_date")
    if "status" in clean:
        clean["status"] = coerce_enum(ProjectStatus, clean["status"] or ProjectStatus.planning, "status")
    if "estimated_amount" in clean:
        clean["estimated_amount"] = to_decimal(clean["estimated_amount"] or 0, "estimated_amount")
        if clean["estimated_amount"] < ZERO:
            raise InvalidInput("estimated_amount must be 0 or greater", field="estimated_amount")
    if "supervisor_id" in clean:
        supervisor = db.get(User, clean["supervisor_id"]) if clean["supervisor_id"] else None
        if supervisor is None or not supervisor.is_active:
            raise NotFound("Supervisor not found", id=str(clean["supervisor_id"]))
    return clean


def list_projects(db: Session, principal: Principal, status: Any = None) -> List[Project]:
    query = apply_scope(db.query(Project), Project.id, resolve_scope(db, principal))
    if status is not None:
        query = query.filter(Project.status == coerce_enum(ProjectStatus, status, "status"))
    return query.order_by(Project.created_at.desc()).all()


def get_project(db: Session, principal: Principal, project_id: uuid.UUID) -> Project:
    project = _project(db, project_id)
    ensure_authorized(db, principal, Action.read, project.id)
    return project


def create_project(db: Session, principal: Principal, values: Dict[str, Any]) -> Outcome:
    ensure_authorized(db, principal, Action.create_project, None)
    _check_fields(values, PROJECT_FIELDS)
    for required in ("name", "location", "start_date", "supervisor_id"):
        if values.get(required) is None:
            raise InvalidInput(f"{required} is required", field=required)
    clean = _check_project_fields(db, values)
    if clean.get("end_date") and clean["end_date"] < clean["start_date"]:
        raise InvalidInput("end_date cannot be before start_date", field="end_date")
    project = Project(**clean)
    db.add(project)
    db.flush()
    logger.info("project_created", project_id=str(project.id), supervisor_id=str(project.supervisor_id))
    return Outcome(project)


def update_project(db: Session, principal: Principal, project_id: uuid.UUID, changes: Dict[str, Any]) -> Outcome:
    project = _project(db, project_id)
    ensure_authorized(db, principal, Action.update_project, project.id)
    _check_fields(changes, PROJECT_FIELDS)
    clean = _check_project_fields(db, changes)
    start = clean.get("start_date", project.start_date)
    end = clean.get("end_date", project.end_date)
    if end and start and end < start:
        raise InvalidInput("end_date cannot be before start_date", field="end_date")
    previous_supervisor = project.supervisor_id
    for key, value in clean.items():
        setattr(project, key, value)
    if project.supervisor_id != previous_supervisor:
        logger.info(
            "project_supervisor_reassigned",
            project_id=str(project.id),
            from_supervisor=str(previous_supervisor),
            to_supervisor=str(project.supervisor_id),
        )
    return Outcome(project)


def update_project_status(db: Session, principal: Principal, project_id: uuid.UUID, status: Any) -> Outcome:
    project = _project(db, project_id)
    ensure_authorized(db, principal, Action.write, project.id)
    project.status = coerce_enum(ProjectStatus, status, "status")
    return Outcome(project)


def delete_project(db: Session, principal: Principal, project_id: uuid.UUID) -> None:
    project = _project(db, project_id)
    ensure_authorized(db, principal, Action.delete_project, project.id)
    db.delete(project)
    logger.info("project_deleted", project_id=str(project_id))


def attach_project_image(db: Session, principal: Principal, project_id: uuid.UUID, url: str, caption: Optional[str] = None) -> Outcome:
    project = _project(db, project_id)
    ensure_authorized(db, principal, Action.write, project.id)
    image = ProjectImage(project_id=project.id, url=_required_text(url, "url"), caption=caption, uploaded_by=principal.id)
    db.add(image)
    db.flush()
    return Outcome(image)


def list_project_images(db: Session, principal: Principal, project_id: uuid.UUID) -> List[ProjectImage]:
    project = get_project(db, principal, project_id)
    return db.query(ProjectImage).filter(ProjectImage.project_id == project.id).order_by(ProjectImage.uploaded_at.desc()).all()


# ---------- TASKS ----------

TASK_FIELDS = ("title", "description", "status", "priority", "due_date", "assigned_to")


def _check_task_fields(values: Dict[str, Any]) -> Dict[str, Any]:
    _check_fields(values, TASK_FIELDS)
    clean = dict(values)
    if "title" in clean:
        clean["title"] = _required_text(clean["title"], "title")
    if "status" in clean:
        clean["status"] = coerce_enum(TaskStatus, clean["status"], "status")
    if "priority" in clean:
        clean["priority"] = coerce_enum(TaskPriority, clean["priority"], "priority")
    return clean


def list_tasks(db: Session, principal: Principal, project_id: Optional[uuid.UUID] = None) -> List[ProjectTask]:
    query = _scoped(db, principal, db.query(ProjectTask), ProjectTask.project_id, project_id)
    return query.order_by(ProjectTask.created_at.desc()).all()


def create_task(db: Session, principal: Principal, project_id: uuid.UUID, values: Dict[str, Any]) -> Outcome:
    project = _project(db, project_id)
    ensure_authorized(db, principal, Action.write, project.id)
    clean = _check_task_fields(values)
    if "title" not in clean:
        raise InvalidInput("title is required", field="title")
    task = ProjectTask(project_id=project.id, created_by=principal.id, **clean)
    db.add(task)
    db.flush()
    return Outcome(task)


def update_task(db: Session, principal: Principal, task_id: uuid.UUID, changes: Dict[str, Any]) -> Outcome:
    task = _get(db, ProjectTask, task_id, "Task")
    ensure_authorized(db, principal, Action.write, task.project_id)
    clean = _check_task_fields(changes)
    for key, value in clean.items():
        setattr(task, key, value)
    if clean.get("status") == TaskStatus.completed and task.completed_at is None:
        task.completed_at = dt.datetime.now(dt.timezone.utc)
    elif "status" in clean and clean["status"] != TaskStatus.completed:
        task.completed_at = None
    return Outcome(task)


def delete_task(db: Session, principal: Principal, task_id: uuid.UUID) -> None:
    task = _get(db, ProjectTask, task_id, "Task")
    ensure_authorized(db, principal, Action.delete, task.project_id)
    db.delete(task)


# ---------- WORKERS ----------

WORKER_FIELDS = ("name", "trade", "phone", "address", "daily_wage", "joining_date", "project_id")


def _check_worker_fields(values: Dict[str, Any]) -> Dict[str, Any]:
    _check_fields(values, WORKER_FIELDS)
    clean = dict(values)
    for name in ("name", "trade"):
        if name in clean:
            clean[name] = _required_text(clean[name], name)
    if "daily_wage" in clean:
        clean["daily_wage"] = to_decimal(clean["daily_wage"], "daily_wage")
        if clean["daily_wage"] < ZERO:
            raise InvalidInput("daily_wage must be 0 or greater", field="daily_wage")
    if "joining_date" in clean and clean["joining_date"] is None:
        del clean["joining_date"]
    return clean


def list_workers(db: Session, principal: Principal, project_id: Optional[uuid.UUID] = None) -> List[Worker]:
    query = _scoped(db, principal, db.query(Worker), Worker.project_id, project_id)
    return query.order_by(Worker.name.asc()).all()


def get_worker(db: Session, principal: Principal, worker_id: uuid.UUID) -> Worker:
    worker = _worker(db, worker_id)
    ensure_authorized(db, principal, Action.read, worker.project_id)
    return worker


def create_worker(db: Session, principal: Principal, values: Dict[str, Any]) -> Outcome:
    project_id = values.get("project_id")
    if project_id is not None:
        _project(db, project_id)
    ensure_authorized(db, principal, Action.write, project_id)
    clean = _check_worker_fields(values)
    for required in ("name", "trade", "daily_wage"):
        if required not in clean:
            raise InvalidInput(f"{required} is required", field=required)
    worker = Worker(**clean)
    db.add(worker)
    db.flush()
    logger.info("worker_created", worker_id=str(worker.id), project_id=str(project_id) if project_id else None)
    return Outcome(worker)


def update_worker(db: Session, principal: Principal, worker_id: uuid.UUID, changes: Dict[str, Any]) -> Outcome:
    worker = _worker(db, worker_id)
    target = changes.get("project_id", worker.project_id)
    if "project_id" in changes and target != worker.project_id:
        if target is not None:
            _project(db, target)
        ensure_can_reassign(db, principal, Action.write, worker.project_id, target)
        logger.info(
            "worker_reassigned",
            worker_id=str(worker.id),
            from_project=str(worker.project_id) if worker.project_id else None,
            to_project=str(target) if target else None,
        )
    else:
        ensure_authorized(db, principal, Action.write, worker.project_id)
    clean = _check_worker_fields(changes)
    for key, value in clean.items():
        setattr(worker, key, value)
    return Outcome(worker)


def delete_worker(db: Session, principal: Principal, worker_id: uuid.UUID) -> None:
    worker = _worker(db, worker_id)
    ensure_authorized(db, principal, Action.delete, worker.project_id)
    db.delete(worker)
    logger.info("worker_deleted", worker_id=str(worker_id))


# ---------- MATERIALS ----------

def list_materials(db: Session, principal: Principal, project_id: Optional[uuid.UUID] = None, status: Any = None) -> List[Material]:
    query = _scoped(db, principal, db.query(Material), Material.project_id, project_id)
    if status is not None:
        query = query.filter(Material.status == coerce_enum(MaterialStatus, status, "status"))
    return query.order_by(Material.created_at.desc()).all()


def get_material(db: Session, principal: Principal, material_id: uuid.UUID) -> Material:
    material = _material(db, material_id)
    ensure_authorized(db, principal, Action.read, material.project_id)
    return material


def create_material(
    db: Session,
    principal: Principal,
    *,
    project_id: uuid.UUID,
    name: Any,
    unit: Any,
    quantity: Any,
    cost: Any = None,
    supplier: Optional[str] = None,
    notes: Optional[str] = None,
    date: Optional[dt.datetime] = None,
) -> Outcome:
    project = _project(db, project_id)
    ensure_authorized(db, principal, Action.write, project.id)
    qty, unit_cost = lifecycle.check_request(name, unit, quantity, cost)
    material = Material(
        project_id=project.id,
        name=str(name).strip(),
        unit=str(unit).strip(),
        quantity=qty,
        cost=unit_cost,
        supplier=supplier,
        notes=notes,
        date=date or dt.datetime.now(dt.timezone.utc),
        status=lifecycle.MaterialStatus.requested,
        requested_by=principal.id,
    )
    db.add(material)
    db.flush()
    logger.info("material_requested", material_id=str(material.id), project_id=str(project.id), quantity=str(qty))
    return Outcome(material)


def approve_material(
    db: Session,
    principal: Principal,
    material_id: uuid.UUID,
    approved_quantity: Any = None,
    notes: Optional[str] = None,
) -> Outcome:
    material = _material(db, material_id)
    ensure_authorized(db, principal, Action.approve_material, material.project_id)
    return Outcome(lifecycle.approve(db, material, principal.id, approved_quantity, notes))


def reject_material(db: Session, principal: Principal, material_id: uuid.UUID, notes: Optional[str] = None) -> Outcome:
    material = _material(db, material_id)
    ensure_authorized(db, principal, Action.reject_material, material.project_id)
    return Outcome(lifecycle.reject(db, material, principal.id, notes))


def receive_material(
    db: Session,
    principal: Principal,
    material_id: uuid.UUID,
    received_quantity: Any = None,
    cost: Any = None,
    received_image: Optional[str] = None,
    notes: Optional[str] = None,
) -> Outcome:
    material = _material(db, material_id)
    ensure_authorized(db, principal, Action.write, material.project_id)
    material, txn = lifecycle.receive(db, material, principal.id, received_quantity, cost, received_image, notes)
    return Outcome(material, [txn])


def consume_material(
    db: Session,
    principal: Principal,
    material_id: uuid.UUID,
    used_quantity: Any,
    notes: Optional[str] = None,
) -> Outcome:
    material = _material(db, material_id)
    ensure_authorized(db, principal, Action.write, material.project_id)
    return Outcome(lifecycle.consume(db, material, used_quantity, notes))


def update_material(db: Session, principal: Principal, material_id: uuid.UUID, changes: Dict[str, Any]) -> Outcome:
    material = _material(db, material_id)
    target = changes.get("project_id", material.project_id)
    moving = "project_id" in changes and target is not None and target != material.project_id
    if moving:
        _project(db, target)
        ensure_can_reassign(db, principal, Action.write, material.project_id, target)
    else:
        ensure_authorized(db, principal, Action.write, material.project_id)
    if "status" in changes:
        ensure_authorized(db, principal, Action.set_material_status, material.project_id)
    clean = lifecycle.check_edit(material, changes)
    return Outcome(lifecycle.apply_edit(material, clean))


def delete_material(db: Session, principal: Principal, material_id: uuid.UUID) -> None:
    material = _material(db, material_id)
    ensure_authorized(db, principal, Action.delete, material.project_id)
    db.delete(material)


# ---------- LEDGER ----------

def list_transactions(
    db: Session,
    principal: Principal,
    project_id: Optional[uuid.UUID] = None,
    type: Any = None,
    category: Optional[str] = None,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
) -> List[Transaction]:
    query = _scoped(db, principal, db.query(Transaction), Transaction.project_id, project_id)
    if type is not None:
        query = query.filter(Transaction.type == coerce_enum(TransactionType, type, "type"))
    if category:
        query = query.filter(Transaction.category == category)
    lower, upper = _day_bounds(start_date, end_date)
    if lower is not None:
        query = query.filter(Transaction.date >= lower)
    if upper is not None:
        query = query.filter(Transaction.date < upper)
    return query.order_by(Transaction.date.desc()).all()


def get_transaction(db: Session, principal: Principal, transaction_id: uuid.UUID) -> Transaction:
    txn = _get(db, Transaction, transaction_id, "Transaction")
    ensure_authorized(db, principal, Action.read, txn.project_id)
    return txn


def create_transaction(db: Session, principal: Principal, values: Dict[str, Any]) -> Outcome:
    project = _project(db, values.get("project_id"))
    if values.get("worker_id") is not None:
        _worker(db, values["worker_id"])
    if values.get("material_id") is not None:
        _material(db, values["material_id"])
    ensure_authorized(db, principal, Action.write, project.id)
    payload = {k: v for k, v in values.items() if k != "project_id" and v is not None}
    for required in ("type", "category", "amount"):
        payload.setdefault(required, values.get(required))
    txn = ledger.record(db, project_id=project.id, created_by=principal.id, **payload)
    return Outcome(txn, [txn])


def update_transaction(db: Session, principal: Principal, transaction_id: uuid.UUID, changes: Dict[str, Any]) -> Outcome:
    txn = _get(db, Transaction, transaction_id, "Transaction")
    ensure_authorized(db, principal, Action.write, txn.project_id)
    return Outcome(ledger.amend(txn, changes))


def delete_transaction(db: Session, principal: Principal, transaction_id: uuid.UUID) -> None:
    txn = _get(db, Transaction, transaction_id, "Transaction")
    ensure_authorized(db, principal, Action.delete, txn.project_id)
    db.delete(txn)
    logger.info("transaction_deleted", transaction_id=str(transaction_id), project_id=str(txn.project_id))


def project_transaction_summary(db: Session, principal: Principal, project_id: Optional[uuid.UUID] = None) -> List[Dict[str, Any]]:
    if project_id is not None:
        projects = [get_project(db, principal, project_id)]
    else:
        projects = list_projects(db, principal)
    totals = ledger.project_summary(db, [p.id for p in projects])
    return [
        {"project_id": p.id, "project_name": p.name, **totals[p.id]}
        for p in projects
    ]


def worker_payment_summary(db: Session, principal: Principal, worker_id: uuid.UUID) -> Dict[str, Any]:
    worker = get_worker(db, principal, worker_id)
    return {"worker_id": worker.id, "worker_name": worker.name, **ledger.worker_summary(db, worker.id)}


def list_worker_payments(db: Session, principal: Principal, worker_id: uuid.UUID) -> List[Transaction]:
    worker = get_worker(db, principal, worker_id)
    return ledger.worker_payments(db, worker.id)


def pay_worker(
    db: Session,
    principal: Principal,
    *,
    worker_id: uuid.UUID,
    project_id: uuid.UUID,
    amount: Any,
    payment_type: Any,
    description: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> Outcome:
    project = _project(db, project_id)
    worker = _worker(db, worker_id)
    ensure_authorized(db, principal, Action.write, project.id)
    kind = coerce_enum(PaymentType, payment_type, "payment_type")
    category = CATEGORY_WORKER_ADVANCE if kind == PaymentType.advance else CATEGORY_WORKER_SALARY
    txn = ledger.record(
        db,
        project_id=project.id,
        type=TransactionType.expense,
        category=category,
        amount=amount,
        created_by=principal.id,
        worker_id=worker.id,
        description=description or f"Payment to {worker.name}: {kind.value}",
        payment_method=payment_method,
        party_name=worker.name,
        party_type=PartyType.worker,
    )
    return Outcome(txn, [txn])


# ---------- ATTENDANCE ----------

def list_attendance(
    db: Session,
    principal: Principal,
    project_id: Optional[uuid.UUID] = None,
    worker_id: Optional[uuid.UUID] = None,
    status: Any = None,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
) -> List[Attendance]:
    query = _scoped(db, principal, db.query(Attendance), Attendance.project_id, project_id)
    if worker_id is not None:
        query = query.filter(Attendance.worker_id == worker_id)
    if status is not None:
        query = query.filter(Attendance.status == coerce_enum(AttendanceStatus, status, "status"))
    if start_date is not None:
        query = query.filter(Attendance.date >= start_date)
    if end_date is not None:
        query = query.filter(Attendance.date <= end_date)
    return query.order_by(Attendance.date.desc()).all()


def get_attendance(db: Session, principal: Principal, attendance_id: uuid.UUID) -> Attendance:
    row = _get(db, Attendance, attendance_id, "Attendance record")
    ensure_authorized(db, principal, Action.read, row.project_id)
    return row


def record_attendance(
    db: Session,
    principal: Principal,
    *,
    project_id: uuid.UUID,
    worker_id: uuid.UUID,
    date: Any,
    status: Any = None,
    hours_worked: Any = None,
    overtime_hours: Any = None,
    overtime_rate: Any = None,
    daily_wage: Any = None,
    notes: Optional[str] = None,
) -> Outcome:
    project = _project(db, project_id)
    worker = _worker(db, worker_id)
    ensure_authorized(db, principal, Action.write, project.id)
    row = attendance_recorder.record(
        db,
        project_id=project.id,
        worker=worker,
        day=date,
        status=status,
        hours_worked=hours_worked,
        overtime_hours=overtime_hours,
        overtime_rate=overtime_rate,
        daily_wage=daily_wage,
        notes=notes,
        created_by=principal.id,
    )
    return Outcome(row)


def update_attendance(db: Session, principal: Principal, attendance_id: uuid.UUID, changes: Dict[str, Any]) -> Outcome:
    row = _get(db, Attendance, attendance_id, "Attendance record")
    ensure_authorized(db, principal, Action.write, row.project_id)
    return Outcome(attendance_recorder.amend(row, changes))


def delete_attendance(db: Session, principal: Principal, attendance_id: uuid.UUID) -> None:
    row = _get(db, Attendance, attendance_id, "Attendance record")
    ensure_authorized(db, principal, Action.delete, row.project_id)
    db.delete(row)
