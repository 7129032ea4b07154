"""
Attendance recording.

At most one record per (project, worker, day). The table's unique constraint
is the authority; the lookup beforehand only exists to fail early with a
clear message.
"""
import datetime as dt
import uuid
from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import Conflict, InvalidInput
from ..models.enums import AttendanceStatus
from ..models.models import Attendance, Worker
from .ledger import ZERO, coerce_enum, to_decimal


logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = frozenset({"status", "hours_worked", "overtime_hours", "overtime_rate", "daily_wage", "notes"})


def _non_negative(value: Any, field: str) -> Optional[Decimal]:
    if value is None:
        return None
    number = to_decimal(value, field)
    if number < ZERO:
        raise InvalidInput(f"{field} must be 0 or greater", field=field)
    return number


def check_record(
    worker: Worker,
    day: Any,
    status: Any,
    hours_worked: Any = None,
    overtime_hours: Any = None,
    overtime_rate: Any = None,
    daily_wage: Any = None,
) -> Dict[str, Any]:
    if not isinstance(day, dt.date):
        raise InvalidInput("date is required", field="date")
    if isinstance(day, dt.datetime):
        day = day.date()
    if hours_worked is not None and to_decimal(hours_worked, "hours_worked") > Decimal("24"):
        raise InvalidInput("hours_worked cannot exceed 24", field="hours_worked")
    wage = _non_negative(daily_wage, "daily_wage")
    return {
        "date": day,
        "status": coerce_enum(AttendanceStatus, status if status is not None else AttendanceStatus.present, "status"),
        "hours_worked": _non_negative(hours_worked, "hours_worked"),
        "overtime_hours": _non_negative(overtime_hours, "overtime_hours") or ZERO,
        "overtime_rate": _non_negative(overtime_rate, "overtime_rate") or ZERO,
        "daily_wage": wage if wage is not None else worker.daily_wage,
    }


def find_existing(db: Session, project_id: uuid.UUID, worker_id: uuid.UUID, day: dt.date) -> Optional[Attendance]:
    return (
        db.query(Attendance)
        .filter(
            Attendance.project_id == project_id,
            Attendance.worker_id == worker_id,
            Attendance.date == day,
        )
        .first()
    )


def _duplicate(project_id: uuid.UUID, worker_id: uuid.UUID, day: dt.date) -> Conflict:
    return Conflict(
        "Attendance already marked for this worker on this date",
        project_id=str(project_id),
        worker_id=str(worker_id),
        date=day.isoformat(),
    )


def record(
    db: Session,
    *,
    project_id: uuid.UUID,
    worker: Worker,
    day: Any,
    status: Any = None,
    hours_worked: Any = None,
    overtime_hours: Any = None,
    overtime_rate: Any = None,
    daily_wage: Any = None,
    notes: Optional[str] = None,
    created_by: Optional[uuid.UUID] = None,
) -> Attendance:
    fields = check_record(worker, day, status, hours_worked, overtime_hours, overtime_rate, daily_wage)
    if find_existing(db, project_id, worker.id, fields["date"]) is not None:
        raise _duplicate(project_id, worker.id, fields["date"])

    row = Attendance(project_id=project_id, worker_id=worker.id, notes=notes, created_by=created_by, **fields)
    db.add(row)
    try:
        db.flush()
    except IntegrityError:
        # A concurrent insert won between our lookup and this flush
        db.rollback()
        raise _duplicate(project_id, worker.id, fields["date"])
    logger.info(
        "attendance_recorded",
        attendance_id=str(row.id),
        project_id=str(project_id),
        worker_id=str(worker.id),
        date=fields["date"].isoformat(),
        status=fields["status"].value,
    )
    return row


def check_amendment(changes: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(changes) - EDITABLE_FIELDS)
    if unknown:
        # project, worker and date identify the record and are not editable
        raise InvalidInput("Unknown or immutable attendance fields", fields=unknown)
    clean = dict(changes)
    if "status" in clean:
        clean["status"] = coerce_enum(AttendanceStatus, clean["status"], "status")
    for field in ("hours_worked", "overtime_hours", "overtime_rate", "daily_wage"):
        if field in clean:
            clean[field] = _non_negative(clean[field], field)
    if clean.get("hours_worked") is not None and clean["hours_worked"] > Decimal("24"):
        raise InvalidInput("hours_worked cannot exceed 24", field="hours_worked")
    for field in ("daily_wage", "overtime_hours", "overtime_rate"):
        if field in clean and clean[field] is None:
            raise InvalidInput(f"{field} cannot be cleared", field=field)
    return clean


def amend(row: Attendance, changes: Dict[str, Any]) -> Attendance:
    for key, value in check_amendment(changes).items():
        setattr(row, key, value)
    return row
