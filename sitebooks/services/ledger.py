"""
Transaction ledger.

Transactions are appended through :func:`record` only, whether a user enters
them or a workflow emits them (material receipt, worker payment). Balances and
payment totals are always derived from the ledger; no other table caches a
running total.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import InvalidInput
from ..models.enums import (
    TransactionType,
    TransactionStatus,
    PartyType,
    CATEGORY_WORKER_SALARY,
    CATEGORY_WORKER_ADVANCE,
)
from ..models.models import Transaction


logger = structlog.get_logger(__name__)

WORKER_PAYMENT_CATEGORIES = (CATEGORY_WORKER_SALARY, CATEGORY_WORKER_ADVANCE)

# Fixed once recorded; aggregation depends on them
FINANCIAL_FIELDS = frozenset({"type", "amount", "category", "project_id"})
EDITABLE_FIELDS = frozenset({
    "description",
    "reference",
    "attachment_url",
    "payment_method",
    "party_name",
    "party_type",
    "date",
    "status",
})

ZERO = Decimal("0")


def to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidInput(f"{field} must be a number", field=field)
    if not result.is_finite():
        raise InvalidInput(f"{field} must be a finite number", field=field)
    return result


def coerce_enum(enum_cls, value: Any, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"Invalid {field}: {value!r} (expected one of {allowed})", field=field)


def validate_entry(type: Any, category: Any, amount: Any) -> tuple:
    """Validate the financial fields of a would-be entry without writing anything."""
    txn_type = coerce_enum(TransactionType, type, "type")
    if not category or not str(category).strip():
        raise InvalidInput("category is required", field="category")
    value = to_decimal(amount, "amount")
    if value <= ZERO:
        raise InvalidInput("amount must be greater than 0", field="amount")
    return txn_type, str(category).strip(), value


def record(
    db: Session,
    *,
    project_id: uuid.UUID,
    type: Any,
    category: str,
    amount: Any,
    created_by: Optional[uuid.UUID],
    worker_id: Optional[uuid.UUID] = None,
    material_id: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
    payment_method: Optional[str] = None,
    reference: Optional[str] = None,
    attachment_url: Optional[str] = None,
    party_name: Optional[str] = None,
    party_type: Any = None,
    status: Any = TransactionStatus.completed,
    date: Optional[datetime] = None,
) -> Transaction:
    txn_type, category, value = validate_entry(type, category, amount)
    txn = Transaction(
        project_id=project_id,
        type=txn_type,
        category=category,
        amount=value,
        date=date or datetime.now(timezone.utc),
        description=description,
        payment_method=payment_method,
        reference=reference,
        attachment_url=attachment_url,
        party_name=party_name,
        party_type=coerce_enum(PartyType, party_type, "party_type") if party_type is not None else None,
        worker_id=worker_id,
        material_id=material_id,
        status=coerce_enum(TransactionStatus, status, "status"),
        created_by=created_by,
    )
    db.add(txn)
    db.flush()
    logger.info(
        "ledger_recorded",
        transaction_id=str(txn.id),
        project_id=str(project_id),
        type=txn_type.value,
        category=category,
        amount=str(value),
    )
    return txn


def check_amendment(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize a descriptive-field edit; financial fields are refused."""
    frozen = sorted(FINANCIAL_FIELDS.intersection(changes))
    if frozen:
        raise InvalidInput(
            "Financial fields of a transaction cannot be changed",
            fields=frozen,
        )
    unknown = sorted(set(changes) - EDITABLE_FIELDS)
    if unknown:
        raise InvalidInput("Unknown transaction fields", fields=unknown)
    clean = dict(changes)
    if clean.get("status") is not None:
        clean["status"] = coerce_enum(TransactionStatus, clean["status"], "status")
    if clean.get("party_type") is not None:
        clean["party_type"] = coerce_enum(PartyType, clean["party_type"], "party_type")
    if "date" in clean and clean["date"] is None:
        raise InvalidInput("date cannot be cleared", field="date")
    if "status" in clean and clean["status"] is None:
        raise InvalidInput("status cannot be cleared", field="status")
    return clean


def amend(txn: Transaction, changes: Dict[str, Any]) -> Transaction:
    for key, value in check_amendment(changes).items():
        setattr(txn, key, value)
    return txn


def _sum(value) -> Decimal:
    if value is None:
        return ZERO
    return to_decimal(value, "amount")


def project_summary(db: Session, project_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Dict[str, Decimal]]:
    ids = list(project_ids)
    summary = {pid: {"income": ZERO, "expense": ZERO, "balance": ZERO} for pid in ids}
    if not ids:
        return summary
    rows = (
        db.query(Transaction.project_id, Transaction.type, func.sum(Transaction.amount))
        .filter(Transaction.project_id.in_(ids))
        .group_by(Transaction.project_id, Transaction.type)
        .all()
    )
    for project_id, txn_type, total in rows:
        summary[project_id][TransactionType(txn_type).value] = _sum(total)
    for totals in summary.values():
        totals["balance"] = totals["income"] - totals["expense"]
    return summary


def worker_summary(db: Session, worker_id: uuid.UUID) -> Dict[str, Decimal]:
    rows = (
        db.query(Transaction.category, func.sum(Transaction.amount))
        .filter(
            Transaction.worker_id == worker_id,
            Transaction.category.in_(WORKER_PAYMENT_CATEGORIES),
        )
        .group_by(Transaction.category)
        .all()
    )
    totals = {category: _sum(total) for category, total in rows}
    return {
        "total_salary": totals.get(CATEGORY_WORKER_SALARY, ZERO),
        "total_advance": totals.get(CATEGORY_WORKER_ADVANCE, ZERO),
    }


def worker_payments(db: Session, worker_id: uuid.UUID) -> List[Transaction]:
    return (
        db.query(Transaction)
        .filter(
            Transaction.worker_id == worker_id,
            Transaction.category.in_(WORKER_PAYMENT_CATEGORIES),
        )
        .order_by(Transaction.date.desc())
        .all()
    )
