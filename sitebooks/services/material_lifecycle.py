"""
Material requisition lifecycle.

    requested --approve--> approved --receive--> received --consume*--> used
        +--reject--> rejected

``available`` is the pool eligible for consumption: the received quantity if
known, else the approved quantity, else the requested quantity. ``used``
accumulates across partial consumption events and never exceeds ``available``.

Every guarded transition is written as a compare-and-set on ``status`` so
that two concurrent requests cannot both move the same material; consumption
is a single UPDATE bounded by the pool.
"""
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Tuple

import structlog
from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from ..errors import Conflict, InvalidInput
from ..models.enums import (
    MaterialStatus,
    TransactionType,
    PartyType,
    CATEGORY_MATERIALS,
)
from ..models.models import Material, Transaction
from . import ledger
from .ledger import ZERO, coerce_enum, to_decimal


logger = structlog.get_logger(__name__)

CONSUMABLE_STATES = (MaterialStatus.received, MaterialStatus.used)

DESCRIPTIVE_FIELDS = frozenset({"name", "unit", "supplier", "notes", "date"})
REQUEST_FIELDS = frozenset({"quantity", "cost"})
MOVABLE_STATES = (MaterialStatus.requested, MaterialStatus.approved)

QUANTITY_SCALE = 3


def available_quantity(material: Material) -> Decimal:
    for value in (material.received_quantity, material.approved_quantity, material.quantity):
        if value is not None:
            return Decimal(value)
    return ZERO


def remaining_quantity(material: Material) -> Decimal:
    return available_quantity(material) - Decimal(material.used_quantity or 0)


def is_terminal(material: Material) -> bool:
    if material.status == MaterialStatus.rejected:
        return True
    return material.status == MaterialStatus.used and remaining_quantity(material) <= ZERO


def _require_state(material: Material, allowed: Iterable[MaterialStatus], verb: str) -> None:
    allowed = tuple(allowed)
    if material.status not in allowed:
        raise Conflict(
            f"Cannot {verb} material in status '{material.status.value}'",
            status=material.status.value,
            expected=[s.value for s in allowed],
        )


def _compare_and_set(db: Session, material: Material, expected: Tuple[MaterialStatus, ...], verb: str, **values) -> None:
    result = db.execute(
        update(Material)
        .where(Material.id == material.id, Material.status.in_(expected))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.refresh(material)
    if result.rowcount != 1:
        # Lost a race against another transition
        _require_state(material, expected, verb)
        raise Conflict(f"Cannot {verb} material: concurrent update", status=material.status.value)


# ---------- REQUEST ----------

def check_request(name: Any, unit: Any, quantity: Any, cost: Any) -> Tuple[Decimal, Decimal]:
    if not name or not str(name).strip():
        raise InvalidInput("name is required", field="name")
    if not unit or not str(unit).strip():
        raise InvalidInput("unit is required", field="unit")
    qty = to_decimal(quantity, "quantity")
    if qty <= ZERO:
        raise InvalidInput("quantity must be greater than 0", field="quantity")
    unit_cost = to_decimal(cost if cost is not None else 0, "cost")
    if unit_cost < ZERO:
        raise InvalidInput("cost must be 0 or greater", field="cost")
    return qty, unit_cost


# ---------- APPROVE / REJECT ----------

def check_approve(material: Material, approved_quantity: Any = None) -> Decimal:
    qty = material.quantity if approved_quantity is None else to_decimal(approved_quantity, "approved_quantity")
    if qty < ZERO:
        raise InvalidInput("approved_quantity must be 0 or greater", field="approved_quantity")
    _require_state(material, (MaterialStatus.requested,), "approve")
    return Decimal(qty)


def approve(
    db: Session,
    material: Material,
    approver_id: uuid.UUID,
    approved_quantity: Any = None,
    notes: Optional[str] = None,
) -> Material:
    qty = check_approve(material, approved_quantity)
    values = {"status": MaterialStatus.approved, "approved_quantity": qty, "approved_by": approver_id}
    if notes:
        values["notes"] = notes
    _compare_and_set(db, material, (MaterialStatus.requested,), "approve", **values)
    logger.info("material_approved", material_id=str(material.id), approved_quantity=str(qty))
    return material


def check_reject(material: Material) -> None:
    _require_state(material, (MaterialStatus.requested,), "reject")


def reject(db: Session, material: Material, approver_id: uuid.UUID, notes: Optional[str] = None) -> Material:
    check_reject(material)
    values = {"status": MaterialStatus.rejected, "approved_by": approver_id}
    if notes:
        values["notes"] = notes
    _compare_and_set(db, material, (MaterialStatus.requested,), "reject", **values)
    logger.info("material_rejected", material_id=str(material.id))
    return material


# ---------- RECEIVE ----------

def check_receive(material: Material, received_quantity: Any = None, cost: Any = None) -> Tuple[Decimal, Decimal, Decimal]:
    _require_state(material, (MaterialStatus.approved,), "receive")
    if received_quantity is None:
        qty = material.approved_quantity if material.approved_quantity is not None else material.quantity
    else:
        qty = received_quantity
    qty = to_decimal(qty, "received_quantity")
    if qty <= ZERO:
        raise InvalidInput("received_quantity must be greater than 0", field="received_quantity")
    unit_cost = to_decimal(material.cost if cost is None else cost, "cost")
    if unit_cost <= ZERO:
        raise InvalidInput("cost must be greater than 0 to book the receipt", field="cost")
    amount = qty * unit_cost
    ledger.validate_entry(TransactionType.expense, CATEGORY_MATERIALS, amount)
    return qty, unit_cost, amount


def receive(
    db: Session,
    material: Material,
    actor_id: uuid.UUID,
    received_quantity: Any = None,
    cost: Any = None,
    received_image: Optional[str] = None,
    notes: Optional[str] = None,
) -> Tuple[Material, Transaction]:
    """Mark an approved material as received and book its cost as an expense."""
    qty, unit_cost, amount = check_receive(material, received_quantity, cost)
    if material.approved_quantity is not None and qty > material.approved_quantity:
        logger.warning(
            "material_received_over_approved",
            material_id=str(material.id),
            approved_quantity=str(material.approved_quantity),
            received_quantity=str(qty),
        )
    values = {"status": MaterialStatus.received, "received_quantity": qty, "cost": unit_cost}
    if received_image:
        values["received_image"] = received_image
    if notes:
        values["notes"] = f"{material.notes}; {notes}" if material.notes else notes
    _compare_and_set(db, material, (MaterialStatus.approved,), "receive", **values)

    txn = ledger.record(
        db,
        project_id=material.project_id,
        type=TransactionType.expense,
        category=CATEGORY_MATERIALS,
        amount=amount,
        created_by=actor_id,
        material_id=material.id,
        description=f"Received {qty} {material.unit} of {material.name}",
        party_name=material.supplier,
        party_type=PartyType.supplier,
    )
    logger.info("material_received", material_id=str(material.id), received_quantity=str(qty), transaction_id=str(txn.id))
    return material, txn


# ---------- CONSUME ----------

def check_consume(delta_quantity: Any) -> Decimal:
    delta = to_decimal(delta_quantity, "used_quantity")
    if delta <= ZERO:
        raise InvalidInput("used_quantity must be greater than 0", field="used_quantity")
    return delta


def consume(db: Session, material: Material, delta_quantity: Any, notes: Optional[str] = None) -> Material:
    delta = check_consume(delta_quantity)
    _require_state(material, CONSUMABLE_STATES, "consume")

    used = func.coalesce(Material.used_quantity, 0)
    available = func.coalesce(Material.received_quantity, Material.approved_quantity, Material.quantity)
    # Compared at column scale; some backends do Numeric arithmetic in floats
    new_used = func.round(used + delta, QUANTITY_SCALE)
    shortfall = func.round(used + delta - available, QUANTITY_SCALE)
    values = {
        "used_quantity": new_used,
        "status": case((shortfall >= 0, MaterialStatus.used.value), else_=Material.status),
    }
    if notes:
        values["notes"] = f"{material.notes}; {notes}" if material.notes else notes
    # Read-check-write in one statement: concurrent consumers cannot overshoot
    result = db.execute(
        update(Material)
        .where(
            Material.id == material.id,
            Material.status.in_(CONSUMABLE_STATES),
            shortfall <= 0,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.refresh(material)
    if result.rowcount != 1:
        _require_state(material, CONSUMABLE_STATES, "consume")
        remaining = remaining_quantity(material)
        raise Conflict(
            "Insufficient quantity",
            available=max(remaining, ZERO),
            requested=delta,
        )
    logger.info(
        "material_consumed",
        material_id=str(material.id),
        delta=str(delta),
        used_quantity=str(material.used_quantity),
        status=material.status.value,
    )
    return material


# ---------- EDIT ----------

def check_edit(material: Material, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize an edit. ``status`` is the admin escape hatch and is accepted in
    any state; the caller authorizes it. Other fields follow the lifecycle.
    """
    allowed = DESCRIPTIVE_FIELDS | REQUEST_FIELDS | {"status", "project_id"}
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise InvalidInput("Unknown material fields", fields=unknown)
    clean = dict(changes)

    if "status" in clean:
        if clean["status"] is None:
            raise InvalidInput("status cannot be cleared", field="status")
        clean["status"] = coerce_enum(MaterialStatus, clean["status"], "status")
    for field in ("name", "unit"):
        if field in clean and (clean[field] is None or not str(clean[field]).strip()):
            raise InvalidInput(f"{field} cannot be empty", field=field)
    if "quantity" in clean:
        clean["quantity"] = to_decimal(clean["quantity"], "quantity")
        if clean["quantity"] <= ZERO:
            raise InvalidInput("quantity must be greater than 0", field="quantity")
    if "cost" in clean:
        clean["cost"] = to_decimal(clean["cost"], "cost")
        if clean["cost"] < ZERO:
            raise InvalidInput("cost must be 0 or greater", field="cost")
    if "project_id" in clean and clean["project_id"] is None:
        raise InvalidInput("project_id cannot be cleared", field="project_id")

    lifecycle_fields = set(clean) - {"status"}
    if lifecycle_fields and is_terminal(material):
        raise Conflict(
            f"Material in terminal status '{material.status.value}' cannot be edited",
            status=material.status.value,
        )
    if REQUEST_FIELDS.intersection(clean):
        _require_state(material, (MaterialStatus.requested,), "change quantity or cost of")
    if "project_id" in clean and clean["project_id"] != material.project_id:
        _require_state(material, MOVABLE_STATES, "move")
    return clean


def apply_edit(material: Material, changes: Dict[str, Any]) -> Material:
    for key, value in changes.items():
        setattr(material, key, value)
    if "status" in changes:
        logger.warning("material_status_overridden", material_id=str(material.id), status=material.status.value)
    return material
