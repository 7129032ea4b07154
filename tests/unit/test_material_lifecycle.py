"""
Unit tests for the material requisition lifecycle.
"""
import warnings
from decimal import Decimal
from pathlib import Path

import pytest

from sitebooks.errors import Conflict, Forbidden, InvalidInput
from sitebooks.models.enums import MaterialStatus, PartyType, TransactionType
from sitebooks.models.models import Material, Transaction
from sitebooks.services import material_lifecycle as lifecycle
from sitebooks.services import workflow

pytestmark = pytest.mark.unit


@pytest.fixture
def request_material(db, site, supervisor, as_principal):
    def _request(quantity="100", cost="5", project=None):
        outcome = workflow.create_material(
            db,
            as_principal(supervisor),
            project_id=(project or site).id,
            name="Cement",
            unit="bag",
            quantity=quantity,
            cost=cost,
            supplier="Acme Supplies",
        )
        db.commit()
        return outcome.entity

    return _request


@pytest.fixture
def received_material(db, request_material, admin, supervisor, as_principal):
    """quantity=100, approved 80, received 80 at cost 5."""
    material = request_material()
    workflow.approve_material(db, as_principal(admin), material.id, approved_quantity="80")
    workflow.receive_material(db, as_principal(supervisor), material.id)
    db.commit()
    return material


class TestAvailablePool:
    def test_prefers_received_then_approved_then_requested(self):
        m = Material(quantity=Decimal("100"))
        assert lifecycle.available_quantity(m) == Decimal("100")
        m.approved_quantity = Decimal("80")
        assert lifecycle.available_quantity(m) == Decimal("80")
        m.received_quantity = Decimal("75")
        assert lifecycle.available_quantity(m) == Decimal("75")

    def test_zero_approved_is_not_skipped(self):
        m = Material(quantity=Decimal("10"), approved_quantity=Decimal("0"))
        assert lifecycle.available_quantity(m) == Decimal("0")


class TestRequest:
    def test_created_in_requested(self, request_material, supervisor):
        material = request_material()
        assert material.status == MaterialStatus.requested
        assert material.requested_by == supervisor.id

    @pytest.mark.parametrize("quantity", ["0", "-3", "abc"])
    def test_rejects_bad_quantity(self, db, request_material, quantity):
        with pytest.raises(InvalidInput):
            request_material(quantity=quantity)
        assert db.query(Material).count() == 0

    def test_supervisor_cannot_request_for_foreign_project(self, db, request_material, other_site):
        with pytest.raises(Forbidden):
            request_material(project=other_site)
        assert db.query(Material).count() == 0


class TestApproveReject:
    def test_approve_defaults_to_requested_quantity(self, db, request_material, admin, as_principal):
        material = request_material()
        workflow.approve_material(db, as_principal(admin), material.id)
        assert material.status == MaterialStatus.approved
        assert material.approved_quantity == Decimal("100")
        assert material.approved_by == admin.id

    def test_supervisor_cannot_approve(self, db, request_material, supervisor, as_principal):
        material = request_material()
        with pytest.raises(Forbidden):
            workflow.approve_material(db, as_principal(supervisor), material.id)
        db.refresh(material)
        assert material.status == MaterialStatus.requested

    def test_negative_approved_quantity(self, db, request_material, admin, as_principal):
        material = request_material()
        with pytest.raises(InvalidInput):
            workflow.approve_material(db, as_principal(admin), material.id, approved_quantity="-1")

    def test_approve_twice_conflicts(self, db, request_material, admin, as_principal):
        material = request_material()
        workflow.approve_material(db, as_principal(admin), material.id)
        with pytest.raises(Conflict) as exc:
            workflow.approve_material(db, as_principal(admin), material.id)
        assert exc.value.details["status"] == "approved"

    def test_rejected_is_terminal(self, db, request_material, admin, as_principal):
        material = request_material()
        workflow.reject_material(db, as_principal(admin), material.id, notes="over budget")
        assert material.status == MaterialStatus.rejected
        assert lifecycle.is_terminal(material)
        with pytest.raises(Conflict):
            workflow.approve_material(db, as_principal(admin), material.id)
        with pytest.raises(Conflict):
            workflow.update_material(db, as_principal(admin), material.id, {"name": "Sand"})


class TestReceive:
    def test_receipt_books_one_expense(self, db, request_material, admin, supervisor, as_principal):
        material = request_material(quantity="100", cost="5")
        workflow.approve_material(db, as_principal(admin), material.id, approved_quantity="80")
        outcome = workflow.receive_material(db, as_principal(supervisor), material.id, received_quantity="80", cost="5")
        db.commit()

        assert outcome.entity.status == MaterialStatus.received
        assert outcome.entity.received_quantity == Decimal("80")
        assert len(outcome.transactions) == 1
        txn = outcome.transactions[0]
        assert txn.amount == Decimal("400")
        assert txn.type == TransactionType.expense
        assert txn.category == "materials"
        assert txn.material_id == material.id
        assert txn.party_type == PartyType.supplier
        assert txn.party_name == "Acme Supplies"
        assert db.query(Transaction).count() == 1

    def test_received_quantity_defaults_to_approved(self, db, received_material):
        assert received_material.received_quantity == Decimal("80")
        txn = db.query(Transaction).one()
        assert txn.amount == Decimal("400")

    def test_receive_before_approval_conflicts(self, db, request_material, supervisor, as_principal):
        material = request_material()
        with pytest.raises(Conflict):
            workflow.receive_material(db, as_principal(supervisor), material.id)
        assert db.query(Transaction).count() == 0

    def test_receive_without_cost_is_invalid_and_writes_nothing(self, db, request_material, admin, supervisor, as_principal):
        material = request_material(cost="0")
        workflow.approve_material(db, as_principal(admin), material.id)
        db.commit()
        with pytest.raises(InvalidInput):
            workflow.receive_material(db, as_principal(supervisor), material.id)
        db.rollback()
        db.refresh(material)
        assert material.status == MaterialStatus.approved
        assert db.query(Transaction).count() == 0

    def test_wrong_state_wins_over_missing_cost(self, db, request_material, admin, supervisor, as_principal):
        material = request_material(cost="0")
        workflow.reject_material(db, as_principal(admin), material.id)
        db.commit()
        with pytest.raises(Conflict):
            workflow.receive_material(db, as_principal(supervisor), material.id)
        assert db.query(Transaction).count() == 0

    def test_receive_twice_conflicts(self, db, received_material, supervisor, as_principal):
        with pytest.raises(Conflict):
            workflow.receive_material(db, as_principal(supervisor), received_material.id)
        assert db.query(Transaction).count() == 1

    def test_over_receipt_is_allowed(self, db, request_material, admin, supervisor, as_principal):
        material = request_material(quantity="10", cost="2")
        workflow.approve_material(db, as_principal(admin), material.id, approved_quantity="8")
        outcome = workflow.receive_material(db, as_principal(supervisor), material.id, received_quantity="12")
        assert outcome.entity.received_quantity == Decimal("12")
        assert outcome.transactions[0].amount == Decimal("24")


class TestConsume:
    def test_partial_consumption_until_pool_is_short(self, db, received_material, supervisor, as_principal):
        principal = as_principal(supervisor)
        workflow.consume_material(db, principal, received_material.id, "30")
        assert received_material.used_quantity == Decimal("30")
        workflow.consume_material(db, principal, received_material.id, "30")
        assert received_material.used_quantity == Decimal("60")
        assert received_material.status == MaterialStatus.received

        with pytest.raises(Conflict) as exc:
            workflow.consume_material(db, principal, received_material.id, "25")
        assert exc.value.details["available"] == Decimal("20")
        assert exc.value.details["requested"] == Decimal("25")
        db.refresh(received_material)
        assert received_material.used_quantity == Decimal("60")

    def test_exhausting_the_pool_marks_used(self, db, received_material, supervisor, as_principal):
        principal = as_principal(supervisor)
        workflow.consume_material(db, principal, received_material.id, "50")
        workflow.consume_material(db, principal, received_material.id, "30")
        assert received_material.status == MaterialStatus.used
        assert received_material.used_quantity == Decimal("80")
        assert lifecycle.is_terminal(received_material)

        with pytest.raises(Conflict) as exc:
            workflow.consume_material(db, principal, received_material.id, "1")
        assert exc.value.details["available"] == Decimal("0")

    def test_consume_before_receipt_conflicts(self, db, request_material, supervisor, as_principal):
        material = request_material()
        with pytest.raises(Conflict):
            workflow.consume_material(db, as_principal(supervisor), material.id, "1")

    @pytest.mark.parametrize("delta", ["0", "-5"])
    def test_non_positive_delta_is_invalid(self, db, received_material, supervisor, as_principal, delta):
        with pytest.raises(InvalidInput):
            workflow.consume_material(db, as_principal(supervisor), received_material.id, delta)

    def test_used_never_exceeds_available(self, db, received_material, supervisor, as_principal):
        principal = as_principal(supervisor)
        for delta in ("25", "25", "25", "25", "25"):
            try:
                workflow.consume_material(db, principal, received_material.id, delta)
            except Conflict:
                pass
            assert Decimal("0") <= received_material.used_quantity <= lifecycle.available_quantity(received_material)
        assert received_material.used_quantity == Decimal("75")

    def test_fractional_consumption_exhausts_pool_exactly(self, db, request_material, admin, supervisor, as_principal):
        material = request_material(quantity="0.3", cost="5")
        workflow.approve_material(db, as_principal(admin), material.id)
        workflow.receive_material(db, as_principal(supervisor), material.id)
        db.commit()

        principal = as_principal(supervisor)
        workflow.consume_material(db, principal, material.id, "0.1")
        workflow.consume_material(db, principal, material.id, "0.2")
        assert material.used_quantity == Decimal("0.3")
        assert material.status == MaterialStatus.used

        with pytest.raises(Conflict) as exc:
            workflow.consume_material(db, principal, material.id, "0.001")
        assert exc.value.details["available"] == Decimal("0")


class TestConcurrentTransitions:
    """A second session holding a stale copy of the row must lose the race."""

    def test_stale_consumer_cannot_overshoot(self, db, session_factory, received_material, supervisor, as_principal):
        principal = as_principal(supervisor)
        stale = session_factory()
        try:
            stale_copy = stale.get(Material, received_material.id)
            assert stale_copy.used_quantity == Decimal("0")

            workflow.consume_material(db, principal, received_material.id, "50")
            db.commit()

            with pytest.raises(Conflict) as exc:
                workflow.consume_material(stale, principal, received_material.id, "50")
            assert exc.value.details["available"] == Decimal("30")
            assert exc.value.details["requested"] == Decimal("50")
        finally:
            stale.close()

        db.refresh(received_material)
        assert received_material.used_quantity == Decimal("50")
        assert received_material.status == MaterialStatus.received

    def test_stale_approver_conflicts(self, db, session_factory, request_material, admin, as_principal):
        material = request_material()
        stale = session_factory()
        try:
            stale.get(Material, material.id)
            workflow.approve_material(db, as_principal(admin), material.id, approved_quantity="60")
            db.commit()

            with pytest.raises(Conflict):
                workflow.approve_material(stale, as_principal(admin), material.id, approved_quantity="90")
        finally:
            stale.close()

        db.refresh(material)
        assert material.status == MaterialStatus.approved
        assert material.approved_quantity == Decimal("60")

    def test_stale_receiver_books_nothing(self, db, session_factory, request_material, admin, supervisor, as_principal):
        material = request_material()
        workflow.approve_material(db, as_principal(admin), material.id)
        db.commit()
        stale = session_factory()
        try:
            stale.get(Material, material.id)
            workflow.receive_material(db, as_principal(supervisor), material.id)
            db.commit()

            with pytest.raises(Conflict):
                workflow.receive_material(stale, as_principal(supervisor), material.id)
        finally:
            stale.close()

        assert db.query(Transaction).filter(Transaction.material_id == material.id).count() == 1


class TestEdit:
    def test_descriptive_edit_after_approval(self, db, request_material, admin, supervisor, as_principal):
        material = request_material()
        workflow.approve_material(db, as_principal(admin), material.id)
        workflow.update_material(db, as_principal(supervisor), material.id, {"supplier": "Other Co", "notes": "urgent"})
        assert material.supplier == "Other Co"

    def test_quantity_is_frozen_after_approval(self, db, request_material, admin, supervisor, as_principal):
        material = request_material()
        workflow.approve_material(db, as_principal(admin), material.id)
        with pytest.raises(Conflict):
            workflow.update_material(db, as_principal(supervisor), material.id, {"quantity": "120"})

    def test_status_override_is_admin_only(self, db, request_material, supervisor, as_principal):
        material = request_material()
        with pytest.raises(Forbidden):
            workflow.update_material(db, as_principal(supervisor), material.id, {"status": "received"})
        assert material.status == MaterialStatus.requested

    def test_admin_status_override_bypasses_guards(self, db, request_material, admin, as_principal):
        material = request_material()
        workflow.reject_material(db, as_principal(admin), material.id)
        workflow.update_material(db, as_principal(admin), material.id, {"status": "approved"})
        assert material.status == MaterialStatus.approved

    def test_unknown_status_value(self, db, request_material, admin, as_principal):
        material = request_material()
        with pytest.raises(InvalidInput):
            workflow.update_material(db, as_principal(admin), material.id, {"status": "lost"})

    def test_move_requires_both_projects(self, db, request_material, supervisor, other_site, as_principal):
        material = request_material()
        with pytest.raises(Forbidden):
            workflow.update_material(db, as_principal(supervisor), material.id, {"project_id": other_site.id})
        assert material.project_id != other_site.id

    def test_move_after_receipt_conflicts(self, db, received_material, admin, other_site, as_principal):
        with pytest.raises(Conflict):
            workflow.update_material(db, as_principal(admin), received_material.id, {"project_id": other_site.id})

    def test_admin_moves_requested_material(self, db, request_material, admin, other_site, as_principal):
        material = request_material()
        workflow.update_material(db, as_principal(admin), material.id, {"project_id": other_site.id})
        assert material.project_id == other_site.id


def test_module_compiles_without_warnings():
    source = Path(lifecycle.__file__).read_text()
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, lifecycle.__file__, "exec")
