# Overview: Pytest coverage for the weighted-average inventory ledger.

"""
Inventory Ledger Tests

Covers receive/consume/reverse arithmetic, the append-only movement log,
reservations, tenant scoping of stock lookups, and concurrent receipts
against one item (file-backed SQLite).
"""

import threading

import pytest

from docledger import create_app
from docledger.errors import DocumentNotFound, InsufficientStock, InvalidTransition, ValidationError
from docledger.extensions import db
from docledger.models import InventoryMovement, MovementImmutableError, Tenant
from docledger.money import weighted_average_cost
from docledger.services import inventory_service


class TestReceive:
    def test_receive_averages_cost(self, tenant, widget):
        inventory_service.receive(tenant.id, widget.id, 10, 100)
        inventory_service.receive(tenant.id, widget.id, 10, 200)

        summary = inventory_service.get_stock_summary(tenant.id, widget.id)
        assert summary["on_hand"] == 20
        assert summary["average_cost_cents"] == 150
        assert summary["cost_price_cents"] == 200
        assert summary["inventory_value_cents"] == 3000

    def test_receive_records_before_and_after(self, tenant, widget):
        movement = inventory_service.receive(tenant.id, widget.id, 4, 250, note="opening")
        assert movement.movement_type == "IN"
        assert movement.quantity_before == 0
        assert movement.quantity_after == 4
        assert movement.cost_before_cents == 0
        assert movement.cost_after_cents == 250
        assert movement.source_type == "ADJUSTMENT"

    @pytest.mark.parametrize("qty", [0, -3, 1.5, "2.0", True])
    def test_receive_rejects_bad_quantity(self, tenant, widget, qty):
        with pytest.raises(ValidationError):
            inventory_service.receive(tenant.id, widget.id, qty, 100)
        assert InventoryMovement.query.count() == 0

    def test_receive_rejects_grv_source(self, tenant, widget):
        with pytest.raises(ValidationError):
            inventory_service.receive(tenant.id, widget.id, 5, 100, source_type="GRV")
        assert InventoryMovement.query.count() == 0


class TestConsume:
    def test_consume_keeps_average(self, tenant, widget):
        inventory_service.receive(tenant.id, widget.id, 10, 150)
        movement = inventory_service.consume(tenant.id, widget.id, 4)

        assert movement.movement_type == "OUT"
        assert movement.unit_cost_cents == 150
        item = inventory_service.get_stock_item(tenant.id, widget.id)
        assert item.on_hand == 6
        assert item.average_cost_cents == 150

    def test_consume_more_than_available_fails(self, tenant, widget):
        inventory_service.receive(tenant.id, widget.id, 5, 100)
        inventory_service.reserve(tenant.id, widget.id, 3)

        with pytest.raises(InsufficientStock) as exc_info:
            inventory_service.consume(tenant.id, widget.id, 3)
        assert exc_info.value.details["available"] == 2

        item = inventory_service.get_stock_item(tenant.id, widget.id)
        assert item.on_hand == 5
        assert InventoryMovement.query.filter_by(movement_type="OUT").count() == 0

    def test_untracked_item_skips_check_and_floors_at_zero(self, tenant):
        service = inventory_service.create_stock_item(
            tenant_id=tenant.id, sku="SVC-1", name="Labour", track_inventory=False
        )
        inventory_service.consume(tenant.id, service.id, 3)
        item = inventory_service.get_stock_item(tenant.id, service.id)
        assert item.on_hand == 0

    @pytest.mark.parametrize("source_type", ["GRV", "CANCEL_GRV", "CANCEL_SALE", "bogus"])
    def test_consume_rejects_document_sources(self, tenant, widget, source_type):
        inventory_service.receive(tenant.id, widget.id, 5, 100)
        with pytest.raises(ValidationError):
            inventory_service.consume(tenant.id, widget.id, 1, source_type=source_type)
        assert InventoryMovement.query.filter_by(movement_type="OUT").count() == 0


class TestReverse:
    def test_reverse_latest_receipt_restores_snapshot(self, tenant, widget):
        inventory_service.receive(tenant.id, widget.id, 10, 100)
        second = inventory_service.receive(tenant.id, widget.id, 10, 200)

        reversal = inventory_service.reverse_movement(tenant.id, second.id)

        assert reversal.movement_type == "OUT"
        assert reversal.reverses_movement_id == second.id
        assert reversal.needs_review is False
        item = inventory_service.get_stock_item(tenant.id, widget.id)
        assert item.on_hand == 10
        assert item.average_cost_cents == 100

    def test_reverse_with_later_receipt_recomputes(self, tenant, widget):
        first = inventory_service.receive(tenant.id, widget.id, 10, 100)
        inventory_service.receive(tenant.id, widget.id, 10, 300)

        inventory_service.reverse_movement(tenant.id, first.id)

        item = inventory_service.get_stock_item(tenant.id, widget.id)
        assert item.on_hand == 10
        assert item.average_cost_cents == 300

    def test_reverse_after_consumption_is_flagged(self, tenant, widget):
        first = inventory_service.receive(tenant.id, widget.id, 10, 100)
        inventory_service.consume(tenant.id, widget.id, 8)

        reversal = inventory_service.reverse_movement(tenant.id, first.id)

        assert reversal.needs_review is True
        assert reversal.review_reason
        assert reversal.quantity == 2
        item = inventory_service.get_stock_item(tenant.id, widget.id)
        assert item.on_hand == 0
        assert item.average_cost_cents == 100

    def test_reverse_consumption_puts_stock_back(self, tenant, widget):
        inventory_service.receive(tenant.id, widget.id, 10, 100)
        out = inventory_service.consume(tenant.id, widget.id, 4)

        reversal = inventory_service.reverse_movement(tenant.id, out.id)

        assert reversal.movement_type == "IN"
        item = inventory_service.get_stock_item(tenant.id, widget.id)
        assert item.on_hand == 10
        assert item.average_cost_cents == 100

    def test_reverse_twice_fails(self, tenant, widget):
        movement = inventory_service.receive(tenant.id, widget.id, 5, 100)
        inventory_service.reverse_movement(tenant.id, movement.id)

        with pytest.raises(InvalidTransition):
            inventory_service.reverse_movement(tenant.id, movement.id)

    def test_reversal_cannot_be_reversed(self, tenant, widget):
        movement = inventory_service.receive(tenant.id, widget.id, 5, 100)
        reversal = inventory_service.reverse_movement(tenant.id, movement.id)

        with pytest.raises(InvalidTransition):
            inventory_service.reverse_movement(tenant.id, reversal.id)

    def test_reverse_after_flagged_reversals_stays_flagged(self, tenant, widget):
        first = inventory_service.receive(tenant.id, widget.id, 10, 100)
        second = inventory_service.receive(tenant.id, widget.id, 5, 200)
        out = inventory_service.consume(tenant.id, widget.id, 12)

        clamped = inventory_service.reverse_movement(tenant.id, second.id)
        assert clamped.needs_review is True
        assert clamped.quantity == 3
        put_back = inventory_service.reverse_movement(tenant.id, out.id)
        assert put_back.needs_review is True

        reversal = inventory_service.reverse_movement(tenant.id, first.id)

        assert reversal.needs_review is True
        assert reversal.quantity_before == 12
        assert reversal.quantity == 10
        assert reversal.quantity_before - reversal.quantity == reversal.quantity_after
        item = inventory_service.get_stock_item(tenant.id, widget.id)
        assert item.on_hand == 2

    def test_clean_later_pair_still_restores_snapshot(self, tenant, widget):
        first = inventory_service.receive(tenant.id, widget.id, 10, 100)
        second = inventory_service.receive(tenant.id, widget.id, 10, 300)
        inventory_service.reverse_movement(tenant.id, second.id)

        reversal = inventory_service.reverse_movement(tenant.id, first.id)

        assert reversal.needs_review is False
        item = inventory_service.get_stock_item(tenant.id, widget.id)
        assert item.on_hand == 0
        assert item.average_cost_cents == 0


class TestMovementLog:
    def test_movements_cannot_be_updated(self, db_session, tenant, widget):
        movement = inventory_service.receive(tenant.id, widget.id, 5, 100)
        movement.note = "edited"
        with pytest.raises(MovementImmutableError):
            db.session.flush()
        db.session.rollback()

    def test_movements_cannot_be_deleted(self, db_session, tenant, widget):
        movement = inventory_service.receive(tenant.id, widget.id, 5, 100)
        db.session.delete(movement)
        with pytest.raises(MovementImmutableError):
            db.session.flush()
        db.session.rollback()

    def test_list_movements_newest_first(self, tenant, widget):
        inventory_service.receive(tenant.id, widget.id, 5, 100)
        inventory_service.consume(tenant.id, widget.id, 2)
        movements = inventory_service.list_movements(tenant.id, widget.id)
        assert [m.movement_type for m in movements] == ["OUT", "IN"]


class TestReservations:
    def test_reserve_and_release(self, tenant, widget):
        inventory_service.receive(tenant.id, widget.id, 5, 100)
        item = inventory_service.reserve(tenant.id, widget.id, 3)
        assert item.reserved == 3
        assert item.available == 2

        item = inventory_service.release(tenant.id, widget.id, 2)
        assert item.reserved == 1

    def test_reserve_beyond_available_fails(self, tenant, widget):
        inventory_service.receive(tenant.id, widget.id, 2, 100)
        with pytest.raises(InsufficientStock):
            inventory_service.reserve(tenant.id, widget.id, 3)

    def test_release_beyond_reserved_fails(self, tenant, widget):
        with pytest.raises(ValidationError):
            inventory_service.release(tenant.id, widget.id, 1)


class TestStockItems:
    def test_duplicate_sku_rejected(self, tenant, widget):
        with pytest.raises(ValidationError):
            inventory_service.create_stock_item(tenant_id=tenant.id, sku="W-001", name="Clone")

    def test_same_sku_allowed_in_other_tenant(self, other_tenant, widget):
        item = inventory_service.create_stock_item(tenant_id=other_tenant.id, sku="W-001", name="Widget")
        assert item.id != widget.id

    def test_cross_tenant_lookup_is_not_found(self, other_tenant, widget):
        with pytest.raises(DocumentNotFound):
            inventory_service.get_stock_summary(other_tenant.id, widget.id)

    def test_below_reorder_level(self, tenant, widget):
        inventory_service.receive(tenant.id, widget.id, 5, 100)
        assert inventory_service.get_stock_summary(tenant.id, widget.id)["below_reorder_level"] is True
        inventory_service.receive(tenant.id, widget.id, 1, 100)
        assert inventory_service.get_stock_summary(tenant.id, widget.id)["below_reorder_level"] is False


class TestConcurrentReceive:
    """Several threads receive into one item; the running position never loses an update."""

    THREADS = 4
    PER_THREAD = 5

    def test_receipts_serialize_on_the_item(self, tmp_path):
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'stock.sqlite3'}",
            'LEDGER_RETRY_ATTEMPTS': 20,
            'LEDGER_RETRY_BACKOFF_SECONDS': 0.01,
        })
        with app.app_context():
            db.create_all()
            t = Tenant(name="Concurrent", code="CONC", is_active=True)
            db.session.add(t)
            db.session.commit()
            tenant_id = t.id
            item_id = inventory_service.create_stock_item(tenant_id=tenant_id, sku="C-1", name="Crate").id

        errors = []
        lock = threading.Lock()

        def worker(offset):
            with app.app_context():
                try:
                    for i in range(self.PER_THREAD):
                        inventory_service.receive(tenant_id, item_id, 2, 100 + offset * 10 + i)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(self.THREADS)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()

        assert errors == []
        expected = self.THREADS * self.PER_THREAD

        with app.app_context():
            movements = (
                InventoryMovement.query.filter_by(stock_item_id=item_id)
                .order_by(InventoryMovement.id.asc())
                .all()
            )
            assert len(movements) == expected

            on_hand, average = 0, 0
            for m in movements:
                assert m.quantity_before == on_hand
                assert m.cost_before_cents == average
                average = weighted_average_cost(on_hand, average, m.quantity, m.unit_cost_cents)
                on_hand += m.quantity
                assert m.quantity_after == on_hand
                assert m.cost_after_cents == average

            item = inventory_service.get_stock_item(tenant_id, item_id)
            assert item.on_hand == expected * 2
            assert item.average_cost_cents == average
            db.drop_all()
            db.engine.dispose()
