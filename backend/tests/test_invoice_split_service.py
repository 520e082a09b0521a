"""Tests for master invoice creation and child invoice decomposition."""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from quoteflow.core.database import get_db
from quoteflow.core.exceptions import (
    ConcurrentModificationError,
    EmptySelectionError,
    InvalidStatusTransitionError,
    InvoiceHasPaymentsError,
    InvoiceNotEditableError,
    InvoiceNotFoundError,
    InvoiceVoidedError,
    LedgerConsistencyError,
    MasterInvoiceNotConfirmedError,
    NotAChildInvoiceError,
    NotAMasterInvoiceError,
    NumberingServiceError,
    OverAllocationError,
    PersistenceError,
    VoidReasonRequiredError,
)
from quoteflow.models.audit_log import AuditLog
from quoteflow.models.document_counter import DocumentCounter
from quoteflow.models.invoice import Invoice, InvoiceStatus, MasterInvoiceStatus
from quoteflow.repositories.audit_log_repository import AuditLogRepository
from quoteflow.repositories.invoice_item_repository import InvoiceItemRepository
from quoteflow.repositories.invoice_repository import InvoiceRepository
from quoteflow.schemas.invoice import (
    ChildInvoiceCreate,
    ChildItemSelection,
    InvoiceDetailsUpdate,
    MasterInvoiceItemCreate,
)
from quoteflow.services.domain_events import (
    ChildInvoiceCreated,
    ChildInvoiceVoided,
    EventBus,
    MasterInvoiceCreated,
)
from quoteflow.services.invoice_split_service import InvoiceSplitService
from quoteflow.services.payment_ledger import PaymentLedger
from tests.conftest import build_master_data

YEAR = datetime.now(UTC).year


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def published():
    return []


@pytest.fixture
def service(db_session, published):
    bus = EventBus()
    bus.subscribe(published.append)
    return InvoiceSplitService(db_session, events=bus)


@pytest.fixture
def master(service):
    invoice = service.create_master_invoice(build_master_data())
    return service.update_master_status(invoice.id, MasterInvoiceStatus.CONFIRMED)


@pytest.fixture
def master_items(db_session, master):
    return InvoiceItemRepository(db_session).get_by_invoice_id(master.id)


def _selection(*pairs, **metadata) -> ChildInvoiceCreate:
    return ChildInvoiceCreate(
        items=[ChildItemSelection(item_id=item.id, quantity=qty) for item, qty in pairs],
        **metadata,
    )


class TestCreateMasterInvoice:
    def test_creates_master_with_rounded_amounts(self, service, db_session):
        master = service.create_master_invoice(build_master_data())

        assert master.is_master is True
        assert master.master_invoice_id is None
        assert master.master_status == MasterInvoiceStatus.DRAFT.value
        assert master.status == InvoiceStatus.DRAFT.value
        assert master.invoice_number == f"MINV-{YEAR}-0001"
        assert master.subtotal == Decimal("1000.00")
        assert master.discount == Decimal("100.00")
        assert master.cgst == Decimal("81.00")
        assert master.sgst == Decimal("81.00")
        assert master.igst == Decimal("0.00")
        assert master.shipping_charges == Decimal("50.00")
        assert master.total == Decimal("1112.00")
        assert master.paid_amount == Decimal("0.00")
        assert master.remaining_amount == Decimal("1112.00")
        assert master.currency == "INR"
        assert master.due_date is not None
        assert master.notes == "Deliver to site B"

    def test_master_items_start_unfulfilled(self, service, db_session):
        master = service.create_master_invoice(build_master_data())

        items = InvoiceItemRepository(db_session).get_by_invoice_id(master.id)

        assert [item.description for item in items] == ["Steel beam", "Steel plate"]
        assert all(item.fulfilled_quantity == 0 for item in items)
        assert all(item.total_quantity == 10 for item in items)
        assert all(item.subtotal == Decimal("500.00") for item in items)
        assert all(item.master_item_id is None for item in items)

    def test_numbers_are_sequential(self, service):
        first = service.create_master_invoice(build_master_data())
        second = service.create_master_invoice(build_master_data())

        assert first.invoice_number == f"MINV-{YEAR}-0001"
        assert second.invoice_number == f"MINV-{YEAR}-0002"

    def test_records_audit_and_publishes_event(self, service, db_session, published):
        master = service.create_master_invoice(build_master_data())

        audit = AuditLogRepository(db_session).get_by_resource("invoice", master.id)
        assert [row.action for row in audit] == ["created"]
        assert len(published) == 1
        assert isinstance(published[0], MasterInvoiceCreated)
        assert published[0].total == Decimal("1112.00")

    def test_numbering_failure_persists_nothing(self, db_session):
        numbering = MagicMock()
        numbering.next_number.side_effect = RuntimeError("sequence unavailable")
        service = InvoiceSplitService(db_session, numbering=numbering, events=EventBus())

        with pytest.raises(NumberingServiceError):
            service.create_master_invoice(build_master_data())

        assert db_session.query(Invoice).count() == 0

    def test_fractional_price_full_split_matches_master(self, service, db_session):
        master = service.create_master_invoice(
            build_master_data(
                items=[
                    MasterInvoiceItemCreate(
                        description="Fastener", quantity=1000, unit_price=Decimal("0.1235")
                    )
                ],
                discount=Decimal("10"),
                cgst=Decimal("10"),
                sgst=Decimal("0"),
                shipping_charges=Decimal("0"),
            )
        )
        service.update_master_status(master.id, MasterInvoiceStatus.CONFIRMED)
        item = InvoiceItemRepository(db_session).get_by_invoice_id(master.id)[0]

        child = service.create_child_invoice(master.id, _selection((item, 1000)))

        assert master.total == Decimal("123.50")
        assert child.total == master.total
        assert service.master_summary(master.id)["uninvoiced_total"] == Decimal("0.00")

    def test_unit_price_beyond_stored_precision_rejected(self):
        with pytest.raises(ValidationError):
            MasterInvoiceItemCreate(
                description="Fastener", quantity=1000, unit_price=Decimal("0.123456789")
            )


class TestMasterStatus:
    def test_draft_to_confirmed_to_locked(self, service):
        master = service.create_master_invoice(build_master_data())

        master = service.update_master_status(master.id, MasterInvoiceStatus.CONFIRMED)
        assert master.master_status == MasterInvoiceStatus.CONFIRMED.value

        master = service.update_master_status(master.id, MasterInvoiceStatus.LOCKED)
        assert master.master_status == MasterInvoiceStatus.LOCKED.value

    def test_skipping_confirmed_is_rejected(self, service):
        master = service.create_master_invoice(build_master_data())

        with pytest.raises(InvalidStatusTransitionError):
            service.update_master_status(master.id, MasterInvoiceStatus.LOCKED)

    def test_locked_is_final(self, service, master):
        service.update_master_status(master.id, MasterInvoiceStatus.LOCKED)

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            service.update_master_status(master.id, MasterInvoiceStatus.CONFIRMED)

        assert exc_info.value.current == "locked"
        assert exc_info.value.requested == "confirmed"

    def test_status_change_audited(self, service, master, db_session):
        actions = [
            row.changes
            for row in db_session.query(AuditLog).filter(
                AuditLog.resource_id == master.id, AuditLog.action == "status_changed"
            )
        ]
        assert actions == [{"master_status": {"old": "draft", "new": "confirmed"}}]

    def test_child_cannot_change_master_status(self, service, master, master_items):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 1)))

        with pytest.raises(NotAMasterInvoiceError):
            service.update_master_status(child.id, MasterInvoiceStatus.CONFIRMED)

    def test_unknown_invoice(self, service):
        with pytest.raises(InvoiceNotFoundError):
            service.update_master_status(uuid4(), MasterInvoiceStatus.CONFIRMED)


class TestSendInvoice:
    def test_send_draft(self, service, master):
        sent = service.send_invoice(master.id)

        assert sent.status == InvoiceStatus.SENT.value
        assert sent.issued_at is not None

    def test_send_twice_rejected(self, service, master):
        service.send_invoice(master.id)

        with pytest.raises(InvalidStatusTransitionError):
            service.send_invoice(master.id)


class TestCreateChildInvoice:
    def test_prorated_child(self, service, master, master_items, db_session):
        item_a = master_items[0]

        child = service.create_child_invoice(
            master.id,
            _selection((item_a, 5), milestone_description="Phase 1", delivery_notes="Truck 7"),
        )

        assert child.is_master is False
        assert child.master_invoice_id == master.id
        assert child.master_status is None
        assert child.status == InvoiceStatus.DRAFT.value
        assert child.invoice_number == f"INV-{YEAR}-0001"
        assert child.subtotal == Decimal("250.00")
        assert child.discount == Decimal("25.00")
        assert child.cgst == Decimal("20.25")
        assert child.sgst == Decimal("20.25")
        assert child.shipping_charges == Decimal("12.50")
        assert child.total == Decimal("278.00")
        assert child.remaining_amount == Decimal("278.00")
        assert child.milestone_description == "Phase 1"
        assert child.delivery_notes == "Truck 7"
        assert child.notes == "Deliver to site B"
        assert child.currency == master.currency

        db_session.refresh(item_a)
        assert item_a.fulfilled_quantity == 5

    def test_child_lines_reference_master_items(self, service, master, master_items, db_session):
        item_a, item_b = master_items

        child = service.create_child_invoice(master.id, _selection((item_b, 2), (item_a, 0)))

        lines = InvoiceItemRepository(db_session).get_by_invoice_id(child.id)
        assert len(lines) == 1
        assert lines[0].master_item_id == item_b.id
        assert lines[0].total_quantity == 2
        assert lines[0].unit_price == Decimal("50.0000")
        assert lines[0].subtotal == Decimal("100.00")
        assert lines[0].description == "Steel plate"

    def test_conservation_across_children(self, service, master, master_items, db_session):
        item_a, item_b = master_items
        service.create_child_invoice(master.id, _selection((item_a, 3), (item_b, 1)))
        service.create_child_invoice(master.id, _selection((item_a, 4)))
        service.create_child_invoice(master.id, _selection((item_a, 3), (item_b, 9)))

        repo = InvoiceItemRepository(db_session)
        for master_item in repo.get_by_invoice_id(master.id):
            drawn = sum(line.total_quantity for line in repo.get_by_master_item_id(master_item.id))
            assert drawn == master_item.fulfilled_quantity
            assert master_item.fulfilled_quantity <= master_item.total_quantity
        assert [item.fulfilled_quantity for item in repo.get_by_invoice_id(master.id)] == [10, 10]

    def test_over_allocation_does_not_mutate(self, service, master, master_items, db_session):
        item_a, item_b = master_items
        service.create_child_invoice(master.id, _selection((item_a, 8)))

        with pytest.raises(OverAllocationError) as exc_info:
            service.create_child_invoice(master.id, _selection((item_b, 1), (item_a, 3)))

        assert exc_info.value.item_id == item_a.id
        assert exc_info.value.max_allowed == 2
        db_session.refresh(item_a)
        db_session.refresh(item_b)
        assert item_a.fulfilled_quantity == 8
        assert item_b.fulfilled_quantity == 0
        assert len(InvoiceRepository(db_session).get_children(master.id)) == 1

    def test_empty_selection(self, service, master, master_items):
        with pytest.raises(EmptySelectionError):
            service.create_child_invoice(master.id, _selection((master_items[0], 0)))

    def test_draft_master_rejected(self, service):
        draft = service.create_master_invoice(build_master_data())
        items = InvoiceItemRepository(service.db).get_by_invoice_id(draft.id)

        with pytest.raises(MasterInvoiceNotConfirmedError):
            service.create_child_invoice(draft.id, _selection((items[0], 1)))

    def test_locked_master_still_splits(self, service, master, master_items):
        service.update_master_status(master.id, MasterInvoiceStatus.LOCKED)

        child = service.create_child_invoice(master.id, _selection((master_items[0], 1)))

        assert child.master_invoice_id == master.id

    def test_child_of_child_rejected(self, service, master, master_items):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 1)))

        with pytest.raises(NotAMasterInvoiceError):
            service.create_child_invoice(child.id, _selection((master_items[0], 1)))

    def test_numbering_failure_reserves_nothing(self, db_session, master, master_items):
        numbering = MagicMock()
        numbering.next_number.side_effect = RuntimeError("sequence unavailable")
        service = InvoiceSplitService(db_session, numbering=numbering, events=EventBus())

        with pytest.raises(NumberingServiceError):
            service.create_child_invoice(master.id, _selection((master_items[0], 4)))

        db_session.refresh(master_items[0])
        assert master_items[0].fulfilled_quantity == 0
        assert InvoiceRepository(db_session).get_children(master.id) == []

    def test_persistence_failure_rolls_back_everything(self, service, master, master_items, db_session):
        error = IntegrityError("INSERT", {}, Exception("disk full"))
        with (
            patch.object(service.ledger, "reserve", side_effect=error),
            pytest.raises(PersistenceError),
        ):
            service.create_child_invoice(master.id, _selection((master_items[0], 4)))

        db_session.refresh(master_items[0])
        assert master_items[0].fulfilled_quantity == 0
        assert InvoiceRepository(db_session).get_children(master.id) == []
        counter = (
            db_session.query(DocumentCounter)
            .filter(DocumentCounter.document_type == "child_invoice")
            .first()
        )
        assert counter is None

    def test_retries_after_concurrent_update(self, service, master, master_items, db_session):
        original = service._create_child_invoice_once
        calls = []

        def flaky(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("invoice_items row changed underneath")
            return original(*args, **kwargs)

        with patch.object(service, "_create_child_invoice_once", side_effect=flaky):
            child = service.create_child_invoice(master.id, _selection((master_items[0], 2)))

        assert len(calls) == 2
        assert child.total == Decimal("111.20")
        db_session.refresh(master_items[0])
        assert master_items[0].fulfilled_quantity == 2
        assert len(InvoiceRepository(db_session).get_children(master.id)) == 1

    def test_gives_up_after_max_retries(self, service, master, master_items, db_session):
        with (
            patch.object(
                service,
                "_create_child_invoice_once",
                side_effect=StaleDataError("row changed"),
            ) as once,
            pytest.raises(ConcurrentModificationError),
        ):
            service.create_child_invoice(master.id, _selection((master_items[0], 2)))

        assert once.call_count == 3
        db_session.refresh(master_items[0])
        assert master_items[0].fulfilled_quantity == 0

    def test_failed_rollback_is_fatal(self, service, master, master_items, db_session):
        with (
            patch.object(db_session, "rollback", side_effect=SQLAlchemyError("connection lost")),
            pytest.raises(LedgerConsistencyError),
        ):
            service.create_child_invoice(master.id, _selection((master_items[0], 11)))

    def test_publishes_child_created(self, service, master, master_items, published):
        child = service.create_child_invoice(master.id, _selection((master_items[1], 3)))

        event = published[-1]
        assert isinstance(event, ChildInvoiceCreated)
        assert event.invoice_id == child.id
        assert event.master_invoice_id == master.id
        assert event.quantities == {str(master_items[1].id): 3}

    def test_rereads_are_stable(self, service, master, master_items, db_session):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 5)))
        repo = InvoiceRepository(db_session)
        item_repo = InvoiceItemRepository(db_session)

        snapshots = []
        for _ in range(3):
            db_session.expire_all()
            reread_child = repo.get_by_id(child.id)
            items = item_repo.get_by_invoice_id(master.id)
            snapshots.append(
                (
                    reread_child.remaining_amount,
                    reread_child.total,
                    [item.fulfilled_quantity for item in items],
                )
            )

        assert snapshots[0] == snapshots[1] == snapshots[2]
        assert snapshots[0] == (Decimal("278.00"), Decimal("278.00"), [5, 0])


class TestPreviewChildInvoice:
    def test_preview_matches_creation_and_persists_nothing(
        self, service, master, master_items, db_session
    ):
        item_a = master_items[0]
        selection = [ChildItemSelection(item_id=item_a.id, quantity=5)]

        preview = service.preview_child_invoice(master.id, selection)

        assert preview.total == Decimal("278.00")
        assert preview.tax_rates.cgst == Decimal("9")
        assert len(preview.lines) == 1
        assert preview.lines[0].total == Decimal("278.00")
        db_session.refresh(item_a)
        assert item_a.fulfilled_quantity == 0
        assert InvoiceRepository(db_session).get_children(master.id) == []

    def test_preview_on_draft_master(self, service):
        draft = service.create_master_invoice(build_master_data())
        items = InvoiceItemRepository(service.db).get_by_invoice_id(draft.id)

        preview = service.preview_child_invoice(
            draft.id, [ChildItemSelection(item_id=items[1].id, quantity=10)]
        )

        assert preview.subtotal == Decimal("500.00")
        assert preview.total == Decimal("556.00")

    def test_preview_validates_remaining(self, service, master, master_items):
        service.create_child_invoice(master.id, _selection((master_items[0], 10)))

        with pytest.raises(OverAllocationError):
            service.preview_child_invoice(
                master.id, [ChildItemSelection(item_id=master_items[0].id, quantity=1)]
            )


class TestVoidChildInvoice:
    def test_void_releases_quantities(self, service, master, master_items, db_session, published):
        item_a, item_b = master_items
        child = service.create_child_invoice(master.id, _selection((item_a, 4), (item_b, 6)))

        voided = service.void_child_invoice(child.id, "Milestone cancelled")

        assert voided.status == InvoiceStatus.VOIDED.value
        assert voided.remaining_amount == Decimal("0.00")
        db_session.refresh(item_a)
        db_session.refresh(item_b)
        assert item_a.fulfilled_quantity == 0
        assert item_b.fulfilled_quantity == 0
        assert isinstance(published[-1], ChildInvoiceVoided)
        assert published[-1].released == {str(item_a.id): 4, str(item_b.id): 6}

    def test_released_quantity_can_be_invoiced_again(self, service, master, master_items):
        item_a = master_items[0]
        first = service.create_child_invoice(master.id, _selection((item_a, 10)))
        service.void_child_invoice(first.id, "Milestone cancelled")

        second = service.create_child_invoice(master.id, _selection((item_a, 10)))

        assert second.subtotal == Decimal("500.00")

    def test_void_twice_rejected(self, service, master, master_items):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 1)))
        service.void_child_invoice(child.id, "Milestone cancelled")

        with pytest.raises(InvoiceVoidedError):
            service.void_child_invoice(child.id, "Milestone cancelled")

    def test_void_master_rejected(self, service, master):
        with pytest.raises(NotAChildInvoiceError):
            service.void_child_invoice(master.id, "Milestone cancelled")

    def test_void_with_payments_rejected(self, service, master, master_items, db_session):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 5)))
        PaymentLedger(db_session, events=EventBus()).apply_payment(child.id, Decimal("100"))

        with pytest.raises(InvoiceHasPaymentsError):
            service.void_child_invoice(child.id, "Milestone cancelled")

        db_session.refresh(master_items[0])
        assert master_items[0].fulfilled_quantity == 5

    def test_void_is_audited(self, service, master, master_items, db_session):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 2)))

        service.void_child_invoice(child.id, "Milestone cancelled")

        row = (
            db_session.query(AuditLog)
            .filter(AuditLog.resource_id == child.id, AuditLog.action == "voided")
            .one()
        )
        assert row.changes["released"] == {str(master_items[0].id): 2}
        assert row.changes["reason"] == "Milestone cancelled"

    def test_void_reason_recorded(self, service, master, master_items, published):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 2)))

        voided = service.void_child_invoice(child.id, "  Customer dropped phase 2 ")

        assert voided.void_reason == "Customer dropped phase 2"
        assert voided.voided_at is not None
        assert published[-1].reason == "Customer dropped phase 2"

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_void_requires_reason(self, service, master, master_items, db_session, reason):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 2)))

        with pytest.raises(VoidReasonRequiredError):
            service.void_child_invoice(child.id, reason)

        db_session.refresh(child)
        db_session.refresh(master_items[0])
        assert child.status == InvoiceStatus.DRAFT.value
        assert master_items[0].fulfilled_quantity == 2


class TestUpdateInvoiceDetails:
    def test_draft_master_accepts_every_field(self, service, db_session):
        draft = service.create_master_invoice(build_master_data())
        due = datetime(2030, 1, 31, tzinfo=UTC)

        updated = service.update_invoice_details(
            draft.id,
            InvoiceDetailsUpdate(
                notes="Revised",
                milestone_description="All phases",
                delivery_notes="Gate 3",
                due_date=due,
            ),
        )

        assert updated.notes == "Revised"
        assert updated.milestone_description == "All phases"
        assert updated.delivery_notes == "Gate 3"
        assert updated.due_date.replace(tzinfo=UTC) == due
        assert updated.total == Decimal("1112.00")

    def test_confirmed_master_text_fields_only(self, service, master):
        updated = service.update_invoice_details(
            master.id, InvoiceDetailsUpdate(delivery_notes="Gate 3")
        )
        assert updated.delivery_notes == "Gate 3"

        with pytest.raises(InvoiceNotEditableError) as exc_info:
            service.update_invoice_details(
                master.id, InvoiceDetailsUpdate(due_date=datetime(2030, 1, 31, tzinfo=UTC))
            )
        assert exc_info.value.field == "due_date"

    def test_locked_master_rejected(self, service, master, db_session):
        service.update_master_status(master.id, MasterInvoiceStatus.LOCKED)

        with pytest.raises(InvoiceNotEditableError):
            service.update_invoice_details(master.id, InvoiceDetailsUpdate(notes="late"))

        db_session.refresh(master)
        assert master.notes == "Deliver to site B"

    def test_unpaid_child_editable(self, service, master, master_items):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 5)))
        due = datetime(2030, 6, 30, tzinfo=UTC)

        updated = service.update_invoice_details(
            child.id, InvoiceDetailsUpdate(milestone_description="Phase 1", due_date=due)
        )

        assert updated.milestone_description == "Phase 1"
        assert updated.due_date.replace(tzinfo=UTC) == due
        assert updated.total == Decimal("278.00")

    def test_paid_child_rejected(self, service, master, master_items, db_session):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 5)))
        PaymentLedger(db_session, events=EventBus()).apply_payment(child.id, Decimal("278"))

        with pytest.raises(InvoiceNotEditableError):
            service.update_invoice_details(child.id, InvoiceDetailsUpdate(notes="x"))

    def test_voided_child_rejected(self, service, master, master_items):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 5)))
        service.void_child_invoice(child.id, "Milestone cancelled")

        with pytest.raises(InvoiceVoidedError):
            service.update_invoice_details(child.id, InvoiceDetailsUpdate(notes="x"))

    def test_changes_are_audited(self, service, master):
        service.update_invoice_details(master.id, InvoiceDetailsUpdate(notes="Revised"))

        audit = AuditLogRepository(service.db).get_by_resource("invoice", master.id)
        rows = [row for row in audit if row.action == "details_updated"]
        assert len(rows) == 1
        assert rows[0].changes == {"notes": {"old": "Deliver to site B", "new": "Revised"}}

    def test_unchanged_values_not_audited(self, service, master):
        service.update_invoice_details(master.id, InvoiceDetailsUpdate(notes="Deliver to site B"))

        audit = AuditLogRepository(service.db).get_by_resource("invoice", master.id)
        assert all(row.action != "details_updated" for row in audit)

    def test_unknown_invoice(self, service):
        with pytest.raises(InvoiceNotFoundError):
            service.update_invoice_details(uuid4(), InvoiceDetailsUpdate(notes="x"))


class TestMasterSummary:
    def test_summary_tracks_children(self, service, master, master_items, db_session):
        item_a, item_b = master_items
        first = service.create_child_invoice(master.id, _selection((item_a, 5)))
        second = service.create_child_invoice(master.id, _selection((item_b, 10)))
        service.void_child_invoice(second.id, "Milestone cancelled")
        PaymentLedger(db_session, events=EventBus()).apply_payment(first.id, Decimal("78"))

        summary = service.master_summary(master.id)

        assert summary["child_count"] == 1
        assert summary["total"] == Decimal("1112.00")
        assert summary["invoiced_total"] == Decimal("278.00")
        assert summary["uninvoiced_total"] == Decimal("834.00")
        assert summary["children_paid_total"] == Decimal("78.00")
        by_id = {entry["id"]: entry for entry in summary["items"]}
        assert by_id[item_a.id]["remaining_quantity"] == 5
        assert by_id[item_a.id]["remaining_amount"] == Decimal("250.00")
        assert by_id[item_b.id]["remaining_quantity"] == 10

    def test_summary_is_read_only(self, service, master, master_items, db_session):
        service.create_child_invoice(master.id, _selection((master_items[0], 3)))

        first = service.master_summary(master.id)
        second = service.master_summary(master.id)

        assert first == second
        assert db_session.query(AuditLog).filter(AuditLog.action == "created").count() == 2

    def test_summary_of_child_rejected(self, service, master, master_items):
        child = service.create_child_invoice(master.id, _selection((master_items[0], 1)))

        with pytest.raises(NotAMasterInvoiceError):
            service.master_summary(child.id)
