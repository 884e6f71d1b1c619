"""
Tests for PaymentLedgerService.

Covers:
- Owner and partner receipts (incremental, full payment, correction)
- Partner share / ledger mirror consistency
- Client transactions and client-ledger thresholds
- Access rules and optimistic version checks
- All-or-nothing mutations when a write fails midway
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from settlement_kernel.domain.dtos import PartnerAssignment, SharePermission
from settlement_kernel.domain.ledger import PaymentStatus
from settlement_kernel.exceptions import (
    AccessDeniedError,
    ConflictError,
    InvalidAmountError,
    MissingFieldError,
    ProjectNotFoundError,
    TransactionNotFoundError,
)
from settlement_kernel.models.client_transaction import ClientTransaction
from settlement_kernel.models.project import Project
from settlement_kernel.services.payment_ledger import PaymentLedgerService


@pytest.fixture
def ledger(session, clock) -> PaymentLedgerService:
    return PaymentLedgerService(session, clock)


@pytest.fixture
def shared_project(make_project, partner):
    """1000 budget, 10% platform, partner at 20%: owner 720, partner 180."""
    return make_project(partner=(partner.id, "percentage", Decimal("20")))


class TestOwnerReceipts:
    """Owner registers what they have received."""

    def test_partial_receipt(self, ledger, shared_project, owner):
        view = ledger.register_user_receipt(shared_project.id, owner.id, Decimal("200"))

        assert view.ledger.owner.status is PaymentStatus.PARTIAL
        assert view.ledger.owner.amount_received == Decimal("200.00")
        assert view.settlement.your_amount_received == Decimal("200.00")
        assert view.settlement.your_remaining_to_receive == Decimal("520.00")

    def test_receipts_accumulate_to_paid(self, ledger, shared_project, owner):
        ledger.register_user_receipt(shared_project.id, owner.id, Decimal("500"))
        view = ledger.register_user_receipt(shared_project.id, owner.id, "220")

        assert view.ledger.owner.amount_received == Decimal("720.00")
        assert view.ledger.owner.status is PaymentStatus.PAID
        assert view.settlement.your_remaining_to_receive == Decimal("0.00")

    def test_full_payment_sets_total(self, ledger, shared_project, owner):
        ledger.register_user_receipt(shared_project.id, owner.id, Decimal("100"))
        view = ledger.register_user_receipt(
            shared_project.id, owner.id, amount=None, is_full_payment=True
        )

        assert view.ledger.owner.amount_received == Decimal("720.00")
        assert view.ledger.owner.status is PaymentStatus.PAID

    def test_full_payment_ignores_amount(self, ledger, shared_project, owner):
        view = ledger.register_user_receipt(
            shared_project.id, owner.id, amount=Decimal("5"), is_full_payment=True
        )
        assert view.ledger.owner.amount_received == Decimal("720.00")

    def test_overpayment_allowed(self, ledger, shared_project, owner):
        view = ledger.register_user_receipt(shared_project.id, owner.id, Decimal("800"))
        assert view.ledger.owner.status is PaymentStatus.PAID
        assert view.settlement.your_remaining_to_receive == Decimal("-80.00")

    def test_receipt_rounded_half_up(self, ledger, shared_project, owner):
        view = ledger.register_user_receipt(shared_project.id, owner.id, Decimal("10.005"))
        assert view.ledger.owner.amount_received == Decimal("10.01")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10"), None, "abc"])
    def test_invalid_amount(self, ledger, shared_project, owner, amount):
        with pytest.raises(InvalidAmountError):
            ledger.register_user_receipt(shared_project.id, owner.id, amount)

    def test_version_increments(self, ledger, shared_project, owner):
        view = ledger.register_user_receipt(shared_project.id, owner.id, Decimal("1"))
        assert view.version > shared_project.version

    def test_receipt_logged(self, ledger, shared_project, owner, captured_logs):
        ledger.register_user_receipt(shared_project.id, owner.id, Decimal("200"))

        records = [r for r in captured_logs() if r["message"] == "receipt_registered"]
        assert len(records) == 1
        assert records[0]["role"] == "owner"
        assert records[0]["new_received"] == "200.00"
        assert records[0]["project_id"] == str(shared_project.id)
        assert records[0]["operation"] == "register_user_receipt"


class TestPartnerReceipts:
    """Partner receipts update the share and its ledger mirror together."""

    def test_share_and_mirror_agree(self, ledger, session, shared_project, partner):
        view = ledger.register_user_receipt(shared_project.id, partner.id, Decimal("30"))

        share = view.shares[0]
        assert share.amount_paid == Decimal("30.00")
        assert share.payment_status is PaymentStatus.PARTIAL
        assert view.ledger.partner(partner.id).amount_received == Decimal("30.00")
        assert view.ledger.partner(partner.id).status is PaymentStatus.PARTIAL
        assert view.settlement.your_remaining_to_receive == Decimal("150.00")

        stored = session.get(Project, shared_project.id)
        assert stored.share_for(partner.id).amount_paid == Decimal("30.00")

    def test_owner_ledger_untouched(self, ledger, shared_project, partner):
        view = ledger.register_user_receipt(shared_project.id, partner.id, Decimal("30"))
        assert view.ledger.owner.amount_received == Decimal("0.00")

    def test_partner_full_payment(self, ledger, shared_project, partner):
        view = ledger.register_user_receipt(
            shared_project.id, partner.id, is_full_payment=True
        )
        assert view.shares[0].payment_status is PaymentStatus.PAID
        assert view.shares[0].amount_paid == Decimal("180.00")

    def test_read_partner_may_register_receipt(
        self, ledger, make_project, make_user, owner, collaborate
    ):
        reader = make_user("Reader")
        collaborate(reader.id, owner.id)
        project = make_project(
            partner=PartnerAssignment(reader.id, "fixed", Decimal("100"), SharePermission.READ)
        )
        view = ledger.register_user_receipt(project.id, reader.id, Decimal("100"))
        assert view.shares[0].payment_status is PaymentStatus.PAID

    def test_non_stakeholder_denied(self, ledger, shared_project, stranger):
        with pytest.raises(AccessDeniedError):
            ledger.register_user_receipt(shared_project.id, stranger.id, Decimal("10"))

    def test_unknown_project(self, ledger, owner):
        with pytest.raises(ProjectNotFoundError):
            ledger.register_user_receipt(uuid4(), owner.id, Decimal("10"))


class TestCorrectReceipt:
    def test_sets_absolute_value(self, ledger, shared_project, owner):
        ledger.register_user_receipt(shared_project.id, owner.id, Decimal("500"))
        view = ledger.correct_user_receipt(shared_project.id, owner.id, Decimal("100"))
        assert view.ledger.owner.amount_received == Decimal("100.00")
        assert view.ledger.owner.status is PaymentStatus.PARTIAL

    def test_zero_resets_to_unpaid(self, ledger, shared_project, partner):
        ledger.register_user_receipt(shared_project.id, partner.id, Decimal("50"))
        view = ledger.correct_user_receipt(shared_project.id, partner.id, Decimal("0"))
        assert view.shares[0].payment_status is PaymentStatus.UNPAID
        assert view.ledger.partner(partner.id).status is PaymentStatus.UNPAID

    def test_negative_rejected(self, ledger, shared_project, owner):
        with pytest.raises(InvalidAmountError):
            ledger.correct_user_receipt(shared_project.id, owner.id, Decimal("-1"))


class TestOptimisticVersion:
    def test_matching_version_accepted(self, ledger, shared_project, owner):
        view = ledger.register_user_receipt(
            shared_project.id, owner.id, Decimal("10"), expected_version=shared_project.version
        )
        assert view.ledger.owner.amount_received == Decimal("10.00")

    def test_stale_version_rejected(self, ledger, shared_project, owner, captured_logs):
        ledger.register_user_receipt(shared_project.id, owner.id, Decimal("10"))

        with pytest.raises(ConflictError) as exc_info:
            ledger.register_user_receipt(
                shared_project.id, owner.id, Decimal("10"), expected_version=shared_project.version
            )

        assert exc_info.value.expected_version == shared_project.version
        assert any(r["message"] == "ledger_conflict" for r in captured_logs())

    def test_rejected_mutation_leaves_ledger_unchanged(self, ledger, shared_project, owner):
        ledger.register_user_receipt(shared_project.id, owner.id, Decimal("10"))
        with pytest.raises(ConflictError):
            ledger.register_user_receipt(
                shared_project.id, owner.id, Decimal("99"), expected_version=0
            )
        view = ledger.register_user_receipt(shared_project.id, owner.id, Decimal("1"))
        assert view.ledger.owner.amount_received == Decimal("11.00")


class TestClientTransactions:
    """Client transactions drive client.amountPaid and client.status."""

    def test_record_partial(self, ledger, shared_project, owner):
        info = ledger.record_client_transaction(
            shared_project.id, owner.id, Decimal("250"), date(2024, 6, 1), "Deposit"
        )

        assert info.amount == Decimal("250")
        assert info.created_by_id == owner.id
        assert info.project.ledger.client.amount_paid == Decimal("250.00")
        assert info.project.ledger.client.status is PaymentStatus.PARTIAL

    def test_reaching_budget_is_paid(self, ledger, shared_project, owner):
        ledger.record_client_transaction(shared_project.id, owner.id, Decimal("400"), date(2024, 6, 1))
        info = ledger.record_client_transaction(
            shared_project.id, owner.id, Decimal("600"), date(2024, 6, 2)
        )
        assert info.project.ledger.client.amount_paid == Decimal("1000.00")
        assert info.project.ledger.client.status is PaymentStatus.PAID

    def test_client_ledger_independent_of_stakeholders(self, ledger, shared_project, owner):
        info = ledger.record_client_transaction(
            shared_project.id, owner.id, Decimal("1000"), date(2024, 6, 1)
        )
        assert info.project.ledger.owner.status is PaymentStatus.UNPAID
        assert info.project.shares[0].payment_status is PaymentStatus.UNPAID

    def test_edit_partner_may_record(self, ledger, shared_project, partner):
        info = ledger.record_client_transaction(
            shared_project.id, partner.id, Decimal("100"), date(2024, 6, 1)
        )
        assert info.project.ledger.client.amount_paid == Decimal("100.00")

    def test_read_partner_denied(self, ledger, make_project, make_user, owner, collaborate):
        reader = make_user("Reader")
        collaborate(owner.id, reader.id)
        project = make_project(
            partner=PartnerAssignment(reader.id, "percentage", Decimal("10"), SharePermission.READ)
        )
        with pytest.raises(AccessDeniedError):
            ledger.record_client_transaction(project.id, reader.id, Decimal("100"), date(2024, 6, 1))

    def test_stranger_denied(self, ledger, shared_project, stranger):
        with pytest.raises(AccessDeniedError):
            ledger.record_client_transaction(
                shared_project.id, stranger.id, Decimal("100"), date(2024, 6, 1)
            )

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
    def test_amount_must_be_positive(self, ledger, shared_project, owner, amount):
        with pytest.raises(InvalidAmountError):
            ledger.record_client_transaction(shared_project.id, owner.id, amount, date(2024, 6, 1))

    def test_payment_date_required(self, ledger, shared_project, owner):
        with pytest.raises(MissingFieldError):
            ledger.record_client_transaction(shared_project.id, owner.id, Decimal("1"), None)

    def test_delete_recomputes(self, ledger, shared_project, owner):
        first = ledger.record_client_transaction(
            shared_project.id, owner.id, Decimal("400"), date(2024, 6, 1)
        )
        ledger.record_client_transaction(shared_project.id, owner.id, Decimal("600"), date(2024, 6, 2))

        view = ledger.delete_client_transaction(first.id, owner.id)

        assert view.ledger.client.amount_paid == Decimal("600.00")
        assert view.ledger.client.status is PaymentStatus.PARTIAL

    def test_delete_last_transaction_is_unpaid(self, ledger, shared_project, owner):
        only = ledger.record_client_transaction(
            shared_project.id, owner.id, Decimal("400"), date(2024, 6, 1)
        )
        view = ledger.delete_client_transaction(only.id, owner.id)
        assert view.ledger.client.amount_paid == Decimal("0.00")
        assert view.ledger.client.status is PaymentStatus.UNPAID

    def test_delete_unknown(self, ledger, owner):
        with pytest.raises(TransactionNotFoundError):
            ledger.delete_client_transaction(uuid4(), owner.id)

    def test_delete_by_stranger_denied(self, ledger, shared_project, owner, stranger):
        info = ledger.record_client_transaction(
            shared_project.id, owner.id, Decimal("400"), date(2024, 6, 1)
        )
        with pytest.raises(AccessDeniedError):
            ledger.delete_client_transaction(info.id, stranger.id)

    def test_list_newest_first(self, ledger, shared_project, owner, partner):
        ledger.record_client_transaction(shared_project.id, owner.id, Decimal("1"), date(2024, 5, 1))
        ledger.record_client_transaction(shared_project.id, owner.id, Decimal("2"), date(2024, 6, 1))

        rows = ledger.list_client_transactions(shared_project.id, partner.id)

        assert [r.payment_date for r in rows] == [date(2024, 6, 1), date(2024, 5, 1)]

    def test_list_denied_for_stranger(self, ledger, shared_project, stranger):
        with pytest.raises(AccessDeniedError):
            ledger.list_client_transactions(shared_project.id, stranger.id)

    def test_recompute_client_ledger(self, ledger, session, shared_project, owner):
        ledger.record_client_transaction(shared_project.id, owner.id, Decimal("250"), date(2024, 6, 1))
        project = session.get(Project, shared_project.id)
        project.ledger = project.ledger.with_client(Decimal("0"), PaymentStatus.UNPAID)
        session.flush()

        result = ledger.recompute_client_ledger(shared_project.id)

        assert result.client.amount_paid == Decimal("250.00")
        assert result.client.status is PaymentStatus.PARTIAL


class TestAtomicity:
    """A mutation that fails after writing leaves no trace."""

    def test_failed_ledger_rewrite_drops_inserted_transaction(
        self, ledger, session, monkeypatch, shared_project, owner
    ):
        ledger.record_client_transaction(shared_project.id, owner.id, Decimal("100"), date(2024, 6, 1))
        rewrite = ledger.rewrite_client_ledger

        def rewrite_then_fail(project, actor_id=None):
            rewrite(project, actor_id)
            raise RuntimeError("ledger store unavailable")

        monkeypatch.setattr(ledger, "rewrite_client_ledger", rewrite_then_fail)
        with pytest.raises(RuntimeError):
            ledger.record_client_transaction(
                shared_project.id, owner.id, Decimal("50"), date(2024, 6, 2)
            )

        session.expire_all()
        rows = session.execute(
            select(ClientTransaction).where(ClientTransaction.project_id == shared_project.id)
        ).scalars().all()
        assert [row.amount for row in rows] == [Decimal("100")]
        client = session.get(Project, shared_project.id).ledger.client
        assert client.amount_paid == Decimal("100.00")
        assert client.status is PaymentStatus.PARTIAL

    def test_failed_partner_flush_keeps_share_and_mirror(
        self, ledger, session, clock, monkeypatch, shared_project, partner
    ):
        ledger.register_user_receipt(shared_project.id, partner.id, Decimal("50"))

        def flush_then_fail(project_id):
            session.flush()
            raise ConflictError(str(project_id))

        monkeypatch.setattr(ledger, "_flush", flush_then_fail)
        with pytest.raises(ConflictError):
            ledger.register_user_receipt(shared_project.id, partner.id, Decimal("130"))

        session.expire_all()
        project = session.get(Project, shared_project.id)
        share = project.share_for(partner.id)
        mirror = project.ledger.partner(partner.id)
        assert share.amount_paid == Decimal("50.00")
        assert share.payment_status == PaymentStatus.PARTIAL.value
        assert mirror.amount_received == Decimal("50.00")
        assert mirror.status is PaymentStatus.PARTIAL

        view = PaymentLedgerService(session, clock).register_user_receipt(
            shared_project.id, partner.id, Decimal("10")
        )
        assert view.ledger.partner(partner.id).amount_received == Decimal("60.00")
