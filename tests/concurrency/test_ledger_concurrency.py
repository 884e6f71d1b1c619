"""
Concurrent ledger mutations on one project.

Every thread runs its mutation through retry_on_conflict in its own
session.  Whatever the interleaving, no update may be lost: the final
received amounts equal the sum of every successful call.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier
from uuid import uuid4

import pytest

from settlement_kernel.domain.dtos import PartnerAssignment
from settlement_kernel.domain.ledger import PaymentStatus
from settlement_kernel.models.collaboration import Collaboration, CollaborationStatus
from settlement_kernel.models.project import Project
from settlement_kernel.models.user import User
from settlement_kernel.services.payment_ledger import PaymentLedgerService
from settlement_kernel.services.project_service import ProjectService
from settlement_kernel.services.retry import retry_on_conflict

pytestmark = [pytest.mark.slow_locks]

THREADS = 6


def setup_shared_project(session_factory):
    """Commit an owner, a partner at 20% and a 1000 / 10% project."""
    session = session_factory()
    try:
        owner = User(name="Owner", email=f"owner-{uuid4().hex[:8]}@example.com")
        partner = User(name="Partner", email=f"partner-{uuid4().hex[:8]}@example.com")
        session.add_all([owner, partner])
        session.flush()
        session.add(
            Collaboration(
                requester_id=owner.id,
                addressee_id=partner.id,
                status=CollaborationStatus.ACCEPTED.value,
                created_by_id=owner.id,
            )
        )
        session.flush()
        view = ProjectService(session).create_project(
            owner_id=owner.id,
            name="Shared build",
            client_id=uuid4(),
            budget=Decimal("1000"),
            platform_commission_percent=Decimal("10"),
            partner=PartnerAssignment(partner.id, "percentage", Decimal("20")),
        )
        session.commit()
        return view.id, owner.id, partner.id
    finally:
        session.close()


def run_concurrently(calls):
    """Start every call at the same moment; return results or exceptions."""
    barrier = Barrier(len(calls))

    def run(call):
        barrier.wait()
        try:
            return call()
        except Exception as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(run, calls))


def load_project(session_factory, project_id):
    session = session_factory()
    try:
        project = session.get(Project, project_id)
        return project.ledger, {s.partner_id: (s.amount_paid, s.payment_status) for s in project.shares}
    finally:
        session.close()


class TestConcurrentReceipts:
    def test_owner_receipts_are_not_lost(self, session_factory):
        project_id, owner_id, _ = setup_shared_project(session_factory)

        def receipt():
            return retry_on_conflict(
                lambda s: PaymentLedgerService(s).register_user_receipt(
                    project_id, owner_id, Decimal("10")
                ),
                session_factory,
                max_attempts=10,
            )

        results = run_concurrently([receipt] * THREADS)

        assert not [r for r in results if isinstance(r, Exception)]
        ledger, _ = load_project(session_factory, project_id)
        assert ledger.owner.amount_received == Decimal("10") * THREADS

    def test_owner_and_partner_receipts_interleave(self, session_factory):
        """Concurrent receipts by different stakeholders both survive."""
        project_id, owner_id, partner_id = setup_shared_project(session_factory)

        def receipt(user_id, amount):
            return lambda: retry_on_conflict(
                lambda s: PaymentLedgerService(s).register_user_receipt(project_id, user_id, amount),
                session_factory,
                max_attempts=10,
            )

        calls = [receipt(owner_id, Decimal("100"))] * 3 + [receipt(partner_id, Decimal("60"))] * 3
        results = run_concurrently(calls)

        assert not [r for r in results if isinstance(r, Exception)]
        ledger, shares = load_project(session_factory, project_id)
        assert ledger.owner.amount_received == Decimal("300")
        assert ledger.owner.status is PaymentStatus.PARTIAL
        assert ledger.partner(partner_id).amount_received == Decimal("180")
        assert ledger.partner(partner_id).status is PaymentStatus.PAID
        amount_paid, status = shares[partner_id]
        assert amount_paid == Decimal("180")
        assert status == PaymentStatus.PAID.value


class TestConcurrentClientTransactions:
    def test_client_total_matches_transactions(self, session_factory):
        project_id, owner_id, partner_id = setup_shared_project(session_factory)

        def record(user_id):
            return lambda: retry_on_conflict(
                lambda s: PaymentLedgerService(s).record_client_transaction(
                    project_id, user_id, Decimal("125"), date(2024, 6, 1)
                ),
                session_factory,
                max_attempts=10,
            )

        calls = [record(owner_id), record(partner_id)] * (THREADS // 2)
        results = run_concurrently(calls)

        assert not [r for r in results if isinstance(r, Exception)]
        ledger, _ = load_project(session_factory, project_id)
        assert ledger.client.amount_paid == Decimal("125") * THREADS
        assert ledger.client.status is PaymentStatus.PARTIAL
