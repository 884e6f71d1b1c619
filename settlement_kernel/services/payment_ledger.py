"""
PaymentLedgerService -- the only writer of a project's payment ledger.

Responsibility:
    Registers what a stakeholder has received, records and deletes client
    transactions, and keeps the persisted ledger (``Project.ledger`` and
    the partner share mirrors) consistent with them.

Architecture position:
    Kernel > Services -- imperative shell.  Reads expected amounts from the
    settlement calculator; never computes commissions itself.

Invariants enforced:
    - Each mutation runs inside one SAVEPOINT on a project row locked FOR
      UPDATE; the read-modify-write of a received figure can never lose a
      concurrent update.  Where row locks are unavailable the ORM version
      check turns a lost update into ConflictError.
    - A partner's ``amount_paid``/``payment_status`` and its ledger mirror
      are written in the same flush.
    - ``client.amountPaid`` always equals the sum of the project's client
      transactions, and ``client.status`` is thresholded against the budget.
    - Stored figures are rounded half-up to the configured decimal places;
      thresholds use the externalized (rounded) expected amounts.

Failure modes:
    - InvalidAmountError / MissingFieldError on bad input.
    - AccessDeniedError: caller is not a stakeholder (receipts) or lacks
      edit permission (client transactions).
    - ProjectNotFoundError / TransactionNotFoundError.
    - ConflictError on a concurrent mutation.
    - DataIntegrityError when stored ledger or share data is malformed.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from settlement_kernel.db.types import ZERO, round_money
from settlement_kernel.domain.commission import parse_amount
from settlement_kernel.domain.dtos import ClientTransactionInfo, ProjectView
from settlement_kernel.domain.ledger import PaymentDetails, payment_status_for
from settlement_kernel.domain.settlement import compute_settlement
from settlement_kernel.exceptions import (
    AccessDeniedError,
    MissingFieldError,
    TransactionNotFoundError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.client_transaction import ClientTransaction
from settlement_kernel.models.project import Project
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.partnership_manager import can_edit, is_stakeholder

logger = get_logger("services.payment_ledger")


class PaymentLedgerService(BaseService):
    """
    Ledger mutations for projects.

    Contract:
        Every public mutation returns the state the caller would read back
        after its own commit: the updated ProjectView (or the new
        transaction with its ProjectView attached).
    """

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def _require_stakeholder(self, project: Project, user_id: UUID, action: str) -> None:
        if not is_stakeholder(project.owner_id, project.shares, user_id):
            raise AccessDeniedError(str(user_id), f"project {project.id}", action)

    def _require_editor(self, project: Project, user_id: UUID, action: str) -> None:
        if not can_edit(project.owner_id, project.shares, user_id):
            raise AccessDeniedError(str(user_id), f"project {project.id}", action)

    # ------------------------------------------------------------------
    # Stakeholder receipts
    # ------------------------------------------------------------------

    def _store_received(
        self,
        project: Project,
        user_id: UUID,
        new_amount: Decimal,
        expected: Decimal,
    ) -> None:
        amount = round_money(new_amount, self.decimal_places)
        status = payment_status_for(amount, expected)
        if user_id == project.owner_id:
            project.ledger = project.ledger.with_owner(amount, status)
        else:
            share = project.share_for(user_id)
            share.amount_paid = amount
            share.payment_status = status.value
            share.updated_by_id = user_id
            project.ledger = project.ledger.with_partner(user_id, amount, status)
        project.updated_by_id = user_id

    def register_user_receipt(
        self,
        project_id: UUID,
        user_id: UUID,
        amount: Decimal | None = None,
        is_full_payment: bool = False,
        expected_version: int | None = None,
    ) -> ProjectView:
        """
        Add ``amount`` to what ``user_id`` has received on the project.

        With ``is_full_payment`` the received figure is set to the user's
        total to receive, whatever it was before, and ``amount`` is ignored.

        Raises:
            InvalidAmountError: ``amount`` missing or <= 0 without full payment.
            AccessDeniedError: user is neither owner nor partner.
        """
        if not is_full_payment:
            amount = parse_amount("amount", amount, allow_zero=False)

        with LogContext.bind(
            actor_id=user_id, project_id=project_id, operation="register_user_receipt"
        ):
            with self.session.begin_nested():
                project = self._lock_project(project_id, expected_version)
                self._require_stakeholder(project, user_id, "register a receipt on")

                settlement = compute_settlement(
                    project.to_terms(),
                    [share.to_terms() for share in project.shares],
                    user_id,
                ).externalized(self.decimal_places)
                total = settlement.your_total_to_receive
                previous = settlement.your_amount_received
                new_amount = total if is_full_payment else previous + amount

                self._store_received(project, user_id, new_amount, total)
                self._flush(project_id)

            logger.info(
                "receipt_registered",
                extra={
                    "role": "owner" if settlement.is_owner else "partner",
                    "amount": str(amount) if amount is not None else None,
                    "is_full_payment": is_full_payment,
                    "previous_received": str(previous),
                    "new_received": str(new_amount),
                    "total_to_receive": str(total),
                },
            )
            return project.to_view(user_id, self.decimal_places)

    def correct_user_receipt(
        self,
        project_id: UUID,
        user_id: UUID,
        amount_received: Decimal,
        expected_version: int | None = None,
    ) -> ProjectView:
        """
        Set what ``user_id`` has received to an absolute value (>= 0).

        Used to fix a mistaken receipt; same atomicity and status rules as
        ``register_user_receipt``.
        """
        amount_received = parse_amount("amount_received", amount_received)

        with LogContext.bind(
            actor_id=user_id, project_id=project_id, operation="correct_user_receipt"
        ):
            with self.session.begin_nested():
                project = self._lock_project(project_id, expected_version)
                self._require_stakeholder(project, user_id, "correct a receipt on")

                settlement = compute_settlement(
                    project.to_terms(),
                    [share.to_terms() for share in project.shares],
                    user_id,
                ).externalized(self.decimal_places)
                self._store_received(
                    project, user_id, amount_received, settlement.your_total_to_receive
                )
                self._flush(project_id)

            logger.info(
                "receipt_corrected",
                extra={
                    "previous_received": str(settlement.your_amount_received),
                    "new_received": str(amount_received),
                },
            )
            return project.to_view(user_id, self.decimal_places)

    # ------------------------------------------------------------------
    # Client transactions
    # ------------------------------------------------------------------

    def rewrite_client_ledger(self, project: Project, actor_id: UUID | None = None) -> PaymentDetails:
        """
        Re-derive the client side of an already locked project's ledger.

        ``client.amountPaid`` becomes the sum of the project's transactions
        and ``client.status`` is thresholded against the budget.  The caller
        owns the savepoint and the flush.
        """
        self.session.flush()
        total = self.session.execute(
            select(func.coalesce(func.sum(ClientTransaction.amount), ZERO)).where(
                ClientTransaction.project_id == project.id
            )
        ).scalar_one()
        paid = round_money(Decimal(total), self.decimal_places)
        budget = round_money(project.budget, self.decimal_places)
        project.ledger = project.ledger.with_client(paid, payment_status_for(paid, budget))
        if actor_id is not None:
            project.updated_by_id = actor_id
        return project.ledger

    def recompute_client_ledger(self, project_id: UUID, actor_id: UUID | None = None) -> PaymentDetails:
        """Lock the project and re-derive its client ledger from transactions."""
        with self.session.begin_nested():
            project = self._lock_project(project_id)
            ledger = self.rewrite_client_ledger(project, actor_id)
            self._flush(project_id)
        logger.info(
            "client_ledger_recomputed",
            extra={"project_id": str(project_id), "amount_paid": str(ledger.client.amount_paid)},
        )
        return ledger

    def record_client_transaction(
        self,
        project_id: UUID,
        user_id: UUID,
        amount: Decimal,
        payment_date: date,
        description: str | None = None,
        forecast_entry_id: UUID | None = None,
        expected_version: int | None = None,
    ) -> ClientTransactionInfo:
        """
        Record money received from the client and update the client ledger.

        Raises:
            InvalidAmountError: amount <= 0.
            MissingFieldError: payment_date missing.
            AccessDeniedError: caller is not owner or edit-partner.
        """
        amount = parse_amount("amount", amount, allow_zero=False)
        if payment_date is None:
            raise MissingFieldError("payment_date")

        with LogContext.bind(
            actor_id=user_id, project_id=project_id, operation="record_client_transaction"
        ):
            with self.session.begin_nested():
                project = self._lock_project(project_id, expected_version)
                self._require_editor(project, user_id, "record a transaction on")

                transaction = ClientTransaction(
                    project_id=project.id,
                    amount=amount,
                    payment_date=payment_date,
                    description=description,
                    forecast_entry_id=forecast_entry_id,
                    created_by_id=user_id,
                )
                self.session.add(transaction)
                ledger = self.rewrite_client_ledger(project, user_id)
                self._flush(project_id)

            logger.info(
                "client_transaction_recorded",
                extra={
                    "transaction_id": str(transaction.id),
                    "amount": str(amount),
                    "client_amount_paid": str(ledger.client.amount_paid),
                    "client_status": ledger.client.status,
                },
            )
            return transaction.to_dto(project.to_view(user_id, self.decimal_places))

    def delete_client_transaction(
        self,
        transaction_id: UUID,
        user_id: UUID,
        expected_version: int | None = None,
    ) -> ProjectView:
        """Delete a client transaction and update the client ledger."""
        transaction = self.session.get(ClientTransaction, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(str(transaction_id))
        project_id = transaction.project_id

        with LogContext.bind(
            actor_id=user_id, project_id=project_id, operation="delete_client_transaction"
        ):
            with self.session.begin_nested():
                project = self._lock_project(project_id, expected_version)
                self._require_editor(project, user_id, "delete a transaction on")

                # Re-read under the lock; a concurrent delete may have won
                transaction = self.session.execute(
                    select(ClientTransaction)
                    .where(ClientTransaction.id == transaction_id)
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if transaction is None:
                    raise TransactionNotFoundError(str(transaction_id))
                amount = transaction.amount

                self.session.delete(transaction)
                ledger = self.rewrite_client_ledger(project, user_id)
                self._flush(project_id)

            logger.info(
                "client_transaction_deleted",
                extra={
                    "transaction_id": str(transaction_id),
                    "amount": str(amount),
                    "client_amount_paid": str(ledger.client.amount_paid),
                    "client_status": ledger.client.status,
                },
            )
            return project.to_view(user_id, self.decimal_places)

    def list_client_transactions(
        self,
        project_id: UUID,
        user_id: UUID,
    ) -> list[ClientTransactionInfo]:
        """Client transactions of a project, newest payment date first."""
        project = self._get_project(project_id)
        self._require_stakeholder(project, user_id, "view transactions of")
        rows = self.session.execute(
            select(ClientTransaction)
            .where(ClientTransaction.project_id == project_id)
            .order_by(ClientTransaction.payment_date.desc(), ClientTransaction.created_at.desc())
        ).scalars()
        return [row.to_dto() for row in rows]
