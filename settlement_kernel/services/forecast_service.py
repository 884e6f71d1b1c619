"""
ForecastService -- confirmation of generated forecast entries.

Responsibility:
    Turns a pending revenue forecast entry into a real client transaction
    (through PaymentLedgerService, so the client ledger is updated exactly
    as for a manual transaction) and marks overdue pending entries missed.
    Generating the entries is the recurrence scheduler's job, outside the
    kernel.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Only the entry's user can confirm it, and only while PENDING.
    - Confirmation and the resulting transaction share one SAVEPOINT.
    - Expense entries and revenue entries without a project are rejected;
      their ledgers are not part of the kernel.

Failure modes:
    - ForecastEntryNotFoundError, AccessDeniedError,
      ForecastEntryNotPendingError, ValidationError.
    - Any PaymentLedgerService error from recording the transaction.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dtos import ForecastEntryInfo
from settlement_kernel.exceptions import (
    AccessDeniedError,
    ForecastEntryNotFoundError,
    ForecastEntryNotPendingError,
    ValidationError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.forecast_entry import (
    ForecastEntry,
    ForecastEntryStatus,
    ForecastEntryType,
)
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.payment_ledger import PaymentLedgerService

logger = get_logger("services.forecast")


class ForecastService(BaseService):
    """Confirms forecast entries and expires overdue ones."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        decimal_places: int = MONEY_DECIMAL_PLACES,
    ):
        super().__init__(session, clock, decimal_places)
        self.ledger = PaymentLedgerService(session, self.clock, decimal_places)

    def confirm_forecast_entry(self, entry_id: UUID, user_id: UUID) -> ForecastEntryInfo:
        """
        Confirm a pending revenue entry as a client transaction dated on
        the day of confirmation (the clock's date), not the due date.
        """
        with LogContext.bind(actor_id=user_id, operation="confirm_forecast_entry"):
            with self.session.begin_nested():
                entry = self.session.execute(
                    select(ForecastEntry)
                    .where(ForecastEntry.id == entry_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if entry is None:
                    raise ForecastEntryNotFoundError(str(entry_id))
                if entry.user_id != user_id:
                    raise AccessDeniedError(str(user_id), f"forecast entry {entry_id}", "confirm")
                if not entry.is_pending:
                    raise ForecastEntryNotPendingError(str(entry_id), entry.status)
                if entry.entry_type != ForecastEntryType.REVENUE:
                    raise ValidationError(
                        "Only revenue entries can be confirmed as client transactions",
                        "entry_type",
                    )
                if entry.project_id is None:
                    raise ValidationError(
                        "Revenue entry has no project to record the transaction on",
                        "project_id",
                    )

                transaction = self.ledger.record_client_transaction(
                    entry.project_id,
                    user_id,
                    entry.amount,
                    self.clock.today(),
                    description=f"Confirmed: {entry.description}",
                    forecast_entry_id=entry.id,
                )
                entry.status = ForecastEntryStatus.CONFIRMED.value
                entry.updated_by_id = user_id
                self.session.flush()

            logger.info(
                "forecast_entry_confirmed",
                extra={
                    "entry_id": str(entry_id),
                    "project_id": str(entry.project_id),
                    "transaction_id": str(transaction.id),
                    "amount": str(entry.amount),
                },
            )
            return entry.to_dto(transaction_id=transaction.id)

    def mark_missed_entries(self, as_of: date | None = None) -> int:
        """
        Mark pending entries due before ``as_of`` (default: the clock's
        date) as missed.

        Returns:
            Number of entries marked.
        """
        cutoff = as_of or self.clock.today()
        with self.session.begin_nested():
            result = self.session.execute(
                update(ForecastEntry)
                .where(
                    ForecastEntry.status == ForecastEntryStatus.PENDING.value,
                    ForecastEntry.due_date < cutoff,
                )
                .values(status=ForecastEntryStatus.MISSED.value)
                .execution_options(synchronize_session="fetch")
            )
        logger.info(
            "forecast_entries_missed",
            extra={"as_of": cutoff, "count": result.rowcount},
        )
        return result.rowcount
