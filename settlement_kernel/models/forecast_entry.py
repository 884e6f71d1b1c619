"""
Module: settlement_kernel.models.forecast_entry
Responsibility: ORM persistence for expected revenue/expense entries.  Rows
    are produced by the recurrence generator outside the kernel; the kernel
    only confirms them or marks them missed.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - status transitions are one-way: PENDING -> CONFIRMED | MISSED.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UUIDString


class ForecastEntryType(str, Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"


class ForecastEntryStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    MISSED = "missed"


class ForecastEntry(TrackedBase):
    """An expected cash movement awaiting confirmation."""

    __tablename__ = "forecast_entries"

    __table_args__ = (
        Index("idx_forecast_user_status", "user_id", "status"),
        Index("idx_forecast_due_date", "due_date"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )

    entry_type: Mapped[ForecastEntryType] = mapped_column(String(20), nullable=False)

    description: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    due_date: Mapped[date] = mapped_column(nullable=False)

    status: Mapped[ForecastEntryStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ForecastEntryStatus.PENDING.value,
    )

    @property
    def is_pending(self) -> bool:
        return self.status == ForecastEntryStatus.PENDING

    def to_dto(self, transaction_id: UUID | None = None):
        """Convert ORM model to frozen domain DTO."""
        from settlement_kernel.domain.dtos import ForecastEntryInfo

        return ForecastEntryInfo(
            id=self.id,
            user_id=self.user_id,
            project_id=self.project_id,
            entry_type=ForecastEntryType(self.entry_type).value,
            description=self.description,
            amount=self.amount,
            due_date=self.due_date,
            status=ForecastEntryStatus(self.status).value,
            transaction_id=transaction_id,
        )

    def __repr__(self) -> str:
        return f"<ForecastEntry {self.entry_type} {self.amount} due {self.due_date} {self.status}>"
