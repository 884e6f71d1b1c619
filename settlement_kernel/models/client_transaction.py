"""
Module: settlement_kernel.models.client_transaction
Responsibility: ORM persistence for money received from the client on a
    project.  The sum of a project's rows is the client side of its ledger.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount > 0 (ck_transaction_amount_positive).
    - Rows are never updated; they are created or deleted, and every create
      or delete rewrites the project's client ledger in the same flush.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from settlement_kernel.domain.dtos import ClientTransactionInfo, ProjectView
    from settlement_kernel.models.project import Project


class ClientTransaction(TrackedBase):
    """A client payment recorded against a project."""

    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        Index("idx_transaction_project", "project_id"),
        Index("idx_transaction_payment_date", "payment_date"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    payment_date: Mapped[date] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Set when the row was produced by confirming a forecast entry
    forecast_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("forecast_entries.id", ondelete="SET NULL"),
        nullable=True,
    )

    project: Mapped[Project] = relationship(back_populates="transactions")

    def to_dto(self, project: ProjectView | None = None) -> ClientTransactionInfo:
        """Convert ORM model to frozen domain DTO."""
        from settlement_kernel.domain.dtos import ClientTransactionInfo

        return ClientTransactionInfo(
            id=self.id,
            project_id=self.project_id,
            amount=self.amount,
            payment_date=self.payment_date,
            description=self.description,
            forecast_entry_id=self.forecast_entry_id,
            created_by_id=self.created_by_id,
            project=project,
        )

    def __repr__(self) -> str:
        return f"<ClientTransaction {self.amount} on {self.payment_date} project={self.project_id}>"
