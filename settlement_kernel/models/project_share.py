"""
Module: settlement_kernel.models.project_share
Responsibility: ORM persistence for a partner's revenue share on a project.
Architecture position: Kernel > Models.  May import from db/ and domain
    value types.

Invariants enforced:
    - At most one share per (project_id, partner_id) (uq_project_share_partner).
    - commission_value >= 0 and amount_paid >= 0 (CHECK constraints).
    - Percentage <= 100 is enforced at write time by the partnership manager,
      not by the database.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.domain.commission import CommissionType
from settlement_kernel.domain.dtos import SharePermission, ShareTerms
from settlement_kernel.domain.ledger import PaymentStatus

if TYPE_CHECKING:
    from settlement_kernel.domain.dtos import ShareInfo
    from settlement_kernel.models.project import Project
    from settlement_kernel.models.user import User


class ProjectShare(TrackedBase):
    """
    Revenue-sharing terms between a project and one partner.

    Guarantees:
        - amount_paid / payment_status mirror the partner entry of the
          project's ledger; both are written in the same flush.
    """

    __tablename__ = "project_shares"

    __table_args__ = (
        UniqueConstraint("project_id", "partner_id", name="uq_project_share_partner"),
        CheckConstraint("commission_value >= 0", name="ck_share_commission_value"),
        CheckConstraint("amount_paid >= 0", name="ck_share_amount_paid"),
        Index("idx_share_partner", "partner_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    partner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    commission_type: Mapped[CommissionType] = mapped_column(String(20), nullable=False)

    commission_value: Mapped[Decimal] = mapped_column(nullable=False)

    permissions: Mapped[SharePermission] = mapped_column(
        String(20),
        nullable=False,
        default=SharePermission.EDIT.value,
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.UNPAID.value,
    )

    amount_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    project: Mapped[Project] = relationship(back_populates="shares")

    partner: Mapped[User] = relationship(lazy="joined")

    @property
    def can_edit(self) -> bool:
        return self.permissions == SharePermission.EDIT

    def to_terms(self) -> ShareTerms:
        return ShareTerms(
            partner_id=self.partner_id,
            partner_name=self.partner.name if self.partner is not None else None,
            commission_type=self.commission_type,
            commission_value=self.commission_value,
            permissions=self.permissions,
            payment_status=self.payment_status,
            amount_paid=self.amount_paid,
        )

    def to_dto(self) -> ShareInfo:
        """Convert ORM model to frozen domain DTO."""
        from settlement_kernel.domain.dtos import ShareInfo

        return ShareInfo(
            id=self.id,
            project_id=self.project_id,
            partner_id=self.partner_id,
            partner_name=self.partner.name if self.partner is not None else None,
            commission_type=CommissionType(self.commission_type),
            commission_value=self.commission_value,
            permissions=SharePermission(self.permissions),
            payment_status=PaymentStatus(self.payment_status),
            amount_paid=self.amount_paid,
        )

    def __repr__(self) -> str:
        return (
            f"<ProjectShare project={self.project_id} partner={self.partner_id} "
            f"{self.commission_type}={self.commission_value}>"
        )
