"""
Module: settlement_kernel.models.project
Responsibility: ORM persistence for projects and their payment ledger.
    The ledger is stored as JSON but only ever exposed through the immutable
    ``PaymentDetails`` value (``Project.ledger``).
Architecture position: Kernel > Models.  May import from db/, exceptions and
    domain value types.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - budget >= 0 and 0 <= platform_commission_percent <= 100
      (ck_project_budget, ck_project_platform_percent).
    - ``version`` is the ORM version counter (version_id_col).  Every UPDATE
      of the row increments it and is conditioned on the previous value, so
      a lost update surfaces as StaleDataError at flush.
    - The raw payment_details dict is never handed out; reading
      ``ledger`` parses a fresh PaymentDetails and assigning it stores a
      fresh dict.
    - owner_commission_type / owner_commission_value are persisted for
      round-tripping only.  The settlement calculator ignores them.

Failure modes:
    - DataIntegrityError when stored payment_details JSON is malformed.
    - StaleDataError at flush on a concurrent update (translated to
      ConflictError by the ledger services).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.db.types import MONEY_DECIMAL_PLACES, PERCENT_DECIMAL_PLACES
from settlement_kernel.domain.dtos import ProjectStatus, ProjectTerms
from settlement_kernel.domain.ledger import PaymentDetails
from settlement_kernel.exceptions import DataIntegrityError

if TYPE_CHECKING:
    from settlement_kernel.domain.dtos import ProjectView
    from settlement_kernel.models.client_transaction import ClientTransaction
    from settlement_kernel.models.project_share import ProjectShare


def _initial_payment_details() -> dict[str, Any]:
    return PaymentDetails.initial().to_dict()


class Project(TrackedBase):
    """
    A client project owned by one user and optionally shared with partners.

    Contract:
        All settlement figures are derived on read by the settlement
        calculator from budget, platform commission, shares and ledger.
        Only received amounts and statuses are persisted.
    """

    __tablename__ = "projects"

    __table_args__ = (
        CheckConstraint("budget >= 0", name="ck_project_budget"),
        CheckConstraint(
            "platform_commission_percent >= 0 AND platform_commission_percent <= 100",
            name="ck_project_platform_percent",
        ),
        Index("idx_project_owner", "owner_id"),
        Index("idx_project_client", "client_id"),
        Index("idx_project_status", "status"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Client and platform CRUD live outside the kernel; ids are opaque
    client_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    platform_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    deadline: Mapped[date | None] = mapped_column(nullable=True)

    budget: Mapped[Decimal] = mapped_column(nullable=False)

    platform_commission_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, PERCENT_DECIMAL_PLACES),
        nullable=False,
        default=Decimal("0"),
    )

    status: Mapped[ProjectStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ProjectStatus.DRAFT.value,
    )

    owner_commission_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    owner_commission_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    _payment_details: Mapped[dict] = mapped_column(
        "payment_details",
        JSON,
        nullable=False,
        default=_initial_payment_details,
    )

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    shares: Mapped[list[ProjectShare]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProjectShare.created_at",
    )

    transactions: Mapped[list[ClientTransaction]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
    )

    @property
    def ledger(self) -> PaymentDetails:
        """Parsed payment ledger (a new immutable value on every read)."""
        try:
            return PaymentDetails.from_dict(self._payment_details)
        except ValueError as exc:
            raise DataIntegrityError(
                "project", str(self.id), f"payment_details: {exc}"
            ) from exc

    @ledger.setter
    def ledger(self, value: PaymentDetails) -> None:
        self._payment_details = value.to_dict()

    def share_for(self, user_id: UUID) -> ProjectShare | None:
        for share in self.shares:
            if share.partner_id == user_id:
                return share
        return None

    def to_terms(self) -> ProjectTerms:
        """Settlement calculator input for this project."""
        return ProjectTerms(
            project_id=self.id,
            owner_id=self.owner_id,
            budget=self.budget,
            platform_commission_percent=self.platform_commission_percent,
            ledger=self.ledger,
        )

    def to_view(
        self,
        viewer_id: UUID,
        decimal_places: int = MONEY_DECIMAL_PLACES,
    ) -> ProjectView:
        """Project as seen by ``viewer_id`` with its externalized settlement."""
        from settlement_kernel.domain.dtos import ProjectView
        from settlement_kernel.domain.settlement import compute_settlement

        settlement = compute_settlement(
            self.to_terms(),
            [share.to_terms() for share in self.shares],
            viewer_id,
        ).externalized(decimal_places)

        return ProjectView(
            id=self.id,
            owner_id=self.owner_id,
            client_id=self.client_id,
            name=self.name,
            description=self.description,
            deadline=self.deadline,
            budget=self.budget,
            platform_id=self.platform_id,
            platform_commission_percent=self.platform_commission_percent,
            status=ProjectStatus(self.status),
            owner_commission_type=self.owner_commission_type,
            owner_commission_value=self.owner_commission_value,
            version=self.version,
            created_at=self.created_at,
            ledger=self.ledger,
            shares=tuple(share.to_dto() for share in self.shares),
            settlement=settlement,
        )

    def __repr__(self) -> str:
        return f"<Project {self.name} owner={self.owner_id} v{self.version}>"
