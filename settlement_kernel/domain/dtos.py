"""
Domain DTOs -- frozen data transfer objects crossing the kernel boundary.

Responsibility:
    Defines the value types that flow between models, the settlement
    calculator, services and selectors.  ORM rows are converted into these
    via ``to_terms()`` / ``to_dto()`` so that pure code never touches a
    Session.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - All DTOs are frozen dataclasses.
    - Money fields are Decimal; ``to_dict()`` renders them as strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES, format_money
from settlement_kernel.domain.commission import CommissionType
from settlement_kernel.domain.ledger import PaymentDetails, PaymentStatus

if TYPE_CHECKING:
    from settlement_kernel.domain.settlement import Settlement


class ProjectStatus(str, Enum):
    """Project lifecycle status."""

    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


ACTIVE_PROJECT_STATUSES = frozenset(
    {ProjectStatus.DRAFT, ProjectStatus.IN_PROGRESS, ProjectStatus.PAUSED}
)


class SharePermission(str, Enum):
    """What a partner may do on a shared project."""

    READ = "read"
    EDIT = "edit"


# ---------------------------------------------------------------------------
# Calculator inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectTerms:
    """Settlement-relevant fields of a project."""

    project_id: UUID
    owner_id: UUID
    budget: Decimal
    platform_commission_percent: Decimal
    ledger: PaymentDetails = field(default_factory=PaymentDetails.initial)


@dataclass(frozen=True)
class ShareTerms:
    """Settlement-relevant fields of one partner share.

    ``commission_type`` and ``payment_status`` are kept as stored so that
    the calculator can detect malformed rows.
    """

    partner_id: UUID
    commission_type: CommissionType | str
    commission_value: Decimal
    permissions: str = SharePermission.EDIT.value
    payment_status: PaymentStatus | str = PaymentStatus.UNPAID
    amount_paid: Decimal = Decimal("0")
    partner_name: str | None = None


# ---------------------------------------------------------------------------
# Service / selector outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PartnerAssignment:
    """Partner terms supplied on project create/update."""

    partner_id: UUID
    commission_type: CommissionType | str
    commission_value: Decimal
    permissions: SharePermission = SharePermission.EDIT


@dataclass(frozen=True)
class ProjectChanges:
    """Scalar project changes.  ``None`` means unchanged.

    Nullable columns are cleared by naming them in ``clear_fields``
    (``description``, ``deadline``, ``platform_id``).
    """

    name: str | None = None
    description: str | None = None
    client_id: UUID | None = None
    budget: Decimal | None = None
    deadline: date | None = None
    platform_id: UUID | None = None
    platform_commission_percent: Decimal | None = None
    status: ProjectStatus | None = None
    clear_fields: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ShareInfo:
    id: UUID
    project_id: UUID
    partner_id: UUID
    partner_name: str | None
    commission_type: CommissionType
    commission_value: Decimal
    permissions: SharePermission
    payment_status: PaymentStatus
    amount_paid: Decimal


@dataclass(frozen=True)
class ProjectView:
    """A project as seen by one stakeholder, with its externalized settlement."""

    id: UUID
    owner_id: UUID
    client_id: UUID
    name: str
    description: str | None
    deadline: date | None
    budget: Decimal
    platform_id: UUID | None
    platform_commission_percent: Decimal
    status: ProjectStatus
    owner_commission_type: str | None
    owner_commission_value: Decimal | None
    version: int
    created_at: datetime | None
    ledger: PaymentDetails
    shares: tuple[ShareInfo, ...]
    settlement: Settlement

    def to_dict(self, decimal_places: int = MONEY_DECIMAL_PLACES) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "owner_id": str(self.owner_id),
            "client_id": str(self.client_id),
            "name": self.name,
            "description": self.description,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "budget": format_money(self.budget, decimal_places),
            "platform_id": str(self.platform_id) if self.platform_id else None,
            "platform_commission_percent": str(self.platform_commission_percent),
            "status": self.status.value,
            "version": self.version,
            "payment_details": self.ledger.to_dict(),
            "settlement": self.settlement.to_dict(decimal_places),
        }


@dataclass(frozen=True)
class ClientTransactionInfo:
    id: UUID
    project_id: UUID
    amount: Decimal
    payment_date: date
    description: str | None
    forecast_entry_id: UUID | None
    created_by_id: UUID
    project: ProjectView | None = None


@dataclass(frozen=True)
class CollaborationInfo:
    id: UUID
    requester_id: UUID
    addressee_id: UUID
    status: str


@dataclass(frozen=True)
class ForecastEntryInfo:
    id: UUID
    user_id: UUID
    project_id: UUID | None
    entry_type: str
    description: str
    amount: Decimal
    due_date: date
    status: str
    transaction_id: UUID | None = None
