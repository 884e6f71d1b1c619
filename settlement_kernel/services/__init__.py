"""Services for the settlement kernel (write side)."""

from settlement_kernel.services.collaboration_service import (
    CollaborationLookup,
    CollaborationService,
    CollaborationState,
)
from settlement_kernel.services.forecast_service import ForecastService
from settlement_kernel.services.partnership_manager import (
    PartnershipManager,
    can_edit,
    is_stakeholder,
)
from settlement_kernel.services.payment_ledger import PaymentLedgerService
from settlement_kernel.services.project_service import ProjectService
from settlement_kernel.services.retry import retry_on_conflict

__all__ = [
    "CollaborationLookup",
    "CollaborationService",
    "CollaborationState",
    "ForecastService",
    "PartnershipManager",
    "PaymentLedgerService",
    "ProjectService",
    "can_edit",
    "is_stakeholder",
    "retry_on_conflict",
]
