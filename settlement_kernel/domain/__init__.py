"""
Pure domain layer.

This module contains pure data transfer objects and settlement logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock abstraction)

All domain objects are immutable and deterministic.
"""

from settlement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from settlement_kernel.domain.commission import (
    CommissionType,
    parse_amount,
    resolve_commission,
    validate_commission_terms,
    validate_platform_commission_percent,
)
from settlement_kernel.domain.dtos import (
    ACTIVE_PROJECT_STATUSES,
    ClientTransactionInfo,
    CollaborationInfo,
    ForecastEntryInfo,
    PartnerAssignment,
    ProjectChanges,
    ProjectStatus,
    ProjectTerms,
    ProjectView,
    ShareInfo,
    SharePermission,
    ShareTerms,
)
from settlement_kernel.domain.ledger import (
    ClientLedger,
    PaymentDetails,
    PaymentStatus,
    StakeholderLedger,
    payment_status_for,
)
from settlement_kernel.domain.settlement import (
    PartnerCommission,
    Settlement,
    SettlementBreakdown,
    compute_breakdown,
    compute_settlement,
)

__all__ = [
    "ACTIVE_PROJECT_STATUSES",
    "ClientLedger",
    "ClientTransactionInfo",
    "Clock",
    "CollaborationInfo",
    "CommissionType",
    "DeterministicClock",
    "ForecastEntryInfo",
    "PartnerAssignment",
    "PartnerCommission",
    "PaymentDetails",
    "PaymentStatus",
    "ProjectChanges",
    "ProjectStatus",
    "ProjectTerms",
    "ProjectView",
    "Settlement",
    "SettlementBreakdown",
    "ShareInfo",
    "SharePermission",
    "ShareTerms",
    "StakeholderLedger",
    "SystemClock",
    "compute_breakdown",
    "compute_settlement",
    "parse_amount",
    "payment_status_for",
    "resolve_commission",
    "validate_commission_terms",
    "validate_platform_commission_percent",
]
