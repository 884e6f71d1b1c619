"""
Settlement Calculator -- pure project settlement math.

Responsibility:
    Given a project's terms (budget, platform commission, ledger) and its
    partner shares, compute what each stakeholder is entitled to and what
    the viewing stakeholder has received.  This is the ONLY place settlement
    figures are derived; listings, dashboards and the ledger all call it.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Receives frozen
    ``ProjectTerms`` / ``ShareTerms`` DTOs, never ORM rows.

Algorithm:
    1. platform_fee = budget * platform_commission_percent / 100
    2. net = budget - platform_fee
    3. per share: expected = resolve_commission(net, type, value)
    4. owner_expected_profit = net - sum(partner expected)
    5. viewer selects (total, received): owner uses ledger.owner,
       a partner uses its share's amount_paid.
    6. remaining = total - received (unclamped; negative is over-payment)

Invariants enforced:
    - Intermediate math is exact Decimal.  ``externalized()`` rounds once
      and assigns the rounding residue to the owner so that
      ``sum(partners) + owner == net`` holds exactly after rounding.
    - The owner commission override stored on the project is ignored;
      the owner always receives the residual.

Failure modes:
    - AccessDeniedError: viewer is neither owner nor share holder.
    - DataIntegrityError: stored terms that write-time validation should
      have rejected (negative commission, unknown type, budget < 0).
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Iterable, Sequence
from uuid import UUID

from settlement_kernel.db.types import (
    HUNDRED,
    MONEY_DECIMAL_PLACES,
    ZERO,
    format_money,
    round_money,
)
from settlement_kernel.domain.commission import (
    CommissionType,
    coerce_commission_type,
    resolve_commission,
)
from settlement_kernel.domain.dtos import ProjectTerms, ShareTerms
from settlement_kernel.domain.ledger import PaymentStatus
from settlement_kernel.exceptions import (
    AccessDeniedError,
    DataIntegrityError,
    ValidationError,
)
from settlement_kernel.logging_config import get_logger

logger = get_logger("domain.settlement")


@dataclass(frozen=True)
class PartnerCommission:
    """One partner's expected commission plus the share details it came from."""

    partner_id: UUID
    partner_name: str | None
    expected_amount: Decimal
    commission_type: CommissionType
    commission_value: Decimal
    permissions: str
    payment_status: PaymentStatus
    amount_paid: Decimal

    def to_dict(self, decimal_places: int = MONEY_DECIMAL_PLACES) -> dict[str, Any]:
        return {
            "partner_id": str(self.partner_id),
            "partner_name": self.partner_name,
            "expected_amount": format_money(self.expected_amount, decimal_places),
            "commission_type": self.commission_type.value,
            "commission_value": str(self.commission_value),
            "permissions": self.permissions,
            "payment_status": self.payment_status.value,
            "amount_paid": format_money(self.amount_paid, decimal_places),
        }


@dataclass(frozen=True)
class SettlementBreakdown:
    """Viewer-independent settlement figures for one project."""

    project_id: UUID
    owner_id: UUID
    budget: Decimal
    platform_fee: Decimal
    net_amount_after_platform: Decimal
    partners: tuple[PartnerCommission, ...]
    total_partner_commissions: Decimal
    owner_expected_profit: Decimal

    def partner(self, partner_id: UUID) -> PartnerCommission | None:
        for entry in self.partners:
            if entry.partner_id == partner_id:
                return entry
        return None

    def externalized(self, decimal_places: int = MONEY_DECIMAL_PLACES) -> "SettlementBreakdown":
        """
        Round for display/storage.

        Each partner amount, the fee and the net are rounded half-up; the
        owner receives ``rounded(net) - sum(rounded partners)``.
        """
        partners = tuple(
            replace(p, expected_amount=round_money(p.expected_amount, decimal_places))
            for p in self.partners
        )
        net = round_money(self.net_amount_after_platform, decimal_places)
        total_partners = sum((p.expected_amount for p in partners), ZERO)
        return replace(
            self,
            budget=round_money(self.budget, decimal_places),
            platform_fee=round_money(self.platform_fee, decimal_places),
            net_amount_after_platform=net,
            partners=partners,
            total_partner_commissions=total_partners,
            owner_expected_profit=net - total_partners,
        )


@dataclass(frozen=True)
class Settlement:
    """Settlement of one project as seen by one stakeholder."""

    viewer_id: UUID
    is_owner: bool
    breakdown: SettlementBreakdown
    your_total_to_receive: Decimal
    your_amount_received: Decimal
    your_remaining_to_receive: Decimal

    @property
    def platform_fee(self) -> Decimal:
        return self.breakdown.platform_fee

    @property
    def net_amount_after_platform(self) -> Decimal:
        return self.breakdown.net_amount_after_platform

    @property
    def partners_commissions(self) -> tuple[PartnerCommission, ...]:
        return self.breakdown.partners

    def externalized(self, decimal_places: int = MONEY_DECIMAL_PLACES) -> "Settlement":
        breakdown = self.breakdown.externalized(decimal_places)
        total = _viewer_total(breakdown, self.viewer_id, self.is_owner)
        return replace(
            self,
            breakdown=breakdown,
            your_total_to_receive=total,
            your_remaining_to_receive=total - self.your_amount_received,
        )

    def to_dict(self, decimal_places: int = MONEY_DECIMAL_PLACES) -> dict[str, Any]:
        """API payload; amounts rendered as fixed-point strings."""
        return {
            "your_total_to_receive": format_money(self.your_total_to_receive, decimal_places),
            "your_amount_received": format_money(self.your_amount_received, decimal_places),
            "your_remaining_to_receive": format_money(
                self.your_remaining_to_receive, decimal_places
            ),
            "platform_fee": format_money(self.platform_fee, decimal_places),
            "net_amount_after_platform": format_money(
                self.net_amount_after_platform, decimal_places
            ),
            "partners_commissions_list": [
                p.to_dict(decimal_places) for p in self.partners_commissions
            ],
        }


def _viewer_total(breakdown: SettlementBreakdown, viewer_id: UUID, is_owner: bool) -> Decimal:
    if is_owner:
        return breakdown.owner_expected_profit
    entry = breakdown.partner(viewer_id)
    if entry is None:
        raise DataIntegrityError(
            "project", str(breakdown.project_id), f"no partner entry for viewer {viewer_id}"
        )
    return entry.expected_amount


def _integrity_error(terms: ProjectTerms, detail: str) -> DataIntegrityError:
    error = DataIntegrityError("project", str(terms.project_id), detail)
    logger.error(
        "settlement_terms_malformed",
        extra={"project_id": str(terms.project_id), "detail": detail},
    )
    return error


def compute_breakdown(
    project_terms: ProjectTerms,
    shares: Iterable[ShareTerms],
) -> SettlementBreakdown:
    """
    Compute the viewer-independent settlement of a project.

    Raises:
        DataIntegrityError: If stored terms are malformed.
    """
    budget = project_terms.budget
    percent = project_terms.platform_commission_percent
    if budget is None or budget < ZERO:
        raise _integrity_error(project_terms, f"budget {budget} is negative")
    if percent is None or percent < ZERO or percent > HUNDRED:
        raise _integrity_error(
            project_terms, f"platform commission percent {percent} out of range"
        )

    platform_fee = budget * percent / HUNDRED
    net = budget - platform_fee

    partners: list[PartnerCommission] = []
    for share in shares:
        try:
            kind = coerce_commission_type(share.commission_type, share.commission_value)
            expected = resolve_commission(net, kind, share.commission_value)
            status = PaymentStatus(share.payment_status)
        except (ValidationError, ValueError) as exc:
            raise _integrity_error(
                project_terms, f"share for partner {share.partner_id}: {exc}"
            ) from exc
        partners.append(
            PartnerCommission(
                partner_id=share.partner_id,
                partner_name=share.partner_name,
                expected_amount=expected,
                commission_type=kind,
                commission_value=share.commission_value,
                permissions=share.permissions,
                payment_status=status,
                amount_paid=share.amount_paid,
            )
        )

    total_partners = sum((p.expected_amount for p in partners), ZERO)
    return SettlementBreakdown(
        project_id=project_terms.project_id,
        owner_id=project_terms.owner_id,
        budget=budget,
        platform_fee=platform_fee,
        net_amount_after_platform=net,
        partners=tuple(partners),
        total_partner_commissions=total_partners,
        owner_expected_profit=net - total_partners,
    )


def compute_settlement(
    project_terms: ProjectTerms,
    shares: Sequence[ShareTerms],
    viewer_id: UUID,
) -> Settlement:
    """
    Compute a project's settlement from ``viewer_id``'s perspective.

    The result is exact; call ``externalized()`` before presenting or
    comparing against stored 2dp figures.

    Raises:
        AccessDeniedError: If the viewer is neither owner nor share holder.
        DataIntegrityError: If stored terms are malformed.
    """
    is_owner = viewer_id == project_terms.owner_id
    share = next((s for s in shares if s.partner_id == viewer_id), None)
    if not is_owner and share is None:
        raise AccessDeniedError(
            str(viewer_id), f"project {project_terms.project_id}", "view settlement of"
        )

    breakdown = compute_breakdown(project_terms, shares)
    if is_owner:
        received = project_terms.ledger.owner.amount_received
    else:
        received = share.amount_paid

    total = _viewer_total(breakdown, viewer_id, is_owner)
    return Settlement(
        viewer_id=viewer_id,
        is_owner=is_owner,
        breakdown=breakdown,
        your_total_to_receive=total,
        your_amount_received=received,
        your_remaining_to_receive=total - received,
    )
