"""
PartnershipManager -- attach, renegotiate and detach partner shares.

Responsibility:
    Owns the lifecycle of ProjectShare rows and their mirror entries in
    the project ledger, and provides the stakeholder / edit-permission
    checks every read and write path uses.

Architecture position:
    Kernel > Services -- imperative shell.  Called directly by API callers
    and by ProjectService on create/update.

Invariants enforced:
    - Only the project owner attaches, renegotiates or detaches partners.
    - A project is never shared with its owner.
    - A share requires an ACCEPTED collaboration between owner and partner
      (either direction), checked through the injected CollaborationLookup.
    - Renegotiation changes type/value/permissions in place and keeps
      amount_paid and payment_status.
    - Detach deletes the share and its ledger mirror.  There is no
      archive: a re-attached partner starts again at 0/unpaid.

Failure modes:
    - AccessDeniedError, InvalidSelfShareError, UserNotFoundError,
      CollaborationRequiredError, InvalidCommissionError, NotSharedError.
    - ConflictError on a concurrent project update.
"""

from decimal import Decimal
from typing import Iterable, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.commission import CommissionType, validate_commission_terms
from settlement_kernel.domain.dtos import PartnerAssignment, ShareInfo, SharePermission
from settlement_kernel.domain.ledger import PaymentStatus
from settlement_kernel.exceptions import (
    AccessDeniedError,
    CollaborationRequiredError,
    InvalidSelfShareError,
    NotSharedError,
    UserNotFoundError,
    ValidationError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.project import Project
from settlement_kernel.models.project_share import ProjectShare
from settlement_kernel.models.user import User
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.collaboration_service import (
    CollaborationLookup,
    CollaborationService,
    CollaborationState,
)

logger = get_logger("services.partnership")


class _ShareLike(Protocol):
    partner_id: UUID
    permissions: str


def is_stakeholder(owner_id: UUID, shares: Iterable[_ShareLike], user_id: UUID) -> bool:
    """Owner or holder of any share on the project."""
    if user_id == owner_id:
        return True
    return any(share.partner_id == user_id for share in shares)


def can_edit(owner_id: UUID, shares: Iterable[_ShareLike], user_id: UUID) -> bool:
    """Owner, or partner whose share grants EDIT."""
    if user_id == owner_id:
        return True
    return any(
        share.partner_id == user_id and share.permissions == SharePermission.EDIT
        for share in shares
    )


def _coerce_permission(permissions) -> SharePermission:
    try:
        return SharePermission(permissions)
    except ValueError:
        raise ValidationError(f"Unknown share permission: {permissions!r}", "permissions") from None


class PartnershipManager(BaseService):
    """Manages partner shares on projects."""

    def __init__(
        self,
        session: Session,
        collaborations: CollaborationLookup | None = None,
        clock: Clock | None = None,
        decimal_places: int = MONEY_DECIMAL_PLACES,
    ):
        super().__init__(session, clock, decimal_places)
        self.collaborations = collaborations or CollaborationService(session, clock)

    def _require_owner(self, project: Project, actor_id: UUID, action: str) -> None:
        if project.owner_id != actor_id:
            raise AccessDeniedError(str(actor_id), f"project {project.id}", action)

    def attach_partner(
        self,
        project_id: UUID,
        actor_id: UUID,
        partner_id: UUID,
        commission_type: CommissionType | str,
        commission_value: Decimal,
        permissions: SharePermission | str = SharePermission.EDIT,
    ) -> ShareInfo:
        """
        Share a project with a partner, or renegotiate an existing share.

        Returns:
            The created or updated share.
        """
        assignment = PartnerAssignment(
            partner_id=partner_id,
            commission_type=commission_type,
            commission_value=commission_value,
            permissions=_coerce_permission(permissions),
        )
        with LogContext.bind(actor_id=actor_id, project_id=project_id, operation="attach_partner"):
            with self.session.begin_nested():
                project = self._lock_project(project_id)
                self._require_owner(project, actor_id, "share")
                share = self.upsert_share(project, actor_id, assignment)
                self._flush(project_id)
            return share.to_dto()

    def upsert_share(
        self,
        project: Project,
        actor_id: UUID,
        assignment: PartnerAssignment,
    ) -> ProjectShare:
        """
        Create or renegotiate one partner's share on an already locked project.

        The caller is responsible for the owner check, the savepoint and
        the flush.
        """
        kind, value = validate_commission_terms(
            assignment.commission_type, assignment.commission_value
        )
        permission = _coerce_permission(assignment.permissions)
        partner_id = assignment.partner_id

        if partner_id == project.owner_id:
            raise InvalidSelfShareError(str(project.id), str(partner_id))
        partner = self.session.get(User, partner_id)
        if partner is None:
            raise UserNotFoundError(str(partner_id))
        state = self.collaborations.collaboration_state(project.owner_id, partner_id)
        if state is not CollaborationState.ACCEPTED:
            raise CollaborationRequiredError(str(project.owner_id), str(partner_id))

        share = project.share_for(partner_id)
        if share is not None:
            share.commission_type = kind.value
            share.commission_value = value
            share.permissions = permission.value
            share.updated_by_id = actor_id
            logger.info(
                "partner_terms_renegotiated",
                extra={
                    "project_id": str(project.id),
                    "partner_id": str(partner_id),
                    "commission_type": kind.value,
                    "commission_value": str(value),
                },
            )
            return share

        share = ProjectShare(
            commission_type=kind.value,
            commission_value=value,
            permissions=permission.value,
            payment_status=PaymentStatus.UNPAID.value,
            amount_paid=Decimal("0"),
            created_by_id=actor_id,
        )
        share.partner = partner
        project.shares.append(share)
        logger.info(
            "partner_attached",
            extra={
                "project_id": str(project.id),
                "partner_id": str(partner_id),
                "commission_type": kind.value,
                "commission_value": str(value),
            },
        )
        return share

    def remove_share(self, project: Project, actor_id: UUID, share: ProjectShare) -> None:
        """Delete a share and its ledger mirror on an already locked project."""
        partner_id = share.partner_id
        project.shares.remove(share)
        project.ledger = project.ledger.without_partner(partner_id)
        project.updated_by_id = actor_id
        logger.info(
            "partner_detached",
            extra={
                "project_id": str(project.id),
                "partner_id": str(partner_id),
                "amount_paid_discarded": str(share.amount_paid),
            },
        )

    def detach_partner(self, project_id: UUID, actor_id: UUID, partner_id: UUID) -> None:
        """
        Remove a partner from a project.

        The partner's received amount is discarded together with the share.
        """
        with LogContext.bind(actor_id=actor_id, project_id=project_id, operation="detach_partner"):
            with self.session.begin_nested():
                project = self._lock_project(project_id)
                self._require_owner(project, actor_id, "unshare")
                share = project.share_for(partner_id)
                if share is None:
                    raise NotSharedError(str(project_id), str(partner_id))
                self.remove_share(project, actor_id, share)
                self._flush(project_id)

    def apply_assignment(
        self,
        project: Project,
        actor_id: UUID,
        assignment: PartnerAssignment | None,
    ) -> None:
        """
        Project-update partner semantics on an already locked project.

        An assignment upserts that partner and leaves other shares alone.
        ``None`` removes EVERY partner share: an update that omits the
        partner wipes all partnerships.
        """
        if assignment is not None:
            self.upsert_share(project, actor_id, assignment)
            return
        for share in list(project.shares):
            self.remove_share(project, actor_id, share)

    def sync_partner(
        self,
        project_id: UUID,
        actor_id: UUID,
        assignment: PartnerAssignment | None,
    ) -> None:
        """Owner-only partner sync with project-update semantics (see apply_assignment)."""
        with LogContext.bind(actor_id=actor_id, project_id=project_id, operation="sync_partner"):
            with self.session.begin_nested():
                project = self._lock_project(project_id)
                self._require_owner(project, actor_id, "share")
                self.apply_assignment(project, actor_id, assignment)
                self._flush(project_id)
