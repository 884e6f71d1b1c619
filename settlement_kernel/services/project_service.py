"""
ProjectService -- project lifecycle (create, update, delete, detail).

Responsibility:
    Validates and persists project fields, initializes the payment ledger,
    and delegates partner handling to PartnershipManager and client-ledger
    re-thresholding to PaymentLedgerService.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - name is required; budget is required and >= 0; platform commission
      percent is within [0, 100].
    - A new project starts with an all-unpaid, all-zero ledger.
    - Only the owner or an edit-partner may update; only the owner's
      updates touch partner shares, and an owner update without a partner
      removes every share.
    - A budget change re-thresholds ``client.status`` in the same flush.
    - Only the owner may delete; shares and client transactions go with
      the project and forecast entries are unlinked.

Failure modes:
    - MissingFieldError / InvalidAmountError / InvalidPlatformCommissionError
      / ValidationError on bad fields.
    - UserNotFoundError for an unknown owner.
    - AccessDeniedError, ProjectNotFoundError, ConflictError.
    - Any PartnershipManager error for the partner assignment.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.commission import (
    CommissionType,
    parse_amount,
    validate_platform_commission_percent,
)
from settlement_kernel.domain.dtos import (
    PartnerAssignment,
    ProjectChanges,
    ProjectStatus,
    ProjectView,
)
from settlement_kernel.domain.ledger import PaymentDetails
from settlement_kernel.exceptions import (
    AccessDeniedError,
    InvalidCommissionError,
    MissingFieldError,
    UserNotFoundError,
    ValidationError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.forecast_entry import ForecastEntry
from settlement_kernel.models.project import Project
from settlement_kernel.models.user import User
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.collaboration_service import CollaborationLookup
from settlement_kernel.services.partnership_manager import (
    PartnershipManager,
    can_edit,
    is_stakeholder,
)
from settlement_kernel.services.payment_ledger import PaymentLedgerService

logger = get_logger("services.project")

_CLEARABLE_FIELDS = frozenset({"description", "deadline", "platform_id"})


def _validate_name(name: str | None) -> str:
    if name is None or not str(name).strip():
        raise MissingFieldError("name")
    return str(name).strip()


def _coerce_status(status) -> ProjectStatus:
    try:
        return ProjectStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown project status: {status!r}", "status") from None


class ProjectService(BaseService):
    """Project create/update/delete and the single-project read."""

    def __init__(
        self,
        session: Session,
        collaborations: CollaborationLookup | None = None,
        clock: Clock | None = None,
        decimal_places: int = MONEY_DECIMAL_PLACES,
    ):
        super().__init__(session, clock, decimal_places)
        self.partnerships = PartnershipManager(session, collaborations, self.clock, decimal_places)
        self.ledger = PaymentLedgerService(session, self.clock, decimal_places)

    def create_project(
        self,
        owner_id: UUID,
        name: str,
        client_id: UUID,
        budget: Decimal,
        platform_id: UUID | None = None,
        platform_commission_percent: Decimal = Decimal("0"),
        status: ProjectStatus | str = ProjectStatus.DRAFT,
        description: str | None = None,
        deadline: date | None = None,
        partner: PartnerAssignment | None = None,
        owner_commission_type: CommissionType | str | None = None,
        owner_commission_value: Decimal | None = None,
    ) -> ProjectView:
        """
        Create a project owned by ``owner_id``.

        The owner commission fields are stored as given but never used by
        the settlement calculator; the owner always receives the residual.
        """
        name = _validate_name(name)
        if client_id is None:
            raise MissingFieldError("client_id")
        if budget is None:
            raise MissingFieldError("budget")
        budget = parse_amount("budget", budget)
        percent = validate_platform_commission_percent(platform_commission_percent)
        project_status = _coerce_status(status)
        owner_type = None
        if owner_commission_type is not None:
            try:
                owner_type = CommissionType(owner_commission_type).value
            except ValueError:
                raise InvalidCommissionError(
                    owner_commission_type, owner_commission_value, "unknown commission type"
                ) from None

        if self.session.get(User, owner_id) is None:
            raise UserNotFoundError(str(owner_id))

        with LogContext.bind(actor_id=owner_id, operation="create_project"):
            with self.session.begin_nested():
                project = Project(
                    owner_id=owner_id,
                    client_id=client_id,
                    name=name,
                    description=description,
                    deadline=deadline,
                    budget=budget,
                    platform_id=platform_id,
                    platform_commission_percent=percent,
                    status=project_status.value,
                    owner_commission_type=owner_type,
                    owner_commission_value=owner_commission_value,
                    created_by_id=owner_id,
                    created_at=self.clock.now(),
                )
                project.ledger = PaymentDetails.initial()
                self.session.add(project)
                self.session.flush()

                if partner is not None:
                    self.partnerships.upsert_share(project, owner_id, partner)
                self._flush(project.id)

            logger.info(
                "project_created",
                extra={
                    "project_id": str(project.id),
                    "budget": str(budget),
                    "platform_commission_percent": str(percent),
                    "has_partner": partner is not None,
                },
            )
            return project.to_view(owner_id, self.decimal_places)

    def _apply_changes(self, project: Project, changes: ProjectChanges) -> bool:
        """Apply scalar changes; return True when the budget changed."""
        unknown = changes.clear_fields - _CLEARABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be cleared: {sorted(unknown)}", "clear_fields")

        if changes.name is not None:
            project.name = _validate_name(changes.name)
        if changes.description is not None:
            project.description = changes.description
        if changes.client_id is not None:
            project.client_id = changes.client_id
        if changes.deadline is not None:
            project.deadline = changes.deadline
        if changes.platform_id is not None:
            project.platform_id = changes.platform_id
        if changes.platform_commission_percent is not None:
            project.platform_commission_percent = validate_platform_commission_percent(
                changes.platform_commission_percent
            )
        if changes.status is not None:
            project.status = _coerce_status(changes.status).value
        for field_name in changes.clear_fields:
            setattr(project, field_name, None)

        budget_changed = False
        if changes.budget is not None:
            budget = parse_amount("budget", changes.budget)
            budget_changed = budget != project.budget
            project.budget = budget
        return budget_changed

    def update_project(
        self,
        project_id: UUID,
        actor_id: UUID,
        changes: ProjectChanges | None = None,
        partner: PartnerAssignment | None = None,
        expected_version: int | None = None,
    ) -> ProjectView:
        """
        Update project fields and, for the owner, sync the partner.

        When the actor is the owner, ``partner=None`` removes every partner
        share; pass the current partner's assignment to keep it.
        """
        changes = changes or ProjectChanges()
        with LogContext.bind(actor_id=actor_id, project_id=project_id, operation="update_project"):
            with self.session.begin_nested():
                project = self._lock_project(project_id, expected_version)
                if not can_edit(project.owner_id, project.shares, actor_id):
                    raise AccessDeniedError(str(actor_id), f"project {project_id}", "update")

                budget_changed = self._apply_changes(project, changes)
                project.updated_by_id = actor_id
                if actor_id == project.owner_id:
                    self.partnerships.apply_assignment(project, actor_id, partner)
                if budget_changed:
                    self.ledger.rewrite_client_ledger(project, actor_id)
                self._flush(project_id)

            logger.info(
                "project_updated",
                extra={
                    "budget_changed": budget_changed,
                    "partner_synced": actor_id == project.owner_id,
                    "version": project.version,
                },
            )
            return project.to_view(actor_id, self.decimal_places)

    def delete_project(self, project_id: UUID, actor_id: UUID) -> None:
        """Delete a project with its shares and client transactions (owner only)."""
        with LogContext.bind(actor_id=actor_id, project_id=project_id, operation="delete_project"):
            with self.session.begin_nested():
                project = self._lock_project(project_id)
                if project.owner_id != actor_id:
                    raise AccessDeniedError(str(actor_id), f"project {project_id}", "delete")
                self.session.execute(
                    update(ForecastEntry)
                    .where(ForecastEntry.project_id == project_id)
                    .values(project_id=None)
                )
                self.session.delete(project)
                self._flush(project_id)

            logger.info("project_deleted", extra={"project_id": str(project_id)})

    def get_project(self, project_id: UUID, user_id: UUID) -> ProjectView:
        """Single-project read for any stakeholder."""
        project = self._get_project(project_id)
        if not is_stakeholder(project.owner_id, project.shares, user_id):
            raise AccessDeniedError(str(user_id), f"project {project_id}", "view")
        return project.to_view(user_id, self.decimal_places)
