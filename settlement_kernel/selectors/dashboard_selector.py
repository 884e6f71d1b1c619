"""
Module: settlement_kernel.selectors.dashboard_selector
Responsibility: The per-user dashboard: money totals, cash received this
    month and per month, active projects, upcoming deadlines and recently
    completed projects with their profit.
Architecture position: Kernel > Selectors.  Time comes from an injected
    Clock; money figures come from the settlement calculator.

Invariants enforced:
    - Totals and completed-project profit are the viewer's settlement
      figures (``Project.to_view``), never re-derived inline.
    - Cash received (this month and the monthly series) counts client
      transactions on projects the user OWNS.
    - Upcoming deadlines are owned, in-progress or paused projects due
      between today and today + ``upcoming_deadline_days`` inclusive.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES, ZERO, round_money
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.domain.dtos import ProjectStatus
from settlement_kernel.models.client_transaction import ClientTransaction
from settlement_kernel.models.project import Project
from settlement_kernel.selectors.base import BaseSelector
from settlement_kernel.selectors.project_selector import ProjectSummary, summarize

_RUNNING_STATUSES = (ProjectStatus.IN_PROGRESS.value, ProjectStatus.PAUSED.value)


@dataclass(frozen=True)
class DashboardSettings:
    """Dashboard limits.  ``settlement_config.DashboardConfig`` has the same fields."""

    active_projects_limit: int = 10
    upcoming_deadline_days: int = 7
    upcoming_deadlines_limit: int = 5
    recent_completed_limit: int = 5
    chart_months: int = 6


@dataclass(frozen=True)
class ProjectHeadline:
    id: UUID
    name: str
    status: ProjectStatus
    deadline: date | None


@dataclass(frozen=True)
class CompletedProject:
    id: UUID
    name: str
    client_id: UUID
    profit: Decimal


@dataclass(frozen=True)
class MonthlyReceived:
    month: date
    label: str
    total_received: Decimal


@dataclass(frozen=True)
class Dashboard:
    summary: ProjectSummary
    received_this_month: Decimal
    active_projects: tuple[ProjectHeadline, ...]
    upcoming_deadlines: tuple[ProjectHeadline, ...]
    recent_completed: tuple[CompletedProject, ...]
    monthly_received: tuple[MonthlyReceived, ...]


def _shift_month(first_of_month: date, months: int) -> date:
    index = first_of_month.year * 12 + first_of_month.month - 1 + months
    return date(index // 12, index % 12 + 1, 1)


def _headline(project: Project) -> ProjectHeadline:
    return ProjectHeadline(
        id=project.id,
        name=project.name,
        status=ProjectStatus(project.status),
        deadline=project.deadline,
    )


class DashboardSelector(BaseSelector):
    """Builds the dashboard for one user."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        decimal_places: int = MONEY_DECIMAL_PLACES,
        settings: DashboardSettings | None = None,
    ):
        super().__init__(session, decimal_places)
        self.clock = clock or SystemClock()
        self.settings = settings or DashboardSettings()

    def received_between(self, owner_id: UUID, start: date, end: date) -> Decimal:
        """Client money received on owned projects with start <= payment_date <= end, rounded."""
        total = self.session.execute(
            select(func.coalesce(func.sum(ClientTransaction.amount), ZERO))
            .join(Project, ClientTransaction.project_id == Project.id)
            .where(
                Project.owner_id == owner_id,
                ClientTransaction.payment_date >= start,
                ClientTransaction.payment_date <= end,
            )
        ).scalar_one()
        return round_money(Decimal(total), self.decimal_places)

    def get_dashboard(self, user_id: UUID) -> Dashboard:
        today = self.clock.today()
        month_start = today.replace(day=1)
        settings = self.settings

        projects = list(
            self.session.execute(
                select(Project)
                .where(self.stakeholder_clause(user_id))
                .order_by(Project.created_at.desc(), Project.id)
            ).scalars()
        )
        views = {project.id: project.to_view(user_id, self.decimal_places) for project in projects}

        active = [p for p in projects if p.status in _RUNNING_STATUSES]

        deadline_end = today + timedelta(days=settings.upcoming_deadline_days)
        upcoming = sorted(
            (
                p
                for p in active
                if p.owner_id == user_id
                and p.deadline is not None
                and today <= p.deadline <= deadline_end
            ),
            key=lambda p: p.deadline,
        )

        completed = sorted(
            (p for p in projects if p.status == ProjectStatus.COMPLETED),
            key=lambda p: p.updated_at,
            reverse=True,
        )[: settings.recent_completed_limit]

        monthly = []
        for back in range(settings.chart_months - 1, -1, -1):
            start = _shift_month(month_start, -back)
            end = _shift_month(start, 1) - timedelta(days=1)
            monthly.append(
                MonthlyReceived(
                    month=start,
                    label=start.strftime("%Y-%m"),
                    total_received=self.received_between(user_id, start, end),
                )
            )

        return Dashboard(
            summary=summarize(views.values(), self.decimal_places),
            received_this_month=self.received_between(user_id, month_start, today),
            active_projects=tuple(_headline(p) for p in active[: settings.active_projects_limit]),
            upcoming_deadlines=tuple(
                _headline(p) for p in upcoming[: settings.upcoming_deadlines_limit]
            ),
            recent_completed=tuple(
                CompletedProject(
                    id=p.id,
                    name=p.name,
                    client_id=p.client_id,
                    profit=views[p.id].settlement.your_total_to_receive,
                )
                for p in completed
            ),
            monthly_received=tuple(monthly),
        )
