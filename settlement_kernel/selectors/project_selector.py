"""
Module: settlement_kernel.selectors.project_selector
Responsibility: Project listings with filters, sorting, pagination and a
    money summary, plus the single-project detail read.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only projects the user owns or holds a share on are visible.
    - Every project figure comes from the settlement calculator (via
      ``Project.to_view``), once per project; the summary only adds those
      results up.
    - The summary covers every project matching the filters, not only the
      returned page.

Failure modes:
    - ValidationError for an unknown status, sort key, sort order, or a
      page/limit below 1.
    - ProjectNotFoundError / AccessDeniedError on the detail read.
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES, ZERO, format_money, round_money
from settlement_kernel.domain.dtos import ACTIVE_PROJECT_STATUSES, ProjectStatus, ProjectView
from settlement_kernel.exceptions import AccessDeniedError, ProjectNotFoundError, ValidationError
from settlement_kernel.models.project import Project
from settlement_kernel.selectors.base import BaseSelector

SORT_COLUMNS = {
    "created_at": Project.created_at,
    "budget": Project.budget,
    "deadline": Project.deadline,
    "name": Project.name,
}


@dataclass(frozen=True)
class ProjectFilter:
    """Listing filter.  ``status`` is ``all``, ``active`` or a concrete status."""

    status: str = "all"
    client_id: UUID | None = None
    platform_id: UUID | None = None
    min_budget: Decimal | None = None
    max_budget: Decimal | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"
    page: int = 1
    limit: int | None = None


@dataclass(frozen=True)
class ProjectSummary:
    """Money totals across a set of projects, from the viewer's perspective."""

    total_budget: Decimal
    total_received: Decimal
    total_to_receive: Decimal
    remaining_to_receive: Decimal

    def to_dict(self, decimal_places: int = MONEY_DECIMAL_PLACES) -> dict[str, str]:
        return {
            "total_budget": format_money(self.total_budget, decimal_places),
            "total_received": format_money(self.total_received, decimal_places),
            "total_to_receive": format_money(self.total_to_receive, decimal_places),
            "remaining_to_receive": format_money(self.remaining_to_receive, decimal_places),
        }


@dataclass(frozen=True)
class Pagination:
    total_projects: int
    total_pages: int
    current_page: int
    page_size: int


@dataclass(frozen=True)
class ProjectListing:
    summary: ProjectSummary
    pagination: Pagination
    projects: tuple[ProjectView, ...]


def summarize(views: Iterable[ProjectView], decimal_places: int = MONEY_DECIMAL_PLACES) -> ProjectSummary:
    """Reduce per-project views into a ProjectSummary."""
    total_budget = total_received = total_to_receive = viewer_received = ZERO
    for view in views:
        total_budget += round_money(view.budget, decimal_places)
        total_received += view.ledger.client.amount_paid
        total_to_receive += view.settlement.your_total_to_receive
        viewer_received += view.settlement.your_amount_received
    return ProjectSummary(
        total_budget=total_budget,
        total_received=total_received,
        total_to_receive=total_to_receive,
        remaining_to_receive=total_to_receive - viewer_received,
    )


class ProjectSelector(BaseSelector):
    """Listing and detail reads for projects."""

    def __init__(
        self,
        session: Session,
        decimal_places: int = MONEY_DECIMAL_PLACES,
        default_page_size: int = 6,
        max_page_size: int = 100,
    ):
        super().__init__(session, decimal_places)
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _filtered_query(self, user_id: UUID, filters: ProjectFilter):
        query = select(Project).where(self.stakeholder_clause(user_id))

        status = filters.status or "all"
        if status == "active":
            query = query.where(Project.status.in_([s.value for s in ACTIVE_PROJECT_STATUSES]))
        elif status != "all":
            try:
                query = query.where(Project.status == ProjectStatus(status).value)
            except ValueError:
                raise ValidationError(f"Unknown status filter: {status!r}", "status") from None

        if filters.client_id is not None:
            query = query.where(Project.client_id == filters.client_id)
        if filters.platform_id is not None:
            query = query.where(Project.platform_id == filters.platform_id)
        if filters.min_budget is not None:
            query = query.where(Project.budget >= filters.min_budget)
        if filters.max_budget is not None:
            query = query.where(Project.budget <= filters.max_budget)
        return query

    def _order_by(self, filters: ProjectFilter):
        column = SORT_COLUMNS.get(filters.sort_by)
        if column is None:
            raise ValidationError(f"Unknown sort key: {filters.sort_by!r}", "sort_by")
        if filters.sort_order not in ("asc", "desc"):
            raise ValidationError(f"Unknown sort order: {filters.sort_order!r}", "sort_order")
        ordered = column.asc() if filters.sort_order == "asc" else column.desc()
        return [ordered.nulls_last(), Project.id]

    def list_projects_for_user(
        self,
        user_id: UUID,
        filters: ProjectFilter | None = None,
    ) -> ProjectListing:
        """
        Projects visible to ``user_id``, filtered, sorted and paginated,
        with the viewer's settlement on each row and a summary over every
        matching project.
        """
        filters = filters or ProjectFilter()
        if filters.page < 1:
            raise ValidationError("page must be >= 1", "page")
        limit = filters.limit if filters.limit is not None else self.default_page_size
        if limit < 1:
            raise ValidationError("limit must be >= 1", "limit")
        limit = min(limit, self.max_page_size)

        query = self._filtered_query(user_id, filters).order_by(*self._order_by(filters))
        projects = list(self.session.execute(query).scalars())
        views = [project.to_view(user_id, self.decimal_places) for project in projects]

        total = len(views)
        offset = (filters.page - 1) * limit
        return ProjectListing(
            summary=summarize(views, self.decimal_places),
            pagination=Pagination(
                total_projects=total,
                total_pages=math.ceil(total / limit),
                current_page=filters.page,
                page_size=limit,
            ),
            projects=tuple(views[offset:offset + limit]),
        )

    def get_project_view(self, project_id: UUID, user_id: UUID) -> ProjectView:
        """Detail read for any stakeholder."""
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        is_partner = project.share_for(user_id) is not None
        if project.owner_id != user_id and not is_partner:
            raise AccessDeniedError(str(user_id), f"project {project_id}", "view")
        return project.to_view(user_id, self.decimal_places)
