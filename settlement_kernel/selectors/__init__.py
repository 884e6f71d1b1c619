"""Selectors for the settlement kernel (read side)."""

from settlement_kernel.selectors.dashboard_selector import (
    CompletedProject,
    Dashboard,
    DashboardSelector,
    DashboardSettings,
    MonthlyReceived,
    ProjectHeadline,
)
from settlement_kernel.selectors.project_selector import (
    Pagination,
    ProjectFilter,
    ProjectListing,
    ProjectSelector,
    ProjectSummary,
    summarize,
)

__all__ = [
    "CompletedProject",
    "Dashboard",
    "DashboardSelector",
    "DashboardSettings",
    "MonthlyReceived",
    "Pagination",
    "ProjectFilter",
    "ProjectHeadline",
    "ProjectListing",
    "ProjectSelector",
    "ProjectSummary",
    "summarize",
]
