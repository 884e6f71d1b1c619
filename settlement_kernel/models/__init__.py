"""ORM models for the settlement kernel."""

from settlement_kernel.models.client_transaction import ClientTransaction
from settlement_kernel.models.collaboration import Collaboration, CollaborationStatus
from settlement_kernel.models.forecast_entry import (
    ForecastEntry,
    ForecastEntryStatus,
    ForecastEntryType,
)
from settlement_kernel.models.project import Project
from settlement_kernel.models.project_share import ProjectShare
from settlement_kernel.models.user import User

__all__ = [
    "ClientTransaction",
    "Collaboration",
    "CollaborationStatus",
    "ForecastEntry",
    "ForecastEntryStatus",
    "ForecastEntryType",
    "Project",
    "ProjectShare",
    "User",
]
