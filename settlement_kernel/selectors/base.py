"""
Module: settlement_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors form the "Q" side of the CQRS-lite pattern: listings, detail
    reads and dashboards, all derived through the settlement calculator.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST
      NOT call session.add(), session.delete(), session.commit(), or
      session.flush().
    - DTO return convention: Selectors return frozen dataclasses, never raw
      ORM instances.
    - No settlement arithmetic: every per-project figure comes from
      ``Project.to_view()`` (the settlement calculator).
"""

from abc import ABC
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import ColumnElement

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES
from settlement_kernel.models.project import Project
from settlement_kernel.models.project_share import ProjectShare


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session, decimal_places: int = MONEY_DECIMAL_PLACES):
        """
        Initialize the selector.

        Args:
            session: SQLAlchemy session for database operations.
            decimal_places: Precision of externalized money figures.
        """
        self.session = session
        self.decimal_places = decimal_places

    @staticmethod
    def stakeholder_clause(user_id: UUID) -> ColumnElement[bool]:
        """WHERE clause for projects the user owns or holds a share on."""
        shared = select(ProjectShare.project_id).where(ProjectShare.partner_id == user_id)
        return or_(Project.owner_id == user_id, Project.id.in_(shared))
