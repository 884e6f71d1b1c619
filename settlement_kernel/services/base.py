"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer, plus the locked project read and
    conflict-translating flush shared by every ledger mutation.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (``session_scope()``, ``retry_on_conflict()`` or a test harness) owns
      commit/rollback.  Each mutation runs inside a SAVEPOINT so a failed
      operation leaves no partial ledger write even if the caller goes on
      using the session.
    - Ledger mutations read the project with ``SELECT ... FOR UPDATE`` and
      ``populate_existing`` so they always see the committed row, never a
      stale identity-map copy.

Failure modes:
    - ProjectNotFoundError when the project row does not exist.
    - ConflictError when ``expected_version`` does not match or the ORM
      version check fails at flush (StaleDataError).
"""

from abc import ABC
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.exceptions import ConflictError, ProjectNotFoundError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.project import Project
from settlement_kernel.models.project_share import ProjectShare

logger = get_logger("services.base")


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide listing queries -- those belong in
          ``settlement_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        decimal_places: int = MONEY_DECIMAL_PLACES,
    ):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source.  Defaults to SystemClock.
            decimal_places: Precision of externalized money figures.
        """
        self.session = session
        self.clock = clock or SystemClock()
        self.decimal_places = decimal_places

    def _get_project(self, project_id: UUID) -> Project:
        """Unlocked read for access checks on read paths."""
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def _lock_project(
        self,
        project_id: UUID,
        expected_version: int | None = None,
    ) -> Project:
        """
        Load and lock a project and its share rows for a ledger mutation.

        Raises:
            ProjectNotFoundError: If the project does not exist.
            ConflictError: If ``expected_version`` is given and differs
                from the locked row's version.
        """
        project = self.session.execute(
            select(Project)
            .where(Project.id == project_id)
            .with_for_update(of=Project)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(str(project_id))

        self.session.execute(
            select(ProjectShare)
            .where(ProjectShare.project_id == project_id)
            .with_for_update(of=ProjectShare)
            .execution_options(populate_existing=True)
        ).scalars().all()

        if expected_version is not None and project.version != expected_version:
            logger.warning(
                "ledger_conflict",
                extra={
                    "project_id": str(project_id),
                    "expected_version": expected_version,
                    "actual_version": project.version,
                },
            )
            raise ConflictError(str(project_id), expected_version, project.version)
        return project

    def _flush(self, project_id: UUID) -> None:
        """Flush, translating a failed version check into ConflictError."""
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning("ledger_conflict", extra={"project_id": str(project_id)})
            raise ConflictError(str(project_id)) from exc
