"""
retry_on_conflict -- re-run a whole ledger operation after a conflict.

Responsibility:
    Runs an operation in a fresh ``session_scope()`` and, when it raises
    ConflictError, rolls back and runs it again from the start (re-reading
    every row), up to a bounded number of attempts.

Architecture position:
    Kernel > Services -- transaction-owning helper for API callers and
    background jobs.  Services themselves never retry.

Invariants enforced:
    - Only ConflictError is retried; every other error propagates on the
      first attempt.
    - Each attempt gets its own session and transaction, so no state from
      a failed attempt leaks into the next.
    - ``max_attempts`` bounds the loop (default from ``ledger.max_conflict_retries``).

Usage:
    view = retry_on_conflict(
        lambda session: PaymentLedgerService(session).register_user_receipt(
            project_id, user_id, Decimal("100.00")
        )
    )
"""

from typing import Callable, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from settlement_kernel.db.engine import session_scope
from settlement_kernel.exceptions import ConflictError
from settlement_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

MAX_CONFLICT_RETRIES = 3


def retry_on_conflict(
    operation: Callable[[Session], T],
    session_factory: sessionmaker[Session] | None = None,
    max_attempts: int | None = None,
) -> T:
    """
    Run ``operation(session)`` in a committed transaction, retrying on conflict.

    Args:
        operation: Callable receiving an open Session.  Must be safe to run
            more than once (it is re-run from scratch on conflict).
        session_factory: Factory for the per-attempt sessions.  Defaults to
            the engine's module-level factory.
        max_attempts: Total attempts before the ConflictError surfaces.

    Raises:
        ConflictError: If every attempt conflicted.
        ValueError: If max_attempts < 1.
    """
    attempts = MAX_CONFLICT_RETRIES if max_attempts is None else max_attempts
    if attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        try:
            with session_scope(session_factory) as session:
                return operation(session)
        except ConflictError as exc:
            if attempt == attempts:
                logger.error(
                    "conflict_retries_exhausted",
                    extra={"project_id": exc.project_id, "attempts": attempt},
                )
                raise
            logger.warning(
                "conflict_retry",
                extra={"project_id": exc.project_id, "attempt": attempt},
            )
    raise AssertionError("unreachable")
