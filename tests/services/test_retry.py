"""
Tests for retry_on_conflict.

Covers:
- Retrying ConflictError with a fresh session per attempt
- Exhaustion after max_attempts
- Other errors propagating immediately
- Commit of the successful attempt
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from settlement_kernel.exceptions import ConflictError, ValidationError
from settlement_kernel.models.user import User
from settlement_kernel.services.retry import MAX_CONFLICT_RETRIES, retry_on_conflict


class TestRetryOnConflict:
    def test_retries_until_success(self, session_factory, captured_logs):
        sessions = []

        def operation(session):
            sessions.append(session)
            if len(sessions) < 3:
                raise ConflictError("p-1")
            return "done"

        assert retry_on_conflict(operation, session_factory) == "done"
        assert len(sessions) == 3
        assert len({id(s) for s in sessions}) == 3
        retries = [r for r in captured_logs() if r["message"] == "conflict_retry"]
        assert [r["attempt"] for r in retries] == [1, 2]

    def test_exhausted(self, session_factory, captured_logs):
        calls = []

        def operation(session):
            calls.append(1)
            raise ConflictError("p-1")

        with pytest.raises(ConflictError):
            retry_on_conflict(operation, session_factory)

        assert len(calls) == MAX_CONFLICT_RETRIES
        assert any(r["message"] == "conflict_retries_exhausted" for r in captured_logs())

    def test_custom_attempts(self, session_factory):
        calls = []

        def operation(session):
            calls.append(1)
            raise ConflictError("p-1")

        with pytest.raises(ConflictError):
            retry_on_conflict(operation, session_factory, max_attempts=5)
        assert len(calls) == 5

    def test_other_errors_not_retried(self, session_factory):
        calls = []

        def operation(session):
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            retry_on_conflict(operation, session_factory)
        assert len(calls) == 1

    def test_invalid_attempts(self, session_factory):
        with pytest.raises(ValueError):
            retry_on_conflict(lambda s: None, session_factory, max_attempts=0)

    def test_successful_attempt_committed(self, session_factory):
        email = f"retry-{uuid4().hex[:8]}@example.com"
        attempts = []

        def operation(session):
            session.add(User(name="Retry", email=email))
            session.flush()
            attempts.append(1)
            if len(attempts) == 1:
                raise ConflictError("p-1")

        retry_on_conflict(operation, session_factory)

        check = session_factory()
        rows = check.execute(select(User).where(User.email == email)).scalars().all()
        check.close()
        assert len(rows) == 1
