"""
CollaborationService -- the collaboration gate for partner sharing.

Responsibility:
    Manages collaboration requests between users (request, accept/decline,
    cancel/revoke) and answers whether two users currently collaborate.
    The partnership manager consults ``collaboration_state`` before
    creating a partner share.

Architecture position:
    Kernel > Services -- imperative shell.  Implements the
    ``CollaborationLookup`` protocol used by PartnershipManager.

Invariants enforced:
    - No self-invites.
    - At most one live (pending or accepted) collaboration per unordered
      pair of users.  A pair whose previous request was declined,
      canceled or revoked may request again.
    - Only the addressee may respond; only the requester may cancel a
      pending request; either party may revoke an accepted one.

Failure modes:
    - ValidationError: self-invite.
    - UserNotFoundError: unknown requester or addressee.
    - CollaborationExistsError: a live collaboration already exists.
    - CollaborationNotFoundError / AccessDeniedError /
      CollaborationStateError on respond and cancel_or_revoke.
"""

from enum import Enum
from typing import Protocol
from uuid import UUID

from sqlalchemy import and_, or_, select

from settlement_kernel.domain.dtos import CollaborationInfo
from settlement_kernel.exceptions import (
    AccessDeniedError,
    CollaborationExistsError,
    CollaborationNotFoundError,
    CollaborationStateError,
    UserNotFoundError,
    ValidationError,
)
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.collaboration import Collaboration, CollaborationStatus
from settlement_kernel.models.user import User
from settlement_kernel.services.base import BaseService

logger = get_logger("services.collaboration")


class CollaborationState(str, Enum):
    """Collaboration between two users, regardless of direction."""

    ACCEPTED = "accepted"
    PENDING = "pending"
    NONE = "none"


class CollaborationLookup(Protocol):
    """Answers whether two users collaborate.  Injected into PartnershipManager."""

    def collaboration_state(self, user_a: UUID, user_b: UUID) -> CollaborationState:
        ...


_LIVE_STATUSES = (CollaborationStatus.PENDING.value, CollaborationStatus.ACCEPTED.value)


class CollaborationService(BaseService):
    """SQL-backed collaboration requests and lookup."""

    def _pair_rows(self, user_a: UUID, user_b: UUID) -> list[Collaboration]:
        return list(
            self.session.execute(
                select(Collaboration).where(
                    or_(
                        and_(
                            Collaboration.requester_id == user_a,
                            Collaboration.addressee_id == user_b,
                        ),
                        and_(
                            Collaboration.requester_id == user_b,
                            Collaboration.addressee_id == user_a,
                        ),
                    )
                )
            ).scalars()
        )

    def _get(self, collaboration_id: UUID) -> Collaboration:
        collaboration = self.session.get(Collaboration, collaboration_id)
        if collaboration is None:
            raise CollaborationNotFoundError(str(collaboration_id))
        return collaboration

    def collaboration_state(self, user_a: UUID, user_b: UUID) -> CollaborationState:
        statuses = {row.status for row in self._pair_rows(user_a, user_b)}
        if CollaborationStatus.ACCEPTED.value in statuses:
            return CollaborationState.ACCEPTED
        if CollaborationStatus.PENDING.value in statuses:
            return CollaborationState.PENDING
        return CollaborationState.NONE

    def request_collaboration(
        self,
        requester_id: UUID,
        addressee_id: UUID,
    ) -> CollaborationInfo:
        """Send a collaboration request from ``requester_id`` to ``addressee_id``."""
        if requester_id == addressee_id:
            raise ValidationError("Cannot send a collaboration request to yourself", "addressee_id")
        for user_id in (requester_id, addressee_id):
            if self.session.get(User, user_id) is None:
                raise UserNotFoundError(str(user_id))

        with self.session.begin_nested():
            rows = self._pair_rows(requester_id, addressee_id)
            if any(row.status in _LIVE_STATUSES for row in rows):
                raise CollaborationExistsError(str(requester_id), str(addressee_id))

            collaboration = next(
                (row for row in rows if row.requester_id == requester_id), None
            )
            if collaboration is None:
                collaboration = Collaboration(
                    requester_id=requester_id,
                    addressee_id=addressee_id,
                    status=CollaborationStatus.PENDING.value,
                    created_by_id=requester_id,
                )
                self.session.add(collaboration)
            else:
                # A closed request in the same direction is reopened
                collaboration.status = CollaborationStatus.PENDING.value
                collaboration.updated_by_id = requester_id
            self.session.flush()

        logger.info(
            "collaboration_requested",
            extra={
                "collaboration_id": str(collaboration.id),
                "requester_id": str(requester_id),
                "addressee_id": str(addressee_id),
            },
        )
        return collaboration.to_dto()

    def respond(
        self,
        collaboration_id: UUID,
        addressee_id: UUID,
        accept: bool,
    ) -> CollaborationInfo:
        """Accept or decline a pending request.  Only the addressee may respond."""
        with self.session.begin_nested():
            collaboration = self._get(collaboration_id)
            if collaboration.addressee_id != addressee_id:
                raise AccessDeniedError(
                    str(addressee_id), f"collaboration {collaboration_id}", "respond to"
                )
            if collaboration.status != CollaborationStatus.PENDING:
                raise CollaborationStateError(
                    str(collaboration_id), collaboration.status, "respond to"
                )
            collaboration.status = (
                CollaborationStatus.ACCEPTED.value if accept else CollaborationStatus.DECLINED.value
            )
            collaboration.updated_by_id = addressee_id
            self.session.flush()

        logger.info(
            "collaboration_responded",
            extra={"collaboration_id": str(collaboration_id), "status": collaboration.status},
        )
        return collaboration.to_dto()

    def cancel_or_revoke(self, collaboration_id: UUID, user_id: UUID) -> CollaborationInfo:
        """
        Cancel a pending request (requester only) or revoke an accepted
        collaboration (either party).

        Existing partner shares are left in place; the collaboration is
        only checked when a share is created or renegotiated.
        """
        with self.session.begin_nested():
            collaboration = self._get(collaboration_id)
            if collaboration.status == CollaborationStatus.PENDING:
                if collaboration.requester_id != user_id:
                    raise AccessDeniedError(
                        str(user_id), f"collaboration {collaboration_id}", "cancel"
                    )
                collaboration.status = CollaborationStatus.CANCELED.value
            elif collaboration.status == CollaborationStatus.ACCEPTED:
                if not collaboration.involves(user_id):
                    raise AccessDeniedError(
                        str(user_id), f"collaboration {collaboration_id}", "revoke"
                    )
                collaboration.status = CollaborationStatus.REVOKED.value
            else:
                raise CollaborationStateError(
                    str(collaboration_id), collaboration.status, "cancel or revoke"
                )
            collaboration.updated_by_id = user_id
            self.session.flush()

        logger.info(
            "collaboration_closed",
            extra={"collaboration_id": str(collaboration_id), "status": collaboration.status},
        )
        return collaboration.to_dto()

    def list_collaborations(
        self,
        user_id: UUID,
        status: CollaborationStatus | None = None,
    ) -> list[CollaborationInfo]:
        """Collaborations the user takes part in, optionally filtered by status."""
        query = select(Collaboration).where(
            or_(Collaboration.requester_id == user_id, Collaboration.addressee_id == user_id)
        )
        if status is not None:
            query = query.where(Collaboration.status == CollaborationStatus(status).value)
        query = query.order_by(Collaboration.created_at.desc())
        return [row.to_dto() for row in self.session.execute(query).scalars()]
