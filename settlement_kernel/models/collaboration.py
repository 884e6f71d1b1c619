"""
Module: settlement_kernel.models.collaboration
Responsibility: ORM persistence for collaboration requests between two users.
    An ACCEPTED collaboration (in either direction) is the precondition for
    sharing a project with a partner.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per ordered (requester_id, addressee_id) pair
      (uq_collaboration_pair).  The service additionally rejects a request
      when the reverse pair already exists.

Failure modes:
    - IntegrityError on a duplicate (requester_id, addressee_id) pair.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UUIDString


class CollaborationStatus(str, Enum):
    """Collaboration lifecycle.

    PENDING -> ACCEPTED | DECLINED | CANCELED;  ACCEPTED -> REVOKED.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELED = "canceled"
    REVOKED = "revoked"


class Collaboration(TrackedBase):
    """A collaboration request from ``requester_id`` to ``addressee_id``."""

    __tablename__ = "collaborations"

    __table_args__ = (
        UniqueConstraint("requester_id", "addressee_id", name="uq_collaboration_pair"),
        Index("idx_collaboration_addressee", "addressee_id"),
    )

    requester_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    addressee_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[CollaborationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=CollaborationStatus.PENDING.value,
    )

    def involves(self, user_id: UUID) -> bool:
        return user_id in (self.requester_id, self.addressee_id)

    def to_dto(self):
        """Convert ORM model to frozen domain DTO."""
        from settlement_kernel.domain.dtos import CollaborationInfo

        return CollaborationInfo(
            id=self.id,
            requester_id=self.requester_id,
            addressee_id=self.addressee_id,
            status=CollaborationStatus(self.status).value,
        )

    def __repr__(self) -> str:
        return (
            f"<Collaboration {self.requester_id} -> {self.addressee_id} "
            f"status={self.status}>"
        )
