"""
Module: settlement_kernel.models.user
Responsibility: ORM persistence for the identity of a platform user (owner
    or partner of projects).  Credentials live outside the kernel.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import Base


class User(Base):
    """
    A user known to the kernel.

    Guarantees:
        - email is unique (uq_user_email).
    """

    __tablename__ = "users"

    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"
