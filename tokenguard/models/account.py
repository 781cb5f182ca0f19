"""Account model - login credentials.

Default account table. Projects with their own users table point
AccountsConfig.account_model (and login_field / password_hash_field) at
their model instead.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tokenguard.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from tokenguard.models.token import Token


class Account(Base, TimestampMixin):
    """Account that can sign in with a login and password.

    Attributes:
        id: UUID primary key.
        email: Unique login.
        password_hash: bcrypt digest. Never the cleartext password.
        name: Optional display name.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(254),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Relationships
    tokens: Mapped[list["Token"]] = relationship(
        "Token",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Account id={self.id}>"
