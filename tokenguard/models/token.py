"""Token model - single-use account tokens.

Rows are single-use and time-limited. A row is created when a token is
issued for an existing account, flipped to used exactly once, and removed by
the cleanup scheduler once its retention window has passed.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tokenguard.models.base import Base, UTCDateTime

if TYPE_CHECKING:
    from tokenguard.models.account import Account

# Length of a SHA-256 hex digest
_HASH_LENGTH = 64


class TokenColumnsMixin:
    """Columns every token table needs except ``account_id``.

    Token tables bound to a custom account table use this mixin and declare
    their own nullable ``account_id`` foreign key.

    Attributes:
        id: Random UUID, also the secret part of the encoded token.
        hash: SHA-256 hex digest of the id.
        type: Purpose discriminator (e.g. ``"password_reset"``).
        expires_at: Absolute deadline, whole seconds.
        used_at: Set once when the token is consumed. NULL = unused.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
    )
    hash: Mapped[str] = mapped_column(
        String(_HASH_LENGTH),
        unique=True,
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )
    used_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        default=None,
    )

    @property
    def is_used(self) -> bool:
        """Whether the token has been consumed."""
        return self.used_at is not None


class Token(Base, TokenColumnsMixin):
    """One-time token owned by an Account.

    ``account_id`` is nullable so the schema does not require an account to
    exist; tokens for unknown logins are signed but never stored.
    """

    __tablename__ = "account_tokens"

    account_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    # Relationships
    account: Mapped["Account"] = relationship("Account", back_populates="tokens")
