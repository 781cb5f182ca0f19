"""SQLAlchemy ORM models for tokenguard.

All models are exported from this module for convenient imports:
    from tokenguard.models import Account, Token

- base.py: Base, TimestampMixin, UTCDateTime
- account.py: Account (default login/password table)
- token.py: Token, TokenColumnsMixin (one-time tokens)
"""

from tokenguard.models.account import Account
from tokenguard.models.base import Base, TimestampMixin, UTCDateTime
from tokenguard.models.token import Token, TokenColumnsMixin

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    # Accounts
    "Account",
    "Token",
    "TokenColumnsMixin",
]
