"""One-time token lifecycle: issue, decode and atomically consume.

State machine per token row: created -> used (terminal), or
created -> expired (passive) -> deleted (cleanup). No other transitions.

Flow for a caller:
1. ``create`` returns a signed string to hand to the client (e.g. in a link).
2. When the string comes back, the caller resolves the account on its own
   (e.g. by login) and calls ``decode`` with that account.
3. ``use`` marks the row used and runs the guarded operation in the same
   transaction.

Security:
- Tokens for unknown accounts are signed but never stored, so they can
  never be used; issuing them costs the same signing work.
- The signature scope is derived from the account id, so a token issued for
  one account does not decode for another.
- The signature itself never expires; ``expires_at`` in the database is the
  only deadline.
"""

import base64
import hashlib
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from tokenguard.core.config import AccountsConfig
from tokenguard.core.results import INVALID, BusinessError, Invalid, Ok
from tokenguard.core.signing import MessageSigner
from tokenguard.repositories.token_repository import TokenRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

GuardedOperation = Callable[[AsyncSession], Awaitable[Ok[T] | BusinessError]]


@dataclass(frozen=True)
class RawToken:
    """Decoded token payload.

    Attributes:
        id: Token id (primary key of the stored row).
        type: Purpose discriminator.
        data: Extra caller data carried in the signed payload.
    """

    id: uuid.UUID
    type: str
    data: Any = field(default=None)


def account_salt(account: Any | None) -> str:
    """Signature scope for an account, or for "no account"."""
    source = "" if account is None else str(account.id)
    digest = hashlib.sha256(source.encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def token_hash(token_id: uuid.UUID) -> str:
    """Digest stored in the ``hash`` column for a token id."""
    return hashlib.sha256(token_id.bytes).hexdigest()


def _max_age_delta(max_age: int | float | timedelta) -> timedelta:
    if isinstance(max_age, timedelta):
        return max_age
    return timedelta(seconds=max_age)


class TokenLifecycle:
    """Issue, decode and consume one-time account tokens.

    Args:
        config: Accounts configuration.
    """

    def __init__(self, config: AccountsConfig) -> None:
        self._config = config
        self._signer = MessageSigner(config.secret_key, clock=config.clock)

    @property
    def config(self) -> AccountsConfig:
        return self._config

    async def create(
        self,
        account: Any | None,
        token_type: str,
        max_age: int | float | timedelta,
        *,
        data: Any = None,
    ) -> str:
        """Issue a new token.

        Always succeeds. When ``account`` is None nothing is stored, so the
        returned token can never be used.

        Args:
            account: Owning account, or None for an unknown login.
            token_type: Purpose discriminator, e.g. ``"password_reset"``.
            max_age: Lifetime in seconds or as a timedelta. Negative values
                produce an already-expired token.
            data: Extra JSON-serializable data to carry in the token.

        Returns:
            Encoded, signed token string.
        """
        token_id = uuid.uuid4()

        if account is not None:
            expires_at = self.expires_at_for(self._config.clock.now(), max_age)
            async with self._config.session_factory() as db:
                await TokenRepository.create(
                    db,
                    self._config.token_model,
                    token_id=token_id,
                    token_hash=token_hash(token_id),
                    token_type=token_type,
                    account_id=account.id,
                    expires_at=expires_at,
                )
                await db.commit()

        payload = {"id": str(token_id), "type": token_type, "data": data}
        return self._signer.sign(account_salt(account), payload)

    def decode(self, encoded: str | None, account: Any | None) -> Ok[RawToken] | Invalid:
        """Verify the signature and scope of an encoded token.

        The caller must have resolved ``account`` independently. Expiry and
        prior use are checked later by ``use``, against the database.

        Returns:
            Ok with the RawToken, or INVALID.
        """
        verified = self._signer.verify(account_salt(account), encoded, max_age=None)
        if not isinstance(verified, Ok):
            return INVALID

        payload = verified.value
        if not isinstance(payload, dict):
            return INVALID
        try:
            token_id = uuid.UUID(payload["id"])
            token_type = payload["type"]
        except (KeyError, TypeError, ValueError):
            return INVALID
        if not isinstance(token_type, str):
            return INVALID

        return Ok(RawToken(id=token_id, type=token_type, data=payload.get("data")))

    async def use(
        self,
        raw: RawToken,
        account: Any | None,
        operation: GuardedOperation[T],
    ) -> Ok[T] | BusinessError:
        """Consume a token and run ``operation`` in the same transaction.

        The token row is flipped to used only if it matches the id, account
        and type, is unused, and has not expired. If no row matches,
        ``operation`` is not called and INVALID is returned.

        ``operation`` receives the transaction's session. If it returns Ok
        the transaction commits. If it returns a BusinessError, everything
        rolls back, including the ``used_at`` flip, so the token stays
        usable, and that error is returned unchanged. Exceptions roll back
        and propagate.

        Args:
            raw: Decoded token from ``decode``.
            account: Account presenting the token.
            operation: Async callable taking the session.

        Returns:
            The operation's result, or INVALID.
        """
        if account is None:
            return INVALID

        now = self._config.clock.now()
        async with self._config.session_factory() as db:
            try:
                marked = await TokenRepository.mark_used(
                    db,
                    self._config.token_model,
                    token_id=raw.id,
                    account_id=account.id,
                    token_type=raw.type,
                    now=now,
                )
                if not marked:
                    await db.rollback()
                    logger.debug("Token consumption rejected")
                    return INVALID

                result = await operation(db)
                if isinstance(result, Ok):
                    await db.commit()
                else:
                    await db.rollback()
                return result
            except Exception:
                await db.rollback()
                raise

    async def is_usable(self, raw: RawToken, account: Any | None) -> bool:
        """Whether ``use`` would currently accept the token.

        Read-only; does not reserve the token.
        """
        if account is None:
            return False
        async with self._config.session_factory() as db:
            return await TokenRepository.is_usable(
                db,
                self._config.token_model,
                token_id=raw.id,
                account_id=account.id,
                token_type=raw.type,
                now=self._config.clock.now(),
            )

    @staticmethod
    def expires_at_for(now: datetime, max_age: int | float | timedelta) -> datetime:
        """Deadline stored for a token issued at ``now`` (whole seconds)."""
        return (now + _max_age_delta(max_age)).replace(microsecond=0)
