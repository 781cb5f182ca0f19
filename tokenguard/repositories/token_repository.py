"""Repository for one-time token rows.

Single-use tokens are stored as hashed ids with a type, an owning account
and an absolute expiry. Consumption is a single conditional UPDATE so the
database decides which of several concurrent callers wins.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession


class TokenRepository:
    """Stateless repository for token table operations.

    All methods are static; there is no instance state. The token model is
    passed explicitly because projects may map their own token table.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        model: type,
        *,
        token_id: uuid.UUID,
        token_hash: str,
        token_type: str,
        account_id: Any,
        expires_at: datetime,
    ) -> Any:
        """Store a new token row.

        Args:
            db: Async database session.
            model: Mapped token class.
            token_id: Random token id.
            token_hash: SHA-256 hex digest of the id.
            token_type: Purpose discriminator.
            account_id: Owning account primary key.
            expires_at: Absolute deadline.

        Returns:
            Created token row.
        """
        token = model(
            id=token_id,
            hash=token_hash,
            type=token_type,
            account_id=account_id,
            expires_at=expires_at,
        )
        db.add(token)
        await db.flush()
        return token

    @staticmethod
    def _usable(
        model: type,
        *,
        token_id: uuid.UUID,
        account_id: Any,
        token_type: str,
        now: datetime,
    ) -> Any:
        return and_(
            model.id == token_id,
            model.account_id == account_id,
            model.type == token_type,
            model.used_at.is_(None),
            model.expires_at >= now,
        )

    @staticmethod
    async def mark_used(
        db: AsyncSession,
        model: type,
        *,
        token_id: uuid.UUID,
        account_id: Any,
        token_type: str,
        now: datetime,
    ) -> bool:
        """Atomically flip ``used_at`` from NULL to ``now``.

        The row is only updated if it belongs to the account, has the
        expected type, is unused and has not expired. Concurrent callers
        racing for the same row see at most one affected row in total.

        Args:
            db: Async database session (inside the caller's transaction).
            model: Mapped token class.
            token_id: Token id from the decoded payload.
            account_id: Primary key of the account presenting the token.
            token_type: Expected purpose.
            now: Current time.

        Returns:
            True if exactly one row was updated.
        """
        stmt = (
            update(model)
            .where(
                TokenRepository._usable(
                    model,
                    token_id=token_id,
                    account_id=account_id,
                    token_type=token_type,
                    now=now,
                )
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count == 1

    @staticmethod
    async def is_usable(
        db: AsyncSession,
        model: type,
        *,
        token_id: uuid.UUID,
        account_id: Any,
        token_type: str,
        now: datetime,
    ) -> bool:
        """Check the ``mark_used`` predicate without changing the row."""
        stmt = select(model.id).where(
            TokenRepository._usable(
                model,
                token_id=token_id,
                account_id=account_id,
                token_type=token_type,
                now=now,
            )
        )
        result = await db.execute(stmt)
        return result.first() is not None

    @staticmethod
    async def delete_used_before(
        db: AsyncSession, model: type, cutoff: datetime, *, inclusive: bool = False
    ) -> int:
        """Delete tokens consumed before ``cutoff`` (or at it, if ``inclusive``).

        Returns:
            Number of deleted rows.
        """
        stmt = (
            delete(model)
            .where(
                model.used_at.is_not(None),
                model.used_at <= cutoff if inclusive else model.used_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def delete_expired_before(
        db: AsyncSession, model: type, cutoff: datetime, *, inclusive: bool = False
    ) -> int:
        """Delete tokens whose deadline passed before ``cutoff``.

        Keep ``inclusive`` off when ``cutoff`` is the current time: a token
        expiring exactly now is still usable and must not be deleted.
        ``inclusive`` also deletes rows expiring at ``cutoff``.

        Returns:
            Number of deleted rows.
        """
        stmt = (
            delete(model)
            .where(model.expires_at <= cutoff if inclusive else model.expires_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
