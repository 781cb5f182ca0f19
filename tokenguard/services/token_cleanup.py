"""Token cleanup scheduler.

Deletes token rows that can never be used again: consumed tokens and
expired tokens, once they are older than the retention window. Runs as an
asyncio background task (automatic mode) or only when ``tick()`` is called
(manual mode, for tests and external schedulers).

Cleanup needs no coordination with token consumption: consumption requires
``used_at IS NULL`` and ``expires_at >= now``. A row is deleted once
``used_at`` or ``expires_at`` is at or before ``now - retention``; with zero
retention the cutoff is ``now`` itself, so the comparison is strict.
"""

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tokenguard.core.clock import Clock, SystemClock
from tokenguard.core.config import AccountsConfig
from tokenguard.core.errors import CleanupError
from tokenguard.repositories.token_repository import TokenRepository

logger = structlog.get_logger()

CleanupMode = Literal["automatic", "manual"]

DEFAULT_INTERVAL = timedelta(hours=1)


@dataclass(frozen=True)
class TokenCleanupResult:
    """Result of one cleanup sweep.

    Attributes:
        deleted_used: Consumed tokens deleted.
        deleted_expired: Expired tokens deleted.
    """

    deleted_used: int
    deleted_expired: int

    @property
    def total(self) -> int:
        return self.deleted_used + self.deleted_expired


class TokenCleanup:
    """Periodically prunes used and expired token rows.

    Lifecycle:
    - start() in automatic mode creates an asyncio task that sweeps every
      ``interval``; in manual mode it only marks the scheduler started.
    - stop() cancels the task and waits for it to finish.
    - tick() runs a single sweep, in either mode.

    Args:
        session_factory: Async session factory for DB access.
        token_model: Mapped token class.
        clock: Time source.
        interval: Time between automatic sweeps.
        retention: Grace window before used/expired rows are deleted.
        mode: ``"automatic"`` or ``"manual"``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        token_model: Any,
        *,
        clock: Clock | None = None,
        interval: timedelta = DEFAULT_INTERVAL,
        retention: timedelta = timedelta(0),
        mode: CleanupMode = "automatic",
    ) -> None:
        if interval <= timedelta(0):
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)
        if retention < timedelta(0):
            msg = f"retention cannot be negative, got {retention}"
            raise ValueError(msg)
        if mode not in ("automatic", "manual"):
            msg = f"mode must be 'automatic' or 'manual', got {mode!r}"
            raise ValueError(msg)

        self._session_factory = session_factory
        self._token_model = token_model
        self._clock = clock or SystemClock()
        self._interval = interval
        self._retention = retention
        self._mode = mode
        self._task: asyncio.Task[None] | None = None
        self._started = False
        self._last_run_at: datetime | None = None
        self._last_result: TokenCleanupResult | None = None

    @classmethod
    def from_config(
        cls, config: AccountsConfig, *, mode: CleanupMode = "automatic"
    ) -> "TokenCleanup":
        """Build a scheduler from an AccountsConfig."""
        return cls(
            config.session_factory,
            config.token_model,
            clock=config.clock,
            interval=config.cleanup_interval,
            retention=config.token_retention,
            mode=mode,
        )

    @property
    def mode(self) -> CleanupMode:
        return self._mode

    @property
    def is_running(self) -> bool:
        """Whether the scheduler has been started and not stopped."""
        if self._mode == "manual":
            return self._started
        return self._started and self._task is not None and not self._task.done()

    @property
    def last_run_at(self) -> datetime | None:
        """Clock time of the most recent completed sweep."""
        return self._last_run_at

    @property
    def last_result(self) -> TokenCleanupResult | None:
        return self._last_result

    def start(self) -> None:
        """Start the scheduler.

        In automatic mode this must be called with a running event loop.
        No-op if already running.
        """
        if self.is_running:
            logger.warning("token_cleanup_already_running")
            return

        self._started = True
        if self._mode == "automatic":
            self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "token_cleanup_started",
            mode=self._mode,
            interval_seconds=self._interval.total_seconds(),
            retention_seconds=self._retention.total_seconds(),
        )

    async def stop(self) -> None:
        """Stop the scheduler, cancelling the background task if any."""
        self._started = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("token_cleanup_stopped")

    async def tick(self) -> TokenCleanupResult:
        """Run one sweep.

        Returns:
            TokenCleanupResult with deletion counts.

        Raises:
            CleanupError: If the database operation fails.
        """
        now = self._clock.now()
        cutoff = now - self._retention
        inclusive = self._retention > timedelta(0)
        try:
            async with self._session_factory() as db:
                deleted_used = await TokenRepository.delete_used_before(
                    db, self._token_model, cutoff, inclusive=inclusive
                )
                deleted_expired = await TokenRepository.delete_expired_before(
                    db, self._token_model, cutoff, inclusive=inclusive
                )
                await db.commit()
        except SQLAlchemyError as exc:
            logger.error("token_cleanup_failed", error=str(exc))
            raise CleanupError("Token cleanup failed") from exc

        result = TokenCleanupResult(
            deleted_used=deleted_used,
            deleted_expired=deleted_expired,
        )
        self._last_run_at = now
        self._last_result = result
        return result

    async def _run_loop(self) -> None:
        """Background loop: tick, sleep, repeat."""
        try:
            while self._started:
                try:
                    result = await self.tick()
                    if result.total:
                        logger.info(
                            "token_cleanup_swept",
                            deleted_used=result.deleted_used,
                            deleted_expired=result.deleted_expired,
                        )
                except Exception:  # noqa: BLE001
                    logger.exception("token_cleanup_loop_error")
                await asyncio.sleep(self._interval.total_seconds())
        except asyncio.CancelledError:
            logger.debug("token_cleanup_loop_cancelled")
            raise
