"""Repository for account lookups and password digest updates.

The account model and the names of its login / digest attributes come from
AccountsConfig, so every method takes the mapped class explicitly.
"""

from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession


class AccountRepository:
    """Stateless repository for account table operations.

    All methods are static; there is no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, model: type, account_id: Any) -> Any | None:
        """Fetch an account by primary key.

        Args:
            db: Async database session.
            model: Mapped account class.
            account_id: Primary key value.

        Returns:
            Account if found, None otherwise.
        """
        return await db.get(model, account_id)

    @staticmethod
    async def get_by_login(
        db: AsyncSession,
        model: type,
        login_field: str,
        login: str | None,
    ) -> Any | None:
        """Fetch an account by its login attribute (exact match).

        Args:
            db: Async database session.
            model: Mapped account class.
            login_field: Name of the login attribute.
            login: Login value to look up.

        Returns:
            Account if found, None otherwise.
        """
        if not login:
            return None
        stmt = select(model).where(getattr(model, login_field) == login)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def login_exists(
        db: AsyncSession,
        model: type,
        login_field: str,
        login: str,
    ) -> bool:
        """Check whether an account already uses the login."""
        stmt = select(exists().where(getattr(model, login_field) == login))
        result = await db.execute(stmt)
        return bool(result.scalar())

    @staticmethod
    async def add(db: AsyncSession, account: Any) -> Any:
        """Insert a new account instance.

        Args:
            db: Async database session.
            account: Unsaved account with login and digest already set.

        Returns:
            The account with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If the login already exists.
        """
        db.add(account)
        await db.flush()
        await db.refresh(account)
        return account

    @staticmethod
    async def set_password_hash(
        db: AsyncSession,
        model: type,
        account_id: Any,
        password_hash_field: str,
        password_hash: str,
    ) -> Any | None:
        """Store a new password digest.

        Args:
            db: Async database session.
            model: Mapped account class.
            account_id: Primary key of the account.
            password_hash_field: Name of the digest attribute.
            password_hash: New digest produced by the password hasher.

        Returns:
            Updated account, or None if it no longer exists.
        """
        account = await db.get(model, account_id)
        if account is None:
            return None
        setattr(account, password_hash_field, password_hash)
        await db.flush()
        await db.refresh(account)
        return account
