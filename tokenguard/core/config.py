"""Configuration for accounts and one-time tokens.

Two layers:
- Settings: environment-driven values (pydantic-settings, .env support).
- AccountsConfig: the explicit, immutable value every service receives.
  Nothing in tokenguard reads configuration from module-level state.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tokenguard.core.clock import Clock, SystemClock
from tokenguard.core.errors import ConfigurationError
from tokenguard.core.passwords import DEFAULT_BCRYPT_ROUNDS, BcryptPasswordHasher

# Known insecure default password that must not be used in production
_INSECURE_DEFAULT_PASSWORD = "tokenguard_dev_password"  # nosec B105

# Minimum length for SECRET_KEY in production (256 bits = 32 bytes)
_MIN_SECRET_KEY_LENGTH = 32

DEFAULT_MIN_PASSWORD_LENGTH = 6


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "tokenguard"
    database_user: str = "tokenguard_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # Full SQLAlchemy URL; overrides the individual fields when set
    database_dsn: str = ""

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Accounts
    secret_key: SecretStr = SecretStr("")
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS

    # Token cleanup
    token_retention_seconds: int = 0
    token_cleanup_interval_seconds: int = 3600

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        if self.database_dsn:
            return self.database_dsn
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        if self.database_dsn:
            return self.database_dsn.replace("+asyncpg", "").replace("+aiosqlite", "")
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_security(self) -> "Settings":
        """Validate value ranges and production security requirements.

        Checks:
        - min_password_length must be at least 1 (all environments)
        - bcrypt_rounds must be within bcrypt's 4..31 (all environments)
        - cleanup interval must be positive, retention non-negative
        - Database password must not be the default in production
        - SECRET_KEY must be set and >= 32 chars in production
        """
        if self.min_password_length < 1:
            msg = f"MIN_PASSWORD_LENGTH must be at least 1. Got: {self.min_password_length}"
            raise ValueError(msg)
        if not 4 <= self.bcrypt_rounds <= 31:
            msg = f"BCRYPT_ROUNDS must be between 4 and 31. Got: {self.bcrypt_rounds}"
            raise ValueError(msg)
        if self.token_cleanup_interval_seconds <= 0:
            msg = (
                "TOKEN_CLEANUP_INTERVAL_SECONDS must be positive. "
                f"Got: {self.token_cleanup_interval_seconds}"
            )
            raise ValueError(msg)
        if self.token_retention_seconds < 0:
            msg = (
                "TOKEN_RETENTION_SECONDS cannot be negative. "
                f"Got: {self.token_retention_seconds}"
            )
            raise ValueError(msg)

        if self.environment == "production":
            if not self.database_dsn and self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.secret_key.get_secret_value()
            if len(secret_value) < _MIN_SECRET_KEY_LENGTH:
                msg = (
                    f"SECRET_KEY must be at least {_MIN_SECRET_KEY_LENGTH} "
                    'characters in production. Generate with: python -c "import '
                    'secrets; print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

        return self


@dataclass(frozen=True)
class AccountsConfig:
    """Explicit configuration passed to every accounts/token service.

    Attributes:
        session_factory: Async session factory for the relational store.
        secret_key: Secret used to sign encoded tokens.
        account_model: Mapped account class. Defaults to tokenguard's Account.
        token_model: Mapped token class. Defaults to tokenguard's Token.
        login_field: Account attribute holding the unique login.
        password_hash_field: Account attribute holding the password digest.
        min_password_length: Minimum accepted password length.
        hasher: Password hasher.
        clock: Time source for expiry checks.
        token_retention: Grace window before used/expired tokens are deleted.
        cleanup_interval: Time between automatic cleanup sweeps.
    """

    session_factory: async_sessionmaker[AsyncSession]
    secret_key: str
    account_model: Any = None
    token_model: Any = None
    login_field: str = "email"
    password_hash_field: str = "password_hash"
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH
    hasher: BcryptPasswordHasher = field(default_factory=BcryptPasswordHasher)
    clock: Clock = field(default_factory=SystemClock)
    token_retention: timedelta = timedelta(0)
    cleanup_interval: timedelta = timedelta(hours=1)

    def __post_init__(self) -> None:
        # Local import: models import core, so core cannot import models at
        # module load time.
        from tokenguard.models import Account, Token

        if self.account_model is None:
            object.__setattr__(self, "account_model", Account)
        if self.token_model is None:
            object.__setattr__(self, "token_model", Token)

        if not self.secret_key:
            raise ConfigurationError("secret_key must not be empty")
        if self.min_password_length < 1:
            raise ConfigurationError("min_password_length must be at least 1")

        account_columns = inspect(self.account_model).columns.keys()
        for attr in (self.login_field, self.password_hash_field):
            if attr not in account_columns:
                msg = f"{self.account_model.__name__} has no column '{attr}'"
                raise ConfigurationError(msg)

        token_columns = set(inspect(self.token_model).columns.keys())
        missing = {"id", "hash", "type", "account_id", "expires_at", "used_at"}
        missing -= token_columns
        if missing:
            msg = (
                f"{self.token_model.__name__} is missing token columns: "
                f"{', '.join(sorted(missing))}"
            )
            raise ConfigurationError(msg)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        **overrides: Any,
    ) -> "AccountsConfig":
        """Build a config from environment settings.

        Args:
            settings: Loaded Settings.
            session_factory: Async session factory.
            **overrides: Any AccountsConfig field (models, field names, clock).

        Returns:
            AccountsConfig.
        """
        values: dict[str, Any] = {
            "secret_key": settings.secret_key.get_secret_value(),
            "min_password_length": settings.min_password_length,
            "hasher": BcryptPasswordHasher(rounds=settings.bcrypt_rounds),
            "token_retention": timedelta(seconds=settings.token_retention_seconds),
            "cleanup_interval": timedelta(
                seconds=settings.token_cleanup_interval_seconds
            ),
        }
        values.update(overrides)
        return cls(session_factory=session_factory, **values)
