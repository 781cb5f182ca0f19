"""Account service: registration, sign-in, password change and reset.

Security considerations:
- authenticate: always runs a bcrypt comparison (stand-in digest for unknown
  logins), and returns the same INVALID for unknown login and wrong password
- start_password_reset: always returns a token, whether or not the login
  exists
- reset_password: every token failure collapses to INVALID; only a rejected
  new password is reported, and it leaves the token unspent
"""

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tokenguard.core.config import AccountsConfig
from tokenguard.core.passwords import BLANK_MESSAGE, validate_password
from tokenguard.core.results import (
    INVALID,
    BusinessError,
    FieldErrors,
    Invalid,
    Ok,
    ValidationError,
)
from tokenguard.repositories.account_repository import AccountRepository
from tokenguard.services.token_lifecycle import TokenLifecycle

logger = logging.getLogger(__name__)

PASSWORD_RESET = "password_reset"

TAKEN_MESSAGE = "has already been taken"
INVALID_FORMAT_MESSAGE = "has invalid format"

# RFC 5321 path limit
_MAX_EMAIL_LENGTH = 254


class AccountService:
    """Account operations over the configured account and token tables.

    Args:
        config: Accounts configuration.
        tokens: Token lifecycle manager. Built from ``config`` if omitted.
    """

    def __init__(
        self,
        config: AccountsConfig,
        tokens: TokenLifecycle | None = None,
    ) -> None:
        self._config = config
        self._tokens = tokens or TokenLifecycle(config)

    @property
    def tokens(self) -> TokenLifecycle:
        return self._tokens

    # ===================================================================
    # Registration
    # ===================================================================

    async def create(
        self,
        login: str | None,
        password: str | None,
        *,
        candidate: Any | None = None,
        client_errors: dict[str, list[str]] | None = None,
    ) -> Ok[Any] | ValidationError:
        """Create a new account.

        All rules are checked and reported together: login (non-blank,
        email format when the login field is ``email``, unique), password
        (non-blank, minimum length), plus any ``client_errors`` the caller
        collected for its own fields.

        Args:
            login: Unique login value.
            password: Cleartext password.
            candidate: Unsaved account instance with extra fields already
                set. A fresh instance of the account model is used if None.
            client_errors: Field errors from the caller's own validation.

        Returns:
            Ok with the stored account, or ValidationError.
        """
        config = self._config
        errors = FieldErrors(client_errors)
        self._validate_login(login, errors)
        validate_password(password, config.min_password_length, errors)

        async with config.session_factory() as db:
            if login and await AccountRepository.login_exists(
                db, config.account_model, config.login_field, login
            ):
                errors.add(config.login_field, TAKEN_MESSAGE)

            failure = errors.to_result()
            if failure is not None:
                return failure

            account = candidate if candidate is not None else config.account_model()
            setattr(account, config.login_field, login)
            setattr(account, config.password_hash_field, config.hasher.hash(password))

            try:
                await AccountRepository.add(db, account)
                await db.commit()
            except IntegrityError:
                await db.rollback()
                # Lost a registration race for the same login.
                if await AccountRepository.login_exists(
                    db, config.account_model, config.login_field, login
                ):
                    return ValidationError(errors={config.login_field: [TAKEN_MESSAGE]})
                raise

        logger.info("Account created (id=%s)", account.id)
        return Ok(account)

    def _validate_login(self, login: str | None, errors: FieldErrors) -> None:
        field = self._config.login_field
        if login is None or login.strip() == "":
            errors.add(field, BLANK_MESSAGE)
            return
        if field == "email":
            if len(login) > _MAX_EMAIL_LENGTH:
                errors.add(field, f"should be at most {_MAX_EMAIL_LENGTH} character(s)")
            if "@" not in login:
                errors.add(field, INVALID_FORMAT_MESSAGE)

    # ===================================================================
    # Sign-in and password change
    # ===================================================================

    async def authenticate(self, login: str | None, password: str | None) -> Ok[Any] | Invalid:
        """Check a login/password pair.

        Returns:
            Ok with the account, or INVALID for unknown login and wrong
            password alike.
        """
        config = self._config
        async with config.session_factory() as db:
            account = await AccountRepository.get_by_login(
                db, config.account_model, config.login_field, login
            )

        # Security: verify() falls back to the stand-in digest when there is
        # no account, so both paths cost one bcrypt comparison.
        digest = getattr(account, config.password_hash_field) if account else None
        if config.hasher.verify(digest, password) and account is not None:
            return Ok(account)
        logger.debug("Authentication rejected")
        return INVALID

    async def change_password(
        self,
        account: Any,
        current_password: str | None,
        new_password: str | None,
    ) -> Ok[Any] | Invalid | ValidationError:
        """Change the password after re-checking the current one.

        Returns:
            Ok with the updated account, INVALID if the current password is
            wrong, or ValidationError for a rejected new password.
        """
        config = self._config
        async with config.session_factory() as db:
            stored = await AccountRepository.get_by_id(db, config.account_model, account.id)

        digest = getattr(stored, config.password_hash_field) if stored else None
        if not (config.hasher.verify(digest, current_password) and stored is not None):
            return INVALID
        return await self.set_password(account, new_password)

    async def set_password(self, account: Any, new_password: str | None) -> Ok[Any] | BusinessError:
        """Set a new password without checking the current one.

        Warning: only for flows where the requirements explicitly allow it
        (e.g. administrators). Prefer change_password or the reset flow.

        Returns:
            Ok with the updated account, or ValidationError.
        """
        async with self._config.session_factory() as db:
            result = await self._apply_password(db, account.id, new_password)
            if isinstance(result, Ok):
                await db.commit()
            else:
                await db.rollback()
            return result

    async def _apply_password(
        self, db: AsyncSession, account_id: Any, new_password: str | None
    ) -> Ok[Any] | BusinessError:
        config = self._config
        errors = FieldErrors()
        validate_password(new_password, config.min_password_length, errors)
        failure = errors.to_result()
        if failure is not None:
            return failure

        updated = await AccountRepository.set_password_hash(
            db,
            config.account_model,
            account_id,
            config.password_hash_field,
            config.hasher.hash(new_password),
        )
        if updated is None:
            return INVALID
        return Ok(updated)

    # ===================================================================
    # Password reset
    # ===================================================================

    async def start_password_reset(self, login: str | None, max_age: int | float | timedelta) -> str:
        """Issue a password reset token for a login.

        Always returns a token. For an unknown login the token is signed
        but never stored, so it can't be used.

        Args:
            login: Login of the account.
            max_age: Token lifetime in seconds or as a timedelta.

        Returns:
            Encoded token to deliver to the account owner.
        """
        account = await self._get_by_login(login)
        return await self._tokens.create(account, PASSWORD_RESET, max_age)

    async def reset_password(
        self,
        login: str | None,
        encoded_token: str | None,
        new_password: str | None,
    ) -> Ok[Any] | Invalid | ValidationError:
        """Reset the password using a token from start_password_reset.

        The token must have been issued for this login's account, be a
        password reset token, be unexpired and unused. The password update
        and the token consumption commit together; a rejected new password
        rolls both back.

        Returns:
            Ok with the updated account, INVALID for any token or login
            problem, or ValidationError for a rejected new password.
        """
        account = await self._get_by_login(login)
        decoded = self._tokens.decode(encoded_token, account)
        if account is None or not isinstance(decoded, Ok):
            return INVALID
        raw = decoded.value
        if raw.type != PASSWORD_RESET:
            return INVALID

        async def update_password(db: AsyncSession) -> Ok[Any] | BusinessError:
            return await self._apply_password(db, account.id, new_password)

        result = await self._tokens.use(raw, account, update_password)
        if isinstance(result, Ok):
            logger.info("Password reset completed (id=%s)", account.id)
        return result

    async def get_account_for_token(
        self,
        login: str | None,
        encoded_token: str | None,
        token_type: str,
    ) -> Any | None:
        """Return the account if the token is currently usable.

        Does not consume the token. Useful to validate a reset link before
        showing the new-password form.

        Returns:
            Account, or None if the login or token is not valid.
        """
        account = await self._get_by_login(login)
        decoded = self._tokens.decode(encoded_token, account)
        if account is None or not isinstance(decoded, Ok):
            return None
        if decoded.value.type != token_type:
            return None
        if not await self._tokens.is_usable(decoded.value, account):
            return None
        return account

    async def _get_by_login(self, login: str | None) -> Any | None:
        config = self._config
        async with config.session_factory() as db:
            return await AccountRepository.get_by_login(
                db, config.account_model, config.login_field, login
            )
