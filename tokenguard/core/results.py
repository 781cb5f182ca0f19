"""Tagged result values returned by account and token operations.

Every public operation returns either ``Ok`` or an instance of a
``BusinessError`` subclass. Callers branch with ``isinstance`` (or
``match``); no result carries a marker field that has to be probed.

    result = await accounts.authenticate(login, password)
    match result:
        case Ok(value=account): ...
        case Invalid(): ...

Unexpected failures (database errors, misconfiguration) are raised as
exceptions instead; see tokenguard.core.errors.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome.

    Attributes:
        value: The operation's payload.
    """

    value: T


@dataclass(frozen=True)
class BusinessError:
    """Base class for expected, per-call failures returned as values."""


@dataclass(frozen=True)
class Invalid(BusinessError):
    """Opaque credential or token failure.

    Security: deliberately carries no detail. Unknown login, wrong password,
    tampered or wrongly scoped token, wrong token type, expired token and
    already used token all produce the same value.
    """


INVALID = Invalid()


@dataclass(frozen=True)
class ValidationError(BusinessError):
    """Aggregated field validation failure.

    Attributes:
        errors: Field name to list of messages, in the order the rules ran.
    """

    errors: dict[str, list[str]] = field(default_factory=dict)

    def messages_for(self, field_name: str) -> list[str]:
        """Return the messages recorded for a field (empty if none)."""
        return self.errors.get(field_name, [])


@dataclass(frozen=True)
class OperationError(BusinessError):
    """Failure reported by a guarded operation passed to ``TokenLifecycle.use``.

    Attributes:
        reason: Caller-defined failure detail, passed through unchanged.
    """

    reason: Any = None


class SignatureFailureReason(str, Enum):
    """Why a signed message could not be verified.

    Values:
        MISSING: No token was supplied.
        INVALID: Malformed token, bad signature or wrong scope.
        EXPIRED: Signature is valid but older than the allowed max age.
    """

    MISSING = "missing"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SignatureFailure(BusinessError):
    """Message signer verification failure.

    Attributes:
        reason: Failure category.
    """

    reason: SignatureFailureReason


class FieldErrors:
    """Mutable builder used while validating several fields at once.

    Rules append messages; ``to_result`` returns a ``ValidationError`` only
    when at least one rule failed.
    """

    def __init__(self, initial: dict[str, list[str]] | None = None) -> None:
        self._errors: dict[str, list[str]] = {}
        for field_name, messages in (initial or {}).items():
            for message in messages:
                self.add(field_name, message)

    def add(self, field_name: str, message: str) -> None:
        messages = self._errors.setdefault(field_name, [])
        if message not in messages:
            messages.append(message)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def to_result(self) -> ValidationError | None:
        if not self._errors:
            return None
        return ValidationError(
            errors={name: list(messages) for name, messages in self._errors.items()}
        )
