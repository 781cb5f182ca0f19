"""Exception classes for system-level failures.

Domain outcomes (bad credentials, rejected tokens, field validation) are
returned as values from tokenguard.core.results. Exceptions are reserved for
conditions the caller cannot handle per request: misconfiguration and
database failures.
"""


class TokenGuardError(Exception):
    """Base class for tokenguard errors.

    Attributes:
        code: Machine-readable error code (e.g., "CLEANUP_ERROR").
        message: Human-readable error message.
    """

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class ConfigurationError(TokenGuardError):
    """Accounts configuration is inconsistent with the mapped models."""

    def __init__(self, message: str) -> None:
        super().__init__(code="CONFIGURATION_ERROR", message=message)


class CleanupError(TokenGuardError):
    """Raised when a token cleanup sweep fails at the database level."""

    def __init__(self, message: str) -> None:
        super().__init__(code="CLEANUP_ERROR", message=message)
