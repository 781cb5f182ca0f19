"""Password hashing with bcrypt.

Pipeline:
- validate_password: length rules, collected into FieldErrors
- BcryptPasswordHasher.hash / verify: adaptive hashing of accepted passwords
- BcryptPasswordHasher.dummy_verify: timing-safe stand-in for unknown logins
"""

import bcrypt

from tokenguard.core.results import FieldErrors

# bcrypt cost factor for password hashing
DEFAULT_BCRYPT_ROUNDS = 12

# Pre-computed bcrypt hash (cost 12) for timing-safe comparison on
# account-not-found. Security: prevents login enumeration via response time
# differences. Pre-generated to avoid ~300ms bcrypt work at import time.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"

# bcrypt only reads the first 72 bytes of its input; longer passwords are
# rejected rather than truncated
MAX_PASSWORD_BYTES = 72

BLANK_MESSAGE = "can't be blank"


def _encode(password: str) -> bytes:
    return password.encode()


class BcryptPasswordHasher:
    """Slow adaptive password hasher.

    Args:
        rounds: bcrypt cost factor (4-31). Lower values are only suitable
            for tests.
    """

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            msg = f"bcrypt rounds must be between 4 and 31, got {rounds}"
            raise ValueError(msg)
        self.rounds = rounds
        # The stand-in digest must cost the same as real digests, otherwise
        # unknown logins would answer faster.
        if rounds == DEFAULT_BCRYPT_ROUNDS:
            self._dummy_hash = DUMMY_HASH
        else:
            self._dummy_hash = bcrypt.hashpw(
                b"tokenguard-dummy-password", bcrypt.gensalt(rounds=rounds)
            )

    def hash(self, password: str) -> str:
        """Hash a cleartext password.

        Returns:
            bcrypt digest as a str (``$2b$...``).

        Raises:
            ValueError: If the password is longer than MAX_PASSWORD_BYTES.
        """
        encoded = _encode(password)
        if len(encoded) > MAX_PASSWORD_BYTES:
            msg = f"password must be at most {MAX_PASSWORD_BYTES} bytes"
            raise ValueError(msg)
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode()

    def verify(self, digest: str | bytes | None, password: str | None) -> bool:
        """Check a password against a stored digest.

        A missing digest or password still performs a full bcrypt comparison
        against the stand-in digest and returns False.
        """
        if not digest or password is None:
            return self.dummy_verify(password or "")
        if isinstance(digest, str):
            digest = digest.encode()
        encoded = _encode(password)
        if len(encoded) > MAX_PASSWORD_BYTES:
            # No accepted password is this long.
            return self.dummy_verify(password)
        try:
            return bcrypt.checkpw(encoded, digest)
        except ValueError:
            # Malformed stored digest: do the same amount of work, then fail.
            return self.dummy_verify(password)

    def dummy_verify(self, password: str) -> bool:
        """Spend one bcrypt comparison and return False."""
        bcrypt.checkpw(_encode(password)[:MAX_PASSWORD_BYTES], self._dummy_hash)
        return False


def validate_password(
    password: str | None,
    min_length: int,
    errors: FieldErrors,
    *,
    field: str = "password",
) -> None:
    """Apply the password rules, recording failures in ``errors``.

    Rules: non-blank, then at least ``min_length`` characters and at most
    MAX_PASSWORD_BYTES bytes once UTF-8 encoded. A blank password only
    reports the blank rule.
    """
    if password is None or password == "":
        errors.add(field, BLANK_MESSAGE)
        return
    if len(password) < min_length:
        errors.add(field, f"should be at least {min_length} character(s)")
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        errors.add(field, f"should be at most {MAX_PASSWORD_BYTES} byte(s)")
