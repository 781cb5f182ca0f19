"""Scoped message signing on top of PyJWT.

A message is signed with a key derived from the application secret and a
scope string (the "salt"), so a token signed for one scope never verifies
under another. Signature age is measured from the ``iat`` claim and only
enforced when the caller passes ``max_age``.
"""

import hashlib
import hmac
import logging
from datetime import timedelta
from typing import Any

import jwt

from tokenguard.core.clock import Clock, SystemClock
from tokenguard.core.results import Ok, SignatureFailure, SignatureFailureReason

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"


class MessageSigner:
    """Sign and verify JSON-serializable payloads.

    Args:
        secret: Application secret key material.
        clock: Time source for ``iat`` and age checks.
    """

    def __init__(self, secret: str | bytes, *, clock: Clock | None = None) -> None:
        if isinstance(secret, str):
            secret = secret.encode()
        if not secret:
            msg = "Signing secret must not be empty"
            raise ValueError(msg)
        self._secret = secret
        self._clock = clock or SystemClock()

    def _scope_key(self, scope: str) -> bytes:
        return hmac.new(self._secret, scope.encode(), hashlib.sha256).digest()

    def sign(self, scope: str, payload: Any) -> str:
        """Sign a payload for the given scope.

        Returns:
            Compact URL-safe token string.
        """
        claims = {
            "data": payload,
            "iat": int(self._clock.now().timestamp()),
        }
        return jwt.encode(claims, self._scope_key(scope), algorithm=_ALGORITHM)

    def verify(
        self,
        scope: str,
        token: str | None,
        max_age: timedelta | float | None = None,
    ) -> Ok[Any] | SignatureFailure:
        """Verify a token signed for ``scope``.

        Args:
            scope: Scope the token is expected to be signed for.
            token: Token string from the client.
            max_age: Maximum signature age (timedelta or seconds). None
                disables the age check.

        Returns:
            Ok with the original payload, or SignatureFailure.
        """
        if not token:
            return SignatureFailure(SignatureFailureReason.MISSING)

        try:
            claims = jwt.decode(
                token,
                self._scope_key(scope),
                algorithms=[_ALGORITHM],
                # iat is checked below against the injected clock
                options={"require": ["iat"], "verify_iat": False},
            )
        except jwt.InvalidTokenError:
            logger.debug("Rejected signed token")
            return SignatureFailure(SignatureFailureReason.INVALID)

        issued_at = claims.get("iat")
        if not isinstance(issued_at, int) or "data" not in claims:
            return SignatureFailure(SignatureFailureReason.INVALID)

        if max_age is not None:
            if isinstance(max_age, timedelta):
                max_age = max_age.total_seconds()
            age = self._clock.now().timestamp() - issued_at
            if age > max_age:
                return SignatureFailure(SignatureFailureReason.EXPIRED)

        return Ok(claims["data"])
