"""Signed bearer tokens for the HTTP surface.

A token is ``<payload>.<signature>``, both base64url without padding. The
payload is JSON ``{"sub", "role", "exp"}`` and the signature is
HMAC-SHA256 of the encoded payload under the shared secret.
"""

import base64
import hashlib
import hmac
import json
import time
from collections.abc import Callable

from loguru import logger

from lab_orders.domain.access_policy import Identity
from lab_orders.domain.errors import Unauthenticated
from lab_orders.shared.decorators import log_errors

BEARER_PREFIX = "Bearer "


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class HmacTokenIdentityProvider:
    """Issues and verifies HMAC-signed bearer tokens."""

    def __init__(
        self,
        secret: str,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._key = secret.encode("utf-8")
        self._ttl = ttl_seconds
        self._clock = clock

    def _sign(self, payload: str) -> str:
        digest = hmac.new(self._key, payload.encode("utf-8"), hashlib.sha256)
        return _b64encode(digest.digest())

    def issue(self, user_id: str, role: str | None = None) -> str:
        claims = {"sub": user_id, "role": role, "exp": int(self._clock()) + self._ttl}
        payload = _b64encode(json.dumps(claims, separators=(",", ":")).encode())
        return f"{payload}.{self._sign(payload)}"

    @log_errors
    def authenticate(self, authorization: str | None) -> Identity:
        """Resolve an ``Authorization: Bearer <token>`` header.

        Raises:
            Unauthenticated: header missing, malformed, forged or expired.
        """
        if not authorization:
            raise Unauthenticated("No token provided")
        if not authorization.startswith(BEARER_PREFIX):
            raise Unauthenticated("Invalid authorization format. Use: Bearer <token>")

        token = authorization[len(BEARER_PREFIX) :].strip()
        payload, _, signature = token.partition(".")
        if not payload or not signature:
            raise Unauthenticated("Invalid or expired token")

        if not hmac.compare_digest(self._sign(payload), signature):
            logger.warning("[Identity] Token signature mismatch")
            raise Unauthenticated("Invalid or expired token")

        try:
            claims = json.loads(_b64decode(payload))
        except ValueError:
            raise Unauthenticated("Invalid token payload") from None

        if not isinstance(claims, dict) or not claims.get("sub"):
            raise Unauthenticated("Invalid token payload")
        if not isinstance(claims.get("exp"), int) or claims["exp"] <= self._clock():
            raise Unauthenticated("Invalid or expired token")

        return Identity(user_id=str(claims["sub"]), role=claims.get("role"))
