"""Tests for HMAC-signed bearer tokens."""

import pytest

from lab_orders.domain.access_policy import Identity
from lab_orders.domain.errors import Unauthenticated
from lab_orders.infrastructure.token_identity import HmacTokenIdentityProvider

SECRET = "test-secret-with-enough-entropy-0123456789"


class _Clock:
    """Settable clock for expiry tests."""

    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _provider(clock: _Clock | None = None, ttl: int = 3600) -> HmacTokenIdentityProvider:
    return HmacTokenIdentityProvider(SECRET, ttl, clock=clock or _Clock(1_700_000_000))


def test_issued_token_authenticates() -> None:
    provider = _provider()
    token = provider.issue("user-a", "ATTENDANT")

    identity = provider.authenticate(f"Bearer {token}")

    assert identity == Identity(user_id="user-a", role="ATTENDANT")


def test_token_without_role_yields_identity_without_role() -> None:
    provider = _provider()
    identity = provider.authenticate(f"Bearer {provider.issue('user-a')}")
    assert identity.role is None


@pytest.mark.parametrize("header", [None, ""])
def test_missing_header(header: str | None) -> None:
    with pytest.raises(Unauthenticated) as exc_info:
        _provider().authenticate(header)

    assert exc_info.value.message == "No token provided"
    assert exc_info.value.status_code == 401


def test_wrong_scheme() -> None:
    provider = _provider()
    with pytest.raises(Unauthenticated):
        provider.authenticate(f"Token {provider.issue('user-a', 'ATTENDANT')}")


@pytest.mark.parametrize("token", ["garbage", ".", "abc.", ".abc", "a.b.c"])
def test_malformed_tokens(token: str) -> None:
    with pytest.raises(Unauthenticated):
        _provider().authenticate(f"Bearer {token}")


def test_tampered_payload_is_rejected() -> None:
    provider = _provider()
    good = provider.issue("user-a", "CUSTOMER")
    forged_payload = provider.issue("user-a", "SUPER_ADMIN").split(".")[0]
    signature = good.split(".")[1]

    with pytest.raises(Unauthenticated):
        provider.authenticate(f"Bearer {forged_payload}.{signature}")


def test_token_from_another_secret_is_rejected() -> None:
    other = HmacTokenIdentityProvider("another-secret", 3600)

    with pytest.raises(Unauthenticated):
        _provider().authenticate(f"Bearer {other.issue('user-a', 'ATTENDANT')}")


def test_expired_token_is_rejected() -> None:
    clock = _Clock(1_700_000_000)
    provider = _provider(clock, ttl=60)
    token = provider.issue("user-a", "ATTENDANT")

    clock.now += 59
    assert provider.authenticate(f"Bearer {token}").user_id == "user-a"

    clock.now += 1
    with pytest.raises(Unauthenticated):
        provider.authenticate(f"Bearer {token}")


def test_empty_secret_is_refused() -> None:
    with pytest.raises(ValueError):
        HmacTokenIdentityProvider("", 3600)
