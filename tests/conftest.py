"""Shared fixtures for the secrets authorization tests."""

import pytest

import authorization
import nonces
from principal import Principal
from settings import AllowedSecretsConfig, EngineSettings

NOW = 1_800_000_000.0


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def allowed_secrets():
    return AllowedSecretsConfig.from_mapping({
        "oauth": ["oauth-steam-api-key", "oauth-discord-client-secret"],
        "betterauth": ["betterauth-jwt-secret"],
        "infrastructure": ["infra-db-password", "infra-redis-password"],
    })


@pytest.fixture
def tracker():
    return nonces.InMemoryNonceTracker()


@pytest.fixture
def service(allowed_secrets, tracker, clock):
    return authorization.create_service(
        settings=EngineSettings(break_glass_max_ttl_seconds=3600),
        allowed_secrets=allowed_secrets,
        tracker=tracker,
        clock=clock,
    )


def make_user(user_id, *permissions, principal_type="user"):
    claims = [("sub", user_id), ("principal_type", principal_type)]
    claims.extend(("permission", p) for p in permissions)
    return Principal.from_claims(claims)


def make_break_glass(user_id="emergency-user", exp_offset=30 * 60, nonce="nonce-1",
                     reason="Critical production incident"):
    claims = {"sub": user_id, "break_glass": "true"}
    if reason is not None:
        claims["break_glass_reason"] = reason
    if exp_offset is not None:
        claims["break_glass_exp"] = str(int(NOW + exp_offset))
    if nonce is not None:
        claims["break_glass_nonce"] = nonce
    return Principal.from_claims(claims)
