"""Tests for the break-glass evaluator and claim minting."""

from unittest import mock

import pytest

import breakglass
import nonces
from breakglass import BreakGlassEvaluator, BreakGlassGrant
from conftest import NOW
from decisions import DenialCode


@pytest.fixture
def evaluator(tracker, clock):
    return BreakGlassEvaluator(tracker, max_ttl_seconds=3600, clock=clock)


def grant(exp_offset=1800, nonce="n-1", reason="incident"):
    expires_at = None if exp_offset is None else str(int(NOW + exp_offset))
    return BreakGlassGrant(reason=reason, expires_at=expires_at, nonce=nonce)


class TestEvaluate:

    def test_not_applicable_without_grant(self, evaluator):
        assert evaluator.evaluate(None, "any-secret") is None

    def test_valid_grant(self, evaluator):
        result = evaluator.evaluate(grant(), "any-secret", "ops-1", "service")

        assert result.is_authorized
        assert result.is_break_glass
        assert result.user_id == "ops-1"
        assert result.is_service_account

    @pytest.mark.parametrize("expires_at", [None, "", "   "])
    def test_missing_expiration(self, evaluator, expires_at):
        result = evaluator.evaluate(BreakGlassGrant(expires_at=expires_at, nonce="n"), "s")

        assert result.denial_code is DenialCode.BREAK_GLASS_MISSING_EXPIRATION
        assert "expiration" in result.denial_reason

    @pytest.mark.parametrize("expires_at", ["soon", "1.8e9", "12:00"])
    def test_unparseable_expiration_treated_as_expired(self, evaluator, expires_at):
        result = evaluator.evaluate(BreakGlassGrant(expires_at=expires_at, nonce="n"), "s")

        assert result.denial_code is DenialCode.BREAK_GLASS_EXPIRED
        assert "expired" in result.denial_reason

    @pytest.mark.parametrize("offset", [-300, 0])
    def test_expired(self, evaluator, offset):
        result = evaluator.evaluate(grant(exp_offset=offset), "s")

        assert result.denial_code is DenialCode.BREAK_GLASS_EXPIRED

    def test_thirty_minutes_accepted_two_hours_rejected(self, evaluator):
        assert evaluator.evaluate(grant(exp_offset=30 * 60, nonce="a"), "s").is_authorized

        result = evaluator.evaluate(grant(exp_offset=2 * 3600, nonce="b"), "s")
        assert result.denial_code is DenialCode.BREAK_GLASS_EXCEEDS_MAXIMUM_TTL
        assert "exceeds maximum" in result.denial_reason

    def test_ttl_boundary_is_inclusive(self, evaluator):
        assert evaluator.evaluate(grant(exp_offset=3600), "s").is_authorized

    def test_max_ttl_is_configurable(self, tracker, clock):
        strict = BreakGlassEvaluator(tracker, max_ttl_seconds=600, clock=clock)

        result = strict.evaluate(grant(exp_offset=1800), "s")

        assert result.denial_code is DenialCode.BREAK_GLASS_EXCEEDS_MAXIMUM_TTL

    def test_over_long_grant_does_not_consume_nonce(self, evaluator, tracker):
        evaluator.evaluate(grant(exp_offset=2 * 3600, nonce="keep"), "s")

        assert len(tracker) == 0

    @pytest.mark.parametrize("nonce", [None, "", "  "])
    def test_missing_nonce(self, evaluator, nonce):
        result = evaluator.evaluate(grant(nonce=nonce), "s")

        assert result.denial_code is DenialCode.BREAK_GLASS_MISSING_NONCE

    def test_replay(self, evaluator):
        assert evaluator.evaluate(grant(nonce="same"), "a").is_authorized

        result = evaluator.evaluate(grant(nonce="same"), "b")

        assert result.denial_code is DenialCode.BREAK_GLASS_NONCE_REPLAYED
        assert "already been used" in result.denial_reason

    def test_tracker_failure_fails_closed(self, clock):
        tracker = mock.Mock(spec=nonces.NonceTracker)
        tracker.try_consume.side_effect = nonces.NonceTrackerError("down")
        evaluator = BreakGlassEvaluator(tracker, clock=clock)

        result = evaluator.evaluate(grant(), "s")

        assert not result.is_authorized
        assert result.denial_code is DenialCode.BREAK_GLASS_NONCE_UNVERIFIABLE

    def test_tracker_receives_remaining_lifetime(self, clock):
        tracker = mock.Mock(spec=nonces.NonceTracker)
        tracker.try_consume.return_value = True
        evaluator = BreakGlassEvaluator(tracker, clock=clock)

        evaluator.evaluate(grant(exp_offset=900, nonce="x"), "s")

        tracker.try_consume.assert_called_once_with("x", ttl_seconds=900.0)

    def test_missing_reason_still_authorizes(self, evaluator):
        assert evaluator.evaluate(grant(reason=None), "s").is_authorized


class TestGrantClaims:

    def test_builds_claims(self):
        claims = breakglass.grant_claims("db outage", 1800, nonce="fixed", now=NOW)

        assert claims == {
            "break_glass": "true",
            "break_glass_reason": "db outage",
            "break_glass_exp": str(int(NOW + 1800)),
            "break_glass_nonce": "fixed",
        }

    def test_generates_fresh_nonce(self):
        first = breakglass.grant_claims("r", 60, now=NOW)
        second = breakglass.grant_claims("r", 60, now=NOW)

        assert len(first["break_glass_nonce"]) == 32
        assert first["break_glass_nonce"] != second["break_glass_nonce"]


class TestNonceWhitespace:

    def test_padded_nonce_is_same_nonce(self, evaluator):
        assert evaluator.evaluate(grant(nonce="n1"), "s").is_authorized

        result = evaluator.evaluate(grant(nonce="  n1 "), "s")

        assert result.denial_code is DenialCode.BREAK_GLASS_NONCE_REPLAYED

    def test_tracker_receives_stripped_nonce(self, clock):
        tracker = mock.Mock(spec=nonces.NonceTracker)
        tracker.try_consume.return_value = True
        evaluator = BreakGlassEvaluator(tracker, clock=clock)

        evaluator.evaluate(grant(exp_offset=900, nonce=" n1\t"), "s")

        tracker.try_consume.assert_called_once_with("n1", ttl_seconds=900.0)
