# breakglass.py -- Emergency break-glass access.
# A break-glass grant bypasses ordinary permissions once: it must carry a
# Unix expiration no further out than the configured maximum and a nonce
# that has never been consumed before.

import time
from collections.abc import Callable
from dataclasses import dataclass

import crypto
import logs
import nonces
from decisions import AuthorizationResult, DenialCode

logger = logs.get_logger(__name__)


@dataclass(frozen=True)
class BreakGlassGrant:
    """Break-glass claims as presented, unvalidated.

    Attributes:
        reason: Operator justification; recorded for audit only.
        expires_at: Raw break_glass_exp claim (Unix seconds as text).
        nonce: Raw break_glass_nonce claim.
    """

    reason: str | None = None
    expires_at: str | None = None
    nonce: str | None = None


class BreakGlassEvaluator:
    """Validates break-glass grants and consumes their nonces.

    Args:
        tracker: Registry that accepts each nonce once.
        max_ttl_seconds: Longest remaining lifetime a grant may have.
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        tracker: nonces.NonceTracker,
        max_ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.tracker = tracker
        self.max_ttl_seconds = max_ttl_seconds
        self.clock = clock

    def evaluate(
        self,
        grant: BreakGlassGrant | None,
        resource: str,
        user_id: str | None = None,
        principal_type: str = "user",
    ) -> AuthorizationResult | None:
        """Decide a break-glass request.

        Checks run in a fixed order and the first failure is final:
        expiration present, expiration a future timestamp, remaining
        lifetime within the maximum, nonce present, nonce unused.

        Args:
            grant: The principal's break-glass claims, or None.
            resource: Secret name or "category:{name}", for logging.
            user_id: Principal identifier.
            principal_type: 'user' or 'service'.

        Returns:
            None if no grant was presented; otherwise a granted result with
            is_break_glass set, or a denial naming the failed check.
        """
        if grant is None:
            return None

        def deny(code: DenialCode, reason: str, **fields) -> AuthorizationResult:
            logger.warning(
                "break_glass_denied",
                resource=resource,
                user_id=user_id,
                denial_code=code.value,
                **fields,
            )
            return AuthorizationResult.denied(code, reason, user_id, principal_type)

        if grant.expires_at is None or not str(grant.expires_at).strip():
            return deny(
                DenialCode.BREAK_GLASS_MISSING_EXPIRATION,
                "Break-glass token must include an expiration (break_glass_exp).",
            )

        now = self.clock()
        try:
            expires_at = int(str(grant.expires_at).strip())
        except ValueError:
            return deny(
                DenialCode.BREAK_GLASS_EXPIRED,
                "Break-glass token expiration (break_glass_exp) is not a valid "
                "Unix timestamp and is treated as expired.",
            )

        if expires_at <= now:
            return deny(
                DenialCode.BREAK_GLASS_EXPIRED,
                "Break-glass token has expired.",
                expires_at=expires_at,
            )

        ttl = expires_at - now
        if ttl > self.max_ttl_seconds:
            return deny(
                DenialCode.BREAK_GLASS_EXCEEDS_MAXIMUM_TTL,
                f"Break-glass token TTL exceeds maximum of "
                f"{self.max_ttl_seconds // 60} minutes.",
                expires_at=expires_at,
                max_ttl_seconds=self.max_ttl_seconds,
            )

        nonce = (grant.nonce or "").strip()
        if not nonce:
            return deny(
                DenialCode.BREAK_GLASS_MISSING_NONCE,
                "Break-glass token must include a single-use nonce (break_glass_nonce).",
            )

        fingerprint = crypto.fingerprint_nonce(nonce)
        try:
            first_use = self.tracker.try_consume(nonce, ttl_seconds=ttl)
        except nonces.NonceTrackerError:
            return deny(
                DenialCode.BREAK_GLASS_NONCE_UNVERIFIABLE,
                "Break-glass token nonce could not be verified.",
                nonce_fingerprint=fingerprint,
            )
        if not first_use:
            return deny(
                DenialCode.BREAK_GLASS_NONCE_REPLAYED,
                "Break-glass token nonce has already been used.",
                nonce_fingerprint=fingerprint,
            )

        logger.warning(
            "break_glass_granted",
            resource=resource,
            user_id=user_id,
            reason=grant.reason or "No reason provided",
            nonce_fingerprint=fingerprint,
            expires_at=expires_at,
        )
        return AuthorizationResult.granted(user_id, principal_type, is_break_glass=True)


def grant_claims(
    reason: str,
    ttl_seconds: int,
    nonce: str | None = None,
    now: float | None = None,
) -> dict[str, str]:
    """Build the claim set for a break-glass grant.

    The token issuer signs these claims; nothing here is signed.

    Args:
        reason: Operator justification.
        ttl_seconds: Lifetime of the grant from now.
        nonce: Nonce to embed; a fresh one is generated if omitted.
        now: Issue time in Unix seconds; defaults to the current time.

    Returns:
        Claim name to string value.
    """
    issued_at = time.time() if now is None else now
    return {
        "break_glass": "true",
        "break_glass_reason": reason,
        "break_glass_exp": str(int(issued_at + ttl_seconds)),
        "break_glass_nonce": nonce or crypto.generate_nonce(),
    }
