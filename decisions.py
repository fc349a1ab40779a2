# decisions.py -- Authorization decision values.
# Denials are returned as data, never raised; every denial carries a code
# from DenialCode and a diagnostic reason.

import enum
from dataclasses import dataclass, field


class DenialCode(enum.Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    INVALID_RESOURCE_NAME = "invalid_resource_name"
    NO_MATCHING_PERMISSION = "no_matching_permission"
    BREAK_GLASS_MISSING_EXPIRATION = "break_glass_missing_expiration"
    BREAK_GLASS_EXPIRED = "break_glass_expired"
    BREAK_GLASS_EXCEEDS_MAXIMUM_TTL = "break_glass_exceeds_maximum_ttl"
    BREAK_GLASS_MISSING_NONCE = "break_glass_missing_nonce"
    BREAK_GLASS_NONCE_REPLAYED = "break_glass_nonce_replayed"
    BREAK_GLASS_NONCE_UNVERIFIABLE = "break_glass_nonce_unverifiable"


@dataclass(frozen=True)
class AuthorizationResult:
    """Outcome of a single authorization decision.

    Use granted() and denied() rather than the constructor.
    """

    is_authorized: bool
    user_id: str | None = None
    principal_type: str = "user"
    is_break_glass: bool = False
    denial_reason: str | None = None
    denial_code: DenialCode | None = None

    @property
    def is_service_account(self) -> bool:
        return self.principal_type == "service"

    @property
    def http_status(self) -> int:
        """Status the HTTP layer should answer with: 200, 401 or 403."""
        if self.is_authorized:
            return 200
        if self.denial_code is DenialCode.NOT_AUTHENTICATED:
            return 401
        return 403

    @classmethod
    def granted(
        cls,
        user_id: str | None,
        principal_type: str = "user",
        is_break_glass: bool = False,
    ) -> "AuthorizationResult":
        return cls(
            is_authorized=True,
            user_id=user_id,
            principal_type=principal_type,
            is_break_glass=is_break_glass,
        )

    @classmethod
    def denied(
        cls,
        code: DenialCode,
        reason: str,
        user_id: str | None = None,
        principal_type: str = "user",
        is_break_glass: bool = False,
    ) -> "AuthorizationResult":
        return cls(
            is_authorized=False,
            user_id=user_id,
            principal_type=principal_type,
            is_break_glass=is_break_glass,
            denial_reason=reason,
            denial_code=code,
        )


@dataclass(frozen=True)
class BatchAuthorization:
    """Outcome of authorizing one action on several secrets.

    Attributes:
        granted: Names that were authorized, in request order.
        denied: Denial result per name that was not authorized.
        is_break_glass: True if the batch was authorized by a break-glass grant.
    """

    granted: tuple[str, ...] = ()
    denied: dict[str, AuthorizationResult] = field(default_factory=dict)
    is_break_glass: bool = False

    @property
    def is_fully_authorized(self) -> bool:
        return bool(self.granted) and not self.denied
