# principal.py -- The authenticated caller, assembled once from its claims.
# Claims arrive already validated by the authentication layer; this module
# only normalizes them. Claim names are matched case-insensitively.

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from breakglass import BreakGlassGrant

CLAIM_SUBJECT = "sub"
CLAIM_PRINCIPAL_TYPE = "principal_type"
CLAIM_PERMISSION = "permission"
CLAIM_BREAK_GLASS = "break_glass"
CLAIM_BREAK_GLASS_REASON = "break_glass_reason"
CLAIM_BREAK_GLASS_EXP = "break_glass_exp"
CLAIM_BREAK_GLASS_NONCE = "break_glass_nonce"

DEFAULT_PRINCIPAL_TYPE = "user"


@dataclass(frozen=True)
class Principal:
    """Identity making a request against the secret store.

    Attributes:
        user_id: Value of the 'sub' claim.
        principal_type: 'user' or 'service'.
        permissions: Raw permission strings, unparsed.
        break_glass: Emergency grant, present only when the break_glass
            claim is "true".
        authenticated: False for anonymous callers.
    """

    user_id: str | None
    principal_type: str = DEFAULT_PRINCIPAL_TYPE
    permissions: tuple[str, ...] = ()
    break_glass: BreakGlassGrant | None = None
    authenticated: bool = True

    @property
    def is_service_account(self) -> bool:
        return self.principal_type == "service"

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(user_id=None, authenticated=False)

    @classmethod
    def from_claims(
        cls,
        claims: Mapping[str, Any] | Iterable[tuple[str, Any]] | None,
        authenticated: bool = True,
    ) -> "Principal":
        """Build a principal from a claim bag.

        Claims may be a mapping (values are a string or a list of strings) or
        a sequence of (name, value) pairs where names may repeat. A bag
        without a 'sub' claim yields an unauthenticated principal.

        Args:
            claims: Validated token claims.
            authenticated: Whether the authentication layer accepted the caller.

        Returns:
            The assembled Principal.
        """
        if not claims or not authenticated:
            return cls.anonymous()

        values = _collect(claims)
        user_id = _first(values, CLAIM_SUBJECT)
        if not user_id:
            return cls.anonymous()

        principal_type = (_first(values, CLAIM_PRINCIPAL_TYPE) or DEFAULT_PRINCIPAL_TYPE).lower()

        grant = None
        flag = _first(values, CLAIM_BREAK_GLASS)
        if flag is not None and flag.lower() == "true":
            grant = BreakGlassGrant(
                reason=_first(values, CLAIM_BREAK_GLASS_REASON),
                expires_at=_first(values, CLAIM_BREAK_GLASS_EXP),
                nonce=_first(values, CLAIM_BREAK_GLASS_NONCE),
            )

        return cls(
            user_id=user_id,
            principal_type=principal_type,
            permissions=tuple(values.get(CLAIM_PERMISSION, [])),
            break_glass=grant,
        )


def _collect(claims: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> dict[str, list[str]]:
    items = claims.items() if isinstance(claims, Mapping) else claims
    values: dict[str, list[str]] = {}
    for name, value in items:
        bucket = values.setdefault(str(name).lower(), [])
        if isinstance(value, (list, tuple, set, frozenset)):
            bucket.extend(_as_text(v) for v in value if v is not None)
        elif value is not None:
            bucket.append(_as_text(value))
    return values


def _as_text(value: Any) -> str:
    # JSON booleans arrive as bool; the claim grammar is string-based
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _first(values: dict[str, list[str]], name: str) -> str | None:
    found = values.get(name)
    return found[0] if found else None
