# policy.py -- Permission scope grammar for the secrets authorization engine.
# Parses "secrets:{action|*}:{scope}" strings into PermissionScope values,
# validates secret names, and matches scopes against requested access.
# Malformed permission strings never grant access.

import enum
import re
from collections.abc import Iterable
from dataclasses import dataclass

import logs

logger = logs.get_logger(__name__)

SCOPE_PREFIX = "secrets"
WILDCARD = "*"
MAX_SECRET_NAME_LENGTH = 127

BUILTIN_CATEGORIES: frozenset[str] = frozenset(
    {"oauth", "betterauth", "infrastructure", "custom"}
)


class SecretAction(enum.Enum):
    READ = "read"
    WRITE = "write"
    ROTATE = "rotate"
    DELETE = "delete"

    @property
    def label(self) -> str:
        """Display name used in denial reasons ("Read", "Write", ...)."""
        return self.name.capitalize()

    def __str__(self) -> str:
        return self.label


class ScopeKind(enum.Enum):
    GLOBAL_ADMIN = "global_admin"
    ACTION_WILDCARD = "action_wildcard"
    CATEGORY = "category"
    SPECIFIC_SECRET = "specific_secret"


@dataclass(frozen=True)
class PermissionScope:
    """A parsed permission string.

    Attributes:
        kind: Which level of the hierarchy the permission grants.
        action: The granted action, or None for any action.
        value: Lower-cased category or secret name; empty for GLOBAL_ADMIN
            and ACTION_WILDCARD.
    """

    kind: ScopeKind
    action: SecretAction | None = None
    value: str = ""

    def allows_action(self, action: SecretAction) -> bool:
        return self.action is None or self.action == action


def parse_action(text: str) -> SecretAction | None:
    """Return the SecretAction named by text (case-insensitive), or None."""
    try:
        return SecretAction(text.lower())
    except (ValueError, AttributeError):
        return None


def parse_scope(
    text: str,
    known_categories: Iterable[str] = BUILTIN_CATEGORIES,
) -> PermissionScope | None:
    """Parse a single permission string.

    Accepted forms (case-insensitive):
    - 'secrets:*' grants every action on every resource.
    - 'secrets:{action|*}:*' grants the action on every resource.
    - 'secrets:{action|*}:{category}' grants the action on a category.
    - 'secrets:{action|*}:{name}' grants the action on one secret.

    Args:
        text: The raw permission string.
        known_categories: Scope values treated as categories rather than
            secret names.

    Returns:
        The parsed scope, or None if the string is not a secrets permission
        or is malformed.
    """
    if not isinstance(text, str):
        return None

    segments = text.lower().split(":")
    if segments[0] != SCOPE_PREFIX or any(not seg for seg in segments):
        return None

    if len(segments) == 2:
        if segments[1] == WILDCARD:
            return PermissionScope(ScopeKind.GLOBAL_ADMIN)
        return None

    if len(segments) != 3:
        return None

    action_text, scope_value = segments[1], segments[2]
    if action_text == WILDCARD:
        action = None
    else:
        action = parse_action(action_text)
        if action is None:
            return None

    if scope_value == WILDCARD:
        return PermissionScope(ScopeKind.ACTION_WILDCARD, action)

    categories = {c.lower() for c in known_categories}
    kind = ScopeKind.CATEGORY if scope_value in categories else ScopeKind.SPECIFIC_SECRET
    return PermissionScope(kind, action, scope_value)


def parse_scopes(
    permissions: Iterable[str],
    known_categories: Iterable[str] = BUILTIN_CATEGORIES,
) -> list[PermissionScope]:
    """Parse every permission string, dropping the ones that do not parse.

    Args:
        permissions: Raw permission strings from the principal.
        known_categories: Scope values treated as categories.

    Returns:
        Parsed scopes in input order.
    """
    categories = frozenset(c.lower() for c in known_categories)
    scopes = []
    for text in permissions:
        scope = parse_scope(text, categories)
        if scope is None:
            logger.debug("permission_ignored", permission=text)
            continue
        scopes.append(scope)
    return scopes


def validate_secret_name(name: str) -> str | None:
    """Return an error message if name is not a valid secret name, else None.

    A valid name is 1-127 characters of ASCII letters, digits and dashes,
    starting and ending with a letter or digit.

    Args:
        name: The secret (or category) name to check.

    Returns:
        A human-readable error, or None if the name is valid.
    """
    if not isinstance(name, str) or not name.strip():
        return "Secret name is required"
    if len(name) > MAX_SECRET_NAME_LENGTH:
        return f"Secret name must be {MAX_SECRET_NAME_LENGTH} characters or fewer"
    if not re.fullmatch(r"[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?", name):
        return (
            "Secret name must contain only alphanumeric characters and dashes, "
            "and must start and end with an alphanumeric character"
        )
    return None


def scope_matches(
    scope: PermissionScope,
    action: SecretAction,
    category: str,
    secret_name: str | None = None,
) -> bool:
    """Return True if scope grants action on the resource.

    Category and secret-name scopes are compared against both the category
    and the exact secret name, since the grammar does not tell them apart.

    Args:
        scope: A parsed permission.
        action: The requested action.
        category: Resolved category of the secret, or the requested category.
        secret_name: Exact secret name, or None for category-level requests.

    Returns:
        True if the scope covers the request.
    """
    if scope.kind is ScopeKind.GLOBAL_ADMIN:
        return True
    if not scope.allows_action(action):
        return False
    if scope.kind is ScopeKind.ACTION_WILDCARD:
        return True
    if scope.value == category.lower():
        return True
    return secret_name is not None and scope.value == secret_name.lower()


def find_grant(
    scopes: Iterable[PermissionScope],
    action: SecretAction,
    category: str,
    secret_name: str | None = None,
) -> PermissionScope | None:
    """Return the first scope that grants the request, or None (default deny)."""
    for scope in scopes:
        if scope_matches(scope, action, category, secret_name):
            return scope
    return None
