# categories.py -- Secret category resolution.
# Maps a secret name to its category using the configured allow-list first
# and the naming convention second, defaulting to "custom".

from settings import AllowedSecretsConfig

CUSTOM_CATEGORY = "custom"

# Longer prefixes first so "infrastructure-" is not shadowed by "infra-".
PREFIX_CATEGORIES: list[tuple[str, str]] = [
    ("oauth-", "oauth"),
    ("betterauth-", "betterauth"),
    ("infrastructure-", "infrastructure"),
    ("infra-", "infrastructure"),
]


def infer_category(secret_name: str) -> str | None:
    """Return the category implied by the secret name's prefix, or None."""
    lowered = secret_name.lower()
    for prefix, category in PREFIX_CATEGORIES:
        if lowered.startswith(prefix):
            return category
    return None


def resolve_category(secret_name: str, allowed: AllowedSecretsConfig) -> str:
    """Return the category of a secret.

    Resolution order:
    1. The first configured category whose list contains the name
       (case-insensitive).
    2. The category implied by a known prefix (oauth-, betterauth-,
       infrastructure-, infra-).
    3. "custom".

    Args:
        secret_name: The secret name as requested.
        allowed: The configured allow-list.

    Returns:
        The category name (lower-case).
    """
    return allowed.category_for(secret_name) or infer_category(secret_name) or CUSTOM_CATEGORY


def is_entitled(secret_name: str, allowed: AllowedSecretsConfig) -> bool:
    """Return True if the secret appears in any configured category's list.

    Prefix inference does not count: a name must be listed explicitly to be
    dispensable by the store.
    """
    return allowed.category_for(secret_name) is not None
