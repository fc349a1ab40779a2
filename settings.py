# settings.py -- Configuration for the secrets authorization engine.
# Holds the allow-list of dispensable secrets per category and the engine's
# tunables, with loading from SECRETS_AUTHZ_* environment variables.

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

ENV_PREFIX = "SECRETS_AUTHZ_"


class ConfigError(Exception):
    """Raised when engine configuration is missing or malformed."""
    pass


DEFAULT_ALLOWED_SECRETS: dict[str, list[str]] = {
    "oauth": [
        "discord-bot-token",
        "oauth-facebook-app-id",
        "oauth-facebook-app-secret",
        "oauth-google-client-id",
        "oauth-google-client-secret",
        "oauth-discord-client-id",
        "oauth-discord-client-secret",
        "oauth-twitch-client-id",
        "oauth-twitch-client-secret",
        "oauth-github-client-id",
        "oauth-github-client-secret",
        "oauth-apple-client-id",
        "oauth-apple-client-secret",
        "oauth-amazon-client-id",
        "oauth-amazon-client-secret",
        "oauth-microsoft-personal-client-id",
        "oauth-microsoft-personal-client-secret",
        "oauth-microsoft-work-client-id",
        "oauth-microsoft-work-client-secret",
        "oauth-steam-api-key",
        "oauth-battlenet-client-id",
        "oauth-battlenet-client-secret",
        "oauth-epic-client-id",
        "oauth-epic-client-secret",
        "oauth-xbox-client-id",
        "oauth-xbox-client-secret",
    ],
    "betterauth": [
        "betterauth-secret",
        "betterauth-exchange-private-key",
        "better-auth-webhook-secret",
    ],
    "infrastructure": [
        "postgres-password",
        "rabbitmq-password",
        "redis-password",
    ],
}


@dataclass(frozen=True)
class AllowedSecretsConfig:
    """Read-only mapping of category name to the secret names it dispenses.

    Category and secret names are stored lower-cased; lookups are
    case-insensitive. Category order is preserved and is the order in which
    the category resolver searches.
    """

    categories: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized = {}
        for category, names in self.categories.items():
            if not isinstance(category, str) or not category.strip():
                raise ConfigError(f"Invalid category name: {category!r}")
            if isinstance(names, str):
                raise ConfigError(
                    f"Secret names for category '{category}' must be a list, not a string"
                )
            names = list(names)
            if not all(isinstance(n, str) and n for n in names):
                raise ConfigError(f"Secret names for category '{category}' must be non-empty strings")
            normalized[category.strip().lower()] = frozenset(n.lower() for n in names)
        object.__setattr__(self, "categories", MappingProxyType(normalized))

    @classmethod
    def default(cls) -> "AllowedSecretsConfig":
        """Return the allow-list shipped with the secrets service."""
        return cls.from_mapping(DEFAULT_ALLOWED_SECRETS)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]]) -> "AllowedSecretsConfig":
        """Build a config from a plain category -> names mapping.

        Raises:
            ConfigError: If a category name is empty or its names are not a list.
        """
        if not isinstance(mapping, Mapping):
            raise ConfigError("Allowed secrets must be a mapping of category to names")
        return cls(categories=dict(mapping))

    @property
    def category_names(self) -> frozenset[str]:
        return frozenset(self.categories)

    def category_for(self, secret_name: str) -> str | None:
        """Return the first category whose list contains secret_name, or None."""
        lowered = secret_name.lower()
        for category, names in self.categories.items():
            if lowered in names:
                return category
        return None


@dataclass(frozen=True)
class EngineSettings:
    """Tunables for the authorization engine.

    Args:
        break_glass_max_ttl_seconds: Longest remaining lifetime a break-glass
            grant may carry when presented.
        nonce_retention_seconds: Minimum time a consumed nonce stays recorded
            in a shared nonce store.
        nonce_store_url: Redis URL for a shared nonce store; None keeps nonces
            in process memory.
        nonce_store_timeout_seconds: Socket timeout for nonce store calls.
        nonce_key_prefix: Key prefix for nonces in the shared store.
        log_level: Root log level.
        log_format: "json" or "console".
    """

    break_glass_max_ttl_seconds: int = 3600
    nonce_retention_seconds: int = 3900
    nonce_store_url: str | None = None
    nonce_store_timeout_seconds: float = 0.5
    nonce_key_prefix: str = "secrets:breakglass:nonce:"
    log_level: str = "INFO"
    log_format: str = "json"

    def __post_init__(self) -> None:
        if self.break_glass_max_ttl_seconds <= 0:
            raise ConfigError("break_glass_max_ttl_seconds must be positive")
        if self.nonce_retention_seconds <= 0:
            raise ConfigError("nonce_retention_seconds must be positive")
        if self.nonce_store_timeout_seconds <= 0:
            raise ConfigError("nonce_store_timeout_seconds must be positive")
        if self.log_format not in ("json", "console"):
            raise ConfigError(
                f"Invalid log format '{self.log_format}'. Valid formats: json, console"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        """Load settings from SECRETS_AUTHZ_* environment variables.

        Unset variables keep their defaults.

        Args:
            environ: Mapping to read instead of os.environ.

        Returns:
            A validated EngineSettings instance.

        Raises:
            ConfigError: If a value cannot be parsed or fails validation.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def _get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        def _int(name: str, default: int) -> int:
            raw = _get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got '{raw}'")

        def _float(name: str, default: float) -> float:
            raw = _get(name)
            if raw is None:
                return default
            try:
                return float(raw)
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got '{raw}'")

        return cls(
            break_glass_max_ttl_seconds=_int(
                "BREAK_GLASS_MAX_TTL_SECONDS", defaults.break_glass_max_ttl_seconds
            ),
            nonce_retention_seconds=_int(
                "NONCE_RETENTION_SECONDS", defaults.nonce_retention_seconds
            ),
            nonce_store_url=_get("NONCE_STORE_URL"),
            nonce_store_timeout_seconds=_float(
                "NONCE_STORE_TIMEOUT_SECONDS", defaults.nonce_store_timeout_seconds
            ),
            nonce_key_prefix=_get("NONCE_KEY_PREFIX") or defaults.nonce_key_prefix,
            log_level=(_get("LOG_LEVEL") or defaults.log_level).upper(),
            log_format=(_get("LOG_FORMAT") or defaults.log_format).lower(),
        )
