# authorization.py -- Central authorization API for the secrets service.
# Coordinates principal checks, break-glass evaluation, category resolution
# and permission-scope matching. Every decision is returned as an
# AuthorizationResult; nothing here raises on a denial.

import time
from collections.abc import Callable, Iterable, Mapping

import categories
import logs
import nonces
import policy
from breakglass import BreakGlassEvaluator
from decisions import AuthorizationResult, BatchAuthorization, DenialCode
from policy import SecretAction
from principal import Principal
from settings import AllowedSecretsConfig, EngineSettings

logger = logs.get_logger(__name__)


class AuthorizationService:
    """Decides whether a principal may act on a secret or a category.

    Permission hierarchy, most general first:
    - secrets:*                      every action on everything
    - secrets:{action}:*             one action on everything
    - secrets:{action}:{category}    one action on a category
    - secrets:{action}:{secretName}  one action on one secret

    A principal carrying a break-glass grant is decided by the grant alone.

    Args:
        allowed_secrets: Category allow-list used for category resolution.
        break_glass: Evaluator for emergency grants.
    """

    def __init__(
        self,
        allowed_secrets: AllowedSecretsConfig,
        break_glass: BreakGlassEvaluator,
    ) -> None:
        self.allowed_secrets = allowed_secrets
        self.break_glass = break_glass
        self._known_categories = allowed_secrets.category_names | policy.BUILTIN_CATEGORIES

    # -- Helpers --

    def category_of(self, secret_name: str) -> str:
        """Return the resolved category of a secret."""
        return categories.resolve_category(secret_name, self.allowed_secrets)

    def is_entitled(self, secret_name: str) -> bool:
        """Return True if the secret is explicitly listed in the allow-list."""
        return categories.is_entitled(secret_name, self.allowed_secrets)

    def _precheck(
        self,
        principal: Principal,
        resource_name: str,
        is_category: bool = False,
    ) -> AuthorizationResult | None:
        """Deny unauthenticated callers and malformed resource names.

        Configured and built-in category names are accepted as-is for
        category requests; anything else must be a valid secret name.
        """
        if not principal.authenticated:
            return AuthorizationResult.denied(
                DenialCode.NOT_AUTHENTICATED, "User is not authenticated"
            )
        if (
            is_category
            and isinstance(resource_name, str)
            and resource_name.lower() in self._known_categories
        ):
            return None
        error = policy.validate_secret_name(resource_name)
        if error is not None:
            return AuthorizationResult.denied(
                DenialCode.INVALID_RESOURCE_NAME,
                error,
                principal.user_id,
                principal.principal_type,
            )
        return None

    def _match(
        self,
        principal: Principal,
        action: SecretAction,
        category: str,
        secret_name: str | None,
    ) -> policy.PermissionScope | None:
        scopes = policy.parse_scopes(principal.permissions, self._known_categories)
        return policy.find_grant(scopes, action, category, secret_name)

    # -- Public API --

    def authorize(
        self,
        principal: Principal,
        secret_name: str,
        action: SecretAction,
    ) -> AuthorizationResult:
        """Authorize an action on a single secret.

        Args:
            principal: The caller.
            secret_name: The secret being accessed.
            action: The requested action.

        Returns:
            The decision. Denials carry a DenialCode and a reason; a denial
            for missing permission names the action.
        """
        rejected = self._precheck(principal, secret_name)
        if rejected is not None:
            return rejected

        emergency = self.break_glass.evaluate(
            principal.break_glass,
            secret_name,
            principal.user_id,
            principal.principal_type,
        )
        if emergency is not None:
            return emergency

        category = self.category_of(secret_name)
        scope = self._match(principal, action, category, secret_name)
        if scope is not None:
            logger.debug(
                "access_granted",
                action=action.label,
                secret_name=secret_name,
                user_id=principal.user_id,
                scope_kind=scope.kind.value,
            )
            return AuthorizationResult.granted(principal.user_id, principal.principal_type)

        logger.warning(
            "access_denied",
            action=action.label,
            secret_name=secret_name,
            category=category,
            user_id=principal.user_id,
        )
        return AuthorizationResult.denied(
            DenialCode.NO_MATCHING_PERMISSION,
            f"Missing permission for {action.label} on secret '{secret_name}'",
            principal.user_id,
            principal.principal_type,
        )

    def authorize_category(
        self,
        principal: Principal,
        category: str,
        action: SecretAction,
    ) -> AuthorizationResult:
        """Authorize an action on every secret in a category.

        Args:
            principal: The caller.
            category: Category name (e.g. "oauth").
            action: The requested action.

        Returns:
            The decision.
        """
        rejected = self._precheck(principal, category, is_category=True)
        if rejected is not None:
            return rejected

        emergency = self.break_glass.evaluate(
            principal.break_glass,
            f"category:{category}",
            principal.user_id,
            principal.principal_type,
        )
        if emergency is not None:
            return emergency

        if self._match(principal, action, category, None) is not None:
            return AuthorizationResult.granted(principal.user_id, principal.principal_type)

        logger.warning(
            "category_access_denied",
            action=action.label,
            category=category,
            user_id=principal.user_id,
        )
        return AuthorizationResult.denied(
            DenialCode.NO_MATCHING_PERMISSION,
            f"Missing permission for {action.label} on category '{category}'",
            principal.user_id,
            principal.principal_type,
        )

    def authorize_many(
        self,
        principal: Principal,
        secret_names: Iterable[str],
        action: SecretAction,
    ) -> BatchAuthorization:
        """Authorize one action on several secrets.

        A break-glass grant is evaluated once for the whole batch, so its
        nonce is consumed once. Without one, each name is decided on its own.

        Args:
            principal: The caller.
            secret_names: Secrets requested, duplicates ignored.
            action: The requested action.

        Returns:
            The names granted, in request order, and the denial per name.
        """
        names = list(dict.fromkeys(secret_names))
        if not names:
            return BatchAuthorization()

        denied: dict[str, AuthorizationResult] = {}
        valid = []
        for name in names:
            rejected = self._precheck(principal, name)
            if rejected is not None:
                denied[name] = rejected
            else:
                valid.append(name)

        if principal.authenticated and principal.break_glass is not None and valid:
            emergency = self.break_glass.evaluate(
                principal.break_glass,
                f"batch:{','.join(valid)}",
                principal.user_id,
                principal.principal_type,
            )
            if emergency.is_authorized:
                return BatchAuthorization(tuple(valid), denied, is_break_glass=True)
            denied.update({name: emergency for name in valid})
            return BatchAuthorization((), denied)

        granted = []
        for name in valid:
            result = self.authorize(principal, name, action)
            if result.is_authorized:
                granted.append(name)
            else:
                denied[name] = result

        logger.info(
            "batch_authorized",
            action=action.label,
            user_id=principal.user_id,
            requested=len(names),
            granted=len(granted),
            denied=len(denied),
        )
        return BatchAuthorization(tuple(granted), denied)


def create_service(
    settings: EngineSettings | None = None,
    allowed_secrets: AllowedSecretsConfig | None = None,
    tracker: nonces.NonceTracker | None = None,
    clock: Callable[[], float] = time.time,
) -> AuthorizationService:
    """Wire an AuthorizationService from settings.

    Args:
        settings: Engine settings; defaults to EngineSettings.from_env().
        allowed_secrets: Allow-list; defaults to the shipped allow-list.
        tracker: Nonce tracker; defaults to the one selected by settings.
        clock: Current Unix time source for break-glass checks.

    Returns:
        A ready-to-use service.

    Raises:
        ConfigError: If the environment holds invalid settings.
    """
    settings = settings or EngineSettings.from_env()
    evaluator = BreakGlassEvaluator(
        tracker if tracker is not None else nonces.build_tracker(settings),
        max_ttl_seconds=settings.break_glass_max_ttl_seconds,
        clock=clock,
    )
    return AuthorizationService(
        allowed_secrets if allowed_secrets is not None else AllowedSecretsConfig.default(),
        evaluator,
    )


def bootstrap(
    environ: Mapping[str, str] | None = None,
    allowed_secrets: AllowedSecretsConfig | None = None,
) -> AuthorizationService:
    """Process entry point: load settings, configure logging, build the service.

    Args:
        environ: Mapping to read settings from instead of os.environ.
        allowed_secrets: Allow-list; defaults to the shipped allow-list.

    Returns:
        A ready-to-use service.

    Raises:
        ConfigError: If the environment holds invalid settings.
    """
    settings = EngineSettings.from_env(environ)
    logs.configure_logging(settings.log_level, settings.log_format)
    return create_service(settings=settings, allowed_secrets=allowed_secrets)
