# nonces.py -- Single-use registry of break-glass nonces.
# A nonce is accepted the first time it is presented and rejected on every
# later presentation. Trackers record SHA-256 fingerprints, never raw nonces.

import abc
import threading

import redis

import crypto
import logs
from settings import EngineSettings

logger = logs.get_logger(__name__)


class NonceTrackerError(Exception):
    """Raised when a tracker cannot tell whether a nonce was already used."""
    pass


class NonceTracker(abc.ABC):
    """Records break-glass nonces and rejects replays."""

    @abc.abstractmethod
    def try_consume(self, nonce: str, ttl_seconds: float | None = None) -> bool:
        """Atomically record nonce if it has not been seen before.

        Args:
            nonce: The nonce presented with a break-glass grant.
            ttl_seconds: Remaining lifetime of the grant carrying the nonce.
                Trackers with bounded retention keep the record at least
                this long.

        Returns:
            True on first use, False if the nonce was already consumed.

        Raises:
            NonceTrackerError: If the backing store cannot be reached.
        """


class InMemoryNonceTracker(NonceTracker):
    """Process-local tracker; consumed nonces are kept for the process lifetime."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._consumed: set[str] = set()

    def try_consume(self, nonce: str, ttl_seconds: float | None = None) -> bool:
        key = crypto.fingerprint_nonce(nonce)
        with self._lock:
            if key in self._consumed:
                return False
            self._consumed.add(key)
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._consumed)


class RedisNonceTracker(NonceTracker):
    """Shared tracker for multi-instance deployments, backed by Redis.

    Each nonce is claimed with a single SET NX EX, so the check and the
    record happen in one round trip on the server. Any Redis failure,
    including a socket timeout, raises NonceTrackerError and the caller
    denies.

    Args:
        client: A redis.Redis client, ideally with a short socket timeout.
        key_prefix: Prefix for nonce keys.
        retention_seconds: Minimum time a consumed nonce stays recorded.
    """

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "secrets:breakglass:nonce:",
        retention_seconds: int = 3900,
    ) -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._retention_seconds = retention_seconds

    @classmethod
    def from_url(
        cls,
        url: str,
        timeout_seconds: float = 0.5,
        key_prefix: str = "secrets:breakglass:nonce:",
        retention_seconds: int = 3900,
    ) -> "RedisNonceTracker":
        """Build a tracker with a client whose calls time out after timeout_seconds."""
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client, key_prefix=key_prefix, retention_seconds=retention_seconds)

    def _expiry(self, ttl_seconds: float | None) -> int:
        if ttl_seconds is None:
            return self._retention_seconds
        return max(int(ttl_seconds) + 1, self._retention_seconds)

    def try_consume(self, nonce: str, ttl_seconds: float | None = None) -> bool:
        fingerprint = crypto.fingerprint_nonce(nonce)
        key = self._key_prefix + fingerprint
        try:
            claimed = self._client.set(key, "1", nx=True, ex=self._expiry(ttl_seconds))
        except redis.RedisError as e:
            logger.error(
                "nonce_store_unavailable",
                nonce_fingerprint=fingerprint,
                error=str(e),
            )
            raise NonceTrackerError(f"Nonce store unavailable: {e}") from e
        return bool(claimed)


def build_tracker(settings: EngineSettings) -> NonceTracker:
    """Return the tracker selected by settings.

    A Redis tracker when nonce_store_url is set, otherwise an in-memory one.
    """
    if settings.nonce_store_url:
        return RedisNonceTracker.from_url(
            settings.nonce_store_url,
            timeout_seconds=settings.nonce_store_timeout_seconds,
            key_prefix=settings.nonce_key_prefix,
            retention_seconds=settings.nonce_retention_seconds,
        )
    logger.info("nonce_tracker_in_memory")
    return InMemoryNonceTracker()
