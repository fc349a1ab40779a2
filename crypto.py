# crypto.py -- Cryptographic helpers for break-glass nonces.
# Generates opaque single-use nonces and derives the SHA-256 fingerprints
# under which nonce trackers record them.

import os

from cryptography.hazmat.primitives import hashes

NONCE_BYTES = 16


def generate_nonce() -> str:
    """Generate a random break-glass nonce.

    Returns:
        32 lowercase hex characters (16 random bytes).
    """
    return os.urandom(NONCE_BYTES).hex()


def fingerprint_nonce(nonce: str) -> str:
    """Return the SHA-256 hex digest of a nonce.

    Trackers and log lines carry the fingerprint so the raw token is never
    held outside the request that presented it.

    Args:
        nonce: The nonce string as presented in the break_glass_nonce claim.

    Returns:
        64 lowercase hex characters.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(nonce.encode("utf-8"))
    return digest.finalize().hex()
