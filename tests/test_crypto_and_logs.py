"""Tests for nonce helpers and logging setup."""

import hashlib

import structlog

import crypto
import logs


def test_fingerprint_is_sha256_hex():
    assert crypto.fingerprint_nonce("abc") == hashlib.sha256(b"abc").hexdigest()


def test_generate_nonce_is_random_hex():
    first, second = crypto.generate_nonce(), crypto.generate_nonce()

    assert len(first) == 32
    int(first, 16)
    assert first != second


def test_configure_logging():
    try:
        logs.configure_logging(level="debug", fmt="console")
        assert structlog.is_configured()
    finally:
        structlog.reset_defaults()
