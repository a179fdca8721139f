"""Tests for rackboot.redact — secret redaction in log records."""

import logging

import rackboot.redact as redact_module
from rackboot.redact import SecretRedactingFilter, mask_argument


def _reset_cache():
    """Reset the module-level pattern cache so env changes take effect."""
    redact_module._patterns = None


def _filtered(message):
    record = logging.LogRecord("test", logging.INFO, "", 0, message, None, None)
    SecretRedactingFilter().filter(record)
    return record.getMessage()


# ── Secret values from the environment ──────────────────────────


def test_api_key_is_redacted(monkeypatch):
    monkeypatch.setenv("RACKSPACE_API_KEY", "0123456789abcdef")
    _reset_cache()

    assert _filtered("Authenticating with key 0123456789abcdef") == "Authenticating with key ***"

    _reset_cache()


def test_short_values_ignored(monkeypatch):
    monkeypatch.setenv("RACKSPACE_API_KEY", "short")
    _reset_cache()

    text = "Key is short and should not be redacted"
    assert _filtered(text) == text

    _reset_cache()


def test_no_env_vars(monkeypatch):
    for var in redact_module._SECRET_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    _reset_cache()

    text = "Nothing secret here"
    assert _filtered(text) == text

    _reset_cache()


# ── mask_argument ───────────────────────────────────────────────


def test_mask_argument():
    args = ["knife", "bootstrap", "h", "--ssh-password", "pw", "--sudo"]
    assert mask_argument(args, "--ssh-password") == ["knife", "bootstrap", "h", "--ssh-password", "***", "--sudo"]
    assert args[4] == "pw"


def test_mask_argument_flag_last_or_absent():
    assert mask_argument(["knife", "--ssh-password"], "--ssh-password") == ["knife", "--ssh-password"]
    assert mask_argument(["knife"], "--ssh-password") == ["knife"]


# ── SecretRedactingFilter ───────────────────────────────────────


def test_filter_redacts_fstring_message(monkeypatch):
    monkeypatch.setenv("RACKSPACE_API_KEY", "fedcba9876543210")
    _reset_cache()

    record = logging.LogRecord("test", logging.INFO, "", 0, "key=fedcba9876543210", None, None)
    assert SecretRedactingFilter().filter(record) is True
    assert record.getMessage() == "key=***"

    _reset_cache()


def test_filter_redacts_percent_args(monkeypatch):
    monkeypatch.setenv("RACKSPACE_API_KEY", "fedcba9876543210")
    _reset_cache()

    record = logging.LogRecord("test", logging.INFO, "", 0, "key=%s port=%d", ("fedcba9876543210", 22), None)
    SecretRedactingFilter().filter(record)
    assert record.getMessage() == "key=*** port=22"

    _reset_cache()
