"""Shared fixtures for all tests."""

from collections.abc import Generator

import pytest

from cloudbox import ClientConfig, StaticCredentialProvider


@pytest.fixture
def mock_env_clear(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Clear all Cloudbox-related environment variables for testing.

    This ensures tests don't accidentally use real credentials or hosts from the environment.
    """
    env_vars_to_clear = [
        # Hosts and transport
        "CLOUDBOX_API_HOST",
        "CLOUDBOX_CONTENT_HOST",
        "CLOUDBOX_API_VERSION_OVERRIDE",
        "CLOUDBOX_TIMEOUT",
        # Credentials
        "CLOUDBOX_CONSUMER_KEY",
        "CLOUDBOX_CONSUMER_SECRET",
        "CLOUDBOX_ACCESS_TOKEN",
        "CLOUDBOX_ACCESS_TOKEN_SECRET",
        # Locale
        "LANG",
        "LANGUAGE",
        # Tracing
        "DEBUG",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def credentials() -> StaticCredentialProvider:
    """Credentials with a fixed nonce and clock so signatures are reproducible."""
    return StaticCredentialProvider(
        "consumer-key",
        "consumer-secret",
        "access-token",
        "token-secret",
        nonce_factory=lambda: "fixed-nonce",
        clock=lambda: 1_300_000_000.0,
    )


@pytest.fixture
def config(mock_env_clear) -> ClientConfig:
    return ClientConfig(app_name="Test App", app_version="2.1")
