"""Credential providers consumed by the request signer."""

from __future__ import annotations

import os
import time
import uuid
from collections.abc import Callable
from typing import Literal, Protocol, runtime_checkable
from urllib.parse import quote

from .errors import CloudboxError

SignatureMethod = Literal["HMAC-SHA1", "PLAINTEXT"]


@runtime_checkable
class CredentialProvider(Protocol):
    """Session store seen from the request lifecycle manager.

    Token acquisition, persistence and renewal live behind this protocol;
    the client only reads signing material and reports 401s.
    """

    def signing_key(self, user_id: str | None) -> str: ...

    def signature_method(self, user_id: str | None) -> SignatureMethod: ...

    def oauth_parameters(self, user_id: str | None) -> dict[str, str]: ...

    def on_authorization_failure(self, user_id: str | None) -> None: ...


def oauth_escape(value: str) -> str:
    return quote(value, safe="~-._")


class StaticCredentialProvider:
    """A single already-authorized consumer/token pair.

    ``nonce_factory`` and ``clock`` exist so that signing can be made
    reproducible in tests.
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        token: str,
        token_secret: str,
        *,
        method: SignatureMethod = "HMAC-SHA1",
        user_id: str | None = None,
        nonce_factory: Callable[[], str] | None = None,
        clock: Callable[[], float] | None = None,
        on_authorization_failure: Callable[[str | None], None] | None = None,
    ) -> None:
        if not consumer_key or not token:
            raise ValueError("consumer_key and token are required")
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.token = token
        self.token_secret = token_secret
        self.method: SignatureMethod = method
        self.user_id = user_id
        self._nonce_factory = nonce_factory or (lambda: uuid.uuid4().hex)
        self._clock = clock or time.time
        self._on_authorization_failure = on_authorization_failure
        self.authorization_failures = 0

    @classmethod
    def from_env(cls, **kwargs) -> StaticCredentialProvider:
        names = (
            "CLOUDBOX_CONSUMER_KEY",
            "CLOUDBOX_CONSUMER_SECRET",
            "CLOUDBOX_ACCESS_TOKEN",
            "CLOUDBOX_ACCESS_TOKEN_SECRET",
        )
        values = [os.getenv(name) for name in names]
        missing = [name for name, value in zip(names, values) if not value]
        if missing:
            raise CloudboxError(
                f"Missing Cloudbox credentials. Set {', '.join(missing)} or pass them explicitly."
            )
        consumer_key, consumer_secret, token, token_secret = (str(v) for v in values)
        return cls(consumer_key, consumer_secret, token, token_secret, **kwargs)

    def signing_key(self, user_id: str | None) -> str:
        return f"{oauth_escape(self.consumer_secret)}&{oauth_escape(self.token_secret)}"

    def signature_method(self, user_id: str | None) -> SignatureMethod:
        return self.method

    def oauth_parameters(self, user_id: str | None) -> dict[str, str]:
        return {
            "oauth_consumer_key": self.consumer_key,
            "oauth_token": self.token,
            "oauth_nonce": self._nonce_factory(),
            "oauth_timestamp": str(int(self._clock())),
            "oauth_signature_method": self.method,
            "oauth_version": "1.0",
        }

    def on_authorization_failure(self, user_id: str | None) -> None:
        self.authorization_failures += 1
        if self._on_authorization_failure is not None:
            self._on_authorization_failure(user_id)


__all__ = [
    "CredentialProvider",
    "SignatureMethod",
    "StaticCredentialProvider",
    "oauth_escape",
]
