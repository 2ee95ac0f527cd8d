"""OAuth1 request signing.

Every request the client issues passes through :class:`RequestSigner`. The
server recomputes the signature from the exact parameter ordering produced
here, so the canonical form (percent-encode each key and value, then sort by
encoded key and encoded value) must not change.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from ._internal.http.config import ClientConfig
from .auth import CredentialProvider, SignatureMethod, oauth_escape

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
OCTET_STREAM = "application/octet-stream"


@dataclass(frozen=True, slots=True)
class SignedRequest:
    """A fully signed request, ready for the transport."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    timeout: float = 20.0


def escape_path(path: str) -> str:
    """Percent-escape everything in ``path`` except the ``/`` separator."""
    return quote(path, safe="/").replace("~", "%7E")


def normalize_parameters(params: Mapping[str, Any]) -> list[tuple[str, str]]:
    pairs = [(oauth_escape(str(key)), oauth_escape(str(value))) for key, value in params.items()]
    pairs.sort()
    return pairs


def parameter_string(pairs: list[tuple[str, str]]) -> str:
    return "&".join(f"{key}={value}" for key, value in pairs)


def signature_base_string(method: str, url: str, param_string: str) -> str:
    return "&".join((method.upper(), oauth_escape(url), oauth_escape(param_string)))


def compute_signature(base_string: str, signing_key: str, method: SignatureMethod) -> str:
    if method == "PLAINTEXT":
        return signing_key
    if method == "HMAC-SHA1":
        digest = hmac.new(signing_key.encode(), base_string.encode(), hashlib.sha1).digest()
        return base64.b64encode(digest).decode()
    raise ValueError(f"unsupported signature method: {method!r}")


class RequestSigner:
    def __init__(
        self,
        config: ClientConfig,
        credentials: CredentialProvider,
        user_id: str | None = None,
    ) -> None:
        if credentials is None:
            raise ValueError("credentials are required to sign requests")
        self._config = config
        self._credentials = credentials
        self._user_id = user_id

    @property
    def config(self) -> ClientConfig:
        return self._config

    def base_url(self, host: str, path: str) -> str:
        if not host:
            raise ValueError("host is required")
        if not path.startswith("/"):
            raise ValueError(f"path must start with '/', got {path!r}")
        return f"https://{host}/{self._config.api_version}{escape_path(path)}"

    def _signed_pairs(
        self, method: str, url: str, params: Mapping[str, Any] | None
    ) -> tuple[list[tuple[str, str]], str]:
        all_params: dict[str, Any] = dict(self._credentials.oauth_parameters(self._user_id))
        all_params["locale"] = self._config.locale
        if params:
            all_params.update({k: v for k, v in params.items() if v is not None})

        pairs = normalize_parameters(all_params)
        base_string = signature_base_string(method, url, parameter_string(pairs))
        signature = compute_signature(
            base_string,
            self._credentials.signing_key(self._user_id),
            self._credentials.signature_method(self._user_id),
        )
        return pairs, signature

    def _headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = self._config.get_headers()
        if extra:
            headers.update(extra)
        return headers

    def sign(
        self,
        host: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        method: str = "GET",
        *,
        headers: Mapping[str, str] | None = None,
    ) -> SignedRequest:
        """Sign a request whose parameters travel in the query (GET) or a form body (POST)."""
        method = method.upper()
        url = self.base_url(host, path)
        pairs, signature = self._signed_pairs(method, url, params)
        query = f"{parameter_string(pairs)}&oauth_signature={oauth_escape(signature)}"

        if method == "GET":
            return SignedRequest(
                method=method,
                url=f"{url}?{query}",
                headers=self._headers(headers),
                timeout=self._config.timeout,
            )
        return SignedRequest(
            method=method,
            url=url,
            headers=self._headers({**(headers or {}), "content-type": FORM_CONTENT_TYPE}),
            body=query.encode("ascii"),
            timeout=self._config.timeout,
        )

    def sign_upload(
        self,
        host: str,
        path: str,
        params: Mapping[str, Any] | None,
        content_length: int | None = None,
    ) -> SignedRequest:
        """Sign a body-bearing POST; the body itself is excluded from the signature.

        Leave ``content_length`` unset when the body is only read once the
        operation runs; the length of what was read is sent instead.
        """
        url = self.base_url(host, path)
        pairs, signature = self._signed_pairs("POST", url, params)
        headers = {"content-type": OCTET_STREAM}
        if content_length is not None:
            headers["content-length"] = str(int(content_length))
        query = f"{parameter_string(pairs)}&oauth_signature={oauth_escape(signature)}"
        return SignedRequest(
            method="POST",
            url=f"{url}?{query}",
            headers=self._headers(headers),
            timeout=self._config.timeout,
        )


__all__ = [
    "RequestSigner",
    "SignedRequest",
    "compute_signature",
    "escape_path",
    "normalize_parameters",
    "parameter_string",
    "signature_base_string",
]
