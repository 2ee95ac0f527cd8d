"""HTTP configuration for Cloudbox API clients."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

SDK_VERSION = "0.3.0"

DEFAULT_API_HOST = "api.cloudbox.com"
DEFAULT_CONTENT_HOST = "api-content.cloudbox.com"
DEFAULT_API_VERSION = "1"
DEFAULT_TIMEOUT = 20.0
DEFAULT_LOCALE = "en"

Root = Literal["dropbox", "sandbox"]


def get_api_host() -> str:
    return os.getenv("CLOUDBOX_API_HOST") or DEFAULT_API_HOST


def get_content_host() -> str:
    return os.getenv("CLOUDBOX_CONTENT_HOST") or DEFAULT_CONTENT_HOST


def get_api_version() -> str:
    override = os.getenv("CLOUDBOX_API_VERSION_OVERRIDE")
    return str(override or DEFAULT_API_VERSION)


def get_timeout() -> float:
    timeout = os.getenv("CLOUDBOX_TIMEOUT")
    try:
        return float(timeout) if timeout is not None else DEFAULT_TIMEOUT
    except ValueError:
        return DEFAULT_TIMEOUT


def get_preferred_languages() -> list[str]:
    """Languages from ``LANG``/``LANGUAGE``, most preferred first (``en_US.UTF-8`` -> ``en``)."""
    raw = os.getenv("LANGUAGE") or os.getenv("LANG") or ""
    languages: list[str] = []
    for item in raw.split(":"):
        lang = item.split(".", 1)[0].replace("_", "-").strip()
        if lang and lang not in ("C", "POSIX"):
            languages.append(lang)
    return languages


def best_language(preferred: Sequence[str], supported: Sequence[str]) -> str:
    """Return the first preferred language the app ships, falling back to ``en``.

    Only the most preferred language is considered, and a region-qualified
    preference (``pt-BR``) also matches its bare language (``pt``).
    """
    if not preferred:
        return DEFAULT_LOCALE
    lang = preferred[0]
    if lang in supported:
        return lang
    base = lang.split("-", 1)[0]
    if base in supported:
        return base
    return DEFAULT_LOCALE


@dataclass
class ClientConfig:
    """Per-application settings, built once and shared by the signer and transport."""

    app_name: str = "CloudboxApp"
    app_version: str = "1.0"
    root: Root = "dropbox"
    api_host: str = field(default_factory=get_api_host)
    content_host: str = field(default_factory=get_content_host)
    api_version: str = field(default_factory=get_api_version)
    timeout: float = field(default_factory=get_timeout)
    supported_locales: tuple[str, ...] = (DEFAULT_LOCALE,)
    preferred_languages: list[str] = field(default_factory=get_preferred_languages)
    locale: str = ""

    def __post_init__(self) -> None:
        if self.root not in ("dropbox", "sandbox"):
            raise ValueError(f"root must be 'dropbox' or 'sandbox', got {self.root!r}")
        if not self.locale:
            self.locale = best_language(self.preferred_languages, self.supported_locales)

    @property
    def user_agent(self) -> str:
        app_name = self.app_name.replace(" ", "")
        return f"{app_name}/{self.app_version} CloudboxPythonSdk/{SDK_VERSION}"

    def get_headers(self) -> dict[str, str]:
        """Static headers attached to every request."""
        return {"user-agent": self.user_agent}


__all__ = [
    "ClientConfig",
    "DEFAULT_API_HOST",
    "DEFAULT_API_VERSION",
    "DEFAULT_CONTENT_HOST",
    "DEFAULT_LOCALE",
    "DEFAULT_TIMEOUT",
    "SDK_VERSION",
    "Root",
    "best_language",
    "get_api_host",
    "get_api_version",
    "get_content_host",
    "get_preferred_languages",
    "get_timeout",
]
