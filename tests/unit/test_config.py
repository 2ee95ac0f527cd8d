from __future__ import annotations

import pytest

from cloudbox import ClientConfig, best_language
from cloudbox._internal.http.config import (
    DEFAULT_API_HOST,
    DEFAULT_CONTENT_HOST,
    SDK_VERSION,
    get_preferred_languages,
    get_timeout,
)


class TestBestLanguage:
    def test_exact_match(self) -> None:
        assert best_language(["de", "en"], ["en", "de"]) == "de"

    def test_region_falls_back_to_base_language(self) -> None:
        assert best_language(["pt-BR"], ["en", "pt"]) == "pt"

    def test_only_most_preferred_language_is_considered(self) -> None:
        assert best_language(["xx", "de"], ["en", "de"]) == "en"

    def test_empty_preference_is_english(self) -> None:
        assert best_language([], ["fr"]) == "en"


class TestEnvironment:
    def test_defaults(self, mock_env_clear) -> None:
        config = ClientConfig()
        assert config.api_host == DEFAULT_API_HOST
        assert config.content_host == DEFAULT_CONTENT_HOST
        assert config.api_version == "1"
        assert config.timeout == 20.0
        assert config.locale == "en"
        assert config.root == "dropbox"

    def test_host_and_version_overrides(
        self, mock_env_clear, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CLOUDBOX_API_HOST", "api.test.local")
        monkeypatch.setenv("CLOUDBOX_CONTENT_HOST", "content.test.local")
        monkeypatch.setenv("CLOUDBOX_API_VERSION_OVERRIDE", "2")
        monkeypatch.setenv("CLOUDBOX_TIMEOUT", "5.5")

        config = ClientConfig()

        assert config.api_host == "api.test.local"
        assert config.content_host == "content.test.local"
        assert config.api_version == "2"
        assert config.timeout == 5.5

    def test_bad_timeout_uses_default(
        self, mock_env_clear, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CLOUDBOX_TIMEOUT", "soon")
        assert get_timeout() == 20.0

    def test_lang_parsing(self, mock_env_clear, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LANG", "pt_BR.UTF-8")
        assert get_preferred_languages() == ["pt-BR"]

        config = ClientConfig(supported_locales=("en", "pt"))
        assert config.locale == "pt"

    def test_c_locale_is_ignored(self, mock_env_clear, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LANG", "C")
        assert get_preferred_languages() == []


def test_user_agent_strips_spaces(config: ClientConfig) -> None:
    assert config.user_agent == f"TestApp/2.1 CloudboxPythonSdk/{SDK_VERSION}"
    assert config.get_headers() == {"user-agent": config.user_agent}


def test_invalid_root_is_rejected(mock_env_clear) -> None:
    with pytest.raises(ValueError, match="root"):
        ClientConfig(root="everything")  # type: ignore[arg-type]
