"""Fixtures for integration tests using respx mocking."""

import pytest

# Service hosts
API_HOST = "api.cloudbox.com"
CONTENT_HOST = "api-content.cloudbox.com"


# =============================================================================
# Mock Responses
# =============================================================================


@pytest.fixture
def mock_file_metadata() -> dict:
    """Metadata for a single file."""
    return {
        "size": "225.4KB",
        "rev": "35e97029684fe",
        "thumb_exists": False,
        "bytes": 230783,
        "modified": "Tue, 19 Jul 2011 21:55:38 +0000",
        "path": "/Getting_Started.pdf",
        "is_dir": False,
        "icon": "page_white_acrobat",
        "root": "dropbox",
        "mime_type": "application/pdf",
        "revision": 220823,
    }


@pytest.fixture
def mock_folder_metadata(mock_file_metadata: dict) -> dict:
    """Metadata for a folder listing."""
    return {
        "size": "0 bytes",
        "hash": "37eb1ba1849d4b0fb0b28caf7ef3af52",
        "bytes": 0,
        "thumb_exists": False,
        "rev": "714f029684fe",
        "modified": "Wed, 27 Apr 2011 22:18:51 +0000",
        "path": "/Photos",
        "is_dir": True,
        "icon": "folder",
        "root": "dropbox",
        "contents": [mock_file_metadata],
        "revision": 29007,
    }


@pytest.fixture
def mock_account_info() -> dict:
    return {
        "referral_link": "https://www.cloudbox.com/referrals/r1a2n3d4m5s6t7",
        "display_name": "Test User",
        "uid": 12345678,
        "country": "US",
        "quota_info": {"shared": 253738410565, "quota": 107374182400000, "normal": 680031877871},
        "email": "test@example.com",
    }
