from __future__ import annotations

from typing import Any


class CloudboxError(Exception):
    """Base class for every error delivered by the Cloudbox client."""

    def __init__(self, message: str = "", *, user_info: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.user_info: dict[str, Any] = dict(user_info or {})


class TransportError(CloudboxError):
    """The request never produced an HTTP response (network failure, timeout)."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        cause: Exception | None = None,
        user_info: dict[str, Any] | None = None,
    ) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, user_info=user_info)
        self.cause = cause


class ApiError(CloudboxError):
    """The service answered with an HTTP error status."""

    def __init__(
        self,
        status_code: int,
        message: str | None = None,
        *,
        data: Any | None = None,
        user_info: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or f"HTTP {status_code}", user_info=user_info)
        self.status_code = status_code
        self.data = data


class AuthenticationError(ApiError):
    """HTTP 401 from the service: the credential was rejected."""

    def __init__(
        self,
        message: str | None = None,
        *,
        data: Any | None = None,
        user_info: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(401, message, data=data, user_info=user_info)


class InvalidResponseError(CloudboxError):
    def __init__(
        self,
        message: str = "Response body did not have the expected shape",
        *,
        user_info: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, user_info=user_info)


class LocalFileNotFoundError(CloudboxError):
    def __init__(
        self, message: str = "File does not exist", *, user_info: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, user_info=user_info)


class IllegalFileTypeError(CloudboxError):
    def __init__(
        self, message: str = "Unable to upload folders", *, user_info: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, user_info=user_info)


class ClientClosedError(CloudboxError):
    def __init__(self) -> None:
        super().__init__("Client is closed")


__all__ = [
    "ApiError",
    "AuthenticationError",
    "ClientClosedError",
    "CloudboxError",
    "IllegalFileTypeError",
    "InvalidResponseError",
    "LocalFileNotFoundError",
    "TransportError",
]
