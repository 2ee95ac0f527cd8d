"""HTTP transport for signed Cloudbox requests."""

from __future__ import annotations

import inspect
import json
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, cast

import anyio
import httpx

from ...errors import CloudboxError, LocalFileNotFoundError, TransportError
from ...results import ProgressEvent
from ...signer import SignedRequest

STREAM_CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[ProgressEvent], None] | Callable[[ProgressEvent], Awaitable[None]]
CancelCheck = Callable[[], bool]


class TransferCancelled(Exception):
    """Raised inside a transfer once its operation's cancel flag is observed."""


@dataclass(slots=True)
class TransportResponse:
    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: bytes = b""

    def json(self) -> Any:
        return json.loads(self.content)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class FileBody:
    """Stream the contents of a local file as the request body."""

    path: str
    size: int


RequestBody = bytes | FileBody | None


def _progress_event(loaded: int, total: int | None) -> ProgressEvent:
    percentage = round((loaded / total) * 100, 2) if total else 0.0
    return ProgressEvent(loaded=loaded, total=total, percentage=percentage)


async def _emit_progress(callback: ProgressCallback | None, loaded: int, total: int | None) -> None:
    if callback is None:
        return
    result = callback(_progress_event(loaded, total))
    if inspect.isawaitable(result):
        await cast(Awaitable[None], result)


def _content_length(headers: httpx.Headers) -> int | None:
    try:
        return int(headers.get("content-length", "0")) or None
    except ValueError:
        return None


def _check_cancelled(is_cancelled: CancelCheck | None) -> None:
    if is_cancelled is not None and is_cancelled():
        raise TransferCancelled()


class AsyncTransport:
    """Executes :class:`SignedRequest` objects with an ``httpx.AsyncClient``.

    Error statuses are returned, not raised; interpreting them is the
    dispatcher's job. Only failures that produce no response at all become
    :class:`TransportError`.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _iter_body(
        self,
        body: RequestBody,
        on_progress: ProgressCallback | None,
        is_cancelled: CancelCheck | None,
    ) -> AsyncIterator[bytes]:
        loaded = 0
        if isinstance(body, FileBody):
            total = body.size
            async with await anyio.open_file(body.path, "rb") as f:
                while True:
                    _check_cancelled(is_cancelled)
                    chunk = await f.read(STREAM_CHUNK_SIZE)
                    if not chunk:
                        break
                    loaded += len(chunk)
                    yield chunk
                    await _emit_progress(on_progress, loaded, total)
            return

        data = memoryview(body or b"")
        total = len(data)
        while loaded < total:
            _check_cancelled(is_cancelled)
            end = min(loaded + STREAM_CHUNK_SIZE, total)
            chunk = bytes(data[loaded:end])
            loaded = end
            yield chunk
            await _emit_progress(on_progress, loaded, total)

    async def execute(
        self,
        request: SignedRequest,
        *,
        body: RequestBody = None,
        extra_headers: dict[str, str] | None = None,
        on_upload_progress: ProgressCallback | None = None,
        download_to: str | os.PathLike | None = None,
        on_download_progress: ProgressCallback | None = None,
        is_cancelled: CancelCheck | None = None,
    ) -> TransportResponse:
        """Send ``request`` and return its response.

        ``body`` overrides the signed request's own body (form parameters)
        and is streamed with upload progress. When ``download_to`` is given
        and the status is 2xx, the response body is streamed into
        ``{download_to}.part`` and renamed into place on success.
        """
        headers = dict(request.headers)
        if extra_headers:
            headers.update(extra_headers)

        content: Any
        if body is not None:
            content = self._iter_body(body, on_upload_progress, is_cancelled)
        else:
            content = request.body

        _check_cancelled(is_cancelled)
        try:
            async with self._client.stream(
                request.method,
                request.url,
                headers=headers,
                content=content,
                timeout=httpx.Timeout(request.timeout),
            ) as response:
                if download_to is not None and 200 <= response.status_code < 300:
                    await self._download(response, download_to, on_download_progress, is_cancelled)
                    return TransportResponse(response.status_code, response.headers)
                data = await response.aread()
                return TransportResponse(response.status_code, response.headers, data)
        except httpx.HTTPError as exc:
            raise TransportError(cause=exc) from exc
        except FileNotFoundError as exc:
            raise LocalFileNotFoundError(user_info={"local_path": exc.filename}) from exc
        except OSError as exc:
            raise CloudboxError(
                f"Local file I/O failed: {exc}", user_info={"local_path": exc.filename}
            ) from exc

    async def _download(
        self,
        response: httpx.Response,
        download_to: str | os.PathLike,
        on_progress: ProgressCallback | None,
        is_cancelled: CancelCheck | None,
    ) -> None:
        dst = os.fspath(download_to)
        tmp = dst + ".part"
        total = _content_length(response.headers)
        bytes_read = 0
        try:
            async with await anyio.open_file(tmp, "wb") as f:
                async for chunk in response.aiter_bytes():
                    _check_cancelled(is_cancelled)
                    if not chunk:
                        continue
                    await f.write(chunk)
                    bytes_read += len(chunk)
                    await _emit_progress(on_progress, bytes_read, total)
            os.replace(tmp, dst)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise


__all__ = [
    "AsyncTransport",
    "FileBody",
    "ProgressCallback",
    "RequestBody",
    "STREAM_CHUNK_SIZE",
    "TransferCancelled",
    "TransportResponse",
]
