"""Resumable chunked uploads.

A large file is sent as consecutive chunks of :data:`CHUNK_SIZE` bytes. The
first chunk is sent without an upload id; the server's acknowledgement
assigns one and reports the offset to continue from. Once every byte is
acknowledged the session is committed to its destination path.
"""

from __future__ import annotations

import inspect
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, cast

import anyio

from .errors import (
    CloudboxError,
    IllegalFileTypeError,
    InvalidResponseError,
    LocalFileNotFoundError,
)
from .models import ChunkUploadAck, CommittedUpload
from .results import Failure, Outcome, ProgressEvent, Success

if TYPE_CHECKING:
    from .client import RestClient

logger = logging.getLogger("cloudbox.chunked")

CHUNK_SIZE = 2 * 1024 * 1024


async def read_chunk(path: str, offset: int, size: int = CHUNK_SIZE) -> bytes:
    """Read up to ``size`` bytes of ``path`` starting at ``offset``."""
    try:
        async with await anyio.open_file(path, "rb") as f:
            await f.seek(offset)
            data = await f.read(size)
    except FileNotFoundError as exc:
        raise LocalFileNotFoundError(user_info={"from_path": path, "offset": offset}) from exc
    except IsADirectoryError as exc:
        raise IllegalFileTypeError(user_info={"from_path": path, "offset": offset}) from exc
    except OSError as exc:
        raise CloudboxError(
            f"Unable to read {path}: {exc}", user_info={"from_path": path, "offset": offset}
        ) from exc
    if not data:
        logger.warning("did not read any data from %s at offset %d", path, offset)
    return data


@dataclass
class ChunkedUploadSession:
    """Progress of one chunked upload; keep it to resume after a failure."""

    local_path: str
    upload_id: str | None = None
    offset: int = 0
    expires: datetime | None = None

    def advance(self, ack: ChunkUploadAck, sent: int) -> None:
        if self.upload_id is not None and ack.upload_id != self.upload_id:
            raise InvalidResponseError(
                f"upload id changed from {self.upload_id} to {ack.upload_id}",
                user_info={"upload_id": self.upload_id},
            )
        if sent > 0 and ack.offset <= self.offset:
            raise InvalidResponseError(
                f"chunk offset did not advance past {self.offset}",
                user_info={"upload_id": ack.upload_id, "offset": ack.offset},
            )
        self.upload_id = ack.upload_id
        self.offset = ack.offset
        self.expires = ack.expires

    def expired(self, now: datetime | None = None) -> bool:
        if self.expires is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires = self.expires
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now >= expires


def _unwrap(outcome: Outcome) -> Any:
    if isinstance(outcome, Failure):
        raise outcome.error
    if isinstance(outcome, Success):
        return outcome.value
    raise InvalidResponseError(f"unexpected outcome {type(outcome).__name__}")


class ChunkedUploader:
    """Drive a file through ``upload_file_chunk`` calls and a final commit.

    ``on_progress`` receives events covering the whole file, not single
    chunks. If a chunk fails the error is raised and :attr:`session` keeps
    the last acknowledged offset, so passing it back to :meth:`upload`
    resumes from there.
    """

    def __init__(
        self,
        client: RestClient,
        *,
        on_progress: Callable[[ProgressEvent], None | Awaitable[None]] | None = None,
    ) -> None:
        self._client = client
        self._on_progress = on_progress
        self.session: ChunkedUploadSession | None = None

    async def _emit(self, loaded: int, total: int) -> None:
        if self._on_progress is None:
            return
        percentage = round(loaded / total * 100, 2) if total else 100.0
        result = self._on_progress(ProgressEvent(loaded=loaded, total=total, percentage=percentage))
        if inspect.isawaitable(result):
            await cast(Awaitable[None], result)

    async def upload(
        self,
        local_path: str | os.PathLike,
        parent_folder: str,
        filename: str | None = None,
        *,
        parent_rev: str | None = None,
        session: ChunkedUploadSession | None = None,
    ) -> CommittedUpload:
        source = os.fspath(local_path)
        if os.path.isdir(source):
            raise IllegalFileTypeError(user_info={"source_path": source})
        if not os.path.isfile(source):
            raise LocalFileNotFoundError(user_info={"source_path": source})
        filename = filename or os.path.basename(source)
        total = os.path.getsize(source)

        if session is not None and session.expired():
            logger.info("chunked upload %s expired, starting over", session.upload_id)
            session = None
        self.session = session or ChunkedUploadSession(source)
        current = self.session

        while current.upload_id is None or current.offset < total:
            sent = min(CHUNK_SIZE, max(total - current.offset, 0))
            base = current.offset

            async def chunk_progress(event: ProgressEvent, base: int = base) -> None:
                await self._emit(min(base + event.loaded, total), total)

            outcome = await self._client.upload_file_chunk(
                current.upload_id,
                current.offset,
                source,
                on_progress=chunk_progress if self._on_progress else None,
            )
            current.advance(_unwrap(outcome), sent)
            logger.debug("chunk acked for %s at offset %d", current.upload_id, current.offset)
            if sent == 0:
                break

        await self._emit(total, total)
        if not current.upload_id:
            raise InvalidResponseError(
                "Server did not assign an upload id", user_info={"local_path": source}
            )
        outcome = await self._client.commit_chunked_upload(
            filename, parent_folder, current.upload_id, parent_rev=parent_rev
        )
        return cast(CommittedUpload, _unwrap(outcome))


__all__ = [
    "CHUNK_SIZE",
    "ChunkedUploadSession",
    "ChunkedUploader",
    "read_chunk",
]
