"""Tracked asynchronous operations."""

from __future__ import annotations

import asyncio
import enum
import threading
import uuid
from collections.abc import Awaitable, Callable, Generator, Hashable
from dataclasses import dataclass, field
from typing import Any

from ._internal.http.transport import FileBody, ProgressCallback, RequestBody, TransportResponse
from .results import Outcome, ResultCallback
from .signer import SignedRequest


class OperationKind(str, enum.Enum):
    LOAD_METADATA = "load_metadata"
    LOAD_DELTA = "load_delta"
    LOAD_FILE = "load_file"
    LOAD_THUMBNAIL = "load_thumbnail"
    UPLOAD_FILE = "upload_file"
    UPLOAD_CHUNK = "upload_chunk"
    COMMIT_CHUNKED_UPLOAD = "commit_chunked_upload"
    LOAD_REVISIONS = "load_revisions"
    RESTORE_FILE = "restore_file"
    MOVE_PATH = "move_path"
    COPY_PATH = "copy_path"
    CREATE_COPY_REF = "create_copy_ref"
    COPY_FROM_REF = "copy_from_ref"
    DELETE_PATH = "delete_path"
    CREATE_FOLDER = "create_folder"
    LOAD_ACCOUNT_INFO = "load_account_info"
    SEARCH = "search"
    LOAD_SHAREABLE_LINK = "load_shareable_link"
    LOAD_STREAMABLE_URL = "load_streamable_url"


class KeySpace(str, enum.Enum):
    GENERIC = "generic"
    DOWNLOAD = "download"
    THUMBNAIL = "thumbnail"
    UPLOAD = "upload"


class OperationState(str, enum.Enum):
    ISSUED = "issued"
    TRANSPORT_DONE = "transport_done"
    PARSE_FAILED = "parse_failed"
    AUTH_FAILED = "auth_failed"
    PARSED = "parsed"
    NOTIFIED = "notified"
    CANCELLED = "cancelled"
    REMOVED = "removed"


Parser = Callable[[TransportResponse, "Operation"], Any]
BodyLoader = Callable[[], Awaitable[bytes]]


@dataclass(eq=False)
class Operation:
    """One tracked call to the remote service.

    Equality is identity: two operations for the same path are still two
    operations. ``await op`` waits for the outcome; a cancelled operation
    never resolves its outcome, so awaiting one raises ``CancelledError``.
    """

    kind: OperationKind
    request: SignedRequest
    parser: Parser
    key_space: KeySpace = KeySpace.GENERIC
    key: Hashable | None = None
    user_info: dict[str, Any] = field(default_factory=dict)
    on_result: ResultCallback | None = None
    on_progress: ProgressCallback | None = None
    body: RequestBody = None
    body_loader: BodyLoader | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)
    download_to: str | None = None
    allow_not_modified: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: OperationState = OperationState.ISSUED

    def __post_init__(self) -> None:
        self._cancelled = threading.Event()
        self._task: asyncio.Task[None] | None = None
        self._outcome: asyncio.Future[Outcome] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self.state in (OperationState.NOTIFIED, OperationState.REMOVED) or self.cancelled

    @property
    def streams_file(self) -> bool:
        return isinstance(self.body, FileBody)

    def bind(self, task: asyncio.Task[None], outcome: asyncio.Future[Outcome]) -> None:
        self._task = task
        self._outcome = outcome

    def cancel(self) -> None:
        """Flag the operation as cancelled and stop its transport task.

        Safe to call from any thread and more than once; a no-op once the
        outcome has been delivered.
        """
        if self.state in (OperationState.NOTIFIED, OperationState.REMOVED):
            return
        self._cancelled.set()
        self.state = OperationState.CANCELLED
        task = self._task
        if task is not None and not task.done():
            loop = task.get_loop()
            if loop.is_closed():
                return
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                task.cancel()
            else:
                loop.call_soon_threadsafe(task.cancel)

    def resolve(self, outcome: Outcome) -> None:
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(outcome)

    def abandon(self) -> None:
        if self._outcome is not None and not self._outcome.done():
            self._outcome.cancel()

    def __await__(self) -> Generator[Any, None, Outcome]:
        if self._outcome is None:
            raise RuntimeError("operation was never started")
        return self._outcome.__await__()


__all__ = [
    "BodyLoader",
    "KeySpace",
    "Operation",
    "OperationKind",
    "OperationState",
    "Parser",
]
