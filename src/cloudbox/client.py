"""Cloudbox REST client.

Every operation is fire-and-forget: it signs a request, tracks it, starts
the transport on the running event loop and returns the
:class:`~cloudbox.operation.Operation` immediately. The outcome is handed to
``on_result`` on the same loop, and the operation itself can be awaited::

    async with RestClient(StaticCredentialProvider.from_env()) as client:
        op = client.load_metadata("/Photos", on_result=print)
        outcome = await op
"""

from __future__ import annotations

import functools
import os
import posixpath
from collections.abc import Mapping
from typing import Any

import httpx

from . import parsers
from ._internal.http.clients import create_headers_async_client
from ._internal.http.config import ClientConfig
from ._internal.http.transport import AsyncTransport, FileBody, ProgressCallback
from ._internal.log import logger
from .auth import CredentialProvider
from .chunked import CHUNK_SIZE, read_chunk
from .dispatcher import CompletionDispatcher
from .errors import (
    ClientClosedError,
    CloudboxError,
    IllegalFileTypeError,
    InvalidResponseError,
    LocalFileNotFoundError,
)
from .listener import DelegateListener
from .operation import KeySpace, Operation, OperationKind, Parser
from .registry import RequestRegistry, SupersedePolicy, thumbnail_key
from .results import ResultCallback
from .signer import RequestSigner, SignedRequest

THUMBNAIL_PNG_EXTENSIONS = (".png", ".gif")


def normalize_path(path: str) -> str:
    """Service paths always start with ``/``."""
    if not path:
        return "/"
    return path if path.startswith("/") else "/" + path


def thumbnail_format(path: str) -> str:
    return "PNG" if path.lower().endswith(THUMBNAIL_PNG_EXTENSIONS) else "JPEG"


def _never_sent(response: Any, op: Operation) -> Any:
    raise InvalidResponseError("operation never reached the network")


def check_local_source(source_path: str, user_info: dict[str, Any]) -> CloudboxError | None:
    """Validate an upload source before anything touches the network."""
    if os.path.isdir(source_path):
        logger.warning("Unable to upload folders (%s)", source_path)
        return IllegalFileTypeError(user_info=user_info)
    if not os.path.isfile(source_path):
        logger.warning("File does not exist (%s)", source_path)
        return LocalFileNotFoundError(user_info=user_info)
    return None


class RestClient:
    """Issues and tracks operations against the Cloudbox REST API."""

    def __init__(
        self,
        credentials: CredentialProvider,
        *,
        config: ClientConfig | None = None,
        user_id: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        supersede_policy: SupersedePolicy = SupersedePolicy.OVERWRITE,
        delegate: object | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._credentials = credentials
        self._user_id = user_id
        self._signer = RequestSigner(self._config, credentials, user_id)
        self._transport = AsyncTransport(
            create_headers_async_client(
                self._config.get_headers(), self._config.timeout, client=http_client
            )
        )
        self._registry = RequestRegistry(supersede_policy)
        self._dispatcher = CompletionDispatcher(
            self._transport, self._registry, credentials, user_id
        )
        self._listener = DelegateListener(delegate) if delegate is not None else None
        self._closed = False

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def root(self) -> str:
        return self._config.root

    @property
    def registry(self) -> RequestRegistry:
        return self._registry

    @property
    def signer(self) -> RequestSigner:
        return self._signer

    # -- lifecycle -------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientClosedError()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._registry.cancel_all()
        await self._transport.aclose()

    async def __aenter__(self) -> RestClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # -- plumbing --------------------------------------------------------

    def _resolve_callbacks(
        self,
        kind: OperationKind,
        on_result: ResultCallback | None,
        on_progress: ProgressCallback | None,
        user_info: dict[str, Any],
    ) -> tuple[ResultCallback | None, ProgressCallback | None]:
        if self._listener is not None:
            if on_result is None:
                on_result = self._listener.result_callback(kind, user_info)
            if on_progress is None:
                on_progress = self._listener.progress_callback(kind, user_info)
        return on_result, on_progress

    def _issue(
        self,
        kind: OperationKind,
        request: SignedRequest,
        parser: Parser,
        *,
        user_info: dict[str, Any],
        on_result: ResultCallback | None,
        on_progress: ProgressCallback | None = None,
        key_space: KeySpace = KeySpace.GENERIC,
        key: Any = None,
        **extra: Any,
    ) -> Operation:
        on_result, on_progress = self._resolve_callbacks(kind, on_result, on_progress, user_info)
        op = Operation(
            kind=kind,
            request=request,
            parser=parser,
            key_space=key_space,
            key=key,
            user_info=user_info,
            on_result=on_result,
            on_progress=on_progress,
            **extra,
        )
        return self._dispatcher.start(op)

    def _fail(
        self,
        kind: OperationKind,
        error: CloudboxError,
        *,
        user_info: dict[str, Any],
        on_result: ResultCallback | None,
    ) -> Operation:
        on_result, _ = self._resolve_callbacks(kind, on_result, None, user_info)
        op = Operation(
            kind=kind,
            request=SignedRequest(method="", url=""),
            parser=_never_sent,
            user_info=user_info,
            on_result=on_result,
        )
        return self._dispatcher.fail_fast(op, error)

    def _api(
        self, path: str, params: Mapping[str, Any] | None = None, method: str = "GET"
    ) -> SignedRequest:
        return self._signer.sign(self._config.api_host, path, params, method)

    def _content(
        self, path: str, params: Mapping[str, Any] | None = None, method: str = "GET"
    ) -> SignedRequest:
        return self._signer.sign(self._config.content_host, path, params, method)

    # -- metadata & delta ------------------------------------------------

    def load_metadata(
        self,
        path: str,
        *,
        hash: str | None = None,
        rev: str | None = None,
        params: Mapping[str, Any] | None = None,
        on_result: ResultCallback | None = None,
    ) -> Operation:
        """Load metadata for ``path``.

        Passing the ``hash`` of a previous folder listing makes the read
        conditional: if nothing changed the outcome is ``Unchanged`` rather
        than a new ``Metadata``.
        """
        self._ensure_open()
        path = normalize_path(path)
        query: dict[str, Any] = dict(params or {})
        if hash is not None:
            query["hash"] = hash
        if rev is not None:
            query["rev"] = rev
        return self._issue(
            OperationKind.LOAD_METADATA,
            self._api(f"/metadata/{self.root}{path}", query),
            parsers.parse_metadata,
            user_info={"path": path, **query},
            on_result=on_result,
            allow_not_modified=True,
        )

    def load_delta(
        self, cursor: str | None = None, *, on_result: ResultCallback | None = None
    ) -> Operation:
        self._ensure_open()
        query = {"cursor": cursor} if cursor else {}
        return self._issue(
            OperationKind.LOAD_DELTA,
            self._api("/delta", query, "POST"),
            parsers.parse_delta,
            user_info=dict(query),
            on_result=on_result,
        )

    # -- downloads -------------------------------------------------------

    def load_file(
        self,
        path: str,
        destination_path: str | os.PathLike,
        *,
        rev: str | None = None,
        byte_range: tuple[int, int] | None = None,
        on_result: ResultCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Operation:
        """Download ``path`` into ``destination_path``.

        Tracked by source path. Starting a second download for the same path
        follows the registry's supersede policy; by default the first one is
        not cancelled.
        """
        self._ensure_open()
        path = normalize_path(path)
        dest = os.fspath(destination_path)
        headers: dict[str, str] = {}
        if byte_range is not None:
            start, end = byte_range
            headers["range"] = f"bytes={int(start)}-{int(end)}"
        return self._issue(
            OperationKind.LOAD_FILE,
            self._content(f"/files/{self.root}{path}", {"rev": rev}),
            parsers.parse_loaded_file,
            user_info={"path": path, "destination_path": dest, "rev": rev},
            on_result=on_result,
            on_progress=on_progress,
            key_space=KeySpace.DOWNLOAD,
            key=path,
            download_to=dest,
            extra_headers=headers,
        )

    def cancel_file_load(self, path: str) -> bool:
        return self._registry.cancel_download(normalize_path(path))

    def load_thumbnail(
        self,
        path: str,
        size: str | None,
        destination_path: str | os.PathLike,
        *,
        on_result: ResultCallback | None = None,
    ) -> Operation:
        self._ensure_open()
        path = normalize_path(path)
        dest = os.fspath(destination_path)
        query: dict[str, Any] = {"format": thumbnail_format(path)}
        if size:
            query["size"] = size
        return self._issue(
            OperationKind.LOAD_THUMBNAIL,
            self._content(f"/thumbnails/{self.root}{path}", query),
            parsers.parse_loaded_thumbnail,
            user_info={"root": self.root, "path": path, "destination_path": dest, "size": size},
            on_result=on_result,
            key_space=KeySpace.THUMBNAIL,
            key=thumbnail_key(path, size),
            download_to=dest,
        )

    def cancel_thumbnail_load(self, path: str, size: str | None) -> bool:
        return self._registry.cancel_thumbnail(normalize_path(path), size)

    # -- uploads ---------------------------------------------------------

    def upload_file(
        self,
        filename: str,
        to_path: str,
        from_path: str | os.PathLike,
        *,
        parent_rev: str | None = None,
        overwrite: bool = False,
        params: Mapping[str, Any] | None = None,
        on_result: ResultCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Operation:
        """Upload a local file to ``{to_path}/{filename}`` in one request.

        With ``overwrite=False`` (the default) a conflicting upload is saved
        under a new name instead of replacing the existing file.
        """
        self._ensure_open()
        source = os.fspath(from_path)
        dest = posixpath.join(normalize_path(to_path), filename)
        user_info = {"source_path": source, "destination_path": dest}

        error = check_local_source(source, user_info)
        if error is not None:
            return self._fail(
                OperationKind.UPLOAD_FILE, error, user_info=user_info, on_result=on_result
            )

        query: dict[str, Any] = dict(params or {})
        query["overwrite"] = "true" if overwrite else "false"
        if parent_rev:
            query["parent_rev"] = parent_rev
        size = os.path.getsize(source)
        request = self._signer.sign_upload(
            self._config.content_host, f"/files_put/{self.root}{dest}", query, size
        )
        return self._issue(
            OperationKind.UPLOAD_FILE,
            request,
            parsers.parse_uploaded_file,
            user_info=user_info,
            on_result=on_result,
            on_progress=on_progress,
            key_space=KeySpace.UPLOAD,
            key=dest,
            body=FileBody(source, size),
        )

    def cancel_file_upload(self, destination_path: str) -> bool:
        return self._registry.cancel_upload(normalize_path(destination_path))

    def upload_file_chunk(
        self,
        upload_id: str | None,
        offset: int,
        from_path: str | os.PathLike,
        *,
        on_result: ResultCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Operation:
        """Upload the chunk of ``from_path`` starting at ``offset``.

        Omit ``upload_id`` for the first chunk; the server assigns one in its
        acknowledgement, which also carries the next offset and the session
        expiry.
        """
        self._ensure_open()
        source = os.fspath(from_path)
        user_info = {"from_path": source, "offset": offset, "upload_id": upload_id}
        request = self._signer.sign_upload(
            self._config.content_host,
            "/chunked_upload",
            {"offset": offset, "upload_id": upload_id},
        )
        return self._issue(
            OperationKind.UPLOAD_CHUNK,
            request,
            parsers.parse_chunk_ack,
            user_info=user_info,
            on_result=on_result,
            on_progress=on_progress,
            body_loader=functools.partial(read_chunk, source, offset, CHUNK_SIZE),
        )

    def commit_chunked_upload(
        self,
        filename: str,
        parent_folder: str,
        upload_id: str,
        *,
        parent_rev: str | None = None,
        on_result: ResultCallback | None = None,
    ) -> Operation:
        """Turn a finished chunked upload into ``{parent_folder}/{filename}``."""
        self._ensure_open()
        if not upload_id:
            raise ValueError("upload_id is required to commit a chunked upload")
        folder = normalize_path(parent_folder)
        if not folder.endswith("/"):
            folder += "/"
        dest = f"{folder}{filename}"
        query: dict[str, Any] = {"upload_id": upload_id, "overwrite": "false"}
        if parent_rev:
            query["parent_rev"] = parent_rev
        return self._issue(
            OperationKind.COMMIT_CHUNKED_UPLOAD,
            self._content(f"/commit_chunked_upload/{self.root}{dest}", query, "POST"),
            parsers.parse_commit,
            user_info={"upload_id": upload_id, "destination_path": dest, "parent_rev": parent_rev},
            on_result=on_result,
        )

    # -- revisions -------------------------------------------------------

    def load_revisions(
        self, path: str, limit: int = 10, *, on_result: ResultCallback | None = None
    ) -> Operation:
        self._ensure_open()
        path = normalize_path(path)
        return self._issue(
            OperationKind.LOAD_REVISIONS,
            self._api(f"/revisions/{self.root}{path}", {"rev_limit": int(limit)}),
            parsers.parse_metadata_list,
            user_info={"path": path, "limit": limit},
            on_result=on_result,
        )

    def restore_file(
        self, path: str, rev: str, *, on_result: ResultCallback | None = None
    ) -> Operation:
        self._ensure_open()
        path = normalize_path(path)
        return self._issue(
            OperationKind.RESTORE_FILE,
            self._api(f"/restore/{self.root}{path}", {"rev": rev}),
            parsers.parse_metadata,
            user_info={"path": path, "rev": rev},
            on_result=on_result,
        )

    # -- file operations -------------------------------------------------

    def move_path(
        self, from_path: str, to_path: str, *, on_result: ResultCallback | None = None
    ) -> Operation:
        return self._fileop(
            OperationKind.MOVE_PATH, "/fileops/move", from_path, to_path, on_result
        )

    def copy_path(
        self, from_path: str, to_path: str, *, on_result: ResultCallback | None = None
    ) -> Operation:
        return self._fileop(
            OperationKind.COPY_PATH, "/fileops/copy", from_path, to_path, on_result
        )

    def _fileop(
        self,
        kind: OperationKind,
        endpoint: str,
        from_path: str,
        to_path: str,
        on_result: ResultCallback | None,
    ) -> Operation:
        self._ensure_open()
        query = {
            "root": self.root,
            "from_path": normalize_path(from_path),
            "to_path": normalize_path(to_path),
        }
        return self._issue(
            kind,
            self._api(endpoint, query, "POST"),
            parsers.parse_metadata,
            user_info=dict(query),
            on_result=on_result,
        )

    def create_copy_ref(self, path: str, *, on_result: ResultCallback | None = None) -> Operation:
        self._ensure_open()
        path = normalize_path(path)
        return self._issue(
            OperationKind.CREATE_COPY_REF,
            self._api(f"/copy_ref/{self.root}{path}", None, "POST"),
            parsers.parse_copy_ref,
            user_info={"path": path},
            on_result=on_result,
        )

    def copy_from_ref(
        self, copy_ref: str, to_path: str, *, on_result: ResultCallback | None = None
    ) -> Operation:
        self._ensure_open()
        query = {"from_copy_ref": copy_ref, "root": self.root, "to_path": normalize_path(to_path)}
        return self._issue(
            OperationKind.COPY_FROM_REF,
            self._api("/fileops/copy", query, "POST"),
            parsers.parse_metadata,
            user_info=dict(query),
            on_result=on_result,
        )

    def delete_path(self, path: str, *, on_result: ResultCallback | None = None) -> Operation:
        self._ensure_open()
        query = {"root": self.root, "path": normalize_path(path)}
        return self._issue(
            OperationKind.DELETE_PATH,
            self._api("/fileops/delete", query, "POST"),
            parsers.parse_deleted_path,
            user_info=dict(query),
            on_result=on_result,
        )

    def create_folder(self, path: str, *, on_result: ResultCallback | None = None) -> Operation:
        self._ensure_open()
        query = {"root": self.root, "path": normalize_path(path)}
        return self._issue(
            OperationKind.CREATE_FOLDER,
            self._api("/fileops/create_folder", query, "POST"),
            parsers.parse_metadata,
            user_info=dict(query),
            on_result=on_result,
        )

    # -- account, search, links ------------------------------------------

    def load_account_info(self, *, on_result: ResultCallback | None = None) -> Operation:
        self._ensure_open()
        return self._issue(
            OperationKind.LOAD_ACCOUNT_INFO,
            self._api("/account/info"),
            parsers.parse_account_info,
            user_info={"root": self.root},
            on_result=on_result,
        )

    def search(
        self, path: str, keyword: str, *, on_result: ResultCallback | None = None
    ) -> Operation:
        self._ensure_open()
        path = normalize_path(path)
        return self._issue(
            OperationKind.SEARCH,
            self._api(f"/search/{self.root}{path}", {"query": keyword}),
            parsers.parse_metadata_list,
            user_info={"path": path, "keyword": keyword},
            on_result=on_result,
        )

    def load_shareable_link(
        self, path: str, *, short_url: bool = True, on_result: ResultCallback | None = None
    ) -> Operation:
        self._ensure_open()
        path = normalize_path(path)
        return self._issue(
            OperationKind.LOAD_SHAREABLE_LINK,
            self._api(
                f"/shares/{self.root}{path}", {"short_url": "true" if short_url else "false"}
            ),
            parsers.parse_shared_link,
            user_info={"path": path},
            on_result=on_result,
        )

    def load_streamable_url(
        self, path: str, *, on_result: ResultCallback | None = None
    ) -> Operation:
        self._ensure_open()
        path = normalize_path(path)
        return self._issue(
            OperationKind.LOAD_STREAMABLE_URL,
            self._api(f"/media/{self.root}{path}"),
            parsers.parse_shared_link,
            user_info={"path": path},
            on_result=on_result,
        )

    # -- bookkeeping -----------------------------------------------------

    def cancel_all_requests(self) -> None:
        self._registry.cancel_all()

    @property
    def request_count(self) -> int:
        return self._registry.count()


__all__ = [
    "RestClient",
    "check_local_source",
    "normalize_path",
    "thumbnail_format",
]
