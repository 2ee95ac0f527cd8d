"""Adapter for delegate-style listeners.

Older call sites hand the client one object with optional methods such as
``loaded_metadata(metadata)`` or ``load_metadata_failed(error)`` instead of
passing ``on_result`` per call. :class:`DelegateListener` turns such an
object into the per-operation callbacks the client uses. For each outcome
it calls exactly one method, the richest shape the delegate implements.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from ._internal.http.transport import ProgressCallback
from .operation import OperationKind
from .results import Failure, Outcome, ProgressEvent, ResultCallback, Success, Unchanged

logger = logging.getLogger("cloudbox.listener")

ArgBuilder = Callable[[Any, Mapping[str, Any]], tuple[Any, ...]]
Shape = tuple[str, ArgBuilder]

K = OperationKind

SUCCESS_SHAPES: dict[OperationKind, Sequence[Shape]] = {
    K.LOAD_METADATA: [("loaded_metadata", lambda v, i: (v,))],
    K.LOAD_DELTA: [
        ("loaded_delta", lambda v, i: (v.entries, v.reset, v.cursor, v.has_more)),
    ],
    K.LOAD_FILE: [
        (
            "loaded_file_with_metadata",
            lambda v, i: (v.destination_path, v.content_type, v.metadata),
        ),
        ("loaded_file_with_content_type", lambda v, i: (v.destination_path, v.content_type)),
        ("loaded_file", lambda v, i: (v.destination_path,)),
    ],
    K.LOAD_THUMBNAIL: [
        ("loaded_thumbnail_with_metadata", lambda v, i: (v.destination_path, v.metadata)),
        ("loaded_thumbnail", lambda v, i: (v.destination_path,)),
    ],
    K.UPLOAD_FILE: [
        (
            "uploaded_file_with_metadata",
            lambda v, i: (v.destination_path, v.source_path, v.metadata),
        ),
        ("uploaded_file", lambda v, i: (v.destination_path, v.source_path)),
    ],
    K.UPLOAD_CHUNK: [
        ("uploaded_file_chunk", lambda v, i: (v.upload_id, v.offset, v.expires)),
    ],
    K.COMMIT_CHUNKED_UPLOAD: [
        (
            "committed_chunked_upload",
            lambda v, i: (v.destination_path, v.upload_id, v.metadata),
        ),
        ("uploaded_file_with_metadata", lambda v, i: (v.destination_path, None, v.metadata)),
    ],
    K.LOAD_REVISIONS: [("loaded_revisions", lambda v, i: (v, i.get("path")))],
    K.RESTORE_FILE: [("restored_file", lambda v, i: (v,))],
    K.MOVE_PATH: [("moved_path", lambda v, i: (i.get("from_path"), v))],
    K.COPY_PATH: [("copied_path", lambda v, i: (i.get("from_path"), v))],
    K.CREATE_COPY_REF: [("created_copy_ref", lambda v, i: (v.copy_ref, i.get("path")))],
    K.COPY_FROM_REF: [("copied_from_ref", lambda v, i: (i.get("from_copy_ref"), v))],
    K.DELETE_PATH: [("deleted_path", lambda v, i: (v,))],
    K.CREATE_FOLDER: [("created_folder", lambda v, i: (v,))],
    K.LOAD_ACCOUNT_INFO: [("loaded_account_info", lambda v, i: (v,))],
    K.SEARCH: [
        ("loaded_search_results", lambda v, i: (v, i.get("path"), i.get("keyword"))),
    ],
    K.LOAD_SHAREABLE_LINK: [("loaded_shareable_link", lambda v, i: (v.url, i.get("path")))],
    K.LOAD_STREAMABLE_URL: [("loaded_streamable_url", lambda v, i: (v.url, i.get("path")))],
}

UNCHANGED_SHAPES: dict[OperationKind, Sequence[Shape]] = {
    K.LOAD_METADATA: [("metadata_unchanged", lambda path, i: (path,))],
}

PROGRESS_SHAPES: dict[OperationKind, Sequence[Shape]] = {
    K.LOAD_FILE: [("load_progress", lambda p, i: (p, i.get("destination_path")))],
    K.UPLOAD_FILE: [
        ("upload_progress", lambda p, i: (p, i.get("destination_path"), i.get("source_path"))),
    ],
    K.UPLOAD_CHUNK: [
        (
            "upload_file_chunk_progress",
            lambda p, i: (p, i.get("upload_id"), i.get("offset"), i.get("from_path")),
        ),
    ],
}


def failure_shapes(kind: OperationKind) -> Sequence[Shape]:
    return [(f"{kind.value}_failed", lambda error, i: (error,))]


class DelegateListener:
    def __init__(self, delegate: object) -> None:
        self._delegate = delegate

    @property
    def delegate(self) -> object:
        return self._delegate

    def resolve(self, shapes: Sequence[Shape]) -> tuple[Callable[..., Any], ArgBuilder] | None:
        """First shape in ``shapes`` the delegate implements."""
        for name, build in shapes:
            method = getattr(self._delegate, name, None)
            if callable(method):
                return method, build
        return None

    def result_callback(
        self, kind: OperationKind, user_info: Mapping[str, Any]
    ) -> ResultCallback | None:
        on_success = self.resolve(SUCCESS_SHAPES.get(kind, ()))
        on_failure = self.resolve(failure_shapes(kind))
        on_unchanged = self.resolve(UNCHANGED_SHAPES.get(kind, ()))
        if on_success is None and on_failure is None and on_unchanged is None:
            return None

        def deliver(outcome: Outcome) -> Any:
            if isinstance(outcome, Success):
                target, payload = on_success, outcome.value
            elif isinstance(outcome, Failure):
                target, payload = on_failure, outcome.error
            elif isinstance(outcome, Unchanged):
                target, payload = on_unchanged, outcome.path
            else:
                raise TypeError(f"unknown outcome {outcome!r}")
            if target is None:
                logger.debug("no delegate handler for %s %s", kind.value, type(outcome).__name__)
                return None
            method, build = target
            return method(*build(payload, user_info))

        return deliver

    def progress_callback(
        self, kind: OperationKind, user_info: Mapping[str, Any]
    ) -> ProgressCallback | None:
        target = self.resolve(PROGRESS_SHAPES.get(kind, ()))
        if target is None:
            return None
        method, build = target

        def progress(event: ProgressEvent) -> Any:
            return method(*build(event.percentage / 100, user_info))

        return progress


__all__ = [
    "DelegateListener",
    "PROGRESS_SHAPES",
    "SUCCESS_SHAPES",
    "UNCHANGED_SHAPES",
    "failure_shapes",
]
