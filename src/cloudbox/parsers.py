"""Response interpreters, one per operation kind.

These run on worker threads. Each takes the transport response and the
operation (for its user info) and returns the typed result, raising
:class:`InvalidResponseError` when the body is not shaped as expected.
"""

from __future__ import annotations

import json
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ._internal.http.transport import TransportResponse
from .errors import InvalidResponseError
from .models import (
    AccountInfo,
    ChunkUploadAck,
    CommittedUpload,
    CopyRef,
    DeltaPage,
    LoadedFile,
    LoadedThumbnail,
    Metadata,
    SharedLink,
    UploadedFile,
)
from .operation import Operation

METADATA_HEADER = "x-dropbox-metadata"

M = TypeVar("M", bound=BaseModel)


def decode_json(response: TransportResponse, expected: type) -> Any:
    try:
        data = response.json()
    except ValueError as exc:
        raise InvalidResponseError("Response body is not valid JSON") from exc
    if not isinstance(data, expected):
        raise InvalidResponseError(
            f"Expected a JSON {expected.__name__}, got {type(data).__name__}"
        )
    return data


def validate(model: type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        message = f"Invalid {model.__name__}: {exc.error_count()} error(s)"
        raise InvalidResponseError(message) from exc


def _header_metadata(response: TransportResponse) -> Metadata | None:
    raw = response.headers.get(METADATA_HEADER)
    if not raw:
        return None
    try:
        return Metadata.model_validate(json.loads(raw))
    except (ValueError, ValidationError):
        return None


def parse_metadata(response: TransportResponse, op: Operation) -> Metadata:
    return validate(Metadata, decode_json(response, dict))


def parse_metadata_list(response: TransportResponse, op: Operation) -> list[Metadata]:
    return [validate(Metadata, item) for item in decode_json(response, list)]


def parse_delta(response: TransportResponse, op: Operation) -> DeltaPage:
    return validate(DeltaPage, decode_json(response, dict))


def parse_loaded_file(response: TransportResponse, op: Operation) -> LoadedFile:
    return LoadedFile(
        destination_path=op.user_info["destination_path"],
        content_type=response.headers.get("content-type"),
        metadata=_header_metadata(response),
        etag=response.headers.get("etag"),
    )


def parse_loaded_thumbnail(response: TransportResponse, op: Operation) -> LoadedThumbnail:
    return LoadedThumbnail(
        destination_path=op.user_info["destination_path"],
        metadata=_header_metadata(response),
    )


def parse_uploaded_file(response: TransportResponse, op: Operation) -> UploadedFile:
    return UploadedFile(
        destination_path=op.user_info["destination_path"],
        source_path=op.user_info["source_path"],
        metadata=parse_metadata(response, op),
    )


def parse_chunk_ack(response: TransportResponse, op: Operation) -> ChunkUploadAck:
    return validate(ChunkUploadAck, decode_json(response, dict))


def parse_commit(response: TransportResponse, op: Operation) -> CommittedUpload:
    return CommittedUpload(
        destination_path=op.user_info["destination_path"],
        upload_id=op.user_info["upload_id"],
        metadata=parse_metadata(response, op),
    )


def parse_copy_ref(response: TransportResponse, op: Operation) -> CopyRef:
    return validate(CopyRef, decode_json(response, dict))


def parse_deleted_path(response: TransportResponse, op: Operation) -> str:
    return op.user_info["path"]


def parse_account_info(response: TransportResponse, op: Operation) -> AccountInfo:
    return validate(AccountInfo, decode_json(response, dict))


def parse_shared_link(response: TransportResponse, op: Operation) -> SharedLink:
    return validate(SharedLink, decode_json(response, dict))


__all__ = [
    "METADATA_HEADER",
    "decode_json",
    "parse_account_info",
    "parse_chunk_ack",
    "parse_commit",
    "parse_copy_ref",
    "parse_delta",
    "parse_deleted_path",
    "parse_loaded_file",
    "parse_loaded_thumbnail",
    "parse_metadata",
    "parse_metadata_list",
    "parse_shared_link",
    "parse_uploaded_file",
    "validate",
]
