from ._internal.http.config import ClientConfig, best_language
from .auth import CredentialProvider, StaticCredentialProvider
from .errors import (
    CloudboxError,
    TransportError,
    ApiError,
    AuthenticationError,
    InvalidResponseError,
    LocalFileNotFoundError,
    IllegalFileTypeError,
    ClientClosedError,
)
from .client import RestClient
from .chunked import CHUNK_SIZE, ChunkedUploader, ChunkedUploadSession
from .delta import iter_delta, sync_delta
from .listener import DelegateListener
from .operation import KeySpace, Operation, OperationKind, OperationState
from .registry import DuplicateOperationError, RequestRegistry, SupersedePolicy
from .results import Failure, Outcome, ProgressEvent, Success, Unchanged
from .signer import RequestSigner, SignedRequest
from .models import (
    AccountInfo,
    ChunkUploadAck,
    CommittedUpload,
    CopyRef,
    DeltaEntry,
    DeltaPage,
    LoadedFile,
    LoadedThumbnail,
    Metadata,
    QuotaInfo,
    SharedLink,
    UploadedFile,
)

__all__ = [
    "ClientConfig",
    "best_language",
    "CredentialProvider",
    "StaticCredentialProvider",
    "CloudboxError",
    "TransportError",
    "ApiError",
    "AuthenticationError",
    "InvalidResponseError",
    "LocalFileNotFoundError",
    "IllegalFileTypeError",
    "ClientClosedError",
    "RestClient",
    "CHUNK_SIZE",
    "ChunkedUploader",
    "ChunkedUploadSession",
    "iter_delta",
    "sync_delta",
    "DelegateListener",
    "KeySpace",
    "Operation",
    "OperationKind",
    "OperationState",
    "DuplicateOperationError",
    "RequestRegistry",
    "SupersedePolicy",
    "Failure",
    "Outcome",
    "ProgressEvent",
    "Success",
    "Unchanged",
    "RequestSigner",
    "SignedRequest",
    "AccountInfo",
    "ChunkUploadAck",
    "CommittedUpload",
    "CopyRef",
    "DeltaEntry",
    "DeltaPage",
    "LoadedFile",
    "LoadedThumbnail",
    "Metadata",
    "QuotaInfo",
    "SharedLink",
    "UploadedFile",
]
