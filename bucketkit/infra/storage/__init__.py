"""Object storage access layer.

This module exposes the S3-compatible client, its request types and the
signing helpers used to authenticate requests.
"""

from .client import (
    Auth,
    BytesReaderFactory,
    DeleteRequest,
    FileReaderFactory,
    GetRequest,
    HTTPStatusError,
    ListRequest,
    ObjectRef,
    PutObjectRequest,
    PutRequest,
    ReaderFactory,
    ResponseDecodeError,
    SigningError,
    StorageClient,
    StorageError,
    TransportError,
    ValidationError,
)
from .listing import ListBucketResult, ListEntry, Owner, decode_list_result
from .s3_client import S3StorageClient

__all__ = [
    "Auth",
    "BytesReaderFactory",
    "DeleteRequest",
    "FileReaderFactory",
    "GetRequest",
    "HTTPStatusError",
    "ListBucketResult",
    "ListEntry",
    "ListRequest",
    "ObjectRef",
    "Owner",
    "PutObjectRequest",
    "PutRequest",
    "ReaderFactory",
    "ResponseDecodeError",
    "S3StorageClient",
    "SigningError",
    "StorageClient",
    "StorageError",
    "TransportError",
    "ValidationError",
    "decode_list_result",
]
